"""
API Response Models
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ProductOut(BaseModel):
    """Product in a listing"""
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    name: str
    slug: str
    category_id: Optional[str]
    price: float
    discount: float
    thumbnail_url: Optional[str] = None
    total_views: int
    score: float
    created_at: datetime


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: str
    name: str
    slug: str
    parent_id: Optional[str]


class TrackResponse(BaseModel):
    """Single tracking call result"""
    success: bool = True
    status: str  # accepted | recorded | skipped | dropped
    event_id: Optional[str] = None


class BatchTrackResponse(BaseModel):
    success: bool = True
    count: int


class TrendingItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entity_id: str
    score: float
    views: int
    unique_visitors: int


class TrendingResponse(BaseModel):
    """Ranked entities for a period"""
    entity_type: str
    period: str
    strategy: str
    items: List[TrendingItemOut]


class RecommendationMeta(BaseModel):
    total: int
    strategy: str
    limit: int


class RecommendationResponse(BaseModel):
    """Recommended products plus how they were chosen"""
    products: List[ProductOut]
    meta: RecommendationMeta


class RelatedProductsResponse(BaseModel):
    """Products near one product in the category tree, in rank order"""
    success: bool = True
    products: List[ProductOut]


class BannerOut(BaseModel):
    """Banner with resolved display content"""
    model_config = ConfigDict(from_attributes=True)

    banner_id: str
    name: str
    content_type: str
    source_type: str
    order: int
    title: Optional[str] = None
    subtitle: Optional[str] = None
    products: List[ProductOut] = []
    category: Optional[CategoryOut] = None
    content: Dict[str, Any] = {}


class BannerListResponse(BaseModel):
    success: bool = True
    banners: List[BannerOut]


class ViewCountsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_views: int
    views_today: int
    views_this_week: int
    views_this_month: int
    unique_visitors: int


class ProductStatsResponse(BaseModel):
    """Live view counts and score of one product"""
    product: ProductOut
    counts: ViewCountsOut
    score: float


class BulkSendStatusResponse(BaseModel):
    tracking_id: str
    status: str
    total: int
    sent: int
    failed: int
    errors: List[str]
