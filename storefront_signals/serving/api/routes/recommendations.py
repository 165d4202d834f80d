"""
Recommendations API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from storefront_signals.serving.api.dependencies import get_engine
from storefront_signals.serving.api.schemas import (
    ProductOut,
    RecommendationMeta,
    RecommendationResponse,
    RelatedProductsResponse,
)
from storefront_signals.serving.container import SignalsEngine

router = APIRouter()


@router.get("", response_model=RecommendationResponse)
async def get_recommendations(
    request: Request,
    user_id: Optional[str] = Query(None, description="Falls back to the x-user-id header"),
    limit: Optional[int] = Query(None, ge=1),
    exclude: Optional[str] = Query(None, description="Comma-separated product ids"),
    engine: SignalsEngine = Depends(get_engine),
) -> RecommendationResponse:
    """Personalized, popular, then latest products, shuffled"""
    user_id = user_id or request.headers.get("x-user-id")
    exclude_ids = [pid.strip() for pid in (exclude or "").split(",") if pid.strip()]

    result = await engine.recommendations.recommend(
        user_id=user_id,
        limit=limit,
        exclude_ids=exclude_ids,
    )
    return RecommendationResponse(
        products=[ProductOut.model_validate(p) for p in result.products],
        meta=RecommendationMeta(total=result.total, strategy=result.strategy, limit=result.limit),
    )


@router.get("/related/{product_id}", response_model=RelatedProductsResponse)
async def get_related_products(
    product_id: str,
    limit: Optional[int] = Query(None, ge=1),
    engine: SignalsEngine = Depends(get_engine),
) -> RelatedProductsResponse:
    """Same category, its children, its parent and sibling categories"""
    products = await engine.related.related(product_id, limit=limit)
    if products is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return RelatedProductsResponse(products=[ProductOut.model_validate(p) for p in products])
