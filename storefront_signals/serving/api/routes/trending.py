"""
Trending API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from storefront_signals.config import get_settings
from storefront_signals.database.models import EntityType
from storefront_signals.serving.api.dependencies import get_engine
from storefront_signals.serving.api.schemas import TrendingItemOut, TrendingResponse
from storefront_signals.serving.cache import trending_cache
from storefront_signals.serving.container import SignalsEngine

router = APIRouter()


@router.get("", response_model=TrendingResponse)
async def get_trending(
    entity_type: EntityType = EntityType.PRODUCT,
    period: str = Query("week", pattern="^(day|week|month|all)$"),
    limit: Optional[int] = Query(None, ge=1),
    category: Optional[str] = Query(None, description="Category id; includes its direct children"),
    engine: SignalsEngine = Depends(get_engine),
) -> TrendingResponse:
    """
    Entities ranked by views plus weighted unique visitors.

    Falls back to the newest active entities when the period has no views.
    """
    settings = get_settings().trending
    limit = min(limit or settings.default_limit, settings.max_limit)

    async def compute():
        result = await engine.trending.trending(
            entity_type=entity_type.value,
            period=period,
            limit=limit,
            category_filter=category,
        )
        return TrendingResponse(
            entity_type=entity_type.value,
            period=period,
            strategy=result.strategy,
            items=[TrendingItemOut.model_validate(item) for item in result.items],
        ).model_dump()

    key = f"{entity_type.value}:{period}:{limit}:{category or '*'}"
    payload = await trending_cache.get_or_set(key, compute)
    return TrendingResponse.model_validate(payload)
