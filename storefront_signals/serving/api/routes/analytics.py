"""
Analytics API Endpoints

Dashboard reads over the event log and daily rollups.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront_signals.database.models import EntityType
from storefront_signals.serving.api.dependencies import get_engine
from storefront_signals.serving.api.schemas import ProductStatsResponse, ProductOut, ViewCountsOut
from storefront_signals.serving.container import SignalsEngine

router = APIRouter()


@router.get("/summary")
async def get_summary(
    days: Optional[int] = Query(30, ge=1, le=365),
    engine: SignalsEngine = Depends(get_engine),
) -> Dict[str, Any]:
    return await engine.analytics.dashboard_summary(days=days)


@router.get("/top")
async def get_top_viewed(
    entity_type: EntityType = EntityType.PRODUCT,
    days: int = Query(7, ge=1, le=365),
    limit: int = Query(10, ge=1, le=100),
    engine: SignalsEngine = Depends(get_engine),
) -> List[Dict[str, Any]]:
    return await engine.analytics.top_viewed(entity_type=entity_type.value, days=days, limit=limit)


@router.get("/entities/{entity_type}/{entity_id}")
async def get_entity_stats(
    entity_type: EntityType,
    entity_id: str,
    days: int = Query(30, ge=1, le=365),
    engine: SignalsEngine = Depends(get_engine),
) -> Dict[str, int]:
    return await engine.analytics.entity_stats(entity_type.value, entity_id, days=days)


@router.get("/entities/{entity_type}/{entity_id}/daily")
async def get_daily_series(
    entity_type: EntityType,
    entity_id: str,
    days: int = Query(30, ge=1, le=365),
    engine: SignalsEngine = Depends(get_engine),
) -> List[Dict[str, Any]]:
    return await engine.analytics.daily_series(entity_type.value, entity_id, days=days)


@router.get("/products/{product_id}/stats", response_model=ProductStatsResponse)
async def get_product_stats(
    product_id: str,
    engine: SignalsEngine = Depends(get_engine),
) -> ProductStatsResponse:
    """Live window counts and score; the score is persisted in the background"""
    stats = await engine.product_stats.refresh(product_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductStatsResponse(
        product=ProductOut.model_validate(stats.product),
        counts=ViewCountsOut.model_validate(stats.counts),
        score=stats.score,
    )
