"""
Banner API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from storefront_signals.database.models import EntityType, EventType
from storefront_signals.ingestion import parse_event
from storefront_signals.serving.api.dependencies import (
    client_ip,
    get_engine,
    get_visitor,
    request_metadata,
)
from storefront_signals.serving.api.schemas import BannerListResponse, BannerOut, TrackResponse
from storefront_signals.serving.container import SignalsEngine

router = APIRouter()


@router.get("", response_model=BannerListResponse)
async def list_banners(
    request: Request,
    limit: Optional[int] = Query(None, ge=1),
    include_auto: bool = True,
    engine: SignalsEngine = Depends(get_engine),
) -> BannerListResponse:
    """Banners scheduled now, with auto content resolved; records impressions"""
    banners = await engine.banners.current(
        limit=limit,
        include_auto=include_auto,
        visitor=get_visitor(request),
    )
    return BannerListResponse(banners=[BannerOut.model_validate(b) for b in banners])


@router.post("/{banner_id}/click", response_model=TrackResponse, status_code=status.HTTP_202_ACCEPTED)
async def track_banner_click(
    banner_id: str,
    request: Request,
    engine: SignalsEngine = Depends(get_engine),
) -> TrackResponse:
    event = parse_event({
        "event_type": EventType.BANNER_CLICK.value,
        "entity_type": EntityType.BANNER.value,
        "entity_id": banner_id,
        "ip": client_ip(request),
        "session_id": request.headers.get("x-session-id"),
        "user_id": request.headers.get("x-user-id"),
        "metadata": request_metadata(request),
    })
    queued = engine.tracker.track_in_background(event)
    return TrackResponse(status="accepted" if queued else "dropped")
