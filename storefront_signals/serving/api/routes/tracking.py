"""
Tracking API Endpoints

Ingestion front door. Payloads are validated on the request; the write
itself runs on the worker pool unless the synchronous variant is used.
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Body, Depends, Request, status

from storefront_signals.config import get_settings
from storefront_signals.exceptions import IngestionError
from storefront_signals.ingestion import TrackEvent, parse_event
from storefront_signals.serving.api.dependencies import client_ip, get_engine, request_metadata
from storefront_signals.serving.api.schemas import BatchTrackResponse, TrackResponse
from storefront_signals.serving.container import SignalsEngine

router = APIRouter()
logger = structlog.get_logger(__name__)


def build_event(payload: Any, request: Request) -> TrackEvent:
    """Validate a client payload, stamping the server-side ip and headers"""
    if not isinstance(payload, dict):
        raise IngestionError("Tracking payload must be an object")

    data = dict(payload)
    data["ip"] = client_ip(request)
    metadata = data.get("metadata")
    if metadata is None:
        metadata = {}
    if isinstance(metadata, dict):
        data["metadata"] = {**metadata, **request_metadata(request)}
    return parse_event(data)


@router.post("", response_model=TrackResponse, status_code=status.HTTP_202_ACCEPTED)
async def track(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SignalsEngine = Depends(get_engine),
) -> TrackResponse:
    """Validate and queue one event"""
    event = build_event(payload, request)
    queued = engine.tracker.track_in_background(event)
    return TrackResponse(status="accepted" if queued else "dropped")


@router.put("", response_model=BatchTrackResponse, status_code=status.HTTP_202_ACCEPTED)
async def track_batch(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SignalsEngine = Depends(get_engine),
) -> BatchTrackResponse:
    """
    Validate and queue a batch of events sharing the caller's ip.

    The whole batch is rejected if any event is invalid.
    """
    events = payload.get("events")
    if not isinstance(events, list) or not events:
        raise IngestionError("events array is required")

    max_batch = get_settings().tracking.max_batch_size
    if len(events) > max_batch:
        raise IngestionError(
            f"Batch too large: {len(events)} events",
            details={"max_batch_size": max_batch},
        )

    parsed = []
    for index, item in enumerate(events):
        try:
            parsed.append(build_event(item, request))
        except IngestionError as e:
            raise IngestionError(
                f"Invalid event at index {index}",
                details={"index": index, **e.details},
            ) from e

    count = engine.tracker.track_many_in_background(parsed)
    logger.debug("Batch queued", received=len(parsed), queued=count)
    return BatchTrackResponse(count=count)


@router.post("/sync", response_model=TrackResponse)
async def track_sync(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    engine: SignalsEngine = Depends(get_engine),
) -> TrackResponse:
    """Record one event and report the outcome"""
    event = build_event(payload, request)
    result = await engine.tracker.track(event)
    if result.skipped:
        return TrackResponse(status="skipped")
    return TrackResponse(status="recorded", event_id=str(result.event_id))
