"""
Notification API Endpoints
"""

from fastapi import APIRouter, Depends

from storefront_signals.serving.api.dependencies import get_engine
from storefront_signals.serving.api.schemas import BulkSendStatusResponse
from storefront_signals.serving.container import SignalsEngine

router = APIRouter()


@router.get("/bulk-send/{tracking_id}", response_model=BulkSendStatusResponse)
async def get_bulk_send_status(
    tracking_id: str,
    engine: SignalsEngine = Depends(get_engine),
) -> BulkSendStatusResponse:
    """Progress of a bulk send; 404 once unknown or expired"""
    status = await engine.bulk_send.status(tracking_id)
    return BulkSendStatusResponse(**status.to_dict())
