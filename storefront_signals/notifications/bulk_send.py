"""
Bulk Send

Runs a delivery callable over a list of recipients on the worker pool and
records progress in a StatusStore so clients can poll it by tracking id.
"""

import uuid
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from storefront_signals.exceptions import IngestionError, TrackingNotFoundError
from storefront_signals.notifications.status import BulkSendStatus, StatusStore
from storefront_signals.tasks.dispatcher import BackgroundDispatcher

logger = structlog.get_logger(__name__)

Deliver = Callable[[str], Awaitable[Any]]


class BulkSendService:
    """
    Fire-and-forget bulk delivery with pollable status.

    Example:
        service = BulkSendService(InMemoryStatusStore(), dispatcher)
        tracking_id = await service.start(["a@example.com"], send_email)
        status = await service.status(tracking_id)
    """

    def __init__(
        self,
        store: StatusStore,
        dispatcher: BackgroundDispatcher,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)

    async def start(self, recipients: List[str], deliver: Deliver) -> str:
        """
        Register a bulk send and queue it.

        Returns:
            Tracking id to poll with status()

        Raises:
            IngestionError: If there is nobody to send to
        """
        recipients = [r for r in recipients if r]
        if not recipients:
            raise IngestionError("Bulk send needs at least one recipient")

        tracking_id = self.id_factory()
        await self.store.create(tracking_id, total=len(recipients))

        queued = self.dispatcher.submit(
            "bulk_send",
            lambda: self._run(tracking_id, recipients, deliver),
        )
        if not queued:
            await self.store.record(
                tracking_id,
                failed=len(recipients),
                error="Background queue full",
            )
            await self.store.complete(tracking_id)

        logger.info("Bulk send started", tracking_id=tracking_id, total=len(recipients), queued=queued)
        return tracking_id

    async def status(self, tracking_id: str) -> BulkSendStatus:
        status = await self.store.get(tracking_id)
        if status is None:
            raise TrackingNotFoundError(tracking_id)
        return status

    async def _run(self, tracking_id: str, recipients: List[str], deliver: Deliver) -> None:
        try:
            for recipient in recipients:
                try:
                    await deliver(recipient)
                except Exception as e:
                    logger.warning(
                        "Bulk send delivery failed",
                        tracking_id=tracking_id,
                        recipient=recipient,
                        error=str(e),
                    )
                    await self.store.record(tracking_id, failed=1, error=f"{recipient}: {e}")
                else:
                    await self.store.record(tracking_id, sent=1)
        finally:
            await self.store.complete(tracking_id)
            logger.info("Bulk send completed", tracking_id=tracking_id)
