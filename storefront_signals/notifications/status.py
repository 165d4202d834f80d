"""
Bulk-Send Status Store

Progress of long-running bulk sends, keyed by tracking id. Entries expire
on their own after a fixed lifetime; nothing else removes them.

Two implementations:
- RedisStatusStore: hash + list per tracking id with native key expiry
- InMemoryStatusStore: dict with clock-driven eviction, for single
  process deployments and tests
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import WatchError

from storefront_signals.tasks.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)

IN_PROGRESS = "in_progress"
COMPLETED = "completed"


@dataclass
class BulkSendStatus:
    """Snapshot of one bulk send"""
    tracking_id: str
    status: str = IN_PROGRESS
    total: int = 0
    sent: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "tracking_id": self.tracking_id,
            "status": self.status,
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class StatusStore(ABC):
    """Where bulk-send progress lives"""

    @abstractmethod
    async def create(self, tracking_id: str, total: int) -> None:
        """Start tracking a bulk send as in_progress"""

    @abstractmethod
    async def record(self, tracking_id: str, sent: int = 0, failed: int = 0, error: Optional[str] = None) -> None:
        """Add to the sent/failed counts and optionally keep an error message"""

    @abstractmethod
    async def complete(self, tracking_id: str) -> None:
        """Mark a bulk send completed"""

    @abstractmethod
    async def get(self, tracking_id: str) -> Optional[BulkSendStatus]:
        """Current status, or None if unknown or expired"""


class RedisStatusStore(StatusStore):
    """Status entries as Redis hashes with an error list alongside"""

    def __init__(
        self,
        client: Redis,
        ttl_seconds: int = 3600,
        max_errors: int = 100,
        namespace: str = "bulk_send",
        max_retries: int = 5,
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.max_errors = max_errors
        self.namespace = namespace
        self.max_retries = max_retries

    def _key(self, tracking_id: str) -> str:
        return f"{self.namespace}:{tracking_id}"

    def _errors_key(self, tracking_id: str) -> str:
        return f"{self.namespace}:{tracking_id}:errors"

    async def create(self, tracking_id: str, total: int) -> None:
        key = self._key(tracking_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping={"status": IN_PROGRESS, "total": total, "sent": 0, "failed": 0})
            pipe.expire(key, self.ttl_seconds)
            await pipe.execute()

    async def record(self, tracking_id: str, sent: int = 0, failed: int = 0, error: Optional[str] = None) -> None:
        if not (sent or failed or error):
            return

        def queue(pipe) -> None:
            if sent:
                pipe.hincrby(key, "sent", sent)
            if failed:
                pipe.hincrby(key, "failed", failed)
            if error:
                errors_key = self._errors_key(tracking_id)
                pipe.rpush(errors_key, error)
                pipe.ltrim(errors_key, 0, self.max_errors - 1)
                pipe.expire(errors_key, self.ttl_seconds)

        key = self._key(tracking_id)
        await self._update_existing(key, queue)

    async def complete(self, tracking_id: str) -> None:
        key = self._key(tracking_id)
        await self._update_existing(key, lambda pipe: pipe.hset(key, "status", COMPLETED))

    async def _update_existing(self, key: str, queue: Callable[[Any], Any]) -> bool:
        """
        Apply queued writes only while the entry still exists.

        Writing to an expired hash would recreate it without a TTL, so the
        key is watched and the transaction dropped once it is gone.
        """
        for _ in range(self.max_retries):
            async with self.client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    if not await pipe.exists(key):
                        logger.debug("Bulk-send status expired, update dropped", key=key)
                        return False
                    pipe.multi()
                    queue(pipe)
                    await pipe.execute()
                    return True
                except WatchError:
                    continue
        logger.warning("Bulk-send status update abandoned after retries", key=key)
        return False

    async def get(self, tracking_id: str) -> Optional[BulkSendStatus]:
        data = await self.client.hgetall(self._key(tracking_id))
        if not data:
            return None
        errors = await self.client.lrange(self._errors_key(tracking_id), 0, -1)
        data = {_text(k): _text(v) for k, v in data.items()}
        return BulkSendStatus(
            tracking_id=tracking_id,
            status=data.get("status", IN_PROGRESS),
            total=int(data.get("total", 0)),
            sent=int(data.get("sent", 0)),
            failed=int(data.get("failed", 0)),
            errors=[_text(e) for e in errors],
        )


def _text(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


@dataclass
class _Entry:
    status: BulkSendStatus
    created_at: datetime


class InMemoryStatusStore(StatusStore):
    """
    Process-local status map.

    Entries older than the TTL are evicted whenever the store is touched.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        ttl_seconds: int = 3600,
        max_errors: int = 100,
    ):
        self.clock = clock or SystemClock()
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_errors = max_errors
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        self._evict()
        return len(self._entries)

    def _evict(self) -> None:
        cutoff = self.clock.now() - self.ttl
        expired = [tid for tid, entry in self._entries.items() if entry.created_at <= cutoff]
        for tracking_id in expired:
            del self._entries[tracking_id]
        if expired:
            logger.debug("Expired bulk-send statuses evicted", count=len(expired))

    def _live(self, tracking_id: str) -> Optional[BulkSendStatus]:
        self._evict()
        entry = self._entries.get(tracking_id)
        return entry.status if entry else None

    async def create(self, tracking_id: str, total: int) -> None:
        self._evict()
        self._entries[tracking_id] = _Entry(
            status=BulkSendStatus(tracking_id=tracking_id, total=total),
            created_at=self.clock.now(),
        )

    async def record(self, tracking_id: str, sent: int = 0, failed: int = 0, error: Optional[str] = None) -> None:
        status = self._live(tracking_id)
        if status is None:
            return
        status.sent += sent
        status.failed += failed
        if error and len(status.errors) < self.max_errors:
            status.errors.append(error)

    async def complete(self, tracking_id: str) -> None:
        status = self._live(tracking_id)
        if status is not None:
            status.status = COMPLETED

    async def get(self, tracking_id: str) -> Optional[BulkSendStatus]:
        status = self._live(tracking_id)
        if status is None:
            return None
        return BulkSendStatus(
            tracking_id=status.tracking_id,
            status=status.status,
            total=status.total,
            sent=status.sent,
            failed=status.failed,
            errors=list(status.errors),
        )
