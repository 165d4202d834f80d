"""
Notifications Module
"""
from .status import (
    BulkSendStatus,
    StatusStore,
    RedisStatusStore,
    InMemoryStatusStore,
    IN_PROGRESS,
    COMPLETED,
)
from .bulk_send import BulkSendService

__all__ = [
    "BulkSendStatus",
    "StatusStore",
    "RedisStatusStore",
    "InMemoryStatusStore",
    "IN_PROGRESS",
    "COMPLETED",
    "BulkSendService",
]
