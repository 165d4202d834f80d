"""
Event Tracker

Ingestion front door. For each event:
1. Deduplicate view events against a trailing window
2. Append the event to the log
3. Increment the daily aggregate row
4. Increment the entity counter

Steps 3 and 4 are independent and best-effort: each failure is logged
and swallowed without undoing the others. Deduplication is a read
followed by a write, so two near-simultaneous identical views can both
get through.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional
import uuid

import structlog
from prometheus_client import Counter

from storefront_signals.ingestion.counters import EntityCounterSink
from storefront_signals.ingestion.events import TrackEvent, parse_event
from storefront_signals.ingestion.stores import DailyAggregateStore, EventStore
from storefront_signals.tasks.clock import Clock, SystemClock
from storefront_signals.tasks.dispatcher import BackgroundDispatcher

logger = structlog.get_logger(__name__)


EVENTS_TRACKED = Counter(
    "signals_events_tracked_total",
    "Tracking calls by outcome",
    ["event_type", "outcome"],
)


@dataclass(frozen=True)
class TrackResult:
    """Outcome of a tracking call: an event id, or skipped"""
    event_id: Optional[uuid.UUID] = None

    @property
    def skipped(self) -> bool:
        return self.event_id is None


SKIPPED = TrackResult()


class EventTracker:
    """
    Validates, deduplicates and records behavioral events.

    Example:
        tracker = EventTracker(events, aggregates, counters, clock=clock)
        result = await tracker.track(parse_event(payload))
    """

    def __init__(
        self,
        events: EventStore,
        aggregates: DailyAggregateStore,
        counters: EntityCounterSink,
        clock: Optional[Clock] = None,
        dispatcher: Optional[BackgroundDispatcher] = None,
        dedup_window: timedelta = timedelta(minutes=5),
    ):
        self.events = events
        self.aggregates = aggregates
        self.counters = counters
        self.clock = clock or SystemClock()
        self.dispatcher = dispatcher
        self.dedup_window = dedup_window

    async def track(self, event: TrackEvent) -> TrackResult:
        """Record one validated event"""
        event_type = event.event_type.value
        now = self.clock.now()

        if event.is_deduplicated:
            if await self.events.has_recent_duplicate(event, since=now - self.dedup_window):
                logger.debug(
                    "Duplicate view skipped",
                    event_type=event_type,
                    entity_id=event.entity_id,
                )
                EVENTS_TRACKED.labels(event_type=event_type, outcome="skipped").inc()
                return SKIPPED

        event_id = await self.events.append(event, created_at=now)
        EVENTS_TRACKED.labels(event_type=event_type, outcome="recorded").inc()

        family = event.counter_family
        if family is not None:
            try:
                await self.aggregates.increment(
                    day=now.date(),
                    entity_type=event.entity_type.value,
                    entity_id=event.entity_id,
                    counter=family,
                    entity_slug=event.entity_slug,
                    entity_name=event.entity_name,
                )
            except Exception as e:
                logger.error(
                    "Daily aggregate update failed",
                    event_id=str(event_id),
                    entity_id=event.entity_id,
                    error=str(e),
                )

        try:
            await self.counters.apply(
                entity_type=event.entity_type.value,
                entity_id=event.entity_id,
                event_type=event_type,
            )
        except Exception as e:
            logger.error(
                "Entity counter update failed",
                event_id=str(event_id),
                entity_id=event.entity_id,
                error=str(e),
            )

        return TrackResult(event_id=event_id)

    async def track_payload(self, data: Dict[str, Any]) -> TrackResult:
        """Validate a raw payload and record it"""
        try:
            event = parse_event(data)
        except Exception:
            EVENTS_TRACKED.labels(
                event_type=str(data.get("event_type", "unknown")), outcome="rejected"
            ).inc()
            raise
        return await self.track(event)

    def track_in_background(self, event: TrackEvent) -> bool:
        """
        Hand a validated event to the worker pool without waiting.

        Returns:
            False if the pool rejected the task
        """
        if self.dispatcher is None:
            raise RuntimeError("EventTracker has no dispatcher for background tracking")
        return self.dispatcher.submit(
            f"track:{event.event_type.value}",
            lambda: self.track(event),
        )

    def track_many_in_background(self, events: List[TrackEvent]) -> int:
        """Queue several events; returns how many were accepted"""
        return sum(1 for event in events if self.track_in_background(event))
