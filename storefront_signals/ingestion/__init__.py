"""
Ingestion Module
"""
from .events import TrackEvent, parse_event, counter_family
from .stores import EventStore, DailyAggregateStore
from .counters import EntityCounterSink
from .tracker import EventTracker, TrackResult

__all__ = [
    "TrackEvent",
    "parse_event",
    "counter_family",
    "EventStore",
    "DailyAggregateStore",
    "EntityCounterSink",
    "EventTracker",
    "TrackResult",
]
