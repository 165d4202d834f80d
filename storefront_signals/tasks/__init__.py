"""
Background Tasks Module
"""
from .clock import Clock, SystemClock, ManualClock
from .dispatcher import BackgroundDispatcher

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "BackgroundDispatcher",
]
