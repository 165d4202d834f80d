"""
Analytics Module
"""
from .trending import TrendingCalculator, TrendingItem, TrendingResult, period_start
from .queries import AnalyticsQueries

__all__ = [
    "TrendingCalculator",
    "TrendingItem",
    "TrendingResult",
    "period_start",
    "AnalyticsQueries",
]
