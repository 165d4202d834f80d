"""
Scoring Module
"""
from .engine import ScoreInputs, ScoringWeights, compute_score, DEFAULT_WEIGHTS
from .stats import ProductStats, ProductStatsService, ViewWindowCounter

__all__ = [
    "ScoreInputs",
    "ScoringWeights",
    "compute_score",
    "DEFAULT_WEIGHTS",
    "ProductStats",
    "ProductStatsService",
    "ViewWindowCounter",
]
