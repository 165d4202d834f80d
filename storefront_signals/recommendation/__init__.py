"""
Recommendation Module
"""
from .tiers import (
    PlanContext,
    RecommendationTier,
    PersonalizedTier,
    PopularTier,
    LatestTier,
)
from .planner import RecommendationPlanner, Recommendation, normalize_user_id
from .related import RelatedProducts

__all__ = [
    "PlanContext",
    "RecommendationTier",
    "PersonalizedTier",
    "PopularTier",
    "LatestTier",
    "RecommendationPlanner",
    "Recommendation",
    "normalize_user_id",
    "RelatedProducts",
]
