"""
Scoring Engine

Relevance score of a catalog entity from already-aggregated inputs.
A tunable heuristic: recent activity outweighs historic accumulation,
and discount plus a newness bonus bias toward promotable inventory.

    score = today*4 + week*2 + month*1.2 + total*0.5 + discount*0.8 + (new ? 6 : 0)
"""

from dataclasses import dataclass
from datetime import datetime

from storefront_signals.config.settings import ScoringSettings


@dataclass(frozen=True)
class ScoreInputs:
    """Aggregated signals for one entity; everything defaults to 0"""
    views_today: int = 0
    views_this_week: int = 0
    views_this_month: int = 0
    total_views: int = 0
    discount_percent: float = 0.0
    days_since_created: float = 0.0


@dataclass(frozen=True)
class ScoringWeights:
    """Score coefficients"""
    today: float = 4.0
    week: float = 2.0
    month: float = 1.2
    total: float = 0.5
    discount: float = 0.8
    new_bonus: float = 6.0
    new_days: float = 60

    @classmethod
    def from_settings(cls, settings: ScoringSettings) -> "ScoringWeights":
        return cls(
            today=settings.weight_today,
            week=settings.weight_week,
            month=settings.weight_month,
            total=settings.weight_total,
            discount=settings.weight_discount,
            new_bonus=settings.new_item_bonus,
            new_days=settings.new_item_days,
        )


DEFAULT_WEIGHTS = ScoringWeights()


def compute_score(inputs: ScoreInputs, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Score rounded to 2 decimals. Pure; no I/O."""
    is_new = inputs.days_since_created <= weights.new_days
    raw = (
        (inputs.views_today or 0) * weights.today
        + (inputs.views_this_week or 0) * weights.week
        + (inputs.views_this_month or 0) * weights.month
        + (inputs.total_views or 0) * weights.total
        + (inputs.discount_percent or 0) * weights.discount
        + (weights.new_bonus if is_new else 0)
    )
    return round(raw, 2)


def days_between(created_at: datetime, now: datetime) -> float:
    """Fractional days from created_at to now"""
    return (now - created_at).total_seconds() / 86400
