"""
Recommendation Planner

Runs the tier chain (personalized, popular, latest) until `limit`
products are chosen, then shuffles them. Ranking decides which products
are included; the display order is random so the same top item does not
always lead the list.

The strategy tag names the first tier that contributed anything, or
"fallback" when nothing could be found.
"""

import random
import re
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import structlog
from prometheus_client import Histogram

from storefront_signals.catalog.store import ProductRecord
from storefront_signals.exceptions import StoreUnavailableError
from storefront_signals.recommendation.tiers import PlanContext, RecommendationTier

logger = structlog.get_logger(__name__)

RECOMMENDATION_LATENCY = Histogram(
    "signals_recommendation_seconds",
    "Time spent planning recommendations",
    ["strategy"],
)

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

FALLBACK = "fallback"


@dataclass
class Recommendation:
    """Planned recommendation list"""
    products: List[ProductRecord] = field(default_factory=list)
    strategy: str = FALLBACK
    limit: int = 0

    @property
    def total(self) -> int:
        return len(self.products)


def normalize_user_id(user_id: Optional[str]) -> Optional[str]:
    """A usable user id, or None for anonymous"""
    if not user_id:
        return None
    user_id = user_id.strip()
    if not _USER_ID_PATTERN.match(user_id):
        return None
    return user_id


class RecommendationPlanner:
    """
    Fills a recommendation list through a chain of tiers.

    Example:
        planner = RecommendationPlanner([
            PersonalizedTier(catalog, events),
            PopularTier(catalog),
            LatestTier(catalog),
        ])
        result = await planner.recommend(user_id="u1", limit=12)
    """

    def __init__(
        self,
        tiers: Sequence[RecommendationTier],
        default_limit: int = 12,
        max_limit: int = 50,
        rng: Optional[random.Random] = None,
    ):
        self.tiers = list(tiers)
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.rng = rng or random.Random()

    async def recommend(
        self,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
        exclude_ids: Iterable[str] = (),
    ) -> Recommendation:
        started = time.perf_counter()
        limit = max(1, min(limit or self.default_limit, self.max_limit))

        normalized = normalize_user_id(user_id)
        if user_id and normalized is None:
            logger.debug("Unusable user id, treating as anonymous", user_id=user_id)

        ctx = PlanContext(
            user_id=normalized,
            limit=limit,
            exclude={pid for pid in exclude_ids if pid},
        )

        strategy = None
        failures = 0
        attempted = 0
        for tier in self.tiers:
            if ctx.remaining <= 0:
                break
            attempted += 1
            try:
                candidates = await tier.candidates(ctx)
            except Exception as e:
                failures += 1
                logger.error(
                    "Recommendation tier failed",
                    tier=tier.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                last_error = e
                continue
            added = ctx.accept(candidates)
            if added and strategy is None:
                strategy = tier.name

        if attempted and failures == attempted:
            raise StoreUnavailableError("catalog", last_error)

        products = list(ctx.chosen)
        self.rng.shuffle(products)

        result = Recommendation(products=products, strategy=strategy or FALLBACK, limit=limit)
        RECOMMENDATION_LATENCY.labels(strategy=result.strategy).observe(time.perf_counter() - started)
        logger.info(
            "Recommendations planned",
            user_id=normalized,
            strategy=result.strategy,
            total=result.total,
            limit=limit,
        )
        return result
