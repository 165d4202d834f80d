"""
Product Stats

Live view counts and score for a product detail read. The score is
computed on the request path; persisting it back onto the product is
handed to the worker pool so the read is never delayed by the write.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from storefront_signals.catalog.store import CatalogStore, ProductRecord
from storefront_signals.database.models import EntityType
from storefront_signals.ingestion.stores import EventStore, ViewWindowCounts
from storefront_signals.scoring.engine import (
    DEFAULT_WEIGHTS,
    ScoreInputs,
    ScoringWeights,
    compute_score,
    days_between,
)
from storefront_signals.tasks.clock import Clock, SystemClock
from storefront_signals.tasks.dispatcher import BackgroundDispatcher

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProductStats:
    """Window counts plus the score derived from them"""
    product: ProductRecord
    counts: ViewWindowCounts
    score: float


class ViewWindowCounter:
    """Counts views of one entity since UTC midnight today, 7 and 30 days ago"""

    def __init__(self, events: EventStore, clock: Optional[Clock] = None):
        self.events = events
        self.clock = clock or SystemClock()

    async def counts(
        self,
        entity_id: str,
        entity_type: str = EntityType.PRODUCT.value,
    ) -> ViewWindowCounts:
        return await self.events.window_counts(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=f"{entity_type}_view",
            today_start=self.clock.day_start(0),
            week_start=self.clock.day_start(7),
            month_start=self.clock.day_start(30),
        )


class ProductStatsService:
    """Computes product stats and persists them in the background"""

    def __init__(
        self,
        catalog: CatalogStore,
        counter: ViewWindowCounter,
        dispatcher: Optional[BackgroundDispatcher] = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        clock: Optional[Clock] = None,
    ):
        self.catalog = catalog
        self.counter = counter
        self.dispatcher = dispatcher
        self.weights = weights
        self.clock = clock or counter.clock

    async def refresh(self, product_id: str) -> Optional[ProductStats]:
        """
        Recompute a product's stats.

        Returns:
            None when the product does not exist
        """
        product = await self.catalog.get_product(product_id)
        if product is None:
            return None

        counts = await self.counter.counts(product_id)
        score = compute_score(
            ScoreInputs(
                views_today=counts.views_today,
                views_this_week=counts.views_this_week,
                views_this_month=counts.views_this_month,
                total_views=counts.total_views,
                discount_percent=product.discount,
                days_since_created=days_between(product.created_at, self.clock.now()),
            ),
            self.weights,
        )

        if self.dispatcher is not None:
            self.dispatcher.submit(
                "persist_product_stats",
                lambda: self.catalog.update_product_stats(product_id, counts.total_views, score),
            )
        else:
            logger.warning("No dispatcher, product stats not persisted", product_id=product_id)

        return ProductStats(product=product, counts=counts, score=score)
