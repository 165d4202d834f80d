"""
Trending Calculator

Ranks entities by view activity over a rolling window:

    rank = views + unique_visitors * 2

Distinct visitors weigh more than raw views so one visitor refreshing a
page cannot push an item up by themselves. When the window has no
qualifying traffic the list falls back to the newest active entities, so
it is only empty when nothing in the catalog qualifies at all.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from storefront_signals.catalog.store import CatalogStore
from storefront_signals.database.models import EntityType
from storefront_signals.ingestion.stores import EventStore
from storefront_signals.tasks.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)

PERIOD_DAYS = {
    "day": 1,
    "week": 7,
    "month": 30,
}


@dataclass(frozen=True)
class TrendingItem:
    """One ranked entity"""
    entity_id: str
    score: float
    views: int = 0
    unique_visitors: int = 0


@dataclass
class TrendingResult:
    """Ranked entities plus how they were chosen"""
    items: List[TrendingItem] = field(default_factory=list)
    strategy: str = "trending"  # trending | latest
    period: str = "week"

    @property
    def entity_ids(self) -> List[str]:
        return [item.entity_id for item in self.items]


def period_start(period: Optional[str], now: datetime) -> Optional[datetime]:
    """Lower bound of a trending window; None means all-time"""
    days = PERIOD_DAYS.get(period or "")
    if days is None:
        return None
    return now - timedelta(days=days)


class TrendingCalculator:
    """Windowed trending ranking over the event log"""

    def __init__(
        self,
        events: EventStore,
        catalog: CatalogStore,
        clock: Optional[Clock] = None,
        unique_visitor_weight: float = 2.0,
        max_limit: int = 50,
    ):
        self.events = events
        self.catalog = catalog
        self.clock = clock or SystemClock()
        self.unique_visitor_weight = unique_visitor_weight
        self.max_limit = max_limit

    async def trending(
        self,
        entity_type: str = EntityType.PRODUCT.value,
        period: str = "week",
        limit: int = 10,
        category_filter: Optional[str] = None,
    ) -> TrendingResult:
        """
        Rank entities of one type over a period.

        Args:
            entity_type: Entity type to rank
            period: day | week | month; anything else is all-time
            limit: Max items returned
            category_filter: Category id; matches it and its direct children

        Returns:
            TrendingResult ordered by rank desc, or newest-first on fallback
        """
        limit = max(1, min(limit, self.max_limit))
        start = period_start(period, self.clock.now())

        category_ids = None
        if category_filter:
            category_ids = await self.catalog.expand_categories(
                [category_filter], depth=1, include_parents=False
            )

        rows = await self.events.view_aggregates(
            entity_type=entity_type,
            event_type=f"{entity_type}_view",
            since=start,
        )
        eligible = await self.catalog.filter_active(
            entity_type, [row.entity_id for row in rows], category_ids
        )

        items = [
            TrendingItem(
                entity_id=row.entity_id,
                score=row.views + row.unique_visitors * self.unique_visitor_weight,
                views=row.views,
                unique_visitors=row.unique_visitors,
            )
            for row in rows
            if row.entity_id in eligible
        ]
        items.sort(key=lambda item: (-item.score, -item.views, item.entity_id))
        items = items[:limit]

        if items:
            return TrendingResult(items=items, strategy="trending", period=period)

        logger.info(
            "No trending data, falling back to latest",
            entity_type=entity_type,
            period=period,
            category_filter=category_filter,
        )
        latest = await self.catalog.latest_entities(entity_type, limit, category_ids)
        return TrendingResult(
            items=[TrendingItem(entity_id=entity_id, score=0.0) for entity_id in latest],
            strategy="latest",
            period=period,
        )
