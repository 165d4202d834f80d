"""
Analytics Read Models

Dashboard-style reads over the event log and the daily rollups.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from storefront_signals.ingestion.stores import DailyAggregateStore, EventStore
from storefront_signals.tasks.clock import Clock, SystemClock


class AnalyticsQueries:
    """Entity stats, top lists and dashboard summaries"""

    def __init__(
        self,
        events: EventStore,
        aggregates: DailyAggregateStore,
        clock: Optional[Clock] = None,
    ):
        self.events = events
        self.aggregates = aggregates
        self.clock = clock or SystemClock()

    async def entity_stats(self, entity_type: str, entity_id: str, days: int = 30) -> Dict[str, int]:
        """Views, clicks, impressions and unique visitors of one entity"""
        return await self.events.activity_summary(
            since=self.clock.day_start(days),
            entity_type=entity_type,
            entity_id=entity_id,
        )

    async def top_viewed(self, entity_type: str = "product", days: int = 7, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.aggregates.top_by_views(
            entity_type=entity_type,
            since=self.clock.today() - timedelta(days=days),
            limit=limit,
        )

    async def daily_series(self, entity_type: str, entity_id: str, days: int = 30) -> List[Dict[str, Any]]:
        rows = await self.aggregates.series(
            entity_type=entity_type,
            entity_id=entity_id,
            since=self.clock.today() - timedelta(days=days),
        )
        return [
            {
                "day": row.day.isoformat(),
                "views": row.views,
                "clicks": row.clicks,
                "impressions": row.impressions,
            }
            for row in rows
        ]

    async def dashboard_summary(self, days: Optional[int] = 30) -> Dict[str, Any]:
        """Totals per (entity type, event type) plus overall activity; days=None is all-time"""
        since = self.clock.day_start(days) if days else None
        totals = await self.events.event_type_totals(since=since)
        overview = await self.events.activity_summary(since=since)
        return {
            "period_days": days,
            "overview": overview,
            "by_event_type": totals,
        }
