"""
Event Store and Daily Aggregate Store

The event log is append-only and is the source of truth for every
derived number. Daily aggregates are rollups of it, written exclusively
through upsert-and-increment so concurrent writers never lose updates.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional
import uuid

import structlog
from sqlalchemy import and_, case, distinct, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_signals.database.models import AnalyticsEvent, DailyAggregate
from storefront_signals.ingestion.events import TrackEvent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ViewAggregate:
    """Per-entity view totals over a window"""
    entity_id: str
    views: int
    unique_visitors: int


@dataclass(frozen=True)
class ViewWindowCounts:
    """View counts of one entity over the scoring windows"""
    total_views: int = 0
    views_today: int = 0
    views_this_week: int = 0
    views_this_month: int = 0
    unique_visitors: int = 0


@dataclass(frozen=True)
class DailyRow:
    """One daily aggregate row"""
    day: date
    entity_type: str
    entity_id: str
    views: int
    clicks: int
    impressions: int


class EventStore:
    """Append-only behavioral event log"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append(self, event: TrackEvent, created_at: datetime) -> uuid.UUID:
        """Write one event; returns its id"""
        row = AnalyticsEvent(
            event_id=uuid.uuid4(),
            event_type=event.event_type.value,
            entity_type=event.entity_type.value,
            entity_id=event.entity_id,
            entity_slug=event.entity_slug,
            entity_name=event.entity_name,
            session_id=event.session_id,
            user_id=event.user_id,
            ip=event.ip,
            metadata_=event.metadata or None,
            created_at=created_at,
        )
        async with self._session_factory.begin() as session:
            session.add(row)
        return row.event_id

    async def has_recent_duplicate(self, event: TrackEvent, since: datetime) -> bool:
        """
        Whether the same (event_type, entity_type, entity_id) was recorded
        since `since` by the same ip, session or user.
        """
        identity = [AnalyticsEvent.ip == event.ip]
        if event.session_id:
            identity.append(AnalyticsEvent.session_id == event.session_id)
        if event.user_id:
            identity.append(AnalyticsEvent.user_id == event.user_id)

        query = (
            select(AnalyticsEvent.event_id)
            .where(
                AnalyticsEvent.event_type == event.event_type.value,
                AnalyticsEvent.entity_type == event.entity_type.value,
                AnalyticsEvent.entity_id == event.entity_id,
                AnalyticsEvent.created_at >= since,
                or_(*identity),
            )
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.first() is not None

    async def count(
        self,
        entity_type: str,
        entity_id: str,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        """Number of events for one entity"""
        conditions = [
            AnalyticsEvent.entity_type == entity_type,
            AnalyticsEvent.entity_id == entity_id,
        ]
        if event_type:
            conditions.append(AnalyticsEvent.event_type == event_type)
        if since:
            conditions.append(AnalyticsEvent.created_at >= since)
        if until:
            conditions.append(AnalyticsEvent.created_at < until)
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(AnalyticsEvent.event_id)).where(and_(*conditions))
            )
            return result.scalar() or 0

    async def view_aggregates(
        self,
        entity_type: str,
        event_type: str,
        since: Optional[datetime] = None,
    ) -> List[ViewAggregate]:
        """Views and distinct ips per entity, unordered"""
        conditions = [
            AnalyticsEvent.entity_type == entity_type,
            AnalyticsEvent.event_type == event_type,
        ]
        if since is not None:
            conditions.append(AnalyticsEvent.created_at >= since)

        query = (
            select(
                AnalyticsEvent.entity_id,
                func.count(AnalyticsEvent.event_id).label("views"),
                func.count(distinct(AnalyticsEvent.ip)).label("unique_visitors"),
            )
            .where(and_(*conditions))
            .group_by(AnalyticsEvent.entity_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [
                ViewAggregate(
                    entity_id=row.entity_id,
                    views=row.views,
                    unique_visitors=row.unique_visitors,
                )
                for row in result.all()
            ]

    async def window_counts(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        today_start: datetime,
        week_start: datetime,
        month_start: datetime,
    ) -> ViewWindowCounts:
        """All-time and windowed view counts for one entity in a single pass"""

        def since(start: datetime):
            return func.sum(case((AnalyticsEvent.created_at >= start, 1), else_=0))

        query = select(
            func.count(AnalyticsEvent.event_id).label("total_views"),
            since(today_start).label("views_today"),
            since(week_start).label("views_this_week"),
            since(month_start).label("views_this_month"),
            func.count(distinct(AnalyticsEvent.ip)).label("unique_visitors"),
        ).where(
            AnalyticsEvent.entity_type == entity_type,
            AnalyticsEvent.entity_id == entity_id,
            AnalyticsEvent.event_type == event_type,
        )
        async with self._session_factory() as session:
            row = (await session.execute(query)).one()

        return ViewWindowCounts(
            total_views=row.total_views or 0,
            views_today=int(row.views_today or 0),
            views_this_week=int(row.views_this_week or 0),
            views_this_month=int(row.views_this_month or 0),
            unique_visitors=row.unique_visitors or 0,
        )

    async def recent_entities_for_user(
        self,
        user_id: str,
        entity_type: str,
        event_type: str,
        limit: int = 50,
    ) -> List[str]:
        """Entity ids from a user's most recent events, newest first"""
        query = (
            select(AnalyticsEvent.entity_id)
            .where(
                AnalyticsEvent.user_id == user_id,
                AnalyticsEvent.entity_type == entity_type,
                AnalyticsEvent.event_type == event_type,
            )
            .order_by(AnalyticsEvent.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def event_type_totals(self, since: Optional[datetime] = None) -> List[Dict]:
        """Event counts grouped by (entity_type, event_type)"""
        query = select(
            AnalyticsEvent.entity_type,
            AnalyticsEvent.event_type,
            func.count(AnalyticsEvent.event_id).label("count"),
        ).group_by(AnalyticsEvent.entity_type, AnalyticsEvent.event_type)
        if since is not None:
            query = query.where(AnalyticsEvent.created_at >= since)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [
                {"entity_type": row.entity_type, "event_type": row.event_type, "count": row.count}
                for row in result.all()
            ]

    async def activity_summary(
        self,
        since: Optional[datetime] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Dict[str, int]:
        """Views, clicks, impressions and distinct ips over a window"""

        def family(marker: str):
            return func.sum(
                case((AnalyticsEvent.event_type.like(f"%{marker}%"), 1), else_=0)
            )

        conditions = []
        if since is not None:
            conditions.append(AnalyticsEvent.created_at >= since)
        if entity_type is not None:
            conditions.append(AnalyticsEvent.entity_type == entity_type)
        if entity_id is not None:
            conditions.append(AnalyticsEvent.entity_id == entity_id)

        query = select(
            family("view").label("views"),
            family("click").label("clicks"),
            family("impression").label("impressions"),
            func.count(distinct(AnalyticsEvent.ip)).label("unique_visitors"),
        )
        if conditions:
            query = query.where(and_(*conditions))
        async with self._session_factory() as session:
            row = (await session.execute(query)).one()

        return {
            "views": int(row.views or 0),
            "clicks": int(row.clicks or 0),
            "impressions": int(row.impressions or 0),
            "unique_visitors": row.unique_visitors or 0,
        }


class DailyAggregateStore:
    """Per-entity-per-day rollup counters"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def increment(
        self,
        day: date,
        entity_type: str,
        entity_id: str,
        counter: str,
        amount: int = 1,
        entity_slug: Optional[str] = None,
        entity_name: Optional[str] = None,
    ) -> None:
        """Upsert the (day, entity) row and add `amount` to one counter"""
        if counter not in ("views", "clicks", "impressions"):
            raise ValueError(f"Unknown daily counter: {counter}")

        values = {
            "aggregate_id": uuid.uuid4(),
            "day": day,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "entity_slug": entity_slug,
            "entity_name": entity_name,
            "views": 0,
            "clicks": 0,
            "impressions": 0,
        }
        values[counter] = amount

        async with self._session_factory.begin() as session:
            dialect = session.get_bind().dialect.name
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert(DailyAggregate).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["day", "entity_type", "entity_id"],
                set_={counter: DailyAggregate.__table__.c[counter] + stmt.excluded[counter]},
            )
            await session.execute(stmt)

    async def get(self, day: date, entity_type: str, entity_id: str) -> Optional[DailyRow]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DailyAggregate).where(
                    DailyAggregate.day == day,
                    DailyAggregate.entity_type == entity_type,
                    DailyAggregate.entity_id == entity_id,
                )
            )
            row = result.scalar_one_or_none()
            return _daily_row(row) if row else None

    async def series(
        self,
        entity_type: str,
        entity_id: str,
        since: date,
    ) -> List[DailyRow]:
        """Rows for one entity from `since` onwards, oldest first"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DailyAggregate)
                .where(
                    DailyAggregate.entity_type == entity_type,
                    DailyAggregate.entity_id == entity_id,
                    DailyAggregate.day >= since,
                )
                .order_by(DailyAggregate.day)
            )
            return [_daily_row(row) for row in result.scalars().all()]

    async def top_by_views(
        self,
        entity_type: str,
        since: date,
        limit: int,
    ) -> List[Dict]:
        """Entities with the most views since a day, from the rollups"""
        total = func.sum(DailyAggregate.views).label("views")
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    DailyAggregate.entity_id,
                    func.max(DailyAggregate.entity_name).label("entity_name"),
                    func.max(DailyAggregate.entity_slug).label("entity_slug"),
                    total,
                )
                .where(
                    DailyAggregate.entity_type == entity_type,
                    DailyAggregate.day >= since,
                )
                .group_by(DailyAggregate.entity_id)
                .having(total > 0)
                .order_by(total.desc())
                .limit(limit)
            )
            return [
                {
                    "entity_id": row.entity_id,
                    "entity_name": row.entity_name,
                    "entity_slug": row.entity_slug,
                    "views": int(row.views or 0),
                }
                for row in result.all()
            ]


def _daily_row(row: DailyAggregate) -> DailyRow:
    return DailyRow(
        day=row.day,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        views=row.views,
        clicks=row.clicks,
        impressions=row.impressions,
    )
