"""
Engine Wiring

Builds every engine component from settings and shared resources. The
API keeps one SignalsEngine on app.state; tests build their own with a
ManualClock and a seeded random.Random.
"""

import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_signals.analytics import AnalyticsQueries, TrendingCalculator
from storefront_signals.banners import BannerEnricher, BannerFeed
from storefront_signals.catalog import CatalogStore, SqlCatalogStore
from storefront_signals.config.settings import Settings
from storefront_signals.ingestion import (
    DailyAggregateStore,
    EntityCounterSink,
    EventStore,
    EventTracker,
)
from storefront_signals.notifications import (
    BulkSendService,
    InMemoryStatusStore,
    RedisStatusStore,
    StatusStore,
)
from storefront_signals.recommendation import (
    LatestTier,
    PersonalizedTier,
    PopularTier,
    RecommendationPlanner,
    RelatedProducts,
)
from storefront_signals.scoring import ProductStatsService, ScoringWeights, ViewWindowCounter
from storefront_signals.tasks import BackgroundDispatcher, Clock, SystemClock


@dataclass
class SignalsEngine:
    """All engine components sharing one set of stores"""
    settings: Settings
    clock: Clock
    dispatcher: BackgroundDispatcher
    catalog: CatalogStore
    events: EventStore
    aggregates: DailyAggregateStore
    tracker: EventTracker
    product_stats: ProductStatsService
    trending: TrendingCalculator
    recommendations: RecommendationPlanner
    related: RelatedProducts
    banners: BannerFeed
    analytics: AnalyticsQueries
    bulk_send: BulkSendService


def build_engine(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    dispatcher: BackgroundDispatcher,
    clock: Optional[Clock] = None,
    redis: Optional[Redis] = None,
    rng: Optional[random.Random] = None,
    catalog: Optional[CatalogStore] = None,
) -> SignalsEngine:
    clock = clock or SystemClock()
    catalog = catalog or SqlCatalogStore(session_factory)
    events = EventStore(session_factory)
    aggregates = DailyAggregateStore(session_factory)

    tracker = EventTracker(
        events=events,
        aggregates=aggregates,
        counters=EntityCounterSink(catalog),
        clock=clock,
        dispatcher=dispatcher,
        dedup_window=timedelta(seconds=settings.tracking.dedup_window_seconds),
    )

    product_stats = ProductStatsService(
        catalog=catalog,
        counter=ViewWindowCounter(events, clock),
        dispatcher=dispatcher,
        weights=ScoringWeights.from_settings(settings.scoring),
        clock=clock,
    )

    trending = TrendingCalculator(
        events=events,
        catalog=catalog,
        clock=clock,
        unique_visitor_weight=settings.trending.unique_visitor_weight,
        max_limit=settings.trending.max_limit,
    )

    recommendations = RecommendationPlanner(
        tiers=[
            PersonalizedTier(
                catalog,
                events,
                affinity_depth=settings.recommendation.affinity_depth,
                history_size=settings.tracking.recent_view_history,
            ),
            PopularTier(catalog),
            LatestTier(catalog),
        ],
        default_limit=settings.recommendation.default_limit,
        max_limit=settings.recommendation.max_limit,
        rng=rng,
    )

    banners = BannerFeed(
        catalog=catalog,
        enricher=BannerEnricher(
            catalog,
            trending,
            default_limit=settings.banners.auto_limit,
            default_period=settings.banners.auto_period,
            max_limit=settings.banners.auto_max_limit,
        ),
        tracker=tracker,
        clock=clock,
        default_limit=settings.banners.default_limit,
        max_limit=settings.banners.max_limit,
    )

    status_store: StatusStore
    if redis is not None:
        status_store = RedisStatusStore(
            redis,
            ttl_seconds=settings.notifications.status_ttl_seconds,
            max_errors=settings.notifications.max_errors,
        )
    else:
        status_store = InMemoryStatusStore(
            clock=clock,
            ttl_seconds=settings.notifications.status_ttl_seconds,
            max_errors=settings.notifications.max_errors,
        )

    return SignalsEngine(
        settings=settings,
        clock=clock,
        dispatcher=dispatcher,
        catalog=catalog,
        events=events,
        aggregates=aggregates,
        tracker=tracker,
        product_stats=product_stats,
        trending=trending,
        recommendations=recommendations,
        related=RelatedProducts(
            catalog,
            default_limit=settings.recommendation.related_default_limit,
            max_limit=settings.recommendation.related_max_limit,
        ),
        banners=banners,
        analytics=AnalyticsQueries(events, aggregates, clock),
        bulk_send=BulkSendService(status_store, dispatcher),
    )
