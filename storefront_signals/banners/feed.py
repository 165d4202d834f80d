"""
Banner Feed

Builds the displayed banner list: enrich every slot, drop the ones with
no content, order by the operator-set `order`, trim to the page size and
record an impression for each banner actually shown.
"""

from dataclasses import dataclass
from typing import List, Optional

import structlog

from storefront_signals.banners.enricher import BannerEnricher, EnrichedBanner
from storefront_signals.catalog.store import BannerRecord, CatalogStore
from storefront_signals.database.models import EntityType, EventType
from storefront_signals.exceptions import StoreUnavailableError
from storefront_signals.ingestion.events import TrackEvent
from storefront_signals.ingestion.tracker import EventTracker
from storefront_signals.tasks.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Visitor:
    """Who a response is being rendered for"""
    ip: str = "127.0.0.1"
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    user_agent: Optional[str] = None


class BannerFeed:
    """Enriched, ordered banner page with impression tracking"""

    def __init__(
        self,
        catalog: CatalogStore,
        enricher: BannerEnricher,
        tracker: Optional[EventTracker] = None,
        clock: Optional[Clock] = None,
        default_limit: int = 10,
        max_limit: int = 20,
    ):
        self.catalog = catalog
        self.enricher = enricher
        self.tracker = tracker
        self.clock = clock or SystemClock()
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def current(
        self,
        limit: Optional[int] = None,
        include_auto: bool = True,
        visitor: Optional[Visitor] = None,
    ) -> List[EnrichedBanner]:
        """Resolve the banners scheduled right now"""
        banners = await self.catalog.active_banners(self.clock.now())
        return await self.resolve(banners, limit=limit, include_auto=include_auto, visitor=visitor)

    async def resolve(
        self,
        banners: List[BannerRecord],
        limit: Optional[int] = None,
        include_auto: bool = True,
        visitor: Optional[Visitor] = None,
    ) -> List[EnrichedBanner]:
        """
        Enrich, filter, order and trim a list of banners.

        Args:
            banners: Active banners, already filtered by schedule
            limit: Page size, capped at max_limit
            include_auto: False leaves out auto-sourced banners
            visitor: Impressions are recorded for this visitor when given

        Returns:
            Displayed banners sorted by order
        """
        limit = max(1, min(limit or self.default_limit, self.max_limit))
        if not include_auto:
            banners = [b for b in banners if b.source_type != "auto"]

        resolved: List[EnrichedBanner] = []
        failures = 0
        last_error: Optional[Exception] = None
        for banner in banners:
            try:
                enriched = await self.enricher.enrich(banner)
            except Exception as e:
                failures += 1
                last_error = e
                logger.error(
                    "Banner enrichment failed",
                    banner_id=banner.banner_id,
                    content_type=banner.content_type,
                    error=str(e),
                )
                continue
            if enriched is not None:
                resolved.append(enriched)

        if banners and failures == len(banners):
            raise StoreUnavailableError("catalog", last_error)

        resolved.sort(key=lambda b: b.order)
        resolved = resolved[:limit]

        if visitor is not None:
            self._record_impressions(resolved, visitor)
        return resolved

    def _record_impressions(self, banners: List[EnrichedBanner], visitor: Visitor) -> None:
        if self.tracker is None or self.tracker.dispatcher is None:
            return
        metadata = {"user_agent": visitor.user_agent} if visitor.user_agent else {}
        events = [
            TrackEvent(
                event_type=EventType.BANNER_IMPRESSION,
                entity_type=EntityType.BANNER,
                entity_id=banner.banner_id,
                entity_name=banner.name,
                ip=visitor.ip,
                session_id=visitor.session_id,
                user_id=visitor.user_id,
                metadata=metadata,
            )
            for banner in banners
        ]
        queued = self.tracker.track_many_in_background(events)
        if queued < len(events):
            logger.warning("Some banner impressions were dropped", dropped=len(events) - queued)
