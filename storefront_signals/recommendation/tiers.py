"""
Recommendation Tiers

Each tier proposes candidates for the slots still open. Tiers never see
products that were already chosen or explicitly excluded.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Set

import structlog

from storefront_signals.catalog.store import CatalogStore, ProductRecord
from storefront_signals.database.models import EntityType, EventType
from storefront_signals.ingestion.stores import EventStore

logger = structlog.get_logger(__name__)


@dataclass
class PlanContext:
    """State shared across tiers for one recommendation request"""
    user_id: Optional[str]
    limit: int
    exclude: Set[str] = field(default_factory=set)
    chosen: List[ProductRecord] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return self.limit - len(self.chosen)

    @property
    def blocked(self) -> Set[str]:
        return self.exclude | {p.product_id for p in self.chosen}

    def accept(self, products: List[ProductRecord]) -> List[ProductRecord]:
        """Add new, unblocked products up to the limit; returns those added"""
        blocked = self.blocked
        added = []
        for product in products:
            if self.remaining - len(added) <= 0:
                break
            if product.product_id in blocked:
                continue
            blocked.add(product.product_id)
            added.append(product)
        self.chosen.extend(added)
        return added


class RecommendationTier(ABC):
    """One strategy in the fallback chain"""

    name: str = ""

    @abstractmethod
    async def candidates(self, ctx: PlanContext) -> List[ProductRecord]:
        """Up to ctx.remaining products not in ctx.blocked"""


class PersonalizedTier(RecommendationTier):
    """
    Products from the user's category affinity set.

    Affinity comes from wishlist items, the profile's recently-viewed list
    and the user's recent product views, widened to related categories.
    Anything the user already viewed or wishlisted is left out.
    """

    name = "personalized"

    def __init__(
        self,
        catalog: CatalogStore,
        events: EventStore,
        affinity_depth: int = 1,
        history_size: int = 50,
    ):
        self.catalog = catalog
        self.events = events
        self.affinity_depth = affinity_depth
        self.history_size = history_size

    async def candidates(self, ctx: PlanContext) -> List[ProductRecord]:
        if ctx.user_id is None:
            return []

        profile = await self.catalog.get_profile(ctx.user_id)
        viewed = await self.events.recent_entities_for_user(
            user_id=ctx.user_id,
            entity_type=EntityType.PRODUCT.value,
            event_type=EventType.PRODUCT_VIEW.value,
            limit=self.history_size,
        )
        if profile is None and not viewed:
            return []

        seen = set(viewed)
        if profile is not None:
            seen.update(profile.wishlist)
            seen.update(profile.recently_viewed)

        categories = set((await self.catalog.product_categories(seen)).values())
        if not categories:
            return []

        related = await self.catalog.expand_categories(
            categories, depth=self.affinity_depth, include_parents=True
        )
        logger.debug(
            "Category affinity resolved",
            user_id=ctx.user_id,
            seed_categories=len(categories),
            related_categories=len(related),
        )
        return await self.catalog.top_products(
            ctx.remaining,
            category_ids=related,
            exclude=ctx.blocked | seen,
        )


class PopularTier(RecommendationTier):
    """All active products by cached score"""

    name = "popular"

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    async def candidates(self, ctx: PlanContext) -> List[ProductRecord]:
        return await self.catalog.top_products(ctx.remaining, exclude=ctx.blocked)


class LatestTier(RecommendationTier):
    """All active products, newest first"""

    name = "latest"

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    async def candidates(self, ctx: PlanContext) -> List[ProductRecord]:
        return await self.catalog.latest_products(ctx.remaining, exclude=ctx.blocked)
