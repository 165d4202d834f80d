"""
Banner Content Enricher

Resolves what a banner slot displays. One handler per content type:

- product / category: the referenced catalog entity, or nothing if it is gone
- custom: passed through untouched
- trending: ranked by the trending calculator
- new_arrivals: newest active products
- offer: discounted products, largest discount first

A banner that resolves to no content enriches to None and is dropped by
the caller.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from storefront_signals.analytics.trending import TrendingCalculator
from storefront_signals.catalog.store import (
    BannerRecord,
    CatalogStore,
    CategoryRecord,
    ProductRecord,
)
from storefront_signals.database.models import BannerContentType, EntityType

logger = structlog.get_logger(__name__)

DEFAULT_AUTO_LIMIT = 5
MAX_AUTO_LIMIT = 20
DEFAULT_PERIOD = "week"

TRENDING_SUBTITLES = {
    "day": "Most viewed products today",
    "week": "Most viewed products this week",
    "month": "Most viewed products this month",
}
ALL_TIME_SUBTITLE = "Most viewed products"


@dataclass
class EnrichedBanner:
    """Banner with its display content resolved"""
    banner_id: str
    name: str
    content_type: str
    order: int
    source_type: str = "manual"
    title: Optional[str] = None
    subtitle: Optional[str] = None
    products: List[ProductRecord] = field(default_factory=list)
    category: Optional[CategoryRecord] = None
    content: Dict[str, Any] = field(default_factory=dict)


def format_discount(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


class BannerEnricher:
    """
    Content-type dispatch for banner slots.

    Example:
        enricher = BannerEnricher(catalog, trending)
        banner = await enricher.enrich(record)
        if banner is None:
            ...  # omit the slot
    """

    def __init__(
        self,
        catalog: CatalogStore,
        trending: TrendingCalculator,
        default_limit: int = DEFAULT_AUTO_LIMIT,
        default_period: str = DEFAULT_PERIOD,
        max_limit: int = MAX_AUTO_LIMIT,
    ):
        self.catalog = catalog
        self.trending = trending
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.default_period = default_period
        self._handlers: Dict[str, Callable[[BannerRecord], Awaitable[Optional[EnrichedBanner]]]] = {
            BannerContentType.PRODUCT.value: self._product,
            BannerContentType.CATEGORY.value: self._category,
            BannerContentType.CUSTOM.value: self._custom,
            BannerContentType.TRENDING.value: self._trending,
            BannerContentType.NEW_ARRIVALS.value: self._new_arrivals,
            BannerContentType.OFFER.value: self._offer,
        }

    async def enrich(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        handler = self._handlers.get(banner.content_type)
        if handler is None:
            logger.warning(
                "Unknown banner content type",
                banner_id=banner.banner_id,
                content_type=banner.content_type,
            )
            return None

        enriched = await handler(banner)
        if enriched is None:
            logger.debug(
                "Banner has no content",
                banner_id=banner.banner_id,
                content_type=banner.content_type,
            )
        return enriched

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _base(self, banner: BannerRecord, **overrides) -> EnrichedBanner:
        content = banner.content or {}
        values = dict(
            banner_id=banner.banner_id,
            name=banner.name,
            content_type=banner.content_type,
            order=banner.order,
            source_type=banner.source_type,
            title=content.get("title") or None,
            subtitle=content.get("subtitle") or None,
            content=dict(content),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return EnrichedBanner(**values)

    def _auto_config(self, banner: BannerRecord) -> Dict[str, Any]:
        config = (banner.content or {}).get("auto_config") or {}
        return {
            "limit": self._auto_limit(config.get("limit")),
            "period": config.get("period") or self.default_period,
            "category_filter": config.get("category_filter") or None,
        }

    def _auto_limit(self, value: Any) -> int:
        """Operator-supplied item count, clamped; unparseable values use the default"""
        try:
            limit = int(value) if value is not None else self.default_limit
        except (TypeError, ValueError):
            logger.warning("Invalid banner auto limit", limit=value)
            limit = self.default_limit
        if limit < 1:
            limit = self.default_limit
        return min(limit, self.max_limit)

    async def _category_scope(self, category_filter: Optional[str]):
        if not category_filter:
            return None
        return await self.catalog.expand_categories(
            [category_filter], depth=1, include_parents=False
        )

    # -------------------------------------------------------------------------
    # Content types
    # -------------------------------------------------------------------------

    async def _product(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        product_id = (banner.content or {}).get("product_id")
        if not product_id:
            return None
        product = await self.catalog.get_product(product_id)
        if product is None or not product.is_active:
            return None

        enriched = self._base(banner, products=[product])
        enriched.title = enriched.title or product.name
        return enriched

    async def _category(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        category_id = (banner.content or {}).get("category_id")
        if not category_id:
            return None
        category = await self.catalog.get_category(category_id)
        if category is None or not category.is_active:
            return None

        enriched = self._base(banner, category=category)
        enriched.title = enriched.title or category.name
        return enriched

    async def _custom(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        return self._base(banner)

    async def _trending(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        config = self._auto_config(banner)
        result = await self.trending.trending(
            entity_type=EntityType.PRODUCT.value,
            period=config["period"],
            limit=config["limit"],
            category_filter=config["category_filter"],
        )
        # get_products keeps the ranking order
        products = await self.catalog.get_products(result.entity_ids)
        if not products:
            return None

        enriched = self._base(banner, products=products)
        enriched.title = enriched.title or "Trending Now"
        enriched.subtitle = enriched.subtitle or TRENDING_SUBTITLES.get(config["period"], ALL_TIME_SUBTITLE)
        return enriched

    async def _new_arrivals(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        config = self._auto_config(banner)
        products = await self.catalog.latest_products(
            config["limit"],
            category_ids=await self._category_scope(config["category_filter"]),
        )
        if not products:
            return None

        enriched = self._base(banner, products=products)
        enriched.title = enriched.title or "New Arrivals"
        enriched.subtitle = enriched.subtitle or "Fresh additions to our collection"
        return enriched

    async def _offer(self, banner: BannerRecord) -> Optional[EnrichedBanner]:
        config = self._auto_config(banner)
        products = await self.catalog.discounted_products(
            config["limit"],
            category_ids=await self._category_scope(config["category_filter"]),
        )
        if not products:
            return None

        max_discount = max(p.discount for p in products)
        enriched = self._base(banner, products=products)
        enriched.title = enriched.title or f"Up to {format_discount(max_discount)}% Off"
        enriched.subtitle = enriched.subtitle or "Limited time offers"
        return enriched
