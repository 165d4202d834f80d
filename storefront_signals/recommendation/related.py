"""
Related Products

Products near a given product in the category tree: its own category,
that category's children, its parent and the parent's other children.
Ranked by score, then total views, then newest. Unlike the planner there
is no shuffle; the list is shown in rank order.
"""

from typing import List, Optional, Set

import structlog

from storefront_signals.catalog.store import CatalogStore, ProductRecord

logger = structlog.get_logger(__name__)


class RelatedProducts:
    """
    Category-neighbourhood lookup for a product detail page.

    Example:
        related = RelatedProducts(catalog)
        products = await related.related("p1", limit=8)
        if products is None:
            ...  # unknown or inactive product
    """

    def __init__(self, catalog: CatalogStore, default_limit: int = 8, max_limit: int = 20):
        self.catalog = catalog
        self.default_limit = default_limit
        self.max_limit = max_limit

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        return min(max(limit, 1), self.max_limit)

    async def related(self, product_id: str, limit: Optional[int] = None) -> Optional[List[ProductRecord]]:
        """
        Related products, excluding the product itself.

        Returns:
            None when the product is unknown or inactive; an empty list
            when it has no category
        """
        product = await self.catalog.get_product(product_id)
        if product is None or not product.is_active:
            return None
        if not product.category_id:
            return []

        scope = await self.category_scope(product.category_id)
        products = await self.catalog.related_products(
            self.clamp_limit(limit),
            category_ids=scope,
            exclude={product_id},
        )
        logger.debug(
            "Related products resolved",
            product_id=product_id,
            categories=len(scope),
            count=len(products),
        )
        return products

    async def category_scope(self, category_id: str) -> Set[str]:
        """The category, its children, its parent and its siblings"""
        scope = await self.catalog.expand_categories([category_id], depth=1, include_parents=True)
        category = await self.catalog.get_category(category_id)
        if category is not None and category.parent_id:
            scope |= await self.catalog.expand_categories(
                [category.parent_id], depth=1, include_parents=False
            )
        return scope
