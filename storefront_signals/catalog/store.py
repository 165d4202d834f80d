"""
Catalog Store

The product/category/banner/profile catalog is owned by the storefront.
This module defines the narrow interface the engine needs from it and a
SQLAlchemy implementation over the shared catalog tables.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Collection, Dict, List, Optional, Set

import structlog
from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_signals.database.models import (
    Banner,
    Category,
    EntityType,
    Product,
    Profile,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# READ MODELS
# =============================================================================

@dataclass(frozen=True)
class ProductRecord:
    """Product as seen by the engine"""
    product_id: str
    name: str
    slug: str
    category_id: Optional[str]
    price: float
    discount: float
    is_active: bool
    total_views: int
    score: float
    created_at: datetime
    thumbnail_url: Optional[str] = None


@dataclass(frozen=True)
class CategoryRecord:
    """Category as seen by the engine"""
    category_id: str
    name: str
    slug: str
    parent_id: Optional[str]
    is_active: bool


@dataclass(frozen=True)
class ProfileRecord:
    """Wishlist and recently-viewed product ids of a user"""
    user_id: str
    wishlist: List[str] = field(default_factory=list)
    recently_viewed: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class BannerRecord:
    """Banner slot as configured by an operator"""
    banner_id: str
    name: str
    content_type: str
    content: Dict = field(default_factory=dict)
    order: int = 0
    source_type: str = "manual"


def _product_record(row: Product) -> ProductRecord:
    return ProductRecord(
        product_id=row.product_id,
        name=row.name,
        slug=row.slug,
        category_id=row.category_id,
        price=float(row.price or 0),
        discount=float(row.discount or 0),
        is_active=bool(row.is_active),
        total_views=row.total_views or 0,
        score=float(row.score or 0),
        created_at=row.created_at,
        thumbnail_url=row.thumbnail_url,
    )


def _category_record(row: Category) -> CategoryRecord:
    return CategoryRecord(
        category_id=row.category_id,
        name=row.name,
        slug=row.slug,
        parent_id=row.parent_id,
        is_active=bool(row.is_active),
    )


# =============================================================================
# INTERFACE
# =============================================================================

class CatalogStore(ABC):
    """Operations the engine performs against the external catalog"""

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[ProductRecord]:
        """Product by id, active or not"""

    @abstractmethod
    async def get_products(self, product_ids: List[str]) -> List[ProductRecord]:
        """Active products by id, in the order given"""

    @abstractmethod
    async def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        """Category by id, active or not"""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        """Profile by user id"""

    @abstractmethod
    async def product_categories(self, product_ids: Collection[str]) -> Dict[str, str]:
        """Map of active product id to its category id"""

    @abstractmethod
    async def expand_categories(
        self,
        category_ids: Collection[str],
        depth: int = 1,
        include_parents: bool = True,
    ) -> Set[str]:
        """Active categories reachable within depth levels of the given ones"""

    @abstractmethod
    async def top_products(
        self,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
        exclude: Collection[str] = (),
    ) -> List[ProductRecord]:
        """Active products by cached score desc, newest first on ties"""

    @abstractmethod
    async def related_products(
        self,
        limit: int,
        category_ids: Collection[str],
        exclude: Collection[str] = (),
    ) -> List[ProductRecord]:
        """Active products in category_ids by score, then total views, then newest"""

    @abstractmethod
    async def latest_products(
        self,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
        exclude: Collection[str] = (),
    ) -> List[ProductRecord]:
        """Active products, newest first"""

    @abstractmethod
    async def discounted_products(
        self,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
    ) -> List[ProductRecord]:
        """Active products with discount > 0, largest discount first"""

    @abstractmethod
    async def filter_active(
        self,
        entity_type: str,
        entity_ids: Collection[str],
        category_ids: Optional[Collection[str]] = None,
    ) -> Set[str]:
        """Subset of entity_ids that are active (and in category_ids for products)"""

    @abstractmethod
    async def latest_entities(
        self,
        entity_type: str,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
    ) -> List[str]:
        """Ids of the newest active entities of a type"""

    @abstractmethod
    async def increment_counter(
        self,
        entity_type: str,
        entity_id: str,
        counter: str,
        amount: int = 1,
    ) -> bool:
        """Atomic add on an entity counter column; False if no row matched"""

    @abstractmethod
    async def update_product_stats(self, product_id: str, total_views: int, score: float) -> None:
        """Persist cached signals onto the product"""

    @abstractmethod
    async def active_banners(self, now: datetime, source_type: Optional[str] = None) -> List[BannerRecord]:
        """Active banners whose schedule covers now, by order"""


# =============================================================================
# SQLALCHEMY IMPLEMENTATION
# =============================================================================

# (model, primary key column name, allowed counters)
_COUNTER_TARGETS = {
    EntityType.PRODUCT.value: (Product, "product_id", {"total_views"}),
    EntityType.CATEGORY.value: (Category, "category_id", {"total_views"}),
    EntityType.BANNER.value: (Banner, "banner_id", {"clicks", "impressions"}),
}


class SqlCatalogStore(CatalogStore):
    """Catalog store over the shared catalog tables"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_product(self, product_id: str) -> Optional[ProductRecord]:
        async with self._session_factory() as session:
            row = await session.get(Product, product_id)
            return _product_record(row) if row else None

    async def get_products(self, product_ids: List[str]) -> List[ProductRecord]:
        if not product_ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(
                select(Product).where(
                    Product.product_id.in_(product_ids),
                    Product.is_active.is_(True),
                )
            )
            by_id = {row.product_id: _product_record(row) for row in result.scalars().all()}
        return [by_id[pid] for pid in product_ids if pid in by_id]

    async def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        async with self._session_factory() as session:
            row = await session.get(Category, category_id)
            return _category_record(row) if row else None

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        async with self._session_factory() as session:
            row = await session.get(Profile, user_id)
            if row is None:
                return None
            return ProfileRecord(
                user_id=row.user_id,
                wishlist=list(row.wishlist or []),
                recently_viewed=list(row.recently_viewed or []),
            )

    async def product_categories(self, product_ids: Collection[str]) -> Dict[str, str]:
        if not product_ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(
                select(Product.product_id, Product.category_id).where(
                    Product.product_id.in_(list(product_ids)),
                    Product.is_active.is_(True),
                    Product.category_id.is_not(None),
                )
            )
            return {row.product_id: row.category_id for row in result.all()}

    async def expand_categories(
        self,
        category_ids: Collection[str],
        depth: int = 1,
        include_parents: bool = True,
    ) -> Set[str]:
        frontier = set(category_ids)
        if not frontier:
            return set()

        async with self._session_factory() as session:
            result = await session.execute(
                select(Category.category_id).where(
                    Category.category_id.in_(frontier),
                    Category.is_active.is_(True),
                )
            )
            found = set(result.scalars().all())
            frontier = set(found)

            for _ in range(max(depth, 0)):
                if not frontier:
                    break
                conditions = [Category.parent_id.in_(frontier)]
                if include_parents:
                    parents = select(Category.parent_id).where(
                        Category.category_id.in_(frontier),
                        Category.parent_id.is_not(None),
                    )
                    conditions.append(Category.category_id.in_(parents))
                result = await session.execute(
                    select(Category.category_id).where(
                        or_(*conditions),
                        Category.is_active.is_(True),
                    )
                )
                frontier = set(result.scalars().all()) - found
                found |= frontier

        return found

    def _product_query(
        self,
        category_ids: Optional[Collection[str]],
        exclude: Collection[str],
    ):
        query = select(Product).where(Product.is_active.is_(True))
        if category_ids is not None:
            query = query.where(Product.category_id.in_(list(category_ids)))
        if exclude:
            query = query.where(Product.product_id.not_in(list(exclude)))
        return query

    async def top_products(
        self,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
        exclude: Collection[str] = (),
    ) -> List[ProductRecord]:
        if limit <= 0:
            return []
        query = (
            self._product_query(category_ids, exclude)
            .order_by(Product.score.desc(), Product.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_product_record(row) for row in result.scalars().all()]

    async def related_products(
        self,
        limit: int,
        category_ids: Collection[str],
        exclude: Collection[str] = (),
    ) -> List[ProductRecord]:
        if limit <= 0 or not category_ids:
            return []
        query = (
            self._product_query(category_ids, exclude)
            .order_by(
                Product.score.desc(),
                Product.total_views.desc(),
                Product.created_at.desc(),
            )
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_product_record(row) for row in result.scalars().all()]

    async def latest_products(
        self,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
        exclude: Collection[str] = (),
    ) -> List[ProductRecord]:
        if limit <= 0:
            return []
        query = (
            self._product_query(category_ids, exclude)
            .order_by(Product.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_product_record(row) for row in result.scalars().all()]

    async def discounted_products(
        self,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
    ) -> List[ProductRecord]:
        if limit <= 0:
            return []
        query = (
            self._product_query(category_ids, ())
            .where(Product.discount > 0)
            .order_by(Product.discount.desc(), Product.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_product_record(row) for row in result.scalars().all()]

    async def filter_active(
        self,
        entity_type: str,
        entity_ids: Collection[str],
        category_ids: Optional[Collection[str]] = None,
    ) -> Set[str]:
        if not entity_ids:
            return set()
        ids = list(entity_ids)
        if entity_type == EntityType.PRODUCT.value:
            query = select(Product.product_id).where(
                Product.product_id.in_(ids),
                Product.is_active.is_(True),
            )
            if category_ids is not None:
                query = query.where(Product.category_id.in_(list(category_ids)))
        elif entity_type == EntityType.CATEGORY.value:
            query = select(Category.category_id).where(
                Category.category_id.in_(ids),
                Category.is_active.is_(True),
            )
        else:
            # Nothing to validate against; tracked ids stand on their own
            return set(ids)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return set(result.scalars().all())

    async def latest_entities(
        self,
        entity_type: str,
        limit: int,
        category_ids: Optional[Collection[str]] = None,
    ) -> List[str]:
        if limit <= 0:
            return []
        if entity_type == EntityType.PRODUCT.value:
            products = await self.latest_products(limit, category_ids=category_ids)
            return [p.product_id for p in products]
        if entity_type == EntityType.CATEGORY.value:
            query = (
                select(Category.category_id)
                .where(Category.is_active.is_(True))
                .order_by(Category.created_at.desc())
                .limit(limit)
            )
            async with self._session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        return []

    async def increment_counter(
        self,
        entity_type: str,
        entity_id: str,
        counter: str,
        amount: int = 1,
    ) -> bool:
        target = _COUNTER_TARGETS.get(entity_type)
        if target is None or counter not in target[2]:
            raise ValueError(f"No counter '{counter}' on entity type '{entity_type}'")
        model, pk_name, _ = target
        column = getattr(model, counter)

        async with self._session_factory.begin() as session:
            result = await session.execute(
                update(model)
                .where(getattr(model, pk_name) == entity_id)
                .values({counter: column + amount})
            )
        return result.rowcount > 0

    async def update_product_stats(self, product_id: str, total_views: int, score: float) -> None:
        async with self._session_factory.begin() as session:
            await session.execute(
                update(Product)
                .where(Product.product_id == product_id)
                .values(total_views=total_views, score=score)
            )
        logger.debug("Product stats persisted", product_id=product_id, score=score)

    async def active_banners(self, now: datetime, source_type: Optional[str] = None) -> List[BannerRecord]:
        query = select(Banner).where(
            Banner.is_active.is_(True),
            or_(Banner.start_date.is_(None), Banner.start_date <= now),
            or_(Banner.end_date.is_(None), Banner.end_date >= now),
        )
        if source_type:
            query = query.where(Banner.source_type == source_type)
        query = query.order_by(Banner.order.asc(), Banner.created_at.desc())

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [
                BannerRecord(
                    banner_id=row.banner_id,
                    name=row.name,
                    content_type=row.content_type,
                    content=dict(row.content or {}),
                    order=row.order or 0,
                    source_type=row.source_type or "manual",
                )
                for row in result.scalars().all()
            ]
