"""
Database Models

Two groups of tables:

Analytics (owned by this service):
- AnalyticsEvent: append-only behavioral event log, source of truth
- DailyAggregate: per-entity-per-day rollup counters

Catalog (owned by the storefront, mapped read-mostly here):
- Category, Product, Banner, Profile

Only generic column types are used so the same metadata runs on
PostgreSQL in production and SQLite in tests.
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class EventType(str, Enum):
    """Tracked event types"""
    PAGE_VIEW = "page_view"
    PRODUCT_VIEW = "product_view"
    PRODUCT_CLICK = "product_click"
    CATEGORY_VIEW = "category_view"
    CATEGORY_CLICK = "category_click"
    BANNER_IMPRESSION = "banner_impression"
    BANNER_CLICK = "banner_click"
    TAG_IMPRESSION = "tag_impression"
    TAG_CLICK = "tag_click"
    SEARCH = "search"
    ADD_TO_INQUIRY = "add_to_inquiry"
    CONTACT_SUBMIT = "contact_submit"


class EntityType(str, Enum):
    """Entities an event can refer to"""
    PRODUCT = "product"
    CATEGORY = "category"
    BANNER = "banner"
    TAG = "tag"
    PAGE = "page"


class BannerContentType(str, Enum):
    """What a banner slot displays"""
    PRODUCT = "product"
    CATEGORY = "category"
    TRENDING = "trending"
    NEW_ARRIVALS = "new_arrivals"
    OFFER = "offer"
    CUSTOM = "custom"


def _new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# ANALYTICS TABLES
# =============================================================================

class AnalyticsEvent(Base):
    """
    Behavioral Event Log

    Append-only; rows are never updated or deleted by normal operation.
    entity_slug / entity_name are denormalized for read convenience.
    """
    __tablename__ = "analytics_events"

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_slug: Mapped[Optional[str]] = mapped_column(String(200))
    entity_name: Mapped[Optional[str]] = mapped_column(String(300))

    # Visitor identity
    session_id: Mapped[Optional[str]] = mapped_column(String(100))
    user_id: Mapped[Optional[str]] = mapped_column(String(64))
    ip: Mapped[str] = mapped_column(String(64), nullable=False)

    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSON)

    # Assigned by the tracker's clock, UTC
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_analytics_events_created", "created_at"),
        Index("ix_analytics_events_type_created", "event_type", "created_at"),
        Index("ix_analytics_events_entity", "entity_type", "entity_id", "created_at"),
        Index("ix_analytics_events_session", "session_id", "created_at"),
        Index("ix_analytics_events_user", "user_id", "created_at"),
        Index("ix_analytics_events_ip", "ip", "created_at"),
    )


class DailyAggregate(Base):
    """
    Daily Rollup Counters

    Grain: one row per (day, entity_type, entity_id). Counters only ever
    move up, and only through upsert-and-increment.
    """
    __tablename__ = "daily_aggregates"

    aggregate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    day: Mapped[date] = mapped_column(Date, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_slug: Mapped[Optional[str]] = mapped_column(String(200))
    entity_name: Mapped[Optional[str]] = mapped_column(String(300))

    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    impressions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("day", "entity_type", "entity_id", name="uq_daily_aggregates_day_entity"),
        Index("ix_daily_aggregates_day", "day"),
        Index("ix_daily_aggregates_entity", "entity_type", "entity_id"),
    )


# =============================================================================
# CATALOG TABLES
# =============================================================================

class Category(Base):
    """Catalog category; a shallow tree through parent_id."""
    __tablename__ = "categories"

    category_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("categories.category_id")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    total_views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    products: Mapped[List["Product"]] = relationship(back_populates="category")

    __table_args__ = (
        Index("ix_categories_parent", "parent_id"),
    )


class Product(Base):
    """
    Catalog product

    total_views, score and the window counts are a cached mirror of the
    analytics tables; they are not authoritative.
    """
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    category_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("categories.category_id")
    )
    price: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)  # percent, 0-100
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(1000))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Cached signals
    total_views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    score: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")

    __table_args__ = (
        Index("ix_products_category", "category_id"),
        Index("ix_products_active_score", "is_active", "score", "created_at"),
        Index("ix_products_active_created", "is_active", "created_at"),
    )


class Banner(Base):
    """
    Promotional banner slot

    content holds the operator-edited payload: title, subtitle,
    product_id / category_id references and auto_config
    ({limit, period, category_filter}).
    """
    __tablename__ = "banners"

    banner_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    content_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_type: Mapped[str] = mapped_column(String(10), default="manual")  # manual | auto
    content: Mapped[dict] = mapped_column(JSON, default=dict)
    order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    impressions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_banners_active_order", "is_active", "order"),
    )


class Profile(Base):
    """Storefront user profile: wishlist and recently-viewed product ids."""
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    wishlist: Mapped[list] = mapped_column(JSON, default=list)
    recently_viewed: Mapped[list] = mapped_column(JSON, default=list)
