"""
Test Suite Configuration
"""
import random
from datetime import datetime, timedelta
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from storefront_signals.config import Settings
from storefront_signals.database import Base, create_session_factory
from storefront_signals.database.models import Banner, Category, Product, Profile
from storefront_signals.ingestion import TrackEvent
from storefront_signals.serving.container import build_engine
from storefront_signals.tasks import BackgroundDispatcher, ManualClock

NOW = datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(app_env="testing", debug=True)


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so every connection sees the same database"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'signals.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(NOW)


@pytest.fixture
async def dispatcher():
    dispatcher = BackgroundDispatcher(pool_size=1, queue_size=100)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop(timeout=5)


@pytest.fixture
def signals(test_settings, session_factory, dispatcher, clock):
    """Fully wired engine over the test database"""
    return build_engine(
        settings=test_settings,
        session_factory=session_factory,
        dispatcher=dispatcher,
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def insert(session_factory):
    """Insert ORM rows in one transaction"""

    async def _insert(*rows):
        async with session_factory.begin() as session:
            session.add_all(rows)

    return _insert


@pytest.fixture
def make_category():
    def _make(category_id: str, parent_id: Optional[str] = None, is_active: bool = True, days_old: int = 100):
        return Category(
            category_id=category_id,
            name=category_id.title(),
            slug=category_id,
            parent_id=parent_id,
            is_active=is_active,
            created_at=NOW - timedelta(days=days_old),
        )

    return _make


@pytest.fixture
def make_product():
    def _make(
        product_id: str,
        category_id: Optional[str] = None,
        score: float = 0.0,
        discount: float = 0.0,
        days_old: int = 100,
        is_active: bool = True,
    ):
        return Product(
            product_id=product_id,
            name=f"Product {product_id}",
            slug=product_id,
            category_id=category_id,
            price=100.0,
            discount=discount,
            score=score,
            total_views=0,
            is_active=is_active,
            created_at=NOW - timedelta(days=days_old),
        )

    return _make


@pytest.fixture
def make_banner():
    def _make(
        banner_id: str,
        content_type: str,
        content: Optional[dict] = None,
        order: int = 0,
        source_type: str = "auto",
    ):
        return Banner(
            banner_id=banner_id,
            name=f"Banner {banner_id}",
            content_type=content_type,
            source_type=source_type,
            content=content or {},
            order=order,
            is_active=True,
            created_at=NOW - timedelta(days=1),
        )

    return _make


@pytest.fixture
def make_profile():
    def _make(user_id: str, wishlist=(), recently_viewed=()):
        return Profile(user_id=user_id, wishlist=list(wishlist), recently_viewed=list(recently_viewed))

    return _make


@pytest.fixture
def view_event():
    """Build a product view event"""

    def _make(entity_id: str, ip: str = "10.0.0.1", **kwargs):
        data = dict(
            event_type=kwargs.pop("event_type", "product_view"),
            entity_type=kwargs.pop("entity_type", "product"),
            entity_id=entity_id,
            ip=ip,
        )
        data.update(kwargs)
        return TrackEvent(**data)

    return _make


@pytest.fixture
async def storefront(insert, make_category, make_product):
    """
    Small catalog:

        electronics -> phones, laptops
        home

    p1..p6 with descending scores; p6 is newest.
    """
    await insert(
        make_category("electronics"),
        make_category("home"),
    )
    await insert(
        make_category("phones", parent_id="electronics"),
        make_category("laptops", parent_id="electronics"),
    )
    await insert(
        make_product("p1", "phones", score=90, days_old=200),
        make_product("p2", "phones", score=80, days_old=150, discount=10),
        make_product("p3", "laptops", score=70, days_old=120, discount=25),
        make_product("p4", "home", score=60, days_old=90),
        make_product("p5", "home", score=50, days_old=30),
        make_product("p6", "laptops", score=40, days_old=5),
    )
