"""
Unit Tests - Trending
"""
from datetime import timedelta

from storefront_signals.analytics import period_start


async def views(signals, entity_id, ips, entity_type="product"):
    for ip in ips:
        await signals.tracker.track_payload({
            "event_type": f"{entity_type}_view",
            "entity_type": entity_type,
            "entity_id": entity_id,
            "ip": ip,
            "skip_dedup": True,
        })


class TestTrendingRanking:
    """Tests for views + unique visitors ranking"""

    async def test_unique_visitors_outweigh_raw_views(self, signals, storefront):
        """p1: 3 views, 1 visitor (5); p2: 2 views, 2 visitors (6)"""
        await views(signals, "p1", ["10.0.0.1"] * 3)
        await views(signals, "p2", ["10.0.0.1", "10.0.0.2"])

        result = await signals.trending.trending(period="week", limit=10)

        assert result.strategy == "trending"
        assert result.entity_ids == ["p2", "p1"]
        assert [item.score for item in result.items] == [6.0, 5.0]

    async def test_truncated_to_limit(self, signals, storefront):
        await views(signals, "p1", ["a", "b", "c"])
        await views(signals, "p2", ["a", "b"])
        await views(signals, "p3", ["a"])

        result = await signals.trending.trending(limit=2)

        assert result.entity_ids == ["p1", "p2"]

    async def test_period_window(self, signals, storefront, clock):
        now = clock.now()
        clock.set(now - timedelta(days=10))
        await views(signals, "p1", ["a", "b", "c"])
        clock.set(now)
        await views(signals, "p2", ["a"])

        week = await signals.trending.trending(period="week")
        month = await signals.trending.trending(period="month")
        all_time = await signals.trending.trending(period="all")

        assert week.entity_ids == ["p2"]
        assert month.entity_ids == ["p1", "p2"]
        assert all_time.entity_ids == ["p1", "p2"]

    async def test_inactive_entities_excluded(self, signals, insert, make_product):
        await insert(make_product("live"), make_product("retired", is_active=False))
        await views(signals, "retired", ["a", "b", "c"])
        await views(signals, "live", ["a"])

        result = await signals.trending.trending()

        assert result.entity_ids == ["live"]

    async def test_category_filter_includes_children(self, signals, storefront):
        await views(signals, "p1", ["a"])  # phones
        await views(signals, "p3", ["a", "b"])  # laptops
        await views(signals, "p4", ["a", "b", "c"])  # home

        result = await signals.trending.trending(category_filter="electronics")

        assert result.entity_ids == ["p3", "p1"]

    async def test_category_trending(self, signals, storefront):
        await views(signals, "home", ["a", "b"], entity_type="category")

        result = await signals.trending.trending(entity_type="category")

        assert result.entity_ids == ["home"]


class TestTrendingFallback:
    """Newest-first fallback when the window is empty"""

    async def test_no_views_falls_back_to_latest(self, signals, storefront):
        result = await signals.trending.trending(period="day", limit=3)

        assert result.strategy == "latest"
        assert result.entity_ids == ["p6", "p5", "p4"]

    async def test_filter_excluding_all_trending_falls_back(self, signals, storefront):
        await views(signals, "p4", ["a"])  # home only

        result = await signals.trending.trending(category_filter="electronics", limit=10)

        assert result.strategy == "latest"
        assert result.entity_ids == ["p6", "p3", "p2", "p1"]

    async def test_empty_catalog(self, signals):
        result = await signals.trending.trending()

        assert result.items == []


class TestPeriodStart:
    def test_known_periods(self, clock):
        now = clock.now()
        assert period_start("day", now) == now - timedelta(days=1)
        assert period_start("week", now) == now - timedelta(days=7)
        assert period_start("month", now) == now - timedelta(days=30)

    def test_unknown_period_is_all_time(self, clock):
        assert period_start("all", clock.now()) is None
        assert period_start("decade", clock.now()) is None
        assert period_start(None, clock.now()) is None
