"""
Unit Tests - Recommendations
"""
import random

import pytest

from storefront_signals.exceptions import StoreUnavailableError
from storefront_signals.recommendation import (
    LatestTier,
    PopularTier,
    RecommendationPlanner,
    RecommendationTier,
    normalize_user_id,
)


def ids(result):
    return [p.product_id for p in result.products]


class FailingTier(RecommendationTier):
    name = "broken"

    async def candidates(self, ctx):
        raise RuntimeError("store down")


class TestFillGuarantee:
    """Exactly N unique products whenever the catalog has N"""

    @pytest.mark.parametrize("limit", [1, 3, 5, 6])
    async def test_returns_exactly_limit(self, signals, storefront, limit):
        result = await signals.recommendations.recommend(limit=limit)

        assert result.total == limit
        assert len(set(ids(result))) == limit

    async def test_fills_across_tiers(self, signals, storefront, insert, make_profile):
        """A personalized user with a narrow affinity still gets a full list"""
        await insert(make_profile("u1", wishlist=["p4"]))

        result = await signals.recommendations.recommend(user_id="u1", limit=5)

        assert result.strategy == "personalized"
        assert result.total == 5
        assert len(set(ids(result))) == 5

    async def test_small_catalog_returns_everything(self, signals, storefront):
        result = await signals.recommendations.recommend(limit=20)

        assert sorted(ids(result)) == ["p1", "p2", "p3", "p4", "p5", "p6"]

    async def test_limit_is_clamped(self, signals, storefront):
        result = await signals.recommendations.recommend(limit=500)

        assert result.limit == 50


class TestExclusion:
    """Excluded ids never appear"""

    async def test_excluded_ids_skipped_in_every_tier(self, signals, storefront, insert, make_profile):
        await insert(make_profile("u1", wishlist=["p1"]))

        result = await signals.recommendations.recommend(
            user_id="u1",
            limit=6,
            exclude_ids=["p2", "p6"],
        )

        assert "p2" not in ids(result)
        assert "p6" not in ids(result)
        assert result.total == 4

    async def test_personalized_skips_seen_products(self, signals, storefront, insert, make_profile):
        """Wishlisted items stay out of the personalized tier"""
        await insert(make_profile("u1", wishlist=["p1"]))
        planner = RecommendationPlanner(signals.recommendations.tiers[:1], rng=random.Random(1))

        result = await planner.recommend(user_id="u1", limit=10)

        assert result.strategy == "personalized"
        # phones widens to its parent electronics, not to sibling laptops
        assert ids(result) == ["p2"]

    async def test_deeper_affinity_reaches_siblings(self, signals, storefront, insert, make_profile):
        await insert(make_profile("u1", wishlist=["p1"]))
        tier = signals.recommendations.tiers[0]
        tier.affinity_depth = 2
        planner = RecommendationPlanner([tier], rng=random.Random(1))

        result = await planner.recommend(user_id="u1", limit=10)

        assert set(ids(result)) == {"p2", "p3", "p6"}


class TestStrategyTag:
    """First contributing tier names the result"""

    async def test_anonymous_is_popular(self, signals, storefront):
        result = await signals.recommendations.recommend(limit=3)

        assert result.strategy == "popular"
        assert sorted(ids(result)) == ["p1", "p2", "p3"]

    async def test_viewing_history_drives_personalization(self, signals, storefront, view_event):
        await signals.tracker.track(view_event("p4", user_id="u2"))

        result = await signals.recommendations.recommend(user_id="u2", limit=1)

        assert result.strategy == "personalized"
        assert ids(result) == ["p5"]

    async def test_unknown_user_is_popular(self, signals, storefront):
        result = await signals.recommendations.recommend(user_id="nobody", limit=2)

        assert result.strategy == "popular"

    async def test_invalid_user_id_is_anonymous(self, signals, storefront, insert, make_profile):
        await insert(make_profile("u1", wishlist=["p4"]))

        result = await signals.recommendations.recommend(user_id="u1; drop table", limit=2)

        assert result.strategy == "popular"

    async def test_latest_tier_tag(self, signals, storefront):
        planner = RecommendationPlanner([LatestTier(signals.catalog)])

        result = await planner.recommend(limit=2)

        assert result.strategy == "latest"
        assert sorted(ids(result)) == ["p5", "p6"]

    async def test_empty_catalog_is_fallback(self, signals):
        result = await signals.recommendations.recommend(user_id="u1", limit=12)

        assert result.products == []
        assert result.strategy == "fallback"


class TestShuffle:
    async def test_same_seed_same_order(self, signals, storefront):
        tiers = [PopularTier(signals.catalog)]
        first = await RecommendationPlanner(tiers, rng=random.Random(3)).recommend(limit=6)
        second = await RecommendationPlanner(tiers, rng=random.Random(3)).recommend(limit=6)

        assert ids(first) == ids(second)


class TestDegradation:
    async def test_failed_tier_falls_through(self, signals, storefront):
        planner = RecommendationPlanner([FailingTier(), PopularTier(signals.catalog)])

        result = await planner.recommend(limit=2)

        assert result.strategy == "popular"
        assert result.total == 2

    async def test_all_tiers_failing_raises(self):
        planner = RecommendationPlanner([FailingTier()])

        with pytest.raises(StoreUnavailableError):
            await planner.recommend(limit=2)


class TestNormalizeUserId:
    def test_valid(self):
        assert normalize_user_id("user_42-a") == "user_42-a"

    def test_invalid(self):
        assert normalize_user_id("") is None
        assert normalize_user_id(None) is None
        assert normalize_user_id("has space") is None
        assert normalize_user_id("x" * 65) is None


class TestRelatedProducts:
    """Category neighbourhood of a product"""

    async def test_siblings_and_parent_in_rank_order(self, signals, storefront, insert, make_product):
        await insert(make_product("e1", "electronics", score=10))

        products = await signals.related.related("p1")

        # phones, its parent electronics and sibling laptops; home stays out
        assert [p.product_id for p in products] == ["p2", "p3", "p6", "e1"]

    async def test_root_category_stays_within_itself(self, signals, storefront):
        products = await signals.related.related("p4")

        assert [p.product_id for p in products] == ["p5"]

    async def test_total_views_break_score_ties(self, signals, storefront, insert, make_product):
        viewed = make_product("h1", "home", score=50, days_old=300)
        viewed.total_views = 9
        await insert(viewed)

        products = await signals.related.related("p4")

        assert [p.product_id for p in products] == ["h1", "p5"]

    async def test_limit(self, signals, storefront):
        products = await signals.related.related("p1", limit=1)

        assert [p.product_id for p in products] == ["p2"]

    async def test_limit_is_clamped(self, signals):
        assert signals.related.clamp_limit(None) == 8
        assert signals.related.clamp_limit(500) == 20
        assert signals.related.clamp_limit(0) == 1

    async def test_unknown_or_inactive_product(self, signals, insert, make_product):
        await insert(make_product("old", is_active=False))

        assert await signals.related.related("missing") is None
        assert await signals.related.related("old") is None

    async def test_uncategorized_product(self, signals, insert, make_product):
        await insert(make_product("loose"), make_product("other"))

        assert await signals.related.related("loose") == []
