"""
Unit Tests - Scoring
"""
from datetime import timedelta

import pytest

from storefront_signals.config.settings import ScoringSettings
from storefront_signals.scoring import ScoreInputs, ScoringWeights, compute_score


class TestComputeScore:
    """Tests for the score formula"""

    def test_reference_inputs(self):
        """10/20/30/100 views, 20% off, 10 days old"""
        inputs = ScoreInputs(
            views_today=10,
            views_this_week=20,
            views_this_month=30,
            total_views=100,
            discount_percent=20,
            days_since_created=10,
        )

        assert compute_score(inputs) == 188.00

    def test_all_defaults(self):
        """No signals at all still earns the newness bonus at age 0"""
        assert compute_score(ScoreInputs()) == 6.0

    def test_newness_boundary(self):
        assert compute_score(ScoreInputs(days_since_created=60)) == 6.0
        assert compute_score(ScoreInputs(days_since_created=60.01)) == 0.0

    def test_rounded_to_two_decimals(self):
        score = compute_score(ScoreInputs(views_this_month=1, days_since_created=365))
        assert score == 1.2

        score = compute_score(ScoreInputs(discount_percent=33.333, days_since_created=365))
        assert score == 26.67

    def test_weights_from_settings(self):
        weights = ScoringWeights.from_settings(
            ScoringSettings(weight_today=10, new_item_bonus=0, new_item_days=7)
        )

        assert compute_score(ScoreInputs(views_today=2, days_since_created=1), weights) == 20.0


class TestProductStats:
    """Live counts and background persistence"""

    async def test_window_counts(self, signals, storefront, view_event, clock):
        now = clock.now()

        clock.set(now - timedelta(days=20))
        await signals.tracker.track(view_event("p6", ip="10.0.0.1"))
        clock.set(now - timedelta(days=3))
        await signals.tracker.track(view_event("p6", ip="10.0.0.2"))
        clock.set(now)
        await signals.tracker.track(view_event("p6", ip="10.0.0.3"))
        await signals.tracker.track(view_event("p6", ip="10.0.0.3", skip_dedup=True))

        counts = await signals.product_stats.counter.counts("p6")

        assert counts.total_views == 4
        assert counts.views_today == 2
        assert counts.views_this_week == 3
        assert counts.views_this_month == 4
        assert counts.unique_visitors == 3

    async def test_refresh_persists_score(self, signals, storefront, view_event, dispatcher):
        """p3: 25% off, 120 days old, two views today"""
        await signals.tracker.track(view_event("p3", ip="10.0.0.1"))
        await signals.tracker.track(view_event("p3", ip="10.0.0.2"))

        stats = await signals.product_stats.refresh("p3")
        # 2*4 + 2*2 + 2*1.2 + 2*0.5 + 25*0.8
        assert stats.score == 35.4

        await dispatcher.drain()
        product = await signals.catalog.get_product("p3")
        assert product.score == pytest.approx(35.4)
        assert product.total_views == 2

    async def test_refresh_unknown_product(self, signals, storefront):
        assert await signals.product_stats.refresh("missing") is None
