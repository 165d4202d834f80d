"""
Unit Tests - Event Tracking
"""
import pytest

from storefront_signals.database.models import Banner
from storefront_signals.exceptions import IngestionError
from storefront_signals.ingestion import EntityCounterSink, counter_family, parse_event


async def count_events(signals, entity_id, event_type=None, entity_type="product"):
    return await signals.events.count(entity_type, entity_id, event_type=event_type)


class TestDeduplication:
    """Tests for the view dedup window"""

    async def test_repeat_view_within_window_is_skipped(self, signals, storefront, view_event):
        """Second identical view from the same ip inside 5 minutes writes nothing"""
        first = await signals.tracker.track(view_event("p1"))
        second = await signals.tracker.track(view_event("p1"))

        assert not first.skipped
        assert second.skipped
        assert await count_events(signals, "p1") == 1

    async def test_view_after_window_is_recorded(self, signals, storefront, view_event, clock):
        """A third view once the window has passed is a new event"""
        await signals.tracker.track(view_event("p1"))
        clock.advance(minutes=2)
        assert (await signals.tracker.track(view_event("p1"))).skipped

        clock.advance(minutes=4)
        third = await signals.tracker.track(view_event("p1"))

        assert not third.skipped
        assert await count_events(signals, "p1") == 2

    async def test_session_match_suppresses_across_ips(self, signals, storefront, view_event):
        """Any of ip, session or user matching is enough to suppress"""
        await signals.tracker.track(view_event("p1", ip="10.0.0.1", session_id="s-1"))
        result = await signals.tracker.track(view_event("p1", ip="10.0.0.2", session_id="s-1"))

        assert result.skipped

    async def test_user_match_suppresses_across_ips(self, signals, storefront, view_event):
        await signals.tracker.track(view_event("p1", ip="10.0.0.1", user_id="u1"))
        result = await signals.tracker.track(view_event("p1", ip="10.0.0.9", user_id="u1"))

        assert result.skipped

    async def test_different_visitor_is_recorded(self, signals, storefront, view_event):
        await signals.tracker.track(view_event("p1", ip="10.0.0.1"))
        result = await signals.tracker.track(view_event("p1", ip="10.0.0.2"))

        assert not result.skipped
        assert await count_events(signals, "p1") == 2

    async def test_different_entity_is_recorded(self, signals, storefront, view_event):
        await signals.tracker.track(view_event("p1"))
        result = await signals.tracker.track(view_event("p2"))

        assert not result.skipped

    async def test_skip_dedup_flag_bypasses_window(self, signals, storefront, view_event):
        await signals.tracker.track(view_event("p1"))
        result = await signals.tracker.track(view_event("p1", skip_dedup=True))

        assert not result.skipped
        assert await count_events(signals, "p1") == 2

    async def test_clicks_are_not_deduplicated(self, signals, storefront, view_event):
        for _ in range(3):
            await signals.tracker.track(view_event("p1", event_type="product_click"))

        assert await count_events(signals, "p1", event_type="product_click") == 3


class TestImpressions:
    """Impressions always count"""

    async def test_every_impression_is_counted(self, signals, insert, make_banner, view_event, clock, session_factory):
        """N impressions in the window give N events and N counter increments"""
        await insert(make_banner("b1", "custom"))

        for _ in range(4):
            result = await signals.tracker.track(
                view_event(
                    "b1",
                    event_type="banner_impression",
                    entity_type="banner",
                    session_id="s-1",
                )
            )
            assert not result.skipped

        assert await count_events(signals, "b1", entity_type="banner") == 4
        row = await signals.aggregates.get(clock.today(), "banner", "b1")
        assert row.impressions == 4
        assert row.views == 0

        async with session_factory() as session:
            banner = await session.get(Banner, "b1")
        assert banner.impressions == 4


class TestAggregates:
    """Daily aggregate and entity counter side effects"""

    async def test_daily_views_match_view_events(self, signals, storefront, view_event, clock):
        for i in range(5):
            await signals.tracker.track(view_event("p2", ip=f"10.0.1.{i}"))
        # duplicate, skipped
        await signals.tracker.track(view_event("p2", ip="10.0.1.0"))

        row = await signals.aggregates.get(clock.today(), "product", "p2")
        assert row.views == await count_events(signals, "p2", event_type="product_view")
        assert row.views == 5

    async def test_event_feeds_exactly_one_family(self, signals, storefront, view_event, clock):
        await signals.tracker.track(view_event("p1", event_type="product_click"))

        row = await signals.aggregates.get(clock.today(), "product", "p1")
        assert (row.views, row.clicks, row.impressions) == (0, 1, 0)

    async def test_rows_are_bucketed_by_day(self, signals, storefront, view_event, clock):
        await signals.tracker.track(view_event("p1"))
        first_day = clock.today()
        clock.advance(days=1)
        await signals.tracker.track(view_event("p1"))

        assert (await signals.aggregates.get(first_day, "product", "p1")).views == 1
        assert (await signals.aggregates.get(clock.today(), "product", "p1")).views == 1

    async def test_product_view_increments_total_views(self, signals, storefront, view_event):
        await signals.tracker.track(view_event("p3", ip="10.0.0.1"))
        await signals.tracker.track(view_event("p3", ip="10.0.0.2"))

        product = await signals.catalog.get_product("p3")
        assert product.total_views == 2

    async def test_unmapped_event_touches_no_counters(self, signals, storefront, view_event, clock):
        """search events are logged only"""
        result = await signals.tracker.track(view_event("p1", event_type="search"))

        assert not result.skipped
        assert await signals.aggregates.get(clock.today(), "product", "p1") is None
        assert (await signals.catalog.get_product("p1")).total_views == 0


class TestBestEffortSideEffects:
    """A failing side effect never undoes the others"""

    async def test_aggregate_failure_keeps_event_and_counter(self, signals, storefront, view_event, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("aggregate store down")

        monkeypatch.setattr(signals.aggregates, "increment", broken)

        result = await signals.tracker.track(view_event("p1"))

        assert not result.skipped
        assert await count_events(signals, "p1") == 1
        assert (await signals.catalog.get_product("p1")).total_views == 1

    async def test_counter_failure_keeps_event_and_aggregate(self, signals, storefront, view_event, monkeypatch, clock):
        async def broken(*args, **kwargs):
            raise RuntimeError("catalog down")

        monkeypatch.setattr(signals.catalog, "increment_counter", broken)

        result = await signals.tracker.track(view_event("p1"))

        assert not result.skipped
        assert await count_events(signals, "p1") == 1
        assert (await signals.aggregates.get(clock.today(), "product", "p1")).views == 1

    async def test_append_failure_propagates(self, signals, storefront, view_event, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("event log down")

        monkeypatch.setattr(signals.events, "append", broken)

        with pytest.raises(RuntimeError):
            await signals.tracker.track(view_event("p1"))


class TestValidation:
    """Malformed payloads are rejected before any write"""

    def test_missing_ip_is_rejected(self):
        with pytest.raises(IngestionError) as exc_info:
            parse_event({"event_type": "product_view", "entity_type": "product", "entity_id": "p1"})

        assert exc_info.value.status_code == 400
        fields = [e["field"] for e in exc_info.value.details["errors"]]
        assert "ip" in fields

    def test_unknown_event_type_is_rejected(self):
        with pytest.raises(IngestionError):
            parse_event({"event_type": "hover", "entity_type": "product", "entity_id": "p1", "ip": "1.1.1.1"})

    def test_blank_optional_fields_become_none(self):
        event = parse_event({
            "event_type": "product_view",
            "entity_type": "product",
            "entity_id": "p1",
            "ip": "1.1.1.1",
            "session_id": "  ",
            "user_id": "",
        })

        assert event.session_id is None
        assert event.user_id is None

    async def test_rejected_payload_writes_nothing(self, signals, storefront):
        with pytest.raises(IngestionError):
            await signals.tracker.track_payload({"event_type": "product_view", "entity_type": "product"})

        summary = await signals.events.activity_summary()
        assert summary["views"] == 0

    def test_counter_family_by_substring(self):
        assert counter_family("product_view") == "views"
        assert counter_family("banner_click") == "clicks"
        assert counter_family("tag_impression") == "impressions"
        assert counter_family("add_to_inquiry") is None


class TestBackgroundTracking:
    """Tracking handed to the worker pool"""

    async def test_background_event_lands_after_drain(self, signals, storefront, view_event, dispatcher):
        assert signals.tracker.track_in_background(view_event("p4"))
        await dispatcher.drain()

        assert await count_events(signals, "p4") == 1

    async def test_many_events_queued(self, signals, storefront, view_event, dispatcher):
        events = [view_event("p4", ip=f"10.0.2.{i}") for i in range(3)]

        assert signals.tracker.track_many_in_background(events) == 3
        await dispatcher.drain()

        assert (await signals.catalog.get_product("p4")).total_views == 3


class TestEntityCounterSink:
    """Counter targets per entity type"""

    async def test_banner_click_increments_clicks(self, signals, insert, make_banner):
        await insert(make_banner("b1", "custom"))
        sink = EntityCounterSink(signals.catalog)

        assert await sink.apply("banner", "b1", "banner_click") == "clicks"
        assert await sink.apply("banner", "b1", "banner_impression") == "impressions"

    async def test_missing_entity_returns_none(self, signals, storefront):
        sink = EntityCounterSink(signals.catalog)

        assert await sink.apply("product", "gone", "product_view") is None

    async def test_unmapped_combination_is_noop(self, signals, storefront):
        sink = EntityCounterSink(signals.catalog)

        assert await sink.apply("product", "p1", "product_click") is None
        assert await sink.apply("tag", "t1", "tag_view") is None
