"""
Integration Tests - HTTP API
"""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from storefront_signals.database.models import Banner
from storefront_signals.serving.api import create_api_app


@pytest.fixture
async def client(test_settings, signals):
    app = create_api_app(test_settings)
    app.state.engine = signals
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def view_payload(entity_id="p1", **extra):
    payload = {"event_type": "product_view", "entity_type": "product", "entity_id": entity_id}
    payload.update(extra)
    return payload


class TestTrackingEndpoints:
    async def test_track_is_accepted_and_recorded(self, client, signals, storefront, dispatcher):
        response = await client.post(
            "/api/v1/track",
            json=view_payload(metadata={"source": "grid"}),
            headers={"cf-connecting-ip": "203.0.113.7", "user-agent": "pytest"},
        )
        await dispatcher.drain()

        assert response.status_code == 202
        assert response.json()["status"] == "accepted"
        stats = await signals.analytics.entity_stats("product", "p1")
        assert stats["views"] == 1
        assert stats["unique_visitors"] == 1

    async def test_client_ip_from_forwarded_for(self, client, signals, storefront):
        headers = {"x-forwarded-for": "198.51.100.1, 10.0.0.1"}
        first = await client.post("/api/v1/track/sync", json=view_payload(), headers=headers)
        second = await client.post(
            "/api/v1/track/sync",
            json=view_payload(),
            headers={"x-real-ip": "198.51.100.1"},
        )

        assert first.json()["status"] == "recorded"
        assert first.json()["event_id"]
        assert second.json()["status"] == "skipped"

    async def test_client_supplied_ip_is_ignored(self, client, storefront):
        await client.post("/api/v1/track/sync", json=view_payload(ip="1.2.3.4"))
        response = await client.post("/api/v1/track/sync", json=view_payload(ip="5.6.7.8"))

        assert response.json()["status"] == "skipped"

    async def test_invalid_event_is_rejected(self, client, signals, storefront):
        response = await client.post("/api/v1/track", json={"event_type": "product_view"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["details"]["errors"]

    async def test_batch(self, client, signals, storefront, dispatcher):
        response = await client.put(
            "/api/v1/track",
            json={"events": [view_payload("p1"), view_payload("p2")]},
        )
        await dispatcher.drain()

        assert response.status_code == 202
        assert response.json()["count"] == 2
        assert (await signals.catalog.get_product("p2")).total_views == 1

    async def test_empty_batch_is_rejected(self, client):
        response = await client.put("/api/v1/track", json={"events": []})

        assert response.status_code == 400

    async def test_batch_with_invalid_event_is_rejected(self, client, signals, storefront, dispatcher):
        response = await client.put(
            "/api/v1/track",
            json={"events": [view_payload("p1"), {"event_type": "nope"}]},
        )
        await dispatcher.drain()

        assert response.status_code == 400
        assert response.json()["details"]["index"] == 1
        assert (await signals.events.activity_summary())["views"] == 0


class TestReadEndpoints:
    async def test_recommendations_shape(self, client, storefront):
        response = await client.get("/api/v1/recommendations", params={"limit": 3, "exclude": "p1,p2"})

        assert response.status_code == 200
        body = response.json()
        assert body["meta"] == {"total": 3, "strategy": "popular", "limit": 3}
        returned = {p["product_id"] for p in body["products"]}
        assert returned.isdisjoint({"p1", "p2"})

    async def test_recommendations_empty_catalog(self, client):
        response = await client.get("/api/v1/recommendations")

        assert response.status_code == 200
        assert response.json() == {
            "products": [],
            "meta": {"total": 0, "strategy": "fallback", "limit": 12},
        }

    async def test_trending_fallback(self, client, storefront):
        response = await client.get("/api/v1/trending", params={"period": "day", "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["strategy"] == "latest"
        assert [item["entity_id"] for item in body["items"]] == ["p6", "p5"]

    async def test_trending_rejects_unknown_period(self, client):
        response = await client.get("/api/v1/trending", params={"period": "decade"})

        assert response.status_code == 422

    async def test_banners_and_click(self, client, signals, insert, make_banner, storefront, dispatcher, session_factory):
        await insert(
            make_banner("sale", "offer", order=2),
            make_banner("hero", "product", {"product_id": "p1"}, order=1),
            make_banner("dead", "product", {"product_id": "gone"}, order=0),
        )

        response = await client.get("/api/v1/banners")
        click = await client.post("/api/v1/banners/hero/click")
        await dispatcher.drain()

        assert response.status_code == 200
        banners = response.json()["banners"]
        assert [b["banner_id"] for b in banners] == ["hero", "sale"]
        assert banners[1]["title"] == "Up to 25% Off"
        assert click.status_code == 202
        async with session_factory() as session:
            hero = await session.get(Banner, "hero")
        assert hero.clicks == 1
        assert hero.impressions == 1

    async def test_product_stats(self, client, storefront):
        await client.post("/api/v1/track/sync", json=view_payload("p6"))

        response = await client.get("/api/v1/analytics/products/p6/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["counts"]["views_today"] == 1
        # 1*4 + 1*2 + 1*1.2 + 1*0.5 + new bonus
        assert body["score"] == 13.7

    async def test_product_stats_missing(self, client):
        response = await client.get("/api/v1/analytics/products/nope/stats")

        assert response.status_code == 404

    async def test_summary(self, client, storefront):
        await client.post("/api/v1/track/sync", json=view_payload("p1"))
        await client.post("/api/v1/track/sync", json=view_payload("p1", event_type="product_click"))

        response = await client.get("/api/v1/analytics/summary")

        body = response.json()
        assert body["overview"]["views"] == 1
        assert body["overview"]["clicks"] == 1

    async def test_daily_series(self, client, storefront):
        await client.post("/api/v1/track/sync", json=view_payload("p1"))

        response = await client.get("/api/v1/analytics/entities/product/p1/daily")

        assert response.json() == [{"day": "2025-06-15", "views": 1, "clicks": 0, "impressions": 0}]


class TestStoreErrors:
    async def test_database_error_body_hides_statement(self, client, signals, monkeypatch):
        async def broken(**kwargs):
            raise OperationalError(
                "SELECT name FROM products WHERE ip = ?", ("10.0.0.9",), Exception("db down")
            )

        monkeypatch.setattr(signals.trending, "trending", broken)

        response = await client.get("/api/v1/trending")

        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "error": "database is unavailable",
            "details": {"store": "database", "error_type": "OperationalError"},
        }
        assert "10.0.0.9" not in response.text
        assert "SELECT" not in response.text

    async def test_catalog_outage_body_hides_cause(self, client, signals, monkeypatch):
        async def broken(ctx):
            raise RuntimeError("connection to 10.0.0.9 refused")

        for tier in signals.recommendations.tiers:
            monkeypatch.setattr(tier, "candidates", broken)

        response = await client.get("/api/v1/recommendations")

        assert response.status_code == 503
        assert response.json()["details"] == {"store": "catalog", "error_type": "RuntimeError"}
        assert "10.0.0.9" not in response.text


class TestRelatedEndpoint:
    async def test_related(self, client, storefront):
        response = await client.get("/api/v1/recommendations/related/p1", params={"limit": 2})

        assert response.status_code == 200
        assert [p["product_id"] for p in response.json()["products"]] == ["p2", "p3"]

    async def test_related_unknown_product(self, client):
        response = await client.get("/api/v1/recommendations/related/nope")

        assert response.status_code == 404


class TestNotificationEndpoints:
    async def test_unknown_tracking_id_is_404(self, client):
        response = await client.get("/api/v1/notifications/bulk-send/unknown")

        assert response.status_code == 404
        assert response.json()["success"] is False

    async def test_status_of_started_send(self, client, signals, dispatcher):
        async def deliver(recipient):
            return None

        tracking_id = await signals.bulk_send.start(["a@x.io", "b@x.io"], deliver)
        await dispatcher.drain()

        response = await client.get(f"/api/v1/notifications/bulk-send/{tracking_id}")

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["sent"] == 2


class TestHealth:
    async def test_liveness(self, client):
        response = await client.get("/api/v1/health/live")

        assert response.json() == {"status": "alive"}
