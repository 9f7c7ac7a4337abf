"""
Tests for the admin panel API.

These tests drive the FastAPI endpoints against a session built on the
fixture data, with Telegram traffic captured by a fake HTTP session.
"""

import threading
import time

import pytest
from fastapi.testclient import TestClient

import api.main
from api.main import app, get_session, reset_api_state
from backoffice.channels import AudioOutput
from backoffice.table_store import TableStore
from views.session import AdminSession


@pytest.fixture
def session(settings, table_store: TableStore, http_session) -> AdminSession:
    """Signed-in session on the shared test feed."""
    session = AdminSession(settings, table_store, audio_output=AudioOutput(), http_session=http_session)
    session.start()
    return session


@pytest.fixture
def api_client(session: AdminSession):
    """Create a test client with fresh state."""
    reset_api_state(session)
    yield TestClient(app)
    reset_api_state(None)


def place_website_order(table_store: TableStore, order_id: str, customer_name: str = "Aziz") -> None:
    table_store.insert("orders", {
        "id": order_id,
        "customer_id": "cust-001",
        "customer_name": customer_name,
        "total": 150000,
        "status": "new",
        "source": "website",
        "created_at": "2026-10-19T08:00:00+00:00",
    })


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, api_client):
        """Test that health endpoint returns healthy."""
        response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestNotificationEndpoints:
    """Tests for the header bell endpoints."""

    def test_empty_bell(self, api_client):
        """A fresh session has no notifications."""
        response = api_client.get("/notifications")

        assert response.status_code == 200
        assert response.json() == {"unread_count": 0, "notifications": []}

    def test_website_order_shows_up(self, api_client, table_store):
        """A website order written to the backend appears in the bell."""
        place_website_order(table_store, "abc123")

        data = api_client.get("/notifications").json()

        assert data["unread_count"] == 1
        assert data["notifications"][0]["id"] == "abc123"
        assert data["notifications"][0]["message"] == "Aziz - 150000"
        assert data["notifications"][0]["read"] is False

    def test_mark_one_read(self, api_client, table_store):
        """Marking a notification read lowers the count once."""
        place_website_order(table_store, "o1")
        place_website_order(table_store, "o2")

        api_client.post("/notifications/o1/read")
        data = api_client.post("/notifications/o1/read").json()

        assert data["unread_count"] == 1

    def test_mark_unknown_read(self, api_client):
        """Unknown notification ids are reported as missing."""
        response = api_client.post("/notifications/missing/read")

        assert response.status_code == 404

    def test_mark_all_read(self, api_client, table_store):
        """Mark-all empties the unread count."""
        place_website_order(table_store, "o1")
        place_website_order(table_store, "o2")

        data = api_client.post("/notifications/read-all").json()

        assert data["unread_count"] == 0
        assert all(n["read"] for n in data["notifications"])

    def test_clear(self, api_client, table_store):
        """Clearing removes the entry; clearing it again is harmless."""
        place_website_order(table_store, "o1")

        api_client.delete("/notifications/o1")
        response = api_client.delete("/notifications/o1")

        assert response.status_code == 200
        assert response.json() == {"unread_count": 0, "notifications": []}


class TestDashboardEndpoint:
    """Tests for the dashboard endpoint."""

    def test_dashboard(self, api_client):
        data = api_client.get("/dashboard").json()

        assert data["total_products"] == 93
        assert data["employees"] == 3
        assert data["orders"] == 3
        assert data["profit"] == 600000
        assert len(data["weekly"]) == 7

    def test_dashboard_follows_new_orders(self, api_client, table_store):
        place_website_order(table_store, "o1")

        assert api_client.get("/dashboard").json()["orders"] == 4


class TestOrderEndpoints:
    """Tests for the orders endpoints."""

    def test_list_orders(self, api_client):
        orders = api_client.get("/orders").json()

        assert [o["id"] for o in orders] == ["ord-003", "ord-002", "ord-001"]
        assert orders[0]["customers"]["name"] == "Bekzod Rahimov"

    def test_search_and_status(self, api_client):
        assert [o["id"] for o in api_client.get("/orders", params={"search": "dilnoza"}).json()] == ["ord-002"]
        assert [o["id"] for o in api_client.get("/orders", params={"status": "new"}).json()] == ["ord-003"]

    def test_create_order(self, api_client, http_session):
        """Admin orders are stored, listed and announced on Telegram, not in the bell."""
        response = api_client.post("/orders", json={
            "customer_id": "cust-002",
            "product_id": "prod-001",
            "quantity": 1,
            "total": 150000,
        })

        assert response.status_code == 201
        order = response.json()
        assert order["customer_name"] == "Dilnoza Yusupova"
        assert order["source"] == "admin"

        assert order["id"] in [o["id"] for o in api_client.get("/orders").json()]
        assert api_client.get("/notifications").json()["unread_count"] == 0
        assert len(http_session.posts) == 1

    def test_create_order_unknown_product(self, api_client):
        response = api_client.post("/orders", json={
            "customer_id": "cust-002",
            "product_id": "prod-999",
            "total": 1,
        })

        assert response.status_code == 404

    def test_create_order_invalid_quantity(self, api_client):
        response = api_client.post("/orders", json={
            "customer_id": "cust-002",
            "product_id": "prod-001",
            "quantity": 0,
            "total": 1,
        })

        assert response.status_code == 422

    def test_update_order(self, api_client):
        response = api_client.put("/orders/ord-003", json={
            "customer_id": "cust-003",
            "product_id": "prod-003",
            "total": 240000,
            "status": "pending",
        })

        assert response.status_code == 200
        assert response.json()["total"] == 240000

    def test_update_missing_order(self, api_client):
        response = api_client.put("/orders/missing", json={
            "customer_id": "cust-003",
            "product_id": "prod-003",
            "total": 1,
        })

        assert response.status_code == 404

    def test_change_status(self, api_client, session: AdminSession):
        response = api_client.patch("/orders/ord-002/status", json={"status": "completed"})

        assert response.status_code == 200
        assert response.json() == {"id": "ord-002", "status": "completed"}
        assert session.status_board.status_of("ord-002") == "completed"

    def test_change_status_invalid(self, api_client):
        response = api_client.patch("/orders/ord-002/status", json={"status": "shipped"})

        assert response.status_code == 422

    def test_change_status_missing_order(self, api_client):
        response = api_client.patch("/orders/missing/status", json={"status": "completed"})

        assert response.status_code == 404

    def test_delete_order(self, api_client):
        assert api_client.delete("/orders/ord-001").status_code == 200
        assert api_client.delete("/orders/ord-001").status_code == 404
        assert "ord-001" not in [o["id"] for o in api_client.get("/orders").json()]


class TestMessageEndpoints:
    """Tests for the contact messages endpoints."""

    def test_list_messages(self, api_client):
        messages = api_client.get("/messages").json()

        assert [m["id"] for m in messages] == ["msg-001", "msg-002", "msg-003"]

    def test_filter_messages(self, api_client):
        assert [m["id"] for m in api_client.get("/messages", params={"status": "new"}).json()] == ["msg-001"]

    def test_unknown_filter(self, api_client):
        assert api_client.get("/messages", params={"status": "archived"}).status_code == 422

    def test_change_status(self, api_client):
        response = api_client.patch("/messages/msg-001/status", json={"status": "replied"})

        assert response.status_code == 200
        assert response.json()["status"] == "replied"
        assert response.json()["replied_at"]

    def test_change_status_missing(self, api_client):
        response = api_client.patch("/messages/missing/status", json={"status": "read"})

        assert response.status_code == 404

    def test_delete_message(self, api_client):
        assert api_client.delete("/messages/msg-002").status_code == 200
        assert api_client.delete("/messages/msg-002").status_code == 404


class TestWebsiteOrdersEndpoint:
    """Tests for the storefront orders endpoint."""

    def test_list_website_orders(self, api_client):
        assert [o["id"] for o in api_client.get("/website-orders").json()] == ["ord-003", "ord-002"]

    def test_new_website_order_on_top(self, api_client, table_store):
        place_website_order(table_store, "abc123")

        assert api_client.get("/website-orders").json()[0]["id"] == "abc123"


class TestLayoutAndSession:
    """Tests for the sidebar and sign-out endpoints."""

    def test_toggle_sidebar(self, api_client):
        assert api_client.post("/layout/sidebar").json() == {"sidebar_open": False}
        assert api_client.post("/layout/sidebar").json() == {"sidebar_open": True}

    def test_sign_out_closes_channels(self, api_client, session: AdminSession, feed):
        """Signing out tears down every channel the session opened."""
        response = api_client.post("/session/sign-out")

        assert response.status_code == 200
        assert not session.is_open
        assert feed.get_channel_count() == 0

    def test_writes_survive_sign_out(self, api_client):
        """Signing out closes the session, not the backend behind it."""
        created = api_client.post("/orders", json={
            "customer_id": "cust-002",
            "product_id": "prod-001",
            "total": 150000,
        }).json()

        api_client.post("/session/sign-out")
        orders = api_client.get("/orders").json()

        assert len(orders) == 4
        assert created["id"] in [o["id"] for o in orders]

    def test_sign_in_again_reuses_the_feed(self, api_client, feed):
        api_client.post("/session/sign-out")
        api_client.get("/dashboard")

        assert feed.get_channel_count() == 6


class TestSessionStartup:
    """Tests for lazy sign-in under concurrent requests."""

    @pytest.fixture(autouse=True)
    def backend(self, table_store):
        reset_api_state(table_store=table_store)
        yield
        reset_api_state(None)

    def test_concurrent_first_requests_share_one_session(self, monkeypatch, feed):
        opened = []
        real_open_session = api.main.open_session

        def slow_open_session(*args, **kwargs):
            time.sleep(0.05)
            session = real_open_session(*args, **kwargs)
            opened.append(session)
            return session

        monkeypatch.setattr(api.main, "open_session", slow_open_session)

        sessions = []
        threads = [threading.Thread(target=lambda: sessions.append(get_session())) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(opened) == 1
        assert len(sessions) == 4
        assert all(s is opened[0] for s in sessions)
        assert feed.get_channel_count() == 6

    def test_first_request_signs_in_on_the_backend(self, table_store):
        client = TestClient(app)
        place_website_order(table_store, "before")

        assert client.get("/dashboard").json()["orders"] == 4
