"""
Shared pytest fixtures for the back-office core tests.

These fixtures provide consistent test data and fresh state for each test.
"""

from datetime import date
from pathlib import Path

import pytest

from backoffice.channels import AudibleAlert, AudioOutput
from backoffice.config import Settings
from backoffice.models import ChangeEvent, Operation
from backoffice.table_store import TableStore
from notifications.store import NotificationStore
from realtime.change_feed import ChangeFeed
from realtime.subscriber import ChangeFeedSubscriber


class FakeResponse:
    """Stands in for requests.Response."""

    def __init__(self, payload=None, error=None):
        self._payload = payload
        self._error = error

    def json(self):
        if self._error is not None:
            raise self._error
        return self._payload


class FakeHTTPSession:
    """
    Records POSTs instead of sending them.

    Set `response` to control what post() returns, or `raises` to make it
    fail like a network error would.
    """

    def __init__(self, response=None, raises=None):
        self.response = response or FakeResponse({"ok": True, "result": {"message_id": 1}})
        self.raises = raises
        self.posts: list[dict] = []

    def post(self, url, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        if self.raises is not None:
            raise self.raises
        return self.response


@pytest.fixture
def data_dir() -> Path:
    """Path to the fixture data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def today() -> date:
    """Fixed 'today' for the dashboard's weekly series."""
    return date(2026, 10, 18)


@pytest.fixture
def feed() -> ChangeFeed:
    """Fresh change feed for each test."""
    return ChangeFeed()


@pytest.fixture
def table_store(data_dir: Path, feed: ChangeFeed) -> TableStore:
    """
    Fresh TableStore instance for each test.

    Uses the real JSON fixtures but creates a new instance
    so writes in one test never leak into another.
    """
    return TableStore(data_dir=data_dir, change_feed=feed)


@pytest.fixture
def subscriber(feed: ChangeFeed) -> ChangeFeedSubscriber:
    return ChangeFeedSubscriber(feed)


@pytest.fixture
def audio_output() -> AudioOutput:
    """Mock audio device that accepts playback."""
    return AudioOutput()


@pytest.fixture
def alert(audio_output: AudioOutput) -> AudibleAlert:
    """Alert with no sound resource: every ring falls back to the tone."""
    return AudibleAlert(audio_output)


@pytest.fixture
def notification_store(alert: AudibleAlert) -> NotificationStore:
    return NotificationStore(alert=alert)


@pytest.fixture
def http_session() -> FakeHTTPSession:
    return FakeHTTPSession()


@pytest.fixture
def fake_response():
    """Factory for canned HTTP responses: fake_response(payload) or fake_response(error=...)."""
    return FakeResponse


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    """Settings pointing at the fixtures, with bot credentials set."""
    return Settings(
        data_dir=data_dir,
        telegram_bot_token="123:test-token",
        telegram_chat_id="-100200300",
    )


# =============================================================================
# Event Fixtures
# =============================================================================

def website_order_insert(order_id: str = "abc123", customer_name: str = "Aziz", total=150000) -> ChangeEvent:
    """INSERT event for an order placed on the website."""
    return ChangeEvent(
        operation=Operation.INSERT,
        table="orders",
        new_row={
            "id": order_id,
            "customer_name": customer_name,
            "total": total,
            "status": "new",
            "source": "website",
        },
    )


@pytest.fixture
def website_order_event() -> ChangeEvent:
    """The website order from the header bell scenario."""
    return website_order_insert()


@pytest.fixture
def website_order():
    """Factory for website order INSERT events."""
    return website_order_insert
