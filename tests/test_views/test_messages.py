"""
Tests for the contact messages screen.
"""

import pytest

from backoffice.models import MessageStatus
from backoffice.table_store import TableStore
from realtime.subscriber import ChangeFeedSubscriber
from views.messages import MESSAGES_CHANNEL, MessagesScreen


@pytest.fixture
def screen(table_store: TableStore, subscriber: ChangeFeedSubscriber) -> MessagesScreen:
    screen = MessagesScreen(table_store, subscriber, clock=lambda: "2026-10-19T09:00:00+00:00")
    screen.mount()
    yield screen
    screen.unmount()


def new_message(name: str = "Kamola") -> dict:
    return {
        "name": name,
        "phone": "+998901112233",
        "message": "Do you have gift cards?",
        "status": "new",
        "created_at": "2026-10-19T08:00:00+00:00",
    }


class TestMessagesLoad:
    """Tests for loading and filtering."""

    def test_mount(self, screen: MessagesScreen, subscriber: ChangeFeedSubscriber):
        assert [m["id"] for m in screen.messages] == ["msg-001", "msg-002", "msg-003"]
        assert subscriber.get_open_channels() == [MESSAGES_CHANNEL]

    def test_counts(self, screen: MessagesScreen):
        assert screen.counts() == {"all": 3, "new": 1, "read": 1, "replied": 1}

    def test_filter_by_status(self, screen: MessagesScreen):
        screen.set_filter("replied")

        assert [m["id"] for m in screen.messages] == ["msg-003"]

    def test_filter_back_to_all(self, screen: MessagesScreen):
        screen.set_filter(MessageStatus.READ)
        screen.set_filter("all")

        assert len(screen.messages) == 3

    def test_unknown_filter(self, screen: MessagesScreen):
        with pytest.raises(ValueError):
            screen.set_filter("archived")

        assert screen.status_filter == "all"

    def test_initial_filter(self, table_store: TableStore, subscriber: ChangeFeedSubscriber):
        screen = MessagesScreen(table_store, subscriber, status_filter="new")
        screen.mount()

        assert [m["id"] for m in screen.messages] == ["msg-001"]
        screen.unmount()


class TestMessagesRealtime:
    """Tests for reloads driven by the contact_messages channel."""

    def test_reloads_on_insert(self, screen: MessagesScreen, table_store: TableStore):
        row = table_store.insert("contact_messages", new_message())

        assert screen.messages[0]["id"] == row["id"]
        assert screen.counts()["new"] == 2

    def test_reload_keeps_current_filter(self, screen: MessagesScreen, table_store: TableStore):
        screen.set_filter("read")

        table_store.insert("contact_messages", new_message())
        table_store.update("contact_messages", "msg-001", {"status": "read"})

        assert [m["id"] for m in screen.messages] == ["msg-001", "msg-002"]

    def test_reloads_on_delete_from_elsewhere(self, screen: MessagesScreen, table_store: TableStore):
        table_store.delete("contact_messages", "msg-002")

        assert [m["id"] for m in screen.messages] == ["msg-001", "msg-003"]

    def test_other_tables_do_not_reload(self, screen: MessagesScreen, table_store: TableStore):
        loads = screen.view.load_count
        table_store.insert("orders", {"customer_name": "Aziz", "source": "website"})

        assert screen.view.load_count == loads

    def test_unmount_stops_reloads(self, screen: MessagesScreen, table_store: TableStore):
        screen.unmount()
        table_store.insert("contact_messages", new_message())

        assert len(screen.messages) == 3


class TestMessagesWrites:
    """Tests for status changes and deletes."""

    def test_mark_read_stamps_read_at(self, screen: MessagesScreen, table_store: TableStore):
        updated = screen.set_status("msg-001", "read")

        assert updated["status"] == "read"
        assert updated["read_at"] == "2026-10-19T09:00:00+00:00"
        assert table_store.get("contact_messages", "msg-001")["replied_at"] is None
        assert screen.counts()["new"] == 0

    def test_mark_replied_stamps_replied_at(self, screen: MessagesScreen):
        updated = screen.set_status("msg-002", MessageStatus.REPLIED)

        assert updated["replied_at"] == "2026-10-19T09:00:00+00:00"
        assert updated["read_at"] == "2026-10-16T10:30:00+00:00"

    def test_back_to_new_stamps_nothing(self, screen: MessagesScreen):
        updated = screen.set_status("msg-003", "new")

        assert updated["status"] == "new"
        assert updated["replied_at"] == "2026-10-15T14:20:00+00:00"

    def test_unknown_status(self, screen: MessagesScreen):
        with pytest.raises(ValueError):
            screen.set_status("msg-001", "archived")

    def test_missing_message(self, screen: MessagesScreen):
        assert screen.set_status("missing", "read") is None

    def test_delete(self, screen: MessagesScreen):
        assert screen.delete_message("msg-001") is True
        assert screen.delete_message("msg-001") is False
        assert "msg-001" not in [m["id"] for m in screen.messages]
