"""
Contact messages screen.

Messages left through the website's contact form, newest first. Any change
to the contact_messages table reloads the list, and every reload applies the
status filter that is selected at that moment.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from backoffice.models import MessageStatus, Operation, Row
from backoffice.table_store import TableStore
from realtime.subscriber import ChangeFeedSubscriber
from views.reconciler import ReloadStrategy, ViewReconciler, ViewState

logger = logging.getLogger("messages")


MESSAGES_CHANNEL = "contact_messages_changes"
MESSAGES_TABLE = "contact_messages"

ALL_MESSAGES = "all"

# Timestamp column stamped when a message enters a status
STATUS_TIMESTAMPS = {
    MessageStatus.READ.value: "read_at",
    MessageStatus.REPLIED.value: "replied_at",
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MessagesScreen:
    """
    The contact messages list with its status filter.

    Example:
        screen = MessagesScreen(store, subscriber)
        screen.mount()
        screen.set_filter("new")
        screen.set_status("msg-001", "read")
    """

    def __init__(
        self,
        store: TableStore,
        subscriber: ChangeFeedSubscriber,
        status_filter: str = ALL_MESSAGES,
        clock: Callable[[], str] = _utc_now,
    ):
        self.store = store
        self.clock = clock
        self.status_filter = self._check_filter(status_filter)

        self.view: ViewState[list[Row]] = ViewState("contact_messages", self._load, initial=[])
        self.reconciler = ViewReconciler(
            subscriber,
            MESSAGES_CHANNEL,
            table=MESSAGES_TABLE,
            event_filter=Operation.ALL,
            view=self.view,
            strategy=ReloadStrategy(),
        )

    @staticmethod
    def _check_filter(status: str) -> str:
        if status == ALL_MESSAGES:
            return status
        return MessageStatus(status).value

    def _load(self) -> list[Row]:
        filters = None
        if self.status_filter != ALL_MESSAGES:
            filters = {"status": self.status_filter}
        return self.store.query(MESSAGES_TABLE, filters=filters, order="created_at.desc")

    @property
    def messages(self) -> list[Row]:
        return self.view.data

    def counts(self) -> dict[str, int]:
        """Loaded messages per status, plus the total."""
        counts = {ALL_MESSAGES: len(self.view.data)}
        for status in MessageStatus:
            counts[status.value] = sum(1 for m in self.view.data if m.get("status") == status.value)
        return counts

    def mount(self) -> None:
        self.reconciler.mount()

    def unmount(self) -> None:
        self.reconciler.unmount()

    def set_filter(self, status: str) -> None:
        """
        Select which messages to show and reload.

        Raises:
            ValueError: If status is not "all" or a known message status
        """
        self.status_filter = self._check_filter(status)
        self.view.reload()

    def set_status(self, message_id: Any, status: MessageStatus) -> Optional[Row]:
        """
        Move a message to a new status, stamping read_at or replied_at.

        Returns:
            The updated row, or None if the message does not exist
        """
        status = MessageStatus(status).value
        changes: Row = {"status": status}
        stamp = STATUS_TIMESTAMPS.get(status)
        if stamp:
            changes[stamp] = self.clock()

        updated = self.store.update(MESSAGES_TABLE, message_id, changes)
        if updated is None:
            logger.error(f"Error updating message: {message_id} not found")
        self.view.reload()
        return updated

    def delete_message(self, message_id: Any) -> bool:
        deleted = self.store.delete(MESSAGES_TABLE, message_id)
        self.view.reload()
        return deleted
