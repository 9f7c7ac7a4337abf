"""
Session-wide notification store behind the header bell.

The store keeps the notifications raised during one admin session, newest
first, with their read state. It is fed by the realtime channel for new
website orders and mutated only by explicit user actions.

Design decisions:
- The unread count is computed from the list every time it is read
- Notifications are keyed by the identity of the row that raised them, so a
  redelivered change event never produces a second copy
- Each new notification rings the audible alert; duplicates stay quiet
- The list is unbounded and lives as long as the session
"""

import logging
from typing import Any, Callable, Optional

from backoffice.channels import AudibleAlert
from backoffice.models import ChangeEvent, Notification, Operation
from backoffice.templates import render_order_notification

logger = logging.getLogger("notification_store")


# Predicate deciding which change events raise a notification
EventPredicate = Callable[[ChangeEvent], bool]


def website_order_inserted(source: str = "website") -> EventPredicate:
    """Predicate for INSERT events on orders placed from the website."""

    def matches(event: ChangeEvent) -> bool:
        return (
            event.operation is Operation.INSERT
            and event.table == "orders"
            and event.new_row is not None
            and event.new_row.get("source") == source
        )

    return matches


def order_notification(event: ChangeEvent) -> Notification:
    """Build the header bell entry for a new order."""
    title, message = render_order_notification(event.new_row)
    return Notification(
        id=event.new_row["id"],
        type="order",
        title=title,
        message=message,
        source_data=dict(event.new_row),
    )


class NotificationStore:
    """
    Ordered, most-recent-first list of notifications.

    Example:
        store = NotificationStore(alert=AudibleAlert())
        store.on_change_event(event)   # prepends one notification
        store.unread_count             # 1
        store.mark_all_as_read()
    """

    def __init__(
        self,
        predicate: Optional[EventPredicate] = None,
        build: Callable[[ChangeEvent], Notification] = order_notification,
        alert: Optional[AudibleAlert] = None,
    ):
        """
        Initialize the store.

        Args:
            predicate: Which events raise notifications (defaults to
                       website order inserts)
            build: Turns a qualifying event into a Notification
            alert: Rung once per new notification
        """
        self.predicate = predicate or website_order_inserted()
        self.build = build
        self.alert = alert
        self._notifications: list[Notification] = []

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def notifications(self) -> list[Notification]:
        """Notifications, newest first."""
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    def get(self, notification_id: Any) -> Optional[Notification]:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def __len__(self) -> int:
        return len(self._notifications)

    # =========================================================================
    # Change feed input
    # =========================================================================

    def on_change_event(self, event: ChangeEvent) -> Optional[Notification]:
        """
        Handle one change event from the realtime channel.

        Returns:
            The new notification, or None if the event does not qualify or
            its row is already in the list
        """
        if not self.predicate(event):
            return None

        if event.row_id is None:
            logger.warning(f"Skipping {event}: row has no id")
            return None

        if self.get(event.row_id) is not None:
            logger.info(f"Ignoring duplicate delivery of {event}")
            return None

        notification = self.build(event)
        self._notifications.insert(0, notification)
        logger.info(f"New notification {notification.id}: {notification.title} {notification.message}")

        if self.alert is not None:
            try:
                self.alert.ring()
            except Exception as e:
                logger.error(f"Audio play failed: {e}")

        return notification

    # =========================================================================
    # User actions
    # =========================================================================

    def mark_as_read(self, notification_id: Any) -> bool:
        """
        Mark one notification as read.

        Returns:
            True if it was unread before this call
        """
        notification = self.get(notification_id)
        if notification is None or notification.read:
            return False
        notification.read = True
        return True

    def mark_all_as_read(self) -> int:
        """Mark every notification as read. Returns how many changed."""
        changed = 0
        for notification in self._notifications:
            if not notification.read:
                notification.read = True
                changed += 1
        return changed

    def clear(self, notification_id: Any) -> bool:
        """
        Remove one notification.

        Returns:
            True if it was in the list
        """
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                del self._notifications[index]
                return True
        return False

    def clear_all(self) -> None:
        self._notifications.clear()
