"""
Order notification service.

Opens the realtime channel for orders placed on the website and feeds it into
the session's notification store. Every order that makes it into the store is
also pushed to the shop's Telegram chat.

Design decisions:
- One channel, "order_notifications": INSERT on orders, source=eq.website
- The callback only forwards the event to the store; the store decides what
  qualifies and what is a duplicate
- start()/stop() pair up exactly once; the service is also a context manager
"""

import logging
from typing import Optional

from backoffice.models import ChangeEvent, Operation
from backoffice.templates import format_order_message
from notifications.store import NotificationStore
from notifications.telegram import TelegramNotifier
from realtime.subscriber import ChangeFeedSubscriber, SubscriptionHandle

logger = logging.getLogger("notification_service")


ORDER_NOTIFICATIONS_CHANNEL = "order_notifications"


class OrderNotificationService:
    """
    Realtime-driven new order notifications.

    Example:
        service = OrderNotificationService(subscriber, store, telegram)
        service.start()
        # website order inserted -> store.notifications[0], Telegram message
        service.stop()
    """

    def __init__(
        self,
        subscriber: ChangeFeedSubscriber,
        store: NotificationStore,
        telegram: Optional[TelegramNotifier] = None,
        website_source: str = "website",
        channel_name: str = ORDER_NOTIFICATIONS_CHANNEL,
    ):
        self.subscriber = subscriber
        self.store = store
        self.telegram = telegram
        self.website_source = website_source
        self.channel_name = channel_name

        self._handle: Optional[SubscriptionHandle] = None

    @property
    def started(self) -> bool:
        return self._handle is not None and not self._handle.is_closed

    def start(self) -> None:
        """Open the order notifications channel."""
        if self.started:
            logger.warning("OrderNotificationService already started")
            return

        self._handle = self.subscriber.subscribe(
            self.channel_name,
            table="orders",
            event_filter=Operation.INSERT,
            row_filter=f"source=eq.{self.website_source}",
            callback=self._handle_order_inserted,
        )
        logger.info("OrderNotificationService started")

    def stop(self) -> None:
        """Close the channel. Safe to call more than once."""
        if self._handle is None:
            return
        self._handle.unsubscribe()
        self._handle = None
        logger.info("OrderNotificationService stopped")

    def _handle_order_inserted(self, event: ChangeEvent) -> None:
        notification = self.store.on_change_event(event)
        if notification is None:
            return

        if self.telegram is not None:
            try:
                self.telegram.send(format_order_message(event.new_row))
            except Exception as e:
                logger.error(f"Failed to send Telegram notification: {e}")

    def __enter__(self) -> "OrderNotificationService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
