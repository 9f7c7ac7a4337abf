"""
Admin notifications.

- NotificationStore: the header bell's list with read/unread state
- OrderNotificationService: realtime channel for new website orders
- TelegramNotifier: fire-and-forget bot messages
"""

from notifications.store import NotificationStore, website_order_inserted
from notifications.service import OrderNotificationService
from notifications.telegram import TelegramNotifier

__all__ = [
    "NotificationStore",
    "website_order_inserted",
    "OrderNotificationService",
    "TelegramNotifier",
]
