"""
Admin session context.

One AdminSession exists per signed-in admin. It is created at sign-in,
handed to whatever needs the shared pieces (header bell, screens, layout) and
closed at sign-out, which tears down every realtime channel it opened. The
table store is not the session's: it is opened once with open_backend and
outlives every sign-out.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from backoffice.channels import AudibleAlert, AudioOutput
from backoffice.config import Settings
from backoffice.table_store import TableStore
from notifications.service import OrderNotificationService
from notifications.store import NotificationStore, website_order_inserted
from notifications.telegram import TelegramNotifier
from realtime.change_feed import ChangeFeed
from realtime.subscriber import ChangeFeedSubscriber
from views.dashboard import DashboardScreen
from views.messages import MessagesScreen
from views.orders import OrderStatusBoard, OrdersScreen
from views.website import WebsiteOrdersPanel

logger = logging.getLogger("session")


@dataclass
class LayoutState:
    """Sidebar open/closed state."""
    sidebar_open: bool = True

    def toggle_sidebar(self) -> bool:
        self.sidebar_open = not self.sidebar_open
        return self.sidebar_open

    def close_sidebar(self) -> None:
        self.sidebar_open = False


class AdminSession:
    """
    Everything one signed-in admin shares across screens.

    Example:
        with AdminSession(settings, table_store) as session:
            session.notifications.unread_count
            session.dashboard.stats
    """

    def __init__(
        self,
        settings: Settings,
        table_store: TableStore,
        audio_output: Optional[AudioOutput] = None,
        http_session: Optional[requests.Session] = None,
    ):
        if table_store.change_feed is None:
            raise ValueError("AdminSession needs a table store attached to a change feed")

        self.settings = settings
        self.table_store = table_store
        self.subscriber = ChangeFeedSubscriber(table_store.change_feed)
        self.layout = LayoutState()

        self.alert = AudibleAlert(audio_output, sound_path=settings.sound_path)
        self.telegram = TelegramNotifier(
            settings.telegram_bot_token,
            settings.telegram_chat_id,
            session=http_session,
            timeout=settings.telegram_timeout,
        )
        self.notifications = NotificationStore(
            predicate=website_order_inserted(settings.website_source),
            alert=self.alert,
        )
        self.order_notifications = OrderNotificationService(
            self.subscriber,
            self.notifications,
            telegram=self.telegram,
            website_source=settings.website_source,
        )

        self.dashboard = DashboardScreen(
            table_store,
            self.subscriber,
            recent_limit=settings.recent_orders_limit,
        )
        # screens get no alert: one ring per website order, from the bell
        self.orders = OrdersScreen(table_store, self.subscriber, telegram=self.telegram)
        self.status_board = OrderStatusBoard(table_store, self.subscriber)
        self.messages = MessagesScreen(table_store, self.subscriber)
        # the order service posts website orders to the chat
        self.website_orders = WebsiteOrdersPanel(
            table_store,
            self.subscriber,
            website_source=settings.website_source,
        )

        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def start(self) -> None:
        """Open the notification channel and mount the screens."""
        if self._open:
            return
        self._open = True
        try:
            self.order_notifications.start()
            self.dashboard.mount()
            self.orders.mount()
            self.status_board.mount()
            self.messages.mount()
            self.website_orders.mount()
        except Exception:
            self.close()
            raise
        logger.info(f"Admin session started with channels {self.subscriber.get_open_channels()}")

    def close(self) -> None:
        """Tear down every screen and channel. Safe to call more than once."""
        if not self._open:
            return
        self._open = False
        self.website_orders.unmount()
        self.messages.unmount()
        self.status_board.unmount()
        self.orders.unmount()
        self.dashboard.unmount()
        self.order_notifications.stop()
        leaked = self.subscriber.unsubscribe_all()
        if leaked:
            logger.warning(f"Closed {leaked} channels left open at sign-out")
        logger.info("Admin session closed")

    def __enter__(self) -> "AdminSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_backend(settings: Optional[Settings] = None) -> TableStore:
    """
    Build the table store and its change feed.

    The backend outlives every session: sign-out closes the session's
    channels but leaves the tables and the feed as they are.
    """
    settings = settings or Settings.from_env()
    return TableStore(settings.data_dir, change_feed=ChangeFeed())


def open_session(
    table_store: TableStore,
    settings: Optional[Settings] = None,
    audio_output: Optional[AudioOutput] = None,
    http_session: Optional[requests.Session] = None,
) -> AdminSession:
    """Sign in: start a session on an existing table store."""
    settings = settings or Settings.from_env()
    session = AdminSession(settings, table_store, audio_output=audio_output, http_session=http_session)
    session.start()
    return session
