"""
Website orders panel.

Lists orders placed on the storefront, newest first, with their line items.
New website orders are put on top of the list straight from the INSERT event,
and each one can ring the alert and post a short message to the shop's chat.

Design decisions:
- The channel carries a `source=eq.<website source>` row filter, so admin
  orders never reach the panel
- Prepended rows are the raw event rows; their line items appear on the next
  reload
- A redelivered INSERT neither duplicates the row nor rings again
"""

import logging
from typing import Optional

from backoffice.channels import AudibleAlert
from backoffice.models import Operation, Row
from backoffice.table_store import TableStore
from backoffice.templates import format_website_order_message
from notifications.telegram import TelegramNotifier
from realtime.subscriber import ChangeFeedSubscriber
from views.reconciler import PrependStrategy, ViewReconciler, ViewState

logger = logging.getLogger("website_orders")


WEBSITE_ORDERS_CHANNEL = "website_orders"

WEBSITE_ORDERS_SELECT = "*, order_items (product_name, quantity)"


class WebsiteOrdersPanel:
    """
    Storefront orders, kept current from INSERT events.

    Example:
        panel = WebsiteOrdersPanel(store, subscriber, alert=alert, telegram=telegram)
        panel.mount()
        panel.orders[0]   # newest website order
    """

    def __init__(
        self,
        store: TableStore,
        subscriber: ChangeFeedSubscriber,
        website_source: str = "website",
        alert: Optional[AudibleAlert] = None,
        telegram: Optional[TelegramNotifier] = None,
    ):
        self.store = store
        self.website_source = website_source
        self.alert = alert
        self.telegram = telegram

        self.view: ViewState[list[Row]] = ViewState("website_orders", self._load, initial=[])
        self.reconciler = ViewReconciler(
            subscriber,
            WEBSITE_ORDERS_CHANNEL,
            table="orders",
            event_filter=Operation.INSERT,
            view=self.view,
            strategy=PrependStrategy(on_new=self._announce),
            row_filter=f"source=eq.{website_source}",
        )

    def _load(self) -> list[Row]:
        return self.store.query(
            "orders",
            select=WEBSITE_ORDERS_SELECT,
            filters={"source": self.website_source},
            order="created_at.desc",
        )

    @property
    def orders(self) -> list[Row]:
        return self.view.data

    def mount(self) -> None:
        self.reconciler.mount()

    def unmount(self) -> None:
        self.reconciler.unmount()

    def _announce(self, order: Row) -> None:
        logger.info(f"Website order {order.get('id')} from {order.get('customer_name')}")
        if self.alert is not None:
            self.alert.ring()
        if self.telegram is not None:
            self.telegram.send(format_website_order_message(order))
