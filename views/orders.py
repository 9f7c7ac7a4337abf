"""
Order screens.

OrdersScreen is the full orders table: each order joined with its customer
and its line items, reloaded whenever a new order lands. Given an alert, it
also rings on every new order. Search and status filters are applied to
whatever the last reload returned.

OrderStatusBoard is the compact status list: plain order rows whose status
dropdown is patched in place from UPDATE events, without a round trip.
"""

import logging
from typing import Any, Optional

from backoffice.channels import AudibleAlert
from backoffice.models import ChangeEvent, OrderDraft, OrderStatus, Operation, Row
from backoffice.table_store import TableStore
from backoffice.templates import format_order_message
from notifications.telegram import TelegramNotifier
from realtime.subscriber import ChangeFeedSubscriber
from views.reconciler import PatchStrategy, ReloadStrategy, ViewReconciler, ViewState

logger = logging.getLogger("orders")


ORDERS_CHANNEL = "orders_changes"
ORDER_STATUS_CHANNEL = "order_status_changes"

ORDERS_SELECT = """
    *,
    customers (id, name, phone),
    order_items (
        id, product_id, quantity, price, product_name,
        products (id, name)
    )
"""

ALL_STATUSES = "all"


def load_orders(store: TableStore) -> list[Row]:
    """Orders with customer and line items, newest first."""
    return store.query("orders", select=ORDERS_SELECT, order="created_at.desc")


def _matches_search(order: Row, term: str) -> bool:
    customer = order.get("customers") or {}
    haystack = [
        order.get("id"),
        order.get("customer_name"),
        order.get("customer_phone"),
        order.get("note"),
        customer.get("name"),
        customer.get("phone"),
    ]
    term = term.lower()
    return any(term in str(value).lower() for value in haystack if value)


class OrdersScreen:
    """
    The orders table and its write operations.

    Example:
        screen = OrdersScreen(store, subscriber, telegram)
        screen.mount()
        screen.create_order(OrderDraft(customer_id="cust-001", product_id="prod-001", total=150000))
        screen.visible_orders(search="aziz")
    """

    def __init__(
        self,
        store: TableStore,
        subscriber: ChangeFeedSubscriber,
        telegram: Optional[TelegramNotifier] = None,
        alert: Optional[AudibleAlert] = None,
    ):
        self.store = store
        self.telegram = telegram
        self.alert = alert

        self.customers: list[Row] = []
        self.products: list[Row] = []

        self.view: ViewState[list[Row]] = ViewState("orders", self._load, initial=[])
        self.reconciler = ViewReconciler(
            subscriber,
            ORDERS_CHANNEL,
            table="orders",
            event_filter=Operation.INSERT,
            view=self.view,
            strategy=ReloadStrategy(on_event=self._on_new_order),
        )

    def _load(self) -> list[Row]:
        return load_orders(self.store)

    def _load_lookups(self) -> None:
        self.customers = self.store.query("customers", select="id, name, phone", order="name")
        self.products = self.store.query(
            "products",
            select="id, name, sale_price",
            filters={"is_active": True},
            order="name",
        )

    def _on_new_order(self, event: ChangeEvent) -> None:
        if self.alert is not None:
            self.alert.ring()

    @property
    def orders(self) -> list[Row]:
        return self.view.data

    def mount(self) -> None:
        self._load_lookups()
        self.reconciler.mount()

    def unmount(self) -> None:
        self.reconciler.unmount()

    def visible_orders(self, search: str = "", status: str = ALL_STATUSES) -> list[Row]:
        """Loaded orders narrowed by search term and status."""
        orders = self.view.data
        if status and status != ALL_STATUSES:
            orders = [o for o in orders if o.get("status") == status]
        if search:
            orders = [o for o in orders if _matches_search(o, search)]
        return orders

    # =========================================================================
    # Writes
    # =========================================================================

    def _order_payload(self, draft: OrderDraft) -> Row:
        customer = self.store.get("customers", draft.customer_id)
        if customer is None:
            raise LookupError(f"Customer not found: {draft.customer_id}")
        return {
            "customer_id": draft.customer_id,
            "customer_name": customer.get("name", ""),
            "customer_phone": customer.get("phone", ""),
            "total": draft.total,
            "status": draft.status,
            "note": draft.note,
            "source": draft.source,
        }

    def create_order(self, draft: OrderDraft) -> Row:
        """
        Create an order with one line item and announce it on Telegram.

        The line item snapshots the product's current sale price.

        Raises:
            LookupError: If the customer or product does not exist
        """
        product = self.store.get("products", draft.product_id)
        if product is None:
            raise LookupError(f"Product not found: {draft.product_id}")

        order = self.store.insert("orders", self._order_payload(draft))

        price = product.get("sale_price") or 0
        self.store.insert("order_items", {
            "order_id": order["id"],
            "product_id": draft.product_id,
            "product_name": product.get("name", ""),
            "quantity": draft.quantity,
            "price": price,
            "subtotal": draft.quantity * price,
        })
        logger.info(f"Created order {order['id']} for {order['customer_name']}")

        if self.telegram is not None:
            self.telegram.send(format_order_message({
                **order,
                "product_name": product.get("name"),
                "quantity": draft.quantity,
            }))

        self.view.reload()
        return order

    def update_order(self, order_id: Any, draft: OrderDraft) -> Optional[Row]:
        """Overwrite an order's header fields. Returns None if it does not exist."""
        updated = self.store.update("orders", order_id, self._order_payload(draft))
        self.view.reload()
        return updated

    def delete_order(self, order_id: Any) -> bool:
        """Delete an order and its line items."""
        for item in self.store.query("order_items", select="id", filters={"order_id": order_id}):
            self.store.delete("order_items", item["id"])
        deleted = self.store.delete("orders", order_id)
        self.view.reload()
        return deleted

    def change_status(self, order_id: Any, status: OrderStatus) -> bool:
        """
        Change an order's status and patch the loaded row in place.

        Returns:
            False if the order does not exist
        """
        status = OrderStatus(status).value
        if self.store.update("orders", order_id, {"status": status}) is None:
            logger.error(f"Error updating status: order {order_id} not found")
            return False
        self.view.patch_row(order_id, {"status": status})
        return True


class OrderStatusBoard:
    """Compact order list whose statuses follow UPDATE events by patching."""

    def __init__(self, store: TableStore, subscriber: ChangeFeedSubscriber):
        self.store = store
        self.view: ViewState[list[Row]] = ViewState("order_status", self._load, initial=[])
        self.reconciler = ViewReconciler(
            subscriber,
            ORDER_STATUS_CHANNEL,
            table="orders",
            event_filter=Operation.UPDATE,
            view=self.view,
            strategy=PatchStrategy(fields=("status",)),
        )

    def _load(self) -> list[Row]:
        return self.store.query(
            "orders",
            select="id, customer_name, total, status, created_at",
            order="created_at.desc",
        )

    @property
    def orders(self) -> list[Row]:
        return self.view.data

    def status_of(self, order_id: Any) -> Optional[str]:
        for order in self.view.data:
            if order.get("id") == order_id:
                return order.get("status")
        return None

    def mount(self) -> None:
        self.reconciler.mount()

    def unmount(self) -> None:
        self.reconciler.unmount()
