"""
Dashboard screen: headline figures, recent orders and the weekly finance
series. Reloaded in full on any change to the orders table.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Optional

from backoffice.models import DailyTotals, DashboardStats, FinanceKind, Operation
from backoffice.table_store import TableStore
from realtime.subscriber import ChangeFeedSubscriber
from views.reconciler import ReloadStrategy, ViewReconciler, ViewState

logger = logging.getLogger("dashboard")


DASHBOARD_CHANNEL = "dashboard_updates"

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def load_dashboard(
    store: TableStore,
    recent_limit: int = 5,
    today: Optional[date] = None,
) -> DashboardStats:
    """Compute the dashboard aggregates from the tables."""
    today = today or date.today()

    products = store.query("products", select="quantity")
    employees = store.query("employees", select="id")
    orders = store.query("orders", select="id")
    recent = store.query("orders", order="created_at.desc", limit=recent_limit)
    finance = store.query("finance", select="kind, amount, date")

    income = sum(f["amount"] or 0 for f in finance if f["kind"] == FinanceKind.INCOME.value)
    expense = sum(f["amount"] or 0 for f in finance if f["kind"] == FinanceKind.EXPENSE.value)

    weekly: dict[str, DailyTotals] = {}
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        weekly[day.isoformat()] = DailyTotals(date=day.isoformat(), name=WEEKDAY_NAMES[day.weekday()])

    for entry in finance:
        bucket = weekly.get(entry["date"])
        if bucket is None:
            continue
        if entry["kind"] == FinanceKind.INCOME.value:
            bucket.income += entry["amount"] or 0
        else:
            bucket.expense += entry["amount"] or 0

    return DashboardStats(
        total_products=sum(p["quantity"] or 0 for p in products),
        employees=len(employees),
        orders=len(orders),
        profit=income - expense,
        recent_orders=recent,
        weekly=list(weekly.values()),
    )


class DashboardScreen:
    """Dashboard view model plus its realtime reload channel."""

    def __init__(
        self,
        store: TableStore,
        subscriber: ChangeFeedSubscriber,
        recent_limit: int = 5,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.recent_limit = recent_limit
        self._today = today or date.today

        self.view: ViewState[DashboardStats] = ViewState("dashboard", self._load, initial=DashboardStats())
        self.reconciler = ViewReconciler(
            subscriber,
            DASHBOARD_CHANNEL,
            table="orders",
            event_filter=Operation.ALL,
            view=self.view,
            strategy=ReloadStrategy(),
        )

    def _load(self) -> DashboardStats:
        return load_dashboard(self.store, self.recent_limit, self._today())

    @property
    def stats(self) -> DashboardStats:
        return self.view.data

    def mount(self) -> None:
        self.reconciler.mount()

    def unmount(self) -> None:
        self.reconciler.unmount()
