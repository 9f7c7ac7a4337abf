"""
Domain models for the back-office core.

Table rows travel as plain dicts (the shape the hosted backend returns them
in). The models here are the records the realtime layer and the screens build
on top of those rows.

Design decisions:
- Using Pydantic for validation and serialization
- ChangeEvent validates the INSERT/UPDATE/DELETE row presence rules up front
- Notification is mutable: the store flips its read flag in place
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Operation(str, Enum):
    """
    Row-level mutation kinds reported by the change feed.

    ALL is only meaningful as a subscription filter; events always carry one
    of the concrete operations.
    """
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"

    def matches(self, operation: "Operation") -> bool:
        """Check if an event operation passes this filter."""
        return self is Operation.ALL or self is operation


class OrderStatus(str, Enum):
    """Order lifecycle states as stored in the orders table."""
    NEW = "new"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderSource(str, Enum):
    """Where an order was placed."""
    WEBSITE = "website"
    ADMIN = "admin"


class MessageStatus(str, Enum):
    """Contact message states, as set from the messages screen."""
    NEW = "new"
    READ = "read"
    REPLIED = "replied"


class FinanceKind(str, Enum):
    """Finance transaction direction."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# Change feed
# =============================================================================

Row = dict[str, Any]


class ChangeEvent(BaseModel):
    """
    One row-level mutation reported by the backend.

    Produced by the transport, consumed once per subscriber callback
    invocation, never persisted.
    """
    operation: Operation = Field(..., description="INSERT, UPDATE or DELETE")
    table: str = Field(..., description="Name of the affected table")
    schema_name: str = Field(default="public", alias="schema")
    new_row: Optional[Row] = Field(default=None, description="Row after the change")
    old_row: Optional[Row] = Field(default=None, description="Row before the change")
    commit_timestamp: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _check_rows(self) -> "ChangeEvent":
        if self.operation is Operation.ALL:
            raise ValueError("'*' is a subscription filter, not an event operation")
        if self.operation is Operation.INSERT and (self.new_row is None or self.old_row is not None):
            raise ValueError("INSERT events carry new_row only")
        if self.operation is Operation.DELETE and (self.old_row is None or self.new_row is not None):
            raise ValueError("DELETE events carry old_row only")
        if self.operation is Operation.UPDATE and (self.new_row is None or self.old_row is None):
            raise ValueError("UPDATE events carry both new_row and old_row")
        return self

    @property
    def row(self) -> Row:
        """The most recent known version of the row."""
        return self.new_row if self.new_row is not None else self.old_row

    @property
    def row_id(self) -> Any:
        """Identity of the affected row."""
        return self.row.get("id")

    def __str__(self) -> str:
        return f"ChangeEvent({self.operation.value} {self.table}, id={self.row_id})"


# =============================================================================
# Notifications
# =============================================================================

class Notification(BaseModel):
    """
    A user-facing record derived from a change event.

    Lives in the session's NotificationStore until cleared; it never expires
    on its own.
    """
    id: Any = Field(..., description="Identity of the triggering row")
    type: str = Field(default="order")
    title: str
    message: str
    read: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=utc_now)
    source_data: Row = Field(default_factory=dict, description="Original row payload")


# =============================================================================
# Screen view models
# =============================================================================

class DailyTotals(BaseModel):
    """Income and expense for one calendar day."""
    date: str
    name: str = Field(..., description="Short weekday name")
    income: float = 0
    expense: float = 0


class DashboardStats(BaseModel):
    """Aggregates shown on the dashboard."""
    total_products: int = Field(default=0, description="Sum of product quantities")
    employees: int = 0
    orders: int = 0
    profit: float = Field(default=0, description="Income minus expense")
    recent_orders: list[Row] = Field(default_factory=list)
    weekly: list[DailyTotals] = Field(default_factory=list)


class OrderDraft(BaseModel):
    """Input for creating or editing an order from the admin screen."""
    customer_id: str
    product_id: str
    quantity: int = Field(default=1, ge=1)
    total: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.NEW
    note: str = ""
    source: OrderSource = OrderSource.ADMIN

    model_config = ConfigDict(use_enum_values=True)
