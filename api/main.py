"""
FastAPI application for the back-office admin panel.

This application provides:
1. Header bell endpoints (/notifications/...)
2. Dashboard aggregates (/dashboard)
3. Orders table and its write operations (/orders/...)
4. Contact messages and website orders (/messages/..., /website-orders)
5. Layout and session endpoints (/layout/sidebar, /session/sign-out)

Run with:
    uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from backoffice.config import Settings
from backoffice.models import DashboardStats, MessageStatus, Notification, OrderDraft, OrderStatus
from backoffice.table_store import TableStore
from views.session import AdminSession, open_backend, open_session

settings = Settings.from_env()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)


# Response models
class NotificationList(BaseModel):
    """Header bell contents."""
    unread_count: int
    notifications: list[Notification]


class StatusChange(BaseModel):
    status: OrderStatus


class SidebarState(BaseModel):
    sidebar_open: bool


class MessageStatusChange(BaseModel):
    status: MessageStatus


# Module-level backend and session (one admin per process). Endpoints run in
# the thread pool, so both are only swapped while holding _state_lock.
_state_lock = threading.Lock()
_table_store: Optional[TableStore] = None
_session: Optional[AdminSession] = None


def _backend() -> TableStore:
    global _table_store
    if _table_store is None:
        _table_store = open_backend(settings)
    return _table_store


def get_session() -> AdminSession:
    """Get the current admin session, signing in if needed."""
    global _session
    with _state_lock:
        if _session is None or not _session.is_open:
            _session = open_session(_backend(), settings)
        return _session


def close_session() -> None:
    """Sign out: close the session and keep the backend."""
    global _session
    with _state_lock:
        if _session is not None:
            _session.close()
            _session = None


def reset_api_state(
    session: Optional[AdminSession] = None,
    table_store: Optional[TableStore] = None,
) -> None:
    """Replace the backend and the current session (for testing)."""
    global _session, _table_store
    with _state_lock:
        if _session is not None and _session is not session:
            _session.close()
        _session = session
        if table_store is None and session is not None:
            table_store = session.table_store
        _table_store = table_store


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logging.info("Starting back-office API")
    yield
    reset_api_state(None)
    logging.info("Shutting down")


app = FastAPI(
    title="Back-office Admin API",
    description="""
    Realtime admin panel for a small retail shop.

    ## Endpoints

    - `/notifications/*` - New order notifications behind the header bell
    - `/dashboard` - Headline figures, recent orders, weekly finance
    - `/orders/*` - Orders table with customers and line items
    - `/messages/*` - Contact messages with a status filter
    - `/website-orders` - Orders placed on the storefront
    """,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "backoffice-admin"}


# =============================================================================
# Notifications
# =============================================================================

@app.get("/notifications", response_model=NotificationList, tags=["Notifications"])
def list_notifications(session: AdminSession = Depends(get_session)):
    """List notifications, newest first, with the unread count."""
    store = session.notifications
    return NotificationList(unread_count=store.unread_count, notifications=store.notifications)


@app.post("/notifications/read-all", response_model=NotificationList, tags=["Notifications"])
def mark_all_notifications_read(session: AdminSession = Depends(get_session)):
    """Mark every notification as read."""
    store = session.notifications
    store.mark_all_as_read()
    return NotificationList(unread_count=store.unread_count, notifications=store.notifications)


@app.post("/notifications/{notification_id}/read", response_model=NotificationList, tags=["Notifications"])
def mark_notification_read(notification_id: str, session: AdminSession = Depends(get_session)):
    """Mark one notification as read."""
    store = session.notifications
    if store.get(notification_id) is None:
        raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
    store.mark_as_read(notification_id)
    return NotificationList(unread_count=store.unread_count, notifications=store.notifications)


@app.delete("/notifications/{notification_id}", response_model=NotificationList, tags=["Notifications"])
def clear_notification(notification_id: str, session: AdminSession = Depends(get_session)):
    """Remove one notification. Clearing an unknown id is a no-op."""
    store = session.notifications
    store.clear(notification_id)
    return NotificationList(unread_count=store.unread_count, notifications=store.notifications)


# =============================================================================
# Dashboard
# =============================================================================

@app.get("/dashboard", response_model=DashboardStats, tags=["Dashboard"])
def dashboard(session: AdminSession = Depends(get_session)):
    """Dashboard aggregates as of the last reload."""
    return session.dashboard.stats


# =============================================================================
# Orders
# =============================================================================

@app.get("/orders", tags=["Orders"])
def list_orders(
    search: str = "",
    status: str = "all",
    session: AdminSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """Orders with customer and line items, filtered by search term and status."""
    return session.orders.visible_orders(search=search, status=status)


@app.post("/orders", status_code=201, tags=["Orders"])
def create_order(draft: OrderDraft, session: AdminSession = Depends(get_session)) -> dict[str, Any]:
    """Create an order with one line item."""
    try:
        return session.orders.create_order(draft)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.put("/orders/{order_id}", tags=["Orders"])
def update_order(order_id: str, draft: OrderDraft, session: AdminSession = Depends(get_session)) -> dict[str, Any]:
    """Overwrite an order's header fields."""
    try:
        updated = session.orders.update_order(order_id, draft)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return updated


@app.patch("/orders/{order_id}/status", tags=["Orders"])
def change_order_status(order_id: str, change: StatusChange, session: AdminSession = Depends(get_session)):
    """Change an order's status."""
    if not session.orders.change_status(order_id, change.status):
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return {"id": order_id, "status": change.status.value}


@app.delete("/orders/{order_id}", tags=["Orders"])
def delete_order(order_id: str, session: AdminSession = Depends(get_session)):
    """Delete an order and its line items."""
    if not session.orders.delete_order(order_id):
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return {"id": order_id, "deleted": True}


# =============================================================================
# Contact messages and website orders
# =============================================================================

@app.get("/messages", tags=["Messages"])
def list_messages(status: str = "all", session: AdminSession = Depends(get_session)) -> list[dict[str, Any]]:
    """Contact messages, newest first, narrowed to one status unless "all"."""
    try:
        session.messages.set_filter(status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown message status: {status}")
    return session.messages.messages


@app.patch("/messages/{message_id}/status", tags=["Messages"])
def change_message_status(
    message_id: str,
    change: MessageStatusChange,
    session: AdminSession = Depends(get_session),
) -> dict[str, Any]:
    """Mark a message new, read or replied."""
    updated = session.messages.set_status(message_id, change.status)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return updated


@app.delete("/messages/{message_id}", tags=["Messages"])
def delete_message(message_id: str, session: AdminSession = Depends(get_session)):
    """Delete a contact message."""
    if not session.messages.delete_message(message_id):
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return {"id": message_id, "deleted": True}


@app.get("/website-orders", tags=["Website"])
def list_website_orders(session: AdminSession = Depends(get_session)) -> list[dict[str, Any]]:
    """Orders placed on the storefront, newest first."""
    return session.website_orders.orders


# =============================================================================
# Layout and session
# =============================================================================

@app.post("/layout/sidebar", response_model=SidebarState, tags=["Layout"])
def toggle_sidebar(session: AdminSession = Depends(get_session)):
    """Open or close the sidebar."""
    return SidebarState(sidebar_open=session.layout.toggle_sidebar())


@app.post("/session/sign-out", tags=["Session"])
def sign_out():
    """Close the admin session and all of its realtime channels."""
    close_session()
    return {"signed_out": True}
