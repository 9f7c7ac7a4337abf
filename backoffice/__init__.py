"""
Shared infrastructure for the retail back-office core.

This package contains code used by the realtime, notification and screen
layers:
- Domain models (ChangeEvent, Notification, DashboardStats)
- Table store for JSON-seeded, in-memory table access
- Audible alert channel
- Notification templates
- Settings
"""

from backoffice.models import (
    ChangeEvent,
    Operation,
    Notification,
    OrderStatus,
    OrderSource,
    DashboardStats,
    OrderDraft,
)
from backoffice.table_store import TableStore
from backoffice.channels import AudibleAlert, AudioOutput
from backoffice.config import Settings

__all__ = [
    "ChangeEvent",
    "Operation",
    "Notification",
    "OrderStatus",
    "OrderSource",
    "DashboardStats",
    "OrderDraft",
    "TableStore",
    "AudibleAlert",
    "AudioOutput",
    "Settings",
]
