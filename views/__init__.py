"""
Screens and the admin session.

- ViewReconciler keeps a screen's view model in step with the change feed
- DashboardScreen, OrdersScreen, OrderStatusBoard, MessagesScreen and
  WebsiteOrdersPanel are the realtime screens
- AdminSession owns everything shared between screens for one admin
"""

from views.reconciler import PatchStrategy, PrependStrategy, ReloadStrategy, ViewReconciler, ViewState
from views.dashboard import DashboardScreen, load_dashboard
from views.orders import OrderStatusBoard, OrdersScreen, load_orders
from views.messages import MessagesScreen
from views.website import WebsiteOrdersPanel
from views.session import AdminSession, LayoutState, open_backend, open_session

__all__ = [
    "PatchStrategy",
    "PrependStrategy",
    "ReloadStrategy",
    "ViewReconciler",
    "ViewState",
    "DashboardScreen",
    "load_dashboard",
    "OrderStatusBoard",
    "OrdersScreen",
    "load_orders",
    "MessagesScreen",
    "WebsiteOrdersPanel",
    "AdminSession",
    "LayoutState",
    "open_backend",
    "open_session",
]
