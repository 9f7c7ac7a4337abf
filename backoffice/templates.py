"""
Notification message templates.

Each notification type has a short in-panel variant (title + one-line message
for the header bell) and a longer bot variant (HTML, for the Telegram chat).

Design decisions:
- Templates are plain strings with {variable} placeholders
- Amounts are rendered without grouping so the raw figure stays searchable
- Bot messages use Telegram's HTML parse mode
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class NotificationType(str, Enum):
    """Supported notification types."""
    NEW_ORDER = "new_order"
    WEBSITE_ORDER = "website_order"


@dataclass
class NotificationTemplate:
    """A notification template with panel and bot variants."""
    notification_type: NotificationType
    title: str
    message: str
    bot_message: str

    def render_panel(self, **kwargs) -> tuple[str, str]:
        """
        Render the panel variant.

        Returns:
            Tuple of (title, message)
        """
        return (
            self.title.format(**kwargs),
            self.message.format(**kwargs),
        )

    def render_bot(self, **kwargs) -> str:
        return self.bot_message.format(**kwargs).strip()


TEMPLATES: dict[NotificationType, NotificationTemplate] = {
    NotificationType.NEW_ORDER: NotificationTemplate(
        notification_type=NotificationType.NEW_ORDER,
        title="New order!",
        message="{customer_name} - {total}",
        bot_message="""
🔔 <b>New order!</b>

👤 Customer: {customer_name}
📦 Product: {product_name}
🔢 Quantity: {quantity}
💰 Total: {total} so'm
📅 Date: {date}
⚡ Status: {status}
""",
    ),
    NotificationType.WEBSITE_ORDER: NotificationTemplate(
        notification_type=NotificationType.WEBSITE_ORDER,
        title="New website order!",
        message="{customer_name} - {total}",
        bot_message="""
🆕 <b>New website order!</b>

👤 Customer: {customer_name}
📞 Phone: {customer_phone}
💰 Total: {total} so'm
""",
    ),
}


def get_template(notification_type: NotificationType) -> Optional[NotificationTemplate]:
    """Get a template by notification type."""
    return TEMPLATES.get(notification_type)


def format_amount(value: Any) -> str:
    """Render a money amount: integral values lose their trailing '.0'."""
    if value is None:
        return "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _order_context(order: dict) -> dict[str, Any]:
    return {
        "customer_name": order.get("customer_name") or "Unknown customer",
        "customer_phone": order.get("customer_phone") or "-",
        "product_name": order.get("product_name") or "-",
        "quantity": order.get("quantity", 1),
        "total": format_amount(order.get("total")),
        "date": str(order.get("created_at") or "")[:10],
        "status": order.get("status") or "new",
    }


def render_order_notification(order: dict) -> tuple[str, str]:
    """
    Render the header bell entry for a new order row.

    Returns:
        Tuple of (title, message)
    """
    template = TEMPLATES[NotificationType.NEW_ORDER]
    return template.render_panel(**_order_context(order))


def format_order_message(order: dict) -> str:
    """Render the Telegram message for a new order row."""
    template = TEMPLATES[NotificationType.NEW_ORDER]
    return template.render_bot(**_order_context(order))


def format_website_order_message(order: dict) -> str:
    """Render the short Telegram message for an order placed on the website."""
    template = TEMPLATES[NotificationType.WEBSITE_ORDER]
    return template.render_bot(**_order_context(order))
