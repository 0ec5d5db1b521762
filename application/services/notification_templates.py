"""
通知模板：按事件渲染邮件主题/正文与 WhatsApp 模板参数
"""
from __future__ import annotations

from enum import Enum
from html import escape
from typing import Any, Optional

from application.ports.notifications import EmailMessage, WhatsAppTemplateMessage
from domain.order.entity import Order


class NotificationEvent(str, Enum):
    ORDER_PLACED = "order_placed"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"


# Events the admin hears about in addition to the manager
ADMIN_EVENTS = frozenset({
    NotificationEvent.ORDER_PLACED,
    NotificationEvent.DELIVERED,
    NotificationEvent.RETURNED,
    NotificationEvent.PAYMENT_FAILED,
    NotificationEvent.CANCELLED,
})

SHIPPING_EVENTS = {
    "shipped": NotificationEvent.SHIPPED,
    "in_transit": NotificationEvent.IN_TRANSIT,
    "delivered": NotificationEvent.DELIVERED,
    "returned": NotificationEvent.RETURNED,
}

_CUSTOMER_SUBJECTS = {
    NotificationEvent.ORDER_PLACED: "Order Confirmation #{number} - Thank You!",
    NotificationEvent.PAYMENT_SUCCESS: "Payment Confirmed for Order #{number}",
    NotificationEvent.PAYMENT_FAILED: "Payment Failed for Order #{number} - Action Required",
    NotificationEvent.PAYMENT_REFUNDED: "Refund Processed for Order #{number}",
    NotificationEvent.SHIPPED: "Your Order #{number} Has Shipped!",
    NotificationEvent.IN_TRANSIT: "Your Order #{number} Is On The Way",
    NotificationEvent.DELIVERED: "Order #{number} Delivered",
    NotificationEvent.RETURNED: "Return Received for Order #{number}",
    NotificationEvent.CANCELLED: "Order #{number} Cancelled",
}

_CUSTOMER_LINES = {
    NotificationEvent.ORDER_PLACED: "We have received your order and will let you know once it is confirmed.",
    NotificationEvent.PAYMENT_SUCCESS: "Your payment was successful and your order is confirmed.",
    NotificationEvent.PAYMENT_FAILED: "Your payment could not be completed. Please retry from your orders page.",
    NotificationEvent.PAYMENT_REFUNDED: "Your refund has been processed to the original payment method.",
    NotificationEvent.SHIPPED: "Your order is on its way.",
    NotificationEvent.IN_TRANSIT: "Your order is in transit.",
    NotificationEvent.DELIVERED: "Your order has been delivered. We hope you love it!",
    NotificationEvent.RETURNED: "We have received your returned order.",
    NotificationEvent.CANCELLED: "Your order has been cancelled.",
}

_WHATSAPP_TEMPLATES = {
    NotificationEvent.ORDER_PLACED: "order_confirmation",
    NotificationEvent.PAYMENT_SUCCESS: "payment_confirmation",
    NotificationEvent.PAYMENT_FAILED: "payment_reminder",
    NotificationEvent.PAYMENT_REFUNDED: "payment_refund",
    NotificationEvent.SHIPPED: "shipping_notification",
    NotificationEvent.IN_TRANSIT: "shipping_notification",
    NotificationEvent.DELIVERED: "order_delivered",
    NotificationEvent.RETURNED: "order_returned",
    NotificationEvent.CANCELLED: "order_cancelled",
}

STAFF_WHATSAPP_TEMPLATE = "order_status_update"


def _order_ref(order: Order) -> str:
    return order.order_number or str(order.id)


def _detail_rows(order: Order, extra: dict[str, Any]) -> list[tuple[str, str]]:
    rows = [
        ("Order", _order_ref(order)),
        ("Status", order.status),
        ("Total", f"{order.currency} {order.total}"),
    ]
    for label, key in (
        ("Tracking number", "tracking_number"),
        ("Carrier", "carrier"),
        ("Estimated delivery", "estimated_delivery"),
        ("Transaction", "transaction_id"),
        ("Reason", "reason"),
        ("Recorded by", "recorded_by"),
    ):
        if extra.get(key):
            rows.append((label, str(extra[key])))
    return rows


def _html(heading: str, greeting: str, line: str, rows: list[tuple[str, str]]) -> str:
    table = "".join(
        f"<tr><td style=\"padding:4px 12px 4px 0;color:#666\">{escape(k)}</td><td>{escape(v)}</td></tr>"
        for k, v in rows
    )
    return (
        "<!DOCTYPE html><html><body style=\"font-family:Arial,sans-serif;color:#333\">"
        f"<h2>{escape(heading)}</h2><p>{escape(greeting)}</p><p>{escape(line)}</p>"
        f"<table>{table}</table></body></html>"
    )


def _text(greeting: str, line: str, rows: list[tuple[str, str]]) -> str:
    return "\n".join([greeting, "", line, ""] + [f"{k}: {v}" for k, v in rows])


def customer_email(event: NotificationEvent, order: Order, to: str, extra: Optional[dict[str, Any]] = None) -> EmailMessage:
    extra = extra or {}
    subject = _CUSTOMER_SUBJECTS[event].format(number=_order_ref(order))
    greeting = f"Hello {order.customer_name or 'Customer'},"
    line = _CUSTOMER_LINES[event]
    rows = _detail_rows(order, extra)
    return EmailMessage(to=to, subject=subject, html=_html(subject, greeting, line, rows), text=_text(greeting, line, rows))


def staff_email(event: NotificationEvent, order: Order, to: str, extra: Optional[dict[str, Any]] = None) -> EmailMessage:
    extra = extra or {}
    label = event.value.replace("_", " ").title()
    subject = f"[{label}] Order #{_order_ref(order)}"
    greeting = "Hello,"
    line = f"Order {_order_ref(order)} for {order.customer_name} ({order.customer_email or order.customer_phone or '-'}): {label}."
    rows = _detail_rows(order, extra)
    return EmailMessage(to=to, subject=subject, html=_html(subject, greeting, line, rows), text=_text(greeting, line, rows))


def customer_whatsapp(
    event: NotificationEvent,
    order: Order,
    recipient: str,
    language: str = "en",
    extra: Optional[dict[str, Any]] = None,
) -> WhatsAppTemplateMessage:
    extra = extra or {}
    params = [order.customer_name or "Customer", _order_ref(order)]
    if event in (NotificationEvent.SHIPPED, NotificationEvent.IN_TRANSIT):
        params.append(str(extra.get("tracking_number") or "-"))
    elif event in (NotificationEvent.PAYMENT_SUCCESS, NotificationEvent.PAYMENT_REFUNDED):
        params.append(str(order.total))
    return WhatsAppTemplateMessage(
        recipient=recipient,
        template_name=_WHATSAPP_TEMPLATES[event],
        parameters=params,
        language=language,
    )


def staff_whatsapp(event: NotificationEvent, order: Order, recipient: str, language: str = "en") -> WhatsAppTemplateMessage:
    return WhatsAppTemplateMessage(
        recipient=recipient,
        template_name=STAFF_WHATSAPP_TEMPLATE,
        parameters=[_order_ref(order), event.value.replace("_", " "), order.customer_name or "-"],
        language=language,
    )
