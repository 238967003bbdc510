"""Notification kinds and their rendered copy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Mapping


class NotificationKind(StrEnum):
    ORDER_PLACED = "order_placed"
    ORDER_STATUS = "order_status"
    PAYMENT_CONFIRMED = "payment_confirmed"
    REFUND_ISSUED = "refund_issued"
    LOW_STOCK = "low_stock"
    VERIFICATION_CODE = "verification_code"


@dataclass(frozen=True)
class Recipient:
    name: str
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body: str
    sms: str


_TEMPLATES: dict[str, tuple[str, str, str]] = {
    NotificationKind.ORDER_PLACED: (
        "Order Confirmation - #{order_number}",
        "Hi {name},\n\nThank you for your order #{order_number}.\n"
        "Total: {currency} {total}\nEstimated delivery: {estimated_delivery}\n",
        "Hi {name}, your order #{order_number} for {currency} {total} is placed.",
    ),
    NotificationKind.ORDER_STATUS: (
        "Order Update - #{order_number}",
        "Hi {name},\n\nYour order #{order_number} is now {status_label}.\n"
        "{tracking_line}",
        "Order #{order_number} is now {status_label}.",
    ),
    NotificationKind.PAYMENT_CONFIRMED: (
        "Payment Confirmation - {gateway_payment_id}",
        "Hi {name},\n\nWe received {currency} {amount} for order #{order_number}.\n",
        "Payment of {currency} {amount} received for order #{order_number}.",
    ),
    NotificationKind.REFUND_ISSUED: (
        "Refund Processed - #{order_number}",
        "Hi {name},\n\nA refund of {currency} {amount} for order #{order_number} "
        "has been issued.\n",
        "Refund of {currency} {amount} issued for order #{order_number}.",
    ),
    NotificationKind.LOW_STOCK: (
        "Low Stock Alert - {sku}",
        "Hi {name},\n\n{product_name} ({sku}) is down to {remaining} units.\n",
        "Low stock: {sku} has {remaining} units left.",
    ),
    NotificationKind.VERIFICATION_CODE: (
        "Your verification code",
        "Hi {name},\n\nYour verification code: {code}. It expires in {ttl_minutes} minutes.\n",
        "Your verification code: {code}. It expires in {ttl_minutes} minutes.",
    ),
}


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(kind: str, recipient: Recipient, payload: Mapping[str, Any]) -> RenderedMessage:
    subject, body, sms = _TEMPLATES[NotificationKind(kind)]
    context = _Defaults(payload)
    context.setdefault("name", recipient.name)
    return RenderedMessage(
        subject=subject.format_map(context),
        body=body.format_map(context),
        sms=sms.format_map(context),
    )
