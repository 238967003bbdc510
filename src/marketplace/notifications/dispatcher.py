"""Best-effort fan-out of order/payment changes.

Both classes swallow and log every delivery failure: a broken SMTP
server or Redis outage must never roll back or block the state change
that triggered the notification.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog
from django.conf import settings
from django.utils.module_loading import import_string

from marketplace.notifications.messages import Recipient
from marketplace.notifications.realtime import (
    LOW_STOCK_EVENT,
    RealtimeChannel,
    seller_inventory_room,
)
from marketplace.notifications.transports import NotificationTransport

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, transport: Optional[NotificationTransport] = None) -> None:
        self.transport = transport or import_string(
            settings.MARKETPLACE_NOTIFICATION_TRANSPORT
        )()

    def dispatch(
        self, kind: str, recipient: Recipient, payload: Mapping[str, Any]
    ) -> bool:
        """Send a notification; return ``False`` instead of raising on failure."""
        if not (recipient.email or recipient.phone):
            logger.info("notification.no_contact", kind=kind)
            return False
        try:
            self.transport.send(kind, recipient, payload)
        except Exception:
            logger.exception("notification.dispatch_failed", kind=kind)
            return False
        return True


class RealtimeBroadcaster:
    def __init__(self, channel: Optional[RealtimeChannel] = None) -> None:
        self.channel = channel or import_string(settings.MARKETPLACE_REALTIME_CHANNEL)()

    def order_status(self, order_id: Any, payload: Mapping[str, Any]) -> bool:
        try:
            self.channel.publish(order_id, payload)
        except Exception:
            logger.exception("realtime.broadcast_failed", order_id=str(order_id))
            return False
        return True

    def low_stock(self, seller_id: Any, payload: Mapping[str, Any]) -> bool:
        try:
            self.channel.publish_to_room(
                seller_inventory_room(seller_id), LOW_STOCK_EVENT, payload
            )
        except Exception:
            logger.exception("realtime.broadcast_failed", seller_id=str(seller_id))
            return False
        return True
