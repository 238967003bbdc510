"""Unit tests for notification dispatch and realtime broadcast."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.core import mail

from marketplace.notifications.dispatcher import NotificationDispatcher, RealtimeBroadcaster
from marketplace.notifications.messages import NotificationKind, Recipient, render
from marketplace.notifications.realtime import (
    LOW_STOCK_EVENT,
    ORDER_STATUS_EVENT,
    InMemoryRealtimeChannel,
)
from marketplace.notifications.transports import EmailSmsTransport

pytestmark = pytest.mark.unit

ASHA = Recipient(name="Asha", email="asha@example.com", phone="9876543210")


class TestRender:
    def test_order_placed_copy(self):
        message = render(
            NotificationKind.ORDER_PLACED,
            ASHA,
            {"order_number": "ORD-1", "currency": "INR", "total": Decimal("689.00")},
        )
        assert message.subject == "Order Confirmation - #ORD-1"
        assert "Hi Asha" in message.body
        assert "INR 689.00" in message.sms

    def test_missing_payload_keys_render_empty(self):
        message = render(NotificationKind.ORDER_STATUS, ASHA, {"order_number": "ORD-1"})
        assert message.subject == "Order Update - #ORD-1"


class TestNotificationDispatcher:
    def test_email_is_sent(self):
        dispatcher = NotificationDispatcher(transport=EmailSmsTransport())
        sent = dispatcher.dispatch(
            NotificationKind.REFUND_ISSUED,
            ASHA,
            {"order_number": "ORD-1", "currency": "INR", "amount": "100.00"},
        )
        assert sent is True
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["asha@example.com"]
        assert mail.outbox[0].subject == "Refund Processed - #ORD-1"

    def test_transport_failure_is_swallowed(self):
        transport = MagicMock()
        transport.send.side_effect = OSError("smtp down")
        dispatcher = NotificationDispatcher(transport=transport)

        assert dispatcher.dispatch(NotificationKind.ORDER_PLACED, ASHA, {}) is False

    def test_recipient_without_contact_is_skipped(self):
        transport = MagicMock()
        dispatcher = NotificationDispatcher(transport=transport)

        assert dispatcher.dispatch(NotificationKind.ORDER_PLACED, Recipient(name="x"), {}) is False
        transport.send.assert_not_called()


class TestRealtimeBroadcaster:
    def test_order_status_goes_to_order_room(self):
        channel = InMemoryRealtimeChannel()
        RealtimeBroadcaster(channel).order_status("abc", {"status": "shipped"})
        assert channel.messages == [("order_abc", ORDER_STATUS_EVENT, {"status": "shipped"})]

    def test_low_stock_goes_to_seller_room(self):
        channel = InMemoryRealtimeChannel()
        RealtimeBroadcaster(channel).low_stock("s1", {"remaining": 1})
        assert channel.messages_for("seller_inventory_s1") == [{"remaining": 1}]
        assert channel.messages[0][1] == LOW_STOCK_EVENT

    def test_channel_failure_is_swallowed(self):
        channel = MagicMock()
        channel.publish.side_effect = ConnectionError("redis down")
        assert RealtimeBroadcaster(channel).order_status("abc", {}) is False
