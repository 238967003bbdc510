"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from marketplace.orders.constants import OrderStatus, PaymentMethod
from marketplace.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CartLineSerializer(serializers.Serializer):
    """Validates a single cart line in a checkout request."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    variant = serializers.CharField(required=False, default="", allow_blank=True, max_length=100)


class ShippingAddressSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100, required=False, default="", allow_blank=True)
    address = serializers.CharField(max_length=500)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    pincode = serializers.RegexField(r"^\d{6}$", error_messages={"invalid": "Pincode must be exactly 6 digits."})
    phone = serializers.CharField(max_length=20)


class CheckoutSerializer(serializers.Serializer):
    """Validates the checkout request payload.

    ``customer_id`` is only honoured for staff callers; customers always
    check out as themselves.
    """

    customer_id = serializers.UUIDField(required=False)
    items = CartLineSerializer(many=True, allow_empty=False)
    shipping_address = ShippingAddressSerializer()
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True, max_length=1000)


class AdvanceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(required=False, default="", allow_blank=True, max_length=500)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    estimated_delivery = serializers.DateTimeField(required=False)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True, max_length=500)


class ReturnRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)
    item_ids = serializers.ListField(child=serializers.UUIDField(), required=False, allow_empty=True)


class TrackingEventSerializer(serializers.Serializer):
    """A shipment update; ``timestamp`` defaults to now."""

    event = serializers.CharField(max_length=255)
    location = serializers.CharField(required=False, default="", allow_blank=True, max_length=255)
    timestamp = serializers.DateTimeField(required=False)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order line snapshots."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "name",
            "sku",
            "image_url",
            "variant",
            "quantity",
            "unit_price",
            "subtotal",
            "stock_restored",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "note",
            "actor",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "checkout_id",
            "customer_id",
            "seller_id",
            "status",
            "payment_method",
            "payment_status",
            "paid_at",
            "subtotal",
            "shipping",
            "tax",
            "total",
            "shipping_address",
            "tracking_number",
            "estimated_delivery",
            "actual_delivery",
            "notes",
            "cancellation_reason",
            "return_reason",
            "return_requested_at",
            "return_item_ids",
            "return_status",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "seller_id",
            "status",
            "payment_status",
            "total",
            "created_at",
        ]
        read_only_fields = fields
