"""Payment DRF serializers for API input/output."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from marketplace.payments.models import Payment

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateIntentSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )


class VerifyPaymentSerializer(serializers.Serializer):
    """Fields returned by the gateway checkout widget on success."""

    gateway_order_id = serializers.CharField(max_length=100)
    gateway_payment_id = serializers.CharField(max_length=100)
    signature = serializers.CharField(max_length=256)


class RefundSerializer(serializers.Serializer):
    """``amount`` omitted means refund everything not yet refunded."""

    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    reason = serializers.CharField(required=False, default="", allow_blank=True, max_length=500)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class PaymentSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    refundable_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )

    class Meta:
        model = Payment
        fields = [
            "id",
            "order_id",
            "order_number",
            "amount",
            "currency",
            "gateway_order_id",
            "gateway_payment_id",
            "status",
            "refund_amount",
            "refundable_amount",
            "failure_reason",
            "refund_reason",
            "completed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
