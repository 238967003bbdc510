"""Payment API views.

Intent creation, gateway callback verification, refunds and payment
lookup.  All calls go through ``FulfillmentCoordinator`` so order
ownership is checked the same way as for order endpoints.
"""

from __future__ import annotations

from uuid import UUID

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from marketplace.core.exception_handler import (
    domain_error_response,
    validation_error_response,
)
from marketplace.core.exceptions import MarketplaceError
from marketplace.core.pagination import StandardResultsSetPagination
from marketplace.orders.actors import actor_for_user
from marketplace.orders.serializers import OrderSerializer
from marketplace.orders.services import build_fulfillment_coordinator
from marketplace.payments.models import Payment
from marketplace.payments.serializers import (
    CreateIntentSerializer,
    PaymentSerializer,
    RefundSerializer,
    VerifyPaymentSerializer,
)


class PaymentViewSet(GenericViewSet):
    queryset = Payment.objects.all()
    serializer_class = PaymentSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._coordinator = build_fulfillment_coordinator()

    def get_throttles(self) -> list[BaseThrottle]:
        if self.action == "verify":
            self.throttle_scope = "payment_callback"
        elif self.action == "list":
            self.throttle_scope = "order_listing"
        else:
            self.throttle_scope = None
        return super().get_throttles()

    @action(detail=False, methods=["post"])
    def intents(self, request: Request) -> Response:
        """POST /api/v1/payments/intents/

        Opens (or reuses) a gateway intent for an online order.  The
        response carries what the client needs to start the gateway
        checkout widget.
        """
        serializer = CreateIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment = self._coordinator.create_payment_intent(
                data["order_id"], actor_for_user(request.user), data["amount"]
            )
        except MarketplaceError as exc:
            return domain_error_response(exc)

        body = dict(PaymentSerializer(payment).data)
        body["key_id"] = settings.RAZORPAY_KEY_ID
        return Response(body, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"])
    def verify(self, request: Request) -> Response:
        """POST /api/v1/payments/verify/

        Checks the gateway signature and, on success, confirms the order.
        """
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._coordinator.verify_payment(
                data["gateway_order_id"],
                data["gateway_payment_id"],
                data["signature"],
            )
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response({"verified": True, "order": OrderSerializer(order).data})

    def list(self, request: Request) -> Response:
        """GET /api/v1/payments/

        Payment history: customers see payments on their orders, sellers
        on orders placed with them and staff every payment.
        """
        try:
            queryset = self._coordinator.list_payments(actor_for_user(request.user))
        except MarketplaceError as exc:
            return domain_error_response(exc)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = PaymentSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/payments/{pk}/"""
        try:
            payment = self._coordinator.get_payment(UUID(pk), actor_for_user(request.user))
        except ValueError:
            return validation_error_response("Invalid payment ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(PaymentSerializer(payment).data)

    @action(detail=True, methods=["post"])
    def refund(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/payments/{pk}/refund/

        Omitting ``amount`` refunds whatever has not been refunded yet.
        """
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            outcome = self._coordinator.refund_payment(
                UUID(pk),
                actor_for_user(request.user),
                amount=data.get("amount"),
                reason=data.get("reason", ""),
            )
        except ValueError:
            return validation_error_response("Invalid payment ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)

        return Response(
            {
                "refund_id": outcome.refund_id,
                "amount": str(outcome.amount),
                "fully_refunded": outcome.fully_refunded,
                "order_status": outcome.order.status,
                "payment": PaymentSerializer(outcome.payment).data,
            }
        )
