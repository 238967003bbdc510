"""Order API views.

Exposes the ``FulfillmentCoordinator`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into HTTP responses by
``domain_error_response``; the view never swallows generic exceptions.
"""

from __future__ import annotations

from uuid import UUID

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from marketplace.core.exception_handler import (
    domain_error_response,
    pydantic_error_response,
    validation_error_response,
)
from marketplace.core.exceptions import MarketplaceError, NotAuthorized
from marketplace.core.pagination import StandardResultsSetPagination
from marketplace.orders.actors import actor_for_user
from marketplace.orders.dtos import (
    ActorKind,
    CartLineDTO,
    OrderBatchResult,
    PlaceOrderDTO,
    ShippingAddressDTO,
)
from marketplace.orders.filters import OrderFilter
from marketplace.orders.models import Order
from marketplace.orders.serializers import (
    AdvanceStatusSerializer,
    CancelOrderSerializer,
    CheckoutSerializer,
    OrderListSerializer,
    OrderSerializer,
    ReturnRequestSerializer,
    TrackingEventSerializer,
)
from marketplace.orders.services import build_fulfillment_coordinator


def checkout_status_code(result: OrderBatchResult) -> int:
    if result.all_failed:
        return status.HTTP_409_CONFLICT
    if result.is_partial:
        return status.HTTP_207_MULTI_STATUS
    return status.HTTP_201_CREATED


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``FulfillmentCoordinator`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer__name", "seller__store_name"]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._coordinator = build_fulfillment_coordinator()

    def get_throttles(self) -> list[BaseThrottle]:
        throttle_scope: str | None
        if self.action == "checkout":
            throttle_scope = "checkout"
        elif self.action in {"list", "retrieve", "tracking"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def checkout(self, request: Request) -> Response:
        """POST /api/v1/orders/checkout/

        Splits the cart into one order per seller.  Answers 201 when every
        seller's order was created, 207 when some sellers failed and 409
        when all of them did.  Supports idempotency via the
        ``Idempotency-Key`` header.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            actor = actor_for_user(request.user)
            if actor.kind == ActorKind.CUSTOMER:
                customer_id = actor.id
            elif actor.is_system and data.get("customer_id"):
                customer_id = data["customer_id"]
            else:
                raise NotAuthorized("Only customers can check out.")

            dto = PlaceOrderDTO(
                customer_id=customer_id,
                lines=[
                    CartLineDTO(
                        product_id=line["product_id"],
                        quantity=line["quantity"],
                        variant=line.get("variant", ""),
                    )
                    for line in data["items"]
                ],
                shipping_address=ShippingAddressDTO(**data["shipping_address"]),
                payment_method=data["payment_method"],
                notes=data.get("notes", ""),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
            result = self._coordinator.place_order(dto)
        except PydanticValidationError as exc:
            return pydantic_error_response(exc)
        except ValueError as exc:
            return validation_error_response(str(exc))
        except MarketplaceError as exc:
            return domain_error_response(exc)

        body = {
            "checkout_id": str(result.checkout_id),
            "created": OrderSerializer(result.created, many=True).data,
            "failed": [failure.model_dump(mode="json") for failure in result.failed],
        }
        return Response(body, status=checkout_status_code(result))

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Order.objects.none()
        return self._coordinator.list_orders(actor_for_user(self.request.user))

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Customers see their own orders, sellers the orders placed with
        them and staff every order.  Filtering is handled by
        ``OrderFilter``; results are paginated.
        """
        try:
            queryset = self.filter_queryset(self.get_queryset())
        except MarketplaceError as exc:
            return domain_error_response(exc)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._coordinator.get_order(UUID(pk), actor_for_user(request.user))
        except ValueError:
            return validation_error_response("Invalid order ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def advance_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/

        Cancellations are **not** allowed via this endpoint; use
        ``POST /orders/{id}/cancel/`` instead.
        """
        serializer = AdvanceStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._coordinator.advance_status(
                UUID(pk),
                actor_for_user(request.user),
                data["status"],
                note=data.get("note", ""),
                tracking_number=data.get("tracking_number") or None,
                estimated_delivery=data.get("estimated_delivery"),
            )
        except ValueError:
            return validation_error_response("Invalid order ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels an order, refunds it when already paid online and
        releases its reserved stock exactly once.
        """
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._coordinator.cancel_order(
                UUID(pk),
                actor_for_user(request.user),
                reason=serializer.validated_data.get("reason", ""),
            )
        except ValueError:
            return validation_error_response("Invalid order ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"], url_path="return")
    def request_return(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/return/"""
        serializer = ReturnRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._coordinator.request_return(
                UUID(pk),
                actor_for_user(request.user),
                reason=data["reason"],
                item_ids=data.get("item_ids") or None,
            )
        except ValueError:
            return validation_error_response("Invalid order ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def tracking(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/tracking/"""
        try:
            tracking = self._coordinator.get_tracking(UUID(pk), actor_for_user(request.user))
        except ValueError:
            return validation_error_response("Invalid order ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(tracking.model_dump(mode="json"))

    @action(
        detail=True,
        methods=["post"],
        url_path="tracking/events",
        url_name="tracking-events",
    )
    def add_tracking_event(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/tracking/events/

        Sellers record courier scans; the order status does not change.
        """
        serializer = TrackingEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tracking_event = self._coordinator.add_tracking_event(
                UUID(pk),
                actor_for_user(request.user),
                data["event"],
                location=data.get("location", ""),
                occurred_at=data.get("timestamp"),
            )
        except ValueError:
            return validation_error_response("Invalid order ID format.", attr="id")
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(
            {
                "id": str(tracking_event.id),
                "order_id": str(tracking_event.order_id),
                "event": tracking_event.event,
                "location": tracking_event.location,
                "status": tracking_event.status,
                "timestamp": tracking_event.occurred_at.isoformat(),
            },
            status=status.HTTP_201_CREATED,
        )
