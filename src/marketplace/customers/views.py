"""Customer API views: phone verification for the signed-in customer."""

from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from marketplace.core.exception_handler import domain_error_response
from marketplace.core.exceptions import MarketplaceError, NotAuthorized
from marketplace.customers.repositories import CustomerDjangoRepository
from marketplace.customers.serializers import ConfirmPhoneSerializer
from marketplace.customers.services import PhoneVerificationService


class PhoneVerificationViewSet(GenericViewSet):
    """Send and confirm a one-time code for the customer's phone number."""

    throttle_scope = "phone_verification"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._customer_repo = CustomerDjangoRepository()
        self._service = PhoneVerificationService(self._customer_repo)

    @action(detail=False, methods=["post"])
    def code(self, request: Request) -> Response:
        """POST /api/v1/customers/me/phone/code/"""
        try:
            ttl = self._service.send_code(self._customer_id(request.user))
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response({"sent": True, "expires_in": ttl}, status=status.HTTP_202_ACCEPTED)

    @action(detail=False, methods=["post"])
    def verify(self, request: Request) -> Response:
        """POST /api/v1/customers/me/phone/verify/"""
        serializer = ConfirmPhoneSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            customer = self._service.confirm(
                self._customer_id(request.user), serializer.validated_data["code"]
            )
        except MarketplaceError as exc:
            return domain_error_response(exc)
        return Response(
            {
                "verified": True,
                "phone_verified_at": customer.phone_verified_at.isoformat(),
            }
        )

    def _customer_id(self, user: Any) -> Any:
        customer = self._customer_repo.get_by_user(user)
        if customer is None:
            raise NotAuthorized("Only customers can verify a phone number.")
        return customer.id
