"""Razorpay adapter for the payment gateway port.

Uses the official ``razorpay`` SDK.  Razorpay works in paise; the
adapter converts at the boundary.  Every SDK or network failure is
re-raised as ``GatewayError`` so callers can retry with the same
idempotency key.
"""

from __future__ import annotations

from decimal import Decimal

import razorpay
import structlog
from django.conf import settings
from razorpay.errors import BadRequestError, ServerError
from razorpay.errors import GatewayError as RazorpayGatewayError

from marketplace.core.exceptions import GatewayError
from marketplace.payments.gateway.port import (
    GatewayIntent,
    PaymentDetails,
    PaymentGateway,
    RefundResult,
)
from marketplace.payments.gateway.signing import signature_matches

logger = structlog.get_logger(__name__)

PAISE = Decimal("100")

_SDK_ERRORS = (BadRequestError, RazorpayGatewayError, ServerError, OSError)


def to_paise(amount: Decimal) -> int:
    return int((amount * PAISE).to_integral_value())


def from_paise(amount: int) -> Decimal:
    return (Decimal(amount) / PAISE).quantize(Decimal("0.01"))


class RazorpayGateway(PaymentGateway):
    """Production gateway backed by the Razorpay Orders/Payments API."""

    def __init__(self, key_id: str | None = None, key_secret: str | None = None) -> None:
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.client = razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(self, amount: Decimal, currency: str, receipt: str) -> GatewayIntent:
        data = {
            "amount": to_paise(amount),
            "currency": currency,
            "receipt": receipt,
            "notes": {"receipt": receipt},
        }
        try:
            response = self.client.order.create(data=data)
        except _SDK_ERRORS as exc:
            logger.error("gateway.create_order_failed", receipt=receipt, error=str(exc))
            raise GatewayError(f"Could not create payment order: {exc}") from exc

        logger.info("gateway.order_created", intent_id=response["id"], receipt=receipt)
        return GatewayIntent(
            intent_id=response["id"],
            amount=from_paise(response["amount"]),
            currency=response["currency"],
            receipt=receipt,
            raw=response,
        )

    def verify_signature(self, intent_id: str, payment_id: str, signature: str) -> bool:
        return signature_matches(self.key_secret, intent_id, payment_id, signature)

    def fetch_payment(self, payment_id: str) -> PaymentDetails:
        try:
            response = self.client.payment.fetch(payment_id)
        except _SDK_ERRORS as exc:
            logger.error(
                "gateway.fetch_payment_failed", payment_id=payment_id, error=str(exc)
            )
            raise GatewayError(f"Could not fetch payment {payment_id}: {exc}") from exc

        return PaymentDetails(
            payment_id=response["id"],
            intent_id=response.get("order_id"),
            status=response["status"],
            amount=from_paise(response["amount"]),
            method=response.get("method"),
            raw=response,
        )

    def refund(
        self,
        payment_id: str,
        amount: Decimal,
        idempotency_key: str,
        notes: dict[str, str] | None = None,
    ) -> RefundResult:
        data = {
            "amount": to_paise(amount),
            "receipt": idempotency_key[:40],
            "notes": notes or {},
        }
        try:
            response = self.client.payment.refund(payment_id, data)
        except _SDK_ERRORS as exc:
            logger.error("gateway.refund_failed", payment_id=payment_id, error=str(exc))
            raise GatewayError(f"Refund failed for payment {payment_id}: {exc}") from exc

        logger.info("gateway.refund_created", refund_id=response["id"], payment_id=payment_id)
        return RefundResult(
            refund_id=response["id"],
            status=response.get("status", "pending"),
            amount=from_paise(response["amount"]),
            raw=response,
        )
