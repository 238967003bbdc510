"""Configurable fake payment gateway for development and testing.

Simulates the provider without any external calls.  Signatures are real
HMACs over the configured secret, so the verification path is exercised
exactly as in production.  ``authorize()`` plays the customer completing
payment in the provider's checkout widget.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from django.conf import settings

from marketplace.core.exceptions import GatewayError
from marketplace.payments.gateway.port import (
    GatewayIntent,
    PaymentDetails,
    PaymentGateway,
    RefundResult,
)
from marketplace.payments.gateway.signing import compute_signature, signature_matches


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, secret: str | None = None) -> None:
        self.secret = secret if secret is not None else settings.RAZORPAY_KEY_SECRET
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.intents: dict[str, GatewayIntent] = {}
        self.payments: dict[str, PaymentDetails] = {}

    def configure(
        self, should_succeed: bool, failure_reason: str = "Gateway unavailable"
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    # ------------------------------------------------------------------
    # Customer-side simulation
    # ------------------------------------------------------------------

    def authorize(self, intent_id: str, status: str = "captured") -> tuple[str, str]:
        """Simulate a completed checkout; return ``(payment_id, signature)``."""
        intent = self.intents[intent_id]
        payment_id = f"pay_fake_{uuid4().hex[:14]}"
        self.payments[payment_id] = PaymentDetails(
            payment_id=payment_id,
            intent_id=intent_id,
            status=status,
            amount=intent.amount,
            method="upi",
        )
        return payment_id, compute_signature(self.secret, intent_id, payment_id)

    # ------------------------------------------------------------------
    # PaymentGateway
    # ------------------------------------------------------------------

    def create_order(self, amount: Decimal, currency: str, receipt: str) -> GatewayIntent:
        self.calls.append(
            {
                "method": "create_order",
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
            }
        )
        self._fail_if_configured()
        intent = GatewayIntent(
            intent_id=f"order_fake_{uuid4().hex[:14]}",
            amount=amount,
            currency=currency,
            receipt=receipt,
        )
        self.intents[intent.intent_id] = intent
        return intent

    def verify_signature(self, intent_id: str, payment_id: str, signature: str) -> bool:
        self.calls.append(
            {
                "method": "verify_signature",
                "intent_id": intent_id,
                "payment_id": payment_id,
            }
        )
        return signature_matches(self.secret, intent_id, payment_id, signature)

    def fetch_payment(self, payment_id: str) -> PaymentDetails:
        self.calls.append({"method": "fetch_payment", "payment_id": payment_id})
        self._fail_if_configured()
        try:
            return self.payments[payment_id]
        except KeyError:
            raise GatewayError(f"Unknown payment {payment_id}.") from None

    def refund(
        self,
        payment_id: str,
        amount: Decimal,
        idempotency_key: str,
        notes: dict[str, str] | None = None,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "payment_id": payment_id,
                "amount": amount,
                "idempotency_key": idempotency_key,
                "notes": notes or {},
            }
        )
        self._fail_if_configured()
        return RefundResult(
            refund_id=f"rfnd_fake_{uuid4().hex[:14]}",
            status="processed",
            amount=amount,
        )

    def _fail_if_configured(self) -> None:
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)
