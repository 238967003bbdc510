"""Payment reconciler.

Owns the ``Payment`` record and keeps it consistent with the order's
state.  Order fields are only changed through ``OrderStateMachine``.

Lock order is always order row first, then payment row, matching the
order-side use cases so a concurrent cancel and callback cannot
deadlock.  Gateway failures propagate as ``GatewayError`` after the
surrounding transaction rolls back; nothing is retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from marketplace.orders.constants import SYSTEM_ACTOR, OrderPaymentStatus, OrderStatus
from marketplace.orders.exceptions import OrderNotFound
from marketplace.orders.state_machine import OrderStateMachine
from marketplace.payments.constants import (
    REFUNDABLE_STATES,
    VERIFIABLE_STATES,
    PaymentStatus,
)
from marketplace.payments.events import PaymentCompleted, PaymentRefunded
from marketplace.payments.exceptions import (
    AmountMismatch,
    LateCaptureRefunded,
    PaymentDeclined,
    PaymentNotEligible,
    PaymentNotFound,
    RefundError,
    SignatureInvalid,
)
from marketplace.payments.gateway import get_gateway

if TYPE_CHECKING:
    from marketplace.orders.models import Order
    from marketplace.orders.repositories.interfaces import IOrderRepository
    from marketplace.payments.gateway.port import PaymentDetails, PaymentGateway
    from marketplace.payments.models import Payment
    from marketplace.payments.repositories.interfaces import IPaymentRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RefundOutcome:
    payment: Payment
    order: Order
    amount: Decimal
    refund_id: str
    fully_refunded: bool


class PaymentReconciler:
    """Creates gateway intents, verifies callbacks and drives refunds.

    Receives repositories and the gateway via constructor injection (DIP).
    """

    def __init__(
        self,
        payment_repository: IPaymentRepository,
        order_repository: IOrderRepository,
        gateway: Optional[PaymentGateway] = None,
        state_machine: Optional[OrderStateMachine] = None,
        currency: Optional[str] = None,
        amount_epsilon: Optional[Decimal] = None,
    ) -> None:
        self._payment_repo = payment_repository
        self._order_repo = order_repository
        self._gateway = gateway or get_gateway()
        self._state_machine = state_machine or OrderStateMachine(order_repository)
        self._currency = currency or settings.MARKETPLACE_CURRENCY
        self._epsilon = (
            amount_epsilon
            if amount_epsilon is not None
            else settings.MARKETPLACE_AMOUNT_EPSILON
        )

    # ------------------------------------------------------------------
    # Intent
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_intent(self, order_id: UUID, amount: Decimal) -> Payment:
        """Create (or return the open) gateway intent for an online order.

        Raises:
            OrderNotFound: unknown order.
            PaymentNotEligible: COD order, order not pending, or already paid.
            AmountMismatch: *amount* differs from ``order.total`` beyond epsilon.
            GatewayError: the provider could not create the order.
        """
        order = self._lock_order(order_id)
        log = logger.bind(order_id=str(order.id))

        if order.is_cod:
            raise PaymentNotEligible("Cash-on-delivery orders are paid on delivery.")
        if (
            order.status != OrderStatus.PENDING
            or order.payment_status != OrderPaymentStatus.PENDING
        ):
            raise PaymentNotEligible(
                f"Order {order.order_number} is {order.status}/{order.payment_status}."
            )

        declared = _as_decimal(amount)
        if declared is None or abs(declared - order.total) > self._epsilon:
            log.warning(
                "payment.amount_mismatch",
                declared=str(amount),
                expected=str(order.total),
            )
            raise AmountMismatch(
                f"Amount {amount} does not match order total {order.total}."
            )

        existing = self._payment_repo.get_by_order(order.id, for_update=True)
        if existing is not None:
            if existing.status in VERIFIABLE_STATES:
                log.info("payment.intent_reused", payment_id=str(existing.id))
                return existing
            raise PaymentNotEligible(
                f"Order {order.order_number} already has a {existing.status} payment."
            )

        intent = self._gateway.create_order(order.total, self._currency, order.order_number)
        payment = self._payment_repo.create(order.id, intent)
        log.info("payment.intent_created", gateway_order_id=intent.intent_id)
        return payment

    # ------------------------------------------------------------------
    # Callback verification
    # ------------------------------------------------------------------

    def verify(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str
    ) -> Payment:
        """Verify a checkout callback and confirm the order.

        A bad signature or a declined payment marks the payment ``failed``
        (committed) and leaves the order untouched, so a later correct
        callback for the same intent still succeeds.

        Raises:
            PaymentNotFound: unknown gateway order id.
            SignatureInvalid: signature does not match.
            PaymentDeclined: gateway reports the payment as not captured.
            PaymentNotEligible: payment already refunded or order no longer pending.
            LateCaptureRefunded: the order was cancelled before the customer
                paid; the capture has been refunded (committed).
            GatewayError: fetching payment details failed (nothing changed).
        """
        failure: Optional[Exception] = None
        with transaction.atomic():
            located = self._payment_repo.get_by_gateway_order(gateway_order_id)
            if located is None:
                raise PaymentNotFound(f"No payment for gateway order {gateway_order_id}.")
            order = self._lock_order(located.order_id)
            payment = self._payment_repo.get_by_gateway_order(
                gateway_order_id, for_update=True
            )
            log = logger.bind(
                payment_id=str(payment.id),
                order_id=str(order.id),
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
            )

            if not self._gateway.verify_signature(
                gateway_order_id, gateway_payment_id, signature
            ):
                log.warning("payment.signature_invalid", security_event=True)
                if payment.status in VERIFIABLE_STATES:
                    self._mark_failed(payment, "Invalid payment signature.")
                failure = SignatureInvalid("Payment signature verification failed.")

            elif payment.status == PaymentStatus.COMPLETED:
                if payment.gateway_payment_id != gateway_payment_id:
                    raise PaymentNotEligible("Payment already completed with another id.")
                log.info("payment.verify_replayed")
                return payment

            elif payment.status not in VERIFIABLE_STATES:
                raise PaymentNotEligible(f"Payment is {payment.status}.")

            elif order.status == OrderStatus.CANCELLED:
                failure = self._refund_late_capture(payment, order, gateway_payment_id, log)

            elif order.status != OrderStatus.PENDING:
                raise PaymentNotEligible(
                    f"Order {order.order_number} is {order.status}, not pending."
                )

            else:
                details = self._gateway.fetch_payment(gateway_payment_id)
                if not self._captures(details, payment):
                    log.warning(
                        "payment.declined",
                        gateway_status=details.status,
                        gateway_amount=str(details.amount),
                    )
                    self._mark_failed(
                        payment,
                        f"Gateway reported {details.status} for {details.amount}.",
                        gateway_payment_id=gateway_payment_id,
                    )
                    failure = PaymentDeclined("Payment was not captured by the gateway.")
                else:
                    self._complete(payment, order, gateway_payment_id, details.raw)
                    log.info("payment.verified")

        if failure is not None:
            raise failure
        return payment

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------

    @transaction.atomic
    def refund(
        self,
        payment_id: UUID,
        amount: Optional[Decimal] = None,
        reason: str = "",
        actor: str = SYSTEM_ACTOR,
    ) -> RefundOutcome:
        """Refund *amount* (default: everything still refundable).

        A full refund flips the payment to ``refunded``, the order's
        payment status to ``refunded`` and, for a returned order, the
        order status to ``refunded``.  Partial refunds change no status.

        Raises:
            PaymentNotFound: unknown payment.
            PaymentNotEligible: payment is not completed.
            RefundError: amount <= 0 or above the refundable remainder.
            GatewayError: the provider rejected the refund (nothing changed).
        """
        located = self._payment_repo.get_by_id(str(payment_id))
        if located is None:
            raise PaymentNotFound(f"Payment {payment_id} not found.")
        order = self._lock_order(located.order_id)
        payment = self._payment_repo.get_for_update(str(located.id))
        log = logger.bind(payment_id=str(payment.id), order_id=str(order.id))

        if payment.status not in REFUNDABLE_STATES:
            raise PaymentNotEligible(f"Payment is {payment.status}; cannot refund.")

        remaining = payment.refundable_amount
        refund_amount = remaining if amount is None else _as_decimal(amount)
        if refund_amount is None or refund_amount <= 0 or refund_amount > remaining:
            log.info("payment.refund_rejected", requested=str(amount), remaining=str(remaining))
            raise RefundError(
                f"Refund amount must be greater than 0 and at most {remaining}."
            )

        result = self._gateway.refund(
            payment.gateway_payment_id,
            refund_amount,
            idempotency_key=f"refund_{order.id.hex}_{payment.refund_amount}",
            notes={"order_number": order.order_number, "reason": reason[:200]},
        )

        payment.refund_amount += refund_amount
        payment.refund_reason = reason
        fully_refunded = payment.is_fully_refunded
        update_fields = ["refund_amount", "refund_reason"]
        if fully_refunded:
            payment.status = PaymentStatus.REFUNDED
            update_fields.append("status")
        payment.add_domain_event(
            PaymentRefunded(
                aggregate_id=payment.id,
                order_id=order.id,
                amount=refund_amount,
                refund_amount=payment.refund_amount,
                fully_refunded=fully_refunded,
                refund_id=result.refund_id,
            )
        )
        self._payment_repo.save(payment, update_fields=update_fields)

        if fully_refunded:
            self._state_machine.mark_payment(
                order, OrderPaymentStatus.REFUNDED, note=reason, actor=actor
            )
            if order.status == OrderStatus.RETURNED:
                self._state_machine.transition(
                    order, OrderStatus.REFUNDED, note=reason or "Refund issued", actor=actor
                )

        log.info(
            "payment.refunded",
            amount=str(refund_amount),
            refund_id=result.refund_id,
            fully_refunded=fully_refunded,
        )
        return RefundOutcome(
            payment=payment,
            order=order,
            amount=refund_amount,
            refund_id=result.refund_id,
            fully_refunded=fully_refunded,
        )

    @transaction.atomic
    def void_intent(self, payment_id: UUID, reason: str) -> Optional[Payment]:
        """Close the open intent of an order that is being cancelled.

        The payment is marked ``failed`` so it can no longer confirm the
        order.  A callback that still arrives is refunded by ``verify``.
        The caller holds the order row lock.
        """
        payment = self._payment_repo.get_for_update(str(payment_id))
        if payment is None or payment.status not in VERIFIABLE_STATES:
            return payment
        self._mark_failed(payment, f"Order cancelled: {reason}")
        logger.info(
            "payment.intent_voided",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
        )
        return payment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: str) -> Payment:
        """Raises PaymentNotFound if the payment does not exist."""
        payment = self._payment_repo.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFound(f"Payment {payment_id} not found.")
        return payment

    def get_payment_for_order(self, order_id: UUID) -> Optional[Payment]:
        return self._payment_repo.get_by_order(order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_order(self, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _captures(self, details: PaymentDetails, payment: Payment) -> bool:
        return (
            details.is_captured
            and (not details.intent_id or details.intent_id == payment.gateway_order_id)
            and abs(details.amount - payment.amount) <= self._epsilon
        )

    def _refund_late_capture(
        self, payment: Payment, order: Order, gateway_payment_id: str, log
    ) -> PaymentNotEligible:
        """Settle a payment the customer completed after the order was cancelled.

        A genuine capture is recorded and refunded in full, leaving the
        payment ``refunded``.  Returns the error to raise once the
        transaction has committed.
        """
        details = self._gateway.fetch_payment(gateway_payment_id)
        if not self._captures(details, payment):
            self._mark_failed(
                payment,
                f"Order cancelled; gateway reported {details.status}.",
                gateway_payment_id=gateway_payment_id,
            )
            log.info("payment.late_callback_not_captured", gateway_status=details.status)
            return PaymentNotEligible(f"Order {order.order_number} is cancelled.")

        reason = "Order cancelled before payment completed"
        result = self._gateway.refund(
            gateway_payment_id,
            payment.amount,
            idempotency_key=f"refund_{order.id.hex}_{payment.refund_amount}",
            notes={"order_number": order.order_number, "reason": reason},
        )
        payment.status = PaymentStatus.REFUNDED
        payment.gateway_payment_id = gateway_payment_id
        payment.gateway_response = details.raw
        payment.failure_reason = ""
        payment.completed_at = timezone.now()
        payment.refund_amount = payment.amount
        payment.refund_reason = reason
        payment.add_domain_event(
            PaymentRefunded(
                aggregate_id=payment.id,
                order_id=order.id,
                amount=payment.amount,
                refund_amount=payment.amount,
                fully_refunded=True,
                refund_id=result.refund_id,
            )
        )
        self._payment_repo.save(
            payment,
            update_fields=[
                "status",
                "gateway_payment_id",
                "gateway_response",
                "failure_reason",
                "completed_at",
                "refund_amount",
                "refund_reason",
            ],
        )
        self._state_machine.mark_payment(
            order, OrderPaymentStatus.PAID, note="Captured after cancellation", actor=SYSTEM_ACTOR
        )
        self._state_machine.mark_payment(
            order, OrderPaymentStatus.REFUNDED, note=reason, actor=SYSTEM_ACTOR
        )
        log.warning(
            "payment.late_capture_refunded",
            amount=str(payment.amount),
            refund_id=result.refund_id,
        )
        return LateCaptureRefunded(
            f"Order {order.order_number} was cancelled; the payment of "
            f"{payment.amount} {payment.currency} has been refunded.",
            payment=payment,
            refund_id=result.refund_id,
        )

    def _mark_failed(
        self, payment: Payment, reason: str, gateway_payment_id: str = ""
    ) -> None:
        payment.status = PaymentStatus.FAILED
        payment.failure_reason = reason
        update_fields = ["status", "failure_reason"]
        if gateway_payment_id:
            payment.gateway_payment_id = gateway_payment_id
            update_fields.append("gateway_payment_id")
        self._payment_repo.save(payment, update_fields=update_fields)

    def _complete(
        self, payment: Payment, order: Order, gateway_payment_id: str, raw: dict
    ) -> None:
        payment.status = PaymentStatus.COMPLETED
        payment.gateway_payment_id = gateway_payment_id
        payment.gateway_response = raw
        payment.failure_reason = ""
        payment.completed_at = timezone.now()
        payment.add_domain_event(
            PaymentCompleted(
                aggregate_id=payment.id,
                order_id=order.id,
                amount=payment.amount,
                gateway_payment_id=gateway_payment_id,
            )
        )
        self._payment_repo.save(
            payment,
            update_fields=[
                "status",
                "gateway_payment_id",
                "gateway_response",
                "failure_reason",
                "completed_at",
            ],
        )
        self._state_machine.transition(
            order, OrderStatus.CONFIRMED, note="Payment verified", actor=SYSTEM_ACTOR
        )
        self._state_machine.mark_payment(
            order, OrderPaymentStatus.PAID, note="Payment verified", actor=SYSTEM_ACTOR
        )


def _as_decimal(value: object) -> Optional[Decimal]:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    return amount if amount.is_finite() else None
