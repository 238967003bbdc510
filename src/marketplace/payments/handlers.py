"""Event handlers for Payments domain events."""

from __future__ import annotations

import structlog

from marketplace.payments.events import PaymentCompleted, PaymentRefunded
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class PaymentCompletedHandler(IEventHandler[PaymentCompleted]):
    def handle(self, event: PaymentCompleted) -> None:
        logger.info(
            "payment.event.completed",
            payment_id=str(event.aggregate_id),
            order_id=str(event.order_id),
            amount=str(event.amount),
        )


class PaymentRefundedHandler(IEventHandler[PaymentRefunded]):
    def handle(self, event: PaymentRefunded) -> None:
        logger.info(
            "payment.event.refunded",
            payment_id=str(event.aggregate_id),
            order_id=str(event.order_id),
            amount=str(event.amount),
            fully_refunded=event.fully_refunded,
        )


payment_completed_handler = PaymentCompletedHandler()
payment_refunded_handler = PaymentRefundedHandler()
