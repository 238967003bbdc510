"""Order state machine.

The only code allowed to change ``Order.status`` and
``Order.payment_status``.  Every accepted status change appends an
``OrderStatusHistory`` row and an ``OrderStatusChanged`` outbox event in
the caller's transaction.  Side effects of a transition (stock release,
statistics, notifications) belong to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from django.utils import timezone

from marketplace.core.exceptions import InvalidTransition
from marketplace.orders.constants import (
    PAYMENT_TRANSITIONS,
    VALID_TRANSITIONS,
    OrderPaymentStatus,
    OrderStatus,
    ReturnStatus,
)
from marketplace.orders.events import OrderStatusChanged

if TYPE_CHECKING:
    from marketplace.orders.models import Order
    from marketplace.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderStateMachine:
    """Validates and records order status transitions.

    The caller must hold the order row lock (``get_for_update``).
    """

    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    @staticmethod
    def allowed_targets(status: str) -> set[str]:
        return set(VALID_TRANSITIONS.get(status, set()))

    def transition(
        self,
        order: Order,
        target: str,
        note: str = "",
        actor: str = "system",
    ) -> Order:
        """Move *order* to *target*.

        Raises:
            InvalidTransition: *target* is not an edge from the current status.
        """
        old_status = order.status
        log = logger.bind(
            order_id=str(order.id),
            old_status=old_status,
            new_status=target,
            actor=actor,
        )
        if target not in OrderStatus.values:
            log.warning("order.unknown_status")
            raise InvalidTransition(f"Unknown order status {target!r}.")
        if not order.can_transition_to(target):
            log.warning("order.invalid_transition")
            raise InvalidTransition(f"Cannot transition from {old_status} to {target}.")

        order.status = target
        update_fields = ["status"]
        if target == OrderStatus.DELIVERED:
            order.actual_delivery = timezone.now()
            update_fields.append("actual_delivery")
        elif target == OrderStatus.REFUNDED and order.return_status:
            order.return_status = ReturnStatus.PROCESSED
            update_fields.append("return_status")

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                order_number=order.order_number,
                old_status=old_status,
                new_status=target,
                actor=actor,
                note=note,
            )
        )
        self._order_repo.save(order, update_fields=update_fields)
        self._order_repo.add_history(
            order_id=order.id,
            new_status=target,
            old_status=old_status,
            note=note,
            actor=actor,
        )
        log.info("order.status_changed")
        return order

    def mark_payment(
        self,
        order: Order,
        payment_status: str,
        note: str = "",
        actor: str = "system",
    ) -> Order:
        """Move ``order.payment_status`` along pending -> paid -> refunded.

        Re-applying the current payment status is a no-op.

        Raises:
            InvalidTransition: the payment status change is not allowed.
        """
        current = order.payment_status
        if current == payment_status:
            return order
        if payment_status not in PAYMENT_TRANSITIONS.get(current, set()):
            logger.warning(
                "order.invalid_payment_transition",
                order_id=str(order.id),
                old_payment_status=current,
                new_payment_status=payment_status,
            )
            raise InvalidTransition(
                f"Cannot change payment status from {current} to {payment_status}."
            )

        order.payment_status = payment_status
        update_fields = ["payment_status"]
        if payment_status == OrderPaymentStatus.PAID:
            order.paid_at = timezone.now()
            update_fields.append("paid_at")
        self._order_repo.save(order, update_fields=update_fields)
        logger.info(
            "order.payment_status_changed",
            order_id=str(order.id),
            old_payment_status=current,
            new_payment_status=payment_status,
            actor=actor,
            note=note,
        )
        return order
