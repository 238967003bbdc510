"""Order service layer (Use Cases).

``FulfillmentCoordinator`` is the façade for every order use case:
checkout, status changes, cancellation, returns, tracking and the
payment operations that change an order.  It sequences the order
splitter, the inventory ledger, the state machine and the payment
reconciler; each of those owns its own data.

Unit-of-work rules:
- Checkout is one transaction *per seller*.  A seller whose stock
  reservation fails is reported in ``OrderBatchResult.failed`` while its
  siblings' orders are still created.
- Every other write runs in one transaction holding the order row lock.
- Notifications and realtime broadcasts run after the transaction has
  finished and never raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from marketplace.core.exceptions import (
    InvalidTransition,
    MarketplaceError,
    NotAuthorized,
    OrderValidationError,
)
from marketplace.customers.exceptions import CustomerNotFound, InactiveCustomer
from marketplace.inventory.ledger import InventoryLedger, Reservation
from marketplace.notifications.dispatcher import NotificationDispatcher, RealtimeBroadcaster
from marketplace.notifications.messages import NotificationKind, Recipient
from marketplace.orders.constants import (
    CUSTOMER_NOTIFIED_STATES,
    TRACKING_COPY,
    OrderPaymentStatus,
    OrderStatus,
    ReturnStatus,
)
from marketplace.orders.dtos import (
    Actor,
    ActorKind,
    FailedSellerDTO,
    OrderBatchResult,
    PlaceOrderDTO,
    SellerDraftDTO,
    TimelineKind,
    TrackingDTO,
    TrackingEventDTO,
)
from marketplace.orders.events import OrderCancelled
from marketplace.orders.exceptions import OrderNotFound, PaymentPending, ReturnWindowExpired
from marketplace.orders.splitter import OrderSplitter
from marketplace.orders.state_machine import OrderStateMachine
from marketplace.payments.constants import VERIFIABLE_STATES, PaymentStatus
from marketplace.payments.exceptions import LateCaptureRefunded
from marketplace.payments.reconciler import PaymentReconciler, RefundOutcome

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from marketplace.customers.repositories.interfaces import ICustomerRepository
    from marketplace.orders.models import Order, OrderTrackingEvent
    from marketplace.orders.repositories.interfaces import IOrderRepository
    from marketplace.payments.models import Payment
    from marketplace.payments.repositories.interfaces import IPaymentRepository
    from marketplace.products.repositories.interfaces import ICatalogLookup
    from marketplace.sellers.repositories.interfaces import ISellerRepository

logger = structlog.get_logger(__name__)


@dataclass
class _PlacedDraft:
    order: Order
    seller_id: UUID
    reservations: List[Reservation] = field(default_factory=list)


class FulfillmentCoordinator:
    """Application service for order fulfillment use-cases.

    Receives repositories and collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        seller_repository: ISellerRepository,
        payment_repository: IPaymentRepository,
        catalog_lookup: ICatalogLookup,
        ledger: Optional[InventoryLedger] = None,
        splitter: Optional[OrderSplitter] = None,
        state_machine: Optional[OrderStateMachine] = None,
        reconciler: Optional[PaymentReconciler] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        broadcaster: Optional[RealtimeBroadcaster] = None,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._seller_repo = seller_repository
        self._payment_repo = payment_repository
        self._catalog = catalog_lookup
        self._ledger = ledger or InventoryLedger()
        self._splitter = splitter or OrderSplitter()
        self._state_machine = state_machine or OrderStateMachine(order_repository)
        self._reconciler = reconciler or PaymentReconciler(
            payment_repository, order_repository, state_machine=self._state_machine
        )
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._broadcaster = broadcaster or RealtimeBroadcaster()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def place_order(self, dto: PlaceOrderDTO) -> OrderBatchResult:
        """Split a cart into per-seller orders and reserve their stock.

        Steps:
        1. Validate customer exists and is active.
        2. Split the cart by seller (rejects the whole cart on any bad line).
        3. Record the checkout, claiming the customer's idempotency key.
        4. For each seller draft, in its own transaction: reserve every
           line, persist the order; on failure release that draft's
           reservations and record the seller as failed.
        5. Mark the checkout complete, then notify the customer and
           broadcast.

        With an ``idempotency_key`` a retried checkout by the same customer
        returns the first attempt's orders and failed sellers instead of
        reserving stock again.  If the first attempt was interrupted, the
        retry places only the sellers that have no order yet.

        Raises:
            CustomerNotFound: customer does not exist.
            InactiveCustomer: customer is inactive.
            OrderValidationError: the cart failed validation.
        """
        log = logger.bind(customer_id=str(dto.customer_id))
        log.info("order.checkout_started", line_count=len(dto.lines))

        customer = self._customer_repo.get_by_id(str(dto.customer_id))
        if not customer:
            raise CustomerNotFound(f"Customer {dto.customer_id} not found.")
        if not customer.is_active:
            raise InactiveCustomer(f"Customer {dto.customer_id} is inactive.")

        key = dto.idempotency_key or None
        checkout = self._order_repo.get_checkout(dto.customer_id, key) if key else None
        if checkout is not None and checkout.is_complete:
            return self._replay_checkout(checkout, log)

        drafts = self._splitter.split(dto.lines, self._catalog)

        if checkout is None:
            try:
                checkout = self._order_repo.create_checkout(dto.customer_id, key)
            except IntegrityError:
                # a concurrent request with the same key claimed it first
                checkout = self._order_repo.get_checkout(dto.customer_id, key) if key else None
                if checkout is None:
                    raise
                if checkout.is_complete:
                    return self._replay_checkout(checkout, log)
        log = log.bind(checkout_id=str(checkout.id))

        created: List[Order] = list(self._order_repo.list_by_checkout(checkout.id))
        if created:
            log.info("order.checkout_resumed", order_count=len(created))
        done = {order.seller_id for order in created}
        placed: List[_PlacedDraft] = []
        failed: List[FailedSellerDTO] = []

        for draft in drafts:
            if draft.seller_id in done:
                continue
            try:
                result = self._place_draft(draft, dto, checkout.id)
            except MarketplaceError as exc:
                log.info(
                    "order.seller_failed",
                    seller_id=str(draft.seller_id),
                    code=exc.code,
                    reason=str(exc),
                )
                failed.append(
                    FailedSellerDTO(seller_id=draft.seller_id, code=exc.code, reason=str(exc))
                )
                continue
            except IntegrityError:
                existing = self._order_repo.list(
                    {"checkout_id": checkout.id, "seller_id": draft.seller_id}
                ).first()
                if existing is not None:
                    # a concurrent retry placed this seller's order
                    created.append(existing)
                    continue
                log.warning("order.seller_conflict", seller_id=str(draft.seller_id), exc_info=True)
                failed.append(
                    FailedSellerDTO(
                        seller_id=draft.seller_id,
                        code="order_conflict",
                        reason="The order could not be saved.",
                    )
                )
                continue
            created.append(result.order)
            placed.append(result)

        self._order_repo.complete_checkout(
            checkout, [entry.model_dump(mode="json") for entry in failed]
        )
        log.info("order.checkout_completed", created=len(created), failed=len(failed))

        for result in placed:
            self._after_order_placed(result, customer)

        return OrderBatchResult(checkout_id=checkout.id, created=created, failed=failed)

    def _replay_checkout(self, checkout: Any, log: Any) -> OrderBatchResult:
        created = list(self._order_repo.list_by_checkout(checkout.id))
        failed = [FailedSellerDTO(**entry) for entry in checkout.failed_sellers]
        log.info(
            "order.idempotency_hit",
            checkout_id=str(checkout.id),
            order_count=len(created),
            failed=len(failed),
        )
        return OrderBatchResult(checkout_id=checkout.id, created=created, failed=failed)

    def _place_draft(
        self, draft: SellerDraftDTO, dto: PlaceOrderDTO, checkout_id: UUID
    ) -> _PlacedDraft:
        with transaction.atomic():
            with self._ledger.batch() as batch:
                # lock products in a stable order to prevent deadlocks
                for line in sorted(draft.lines, key=lambda l: str(l.product_id)):
                    batch.reserve(line.product_id, line.quantity)
                order = self._order_repo.create_from_draft(
                    draft,
                    checkout_id=checkout_id,
                    customer_id=dto.customer_id,
                    payment_method=str(dto.payment_method),
                    shipping_address=dto.shipping_address.model_dump(),
                    notes=dto.notes or "",
                    actor=Actor.customer(dto.customer_id).label,
                )
                batch.commit()
        return _PlacedDraft(
            order=order, seller_id=draft.seller_id, reservations=batch.reservations
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def advance_status(
        self,
        order_id: UUID,
        actor: Actor,
        target: str,
        note: str = "",
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[datetime] = None,
    ) -> Order:
        """Move an order forward along the transition table.

        Cancellation has its own use case (``cancel_order``) because it
        releases stock and may refund.

        Raises:
            OrderNotFound: order does not exist.
            NotAuthorized: actor is neither the order's seller nor system.
            OrderValidationError: *target* is ``cancelled``.
            PaymentPending: online order confirmed before payment verification.
            InvalidTransition: transition is not allowed.
        """
        with transaction.atomic():
            order = self._lock(order_id)
            self._authorize(order, actor, ActorKind.SELLER)
            log = logger.bind(order_id=str(order.id), target=target, actor=actor.label)

            if target == OrderStatus.CANCELLED:
                raise OrderValidationError("Use the cancel operation to cancel an order.")
            if target == OrderStatus.CONFIRMED and not order.is_cod and not order.is_paid:
                log.warning("order.confirm_without_payment")
                raise PaymentPending(
                    f"Order {order.order_number} awaits payment verification."
                )
            if target == OrderStatus.REFUNDED:
                self._ensure_manual_refund_allowed(order)

            self._state_machine.transition(order, target, note=note, actor=actor.label)

            update_fields = []
            if tracking_number:
                order.tracking_number = tracking_number
                update_fields.append("tracking_number")
            if estimated_delivery:
                order.estimated_delivery = estimated_delivery
                update_fields.append("estimated_delivery")
            if update_fields:
                self._order_repo.save(order, update_fields=update_fields)

            if target == OrderStatus.DELIVERED:
                self._on_delivered(order, actor)
            elif target == OrderStatus.RETURNED:
                self._apply_return(order, note or "Returned", None, ReturnStatus.APPROVED)
            elif target == OrderStatus.REFUNDED and order.is_paid:
                self._state_machine.mark_payment(
                    order, OrderPaymentStatus.REFUNDED, note=note, actor=actor.label
                )

        self._after_status_change(order, note)
        return self._reload(order)

    def cancel_order(self, order_id: UUID, actor: Actor, reason: str = "") -> Order:
        """Cancel an order, refund it if paid online, and release its stock.

        An open payment intent is marked ``failed``; a capture that still
        arrives for it is refunded when the callback is verified.  Each
        line's stock is released at most once, so a retried cancellation
        can never double-credit inventory.  A refund failure
        aborts the cancellation.

        Raises:
            OrderNotFound: order does not exist.
            NotAuthorized: actor is neither the order's customer, seller nor system.
            InvalidTransition: cancellation not allowed from current status.
            GatewayError: the refund could not be issued.
        """
        reason = reason or "Order cancelled"
        refund: Optional[RefundOutcome] = None
        with transaction.atomic():
            order = self._lock(order_id)
            self._authorize(order, actor, ActorKind.CUSTOMER, ActorKind.SELLER)
            log = logger.bind(order_id=str(order.id), current_status=order.status)

            if not order.can_transition_to(OrderStatus.CANCELLED):
                log.warning("order.cancel_not_allowed")
                raise InvalidTransition(f"Cannot cancel order in status {order.status}.")

            payment = None if order.is_cod else self._payment_repo.get_by_order(order.id)
            if payment is not None and payment.status == PaymentStatus.COMPLETED:
                refund = self._reconciler.refund(
                    payment.id, None, reason=reason, actor=actor.label
                )
                order.payment_status = refund.order.payment_status
            elif payment is not None and payment.status in VERIFIABLE_STATES:
                self._reconciler.void_intent(payment.id, reason)

            self._state_machine.transition(
                order, OrderStatus.CANCELLED, note=reason, actor=actor.label
            )
            order.cancellation_reason = reason
            order.add_domain_event(
                OrderCancelled(
                    aggregate_id=order.id,
                    order_number=order.order_number,
                    reason=reason,
                    actor=actor.label,
                )
            )
            self._order_repo.save(order, update_fields=["cancellation_reason"])

            for item in order.items.all().order_by("product_id"):
                self._ledger.release_line(item)
            log.info("order.cancelled", refunded=refund is not None)

        self._after_status_change(order, reason)
        if refund is not None:
            self._notify_refund(refund)
        return self._reload(order)

    def request_return(
        self,
        order_id: UUID,
        actor: Actor,
        reason: str,
        item_ids: Optional[List[UUID]] = None,
    ) -> Order:
        """Return a delivered order within the return window.

        The window runs from ``actual_delivery`` (falling back to
        ``estimated_delivery``).  Returned lines are restocked once.

        Raises:
            OrderNotFound: order does not exist.
            NotAuthorized: actor is not the order's customer or system.
            InvalidTransition: order is not delivered.
            ReturnWindowExpired: the window has closed.
            OrderValidationError: an item id does not belong to the order.
        """
        if not reason or not reason.strip():
            raise OrderValidationError("A return reason is required.")

        with transaction.atomic():
            order = self._lock(order_id)
            self._authorize(order, actor, ActorKind.CUSTOMER)

            if order.status != OrderStatus.DELIVERED:
                raise InvalidTransition(
                    f"Only delivered orders can be returned; order is {order.status}."
                )

            delivered_at = order.actual_delivery or order.estimated_delivery
            window = timedelta(days=settings.MARKETPLACE_RETURN_WINDOW_DAYS)
            if delivered_at is None or timezone.now() > delivered_at + window:
                logger.info("order.return_window_expired", order_id=str(order.id))
                raise ReturnWindowExpired(
                    f"The {settings.MARKETPLACE_RETURN_WINDOW_DAYS}-day return window "
                    f"for order {order.order_number} has expired."
                )

            note = f"Return requested: {reason}"
            self._state_machine.transition(
                order, OrderStatus.RETURNED, note=note, actor=actor.label
            )
            self._apply_return(order, reason, item_ids, ReturnStatus.PENDING)

        self._after_status_change(order, note)
        return self._reload(order)

    def add_tracking_event(
        self,
        order_id: UUID,
        actor: Actor,
        event: str,
        location: str = "",
        occurred_at: Optional[datetime] = None,
    ) -> OrderTrackingEvent:
        """Record a shipment update on the order's timeline.

        The order status is unchanged.  Only the order's seller (or system)
        may add events.

        Raises:
            OrderNotFound: order does not exist.
            NotAuthorized: actor is not the order's seller or system.
            OrderValidationError: *event* is blank.
        """
        event = (event or "").strip()
        if not event:
            raise OrderValidationError("A tracking event description is required.")
        location = (location or "").strip()

        with transaction.atomic():
            order = self._lock(order_id)
            self._authorize(order, actor, ActorKind.SELLER)
            tracking_event = self._order_repo.add_tracking_event(
                order.id,
                event=event,
                status=order.status,
                actor=actor.label,
                location=location,
                occurred_at=occurred_at,
            )

        self._broadcaster.order_status(
            order.id, {**_status_payload(order, event), "location": location}
        )
        return tracking_event

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def create_payment_intent(self, order_id: UUID, actor: Actor, amount: Decimal) -> Payment:
        """Raises the reconciler's errors; see ``PaymentReconciler.create_intent``."""
        order = self._get(order_id)
        self._authorize(order, actor, ActorKind.CUSTOMER)
        return self._reconciler.create_intent(order.id, amount)

    def verify_payment(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str
    ) -> Order:
        """Verify a gateway callback and return the confirmed order.

        A capture for an order cancelled in the meantime is refunded; the
        customer is told about the refund and ``LateCaptureRefunded`` is
        raised.
        """
        try:
            payment = self._reconciler.verify(gateway_order_id, gateway_payment_id, signature)
        except LateCaptureRefunded as exc:
            self._dispatch(
                NotificationKind.REFUND_ISSUED,
                self._get(exc.payment.order_id),
                {"amount": exc.payment.refund_amount, "currency": exc.payment.currency},
            )
            raise
        order = self._get(payment.order_id)
        self._after_status_change(order, "Payment verified")
        self._dispatch(
            NotificationKind.PAYMENT_CONFIRMED,
            order,
            {
                "amount": payment.amount,
                "currency": payment.currency,
                "gateway_payment_id": payment.gateway_payment_id,
            },
        )
        return order

    def refund_payment(
        self,
        payment_id: UUID,
        actor: Actor,
        amount: Optional[Decimal] = None,
        reason: str = "",
    ) -> RefundOutcome:
        """Refund through the gateway; only the seller or system may refund."""
        payment = self._reconciler.get_payment(str(payment_id))
        order = self._get(payment.order_id)
        self._authorize(order, actor, ActorKind.SELLER)
        status_before = order.status
        outcome = self._reconciler.refund(payment.id, amount, reason=reason, actor=actor.label)
        if outcome.order.status != status_before:
            self._after_status_change(outcome.order, reason)
        self._notify_refund(outcome)
        return outcome

    def get_payment(self, payment_id: UUID, actor: Actor) -> Payment:
        payment = self._reconciler.get_payment(str(payment_id))
        self._authorize(payment.order, actor, ActorKind.CUSTOMER, ActorKind.SELLER)
        return payment

    def list_payments(self, actor: Actor) -> QuerySet[Payment]:
        """Payments on the orders visible to *actor*, newest first."""
        filters: Dict[str, Any] = {}
        if actor.kind == ActorKind.CUSTOMER:
            filters["order__customer_id"] = actor.id
        elif actor.kind == ActorKind.SELLER:
            filters["order__seller_id"] = actor.id
        return self._payment_repo.list(filters)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID, actor: Actor) -> Order:
        """Retrieve a single order visible to *actor*.

        Raises:
            OrderNotFound: if the order does not exist.
            NotAuthorized: the order belongs to someone else.
        """
        order = self._get(order_id)
        self._authorize(order, actor, ActorKind.CUSTOMER, ActorKind.SELLER)
        return order

    def list_orders(
        self, actor: Actor, filters: Optional[Dict[str, Any]] = None
    ) -> QuerySet[Order]:
        """Return the orders visible to *actor*, optionally filtered."""
        scoped = dict(filters or {})
        if actor.kind == ActorKind.CUSTOMER:
            scoped["customer_id"] = actor.id
        elif actor.kind == ActorKind.SELLER:
            scoped["seller_id"] = actor.id
        return self._order_repo.list(scoped)

    def get_tracking(self, order_id: UUID, actor: Actor) -> TrackingDTO:
        """Build the customer-facing timeline.

        Status changes and seller tracking events are merged and ordered
        by time; a status change sorts before an event with the same
        timestamp.
        """
        order = self.get_order(order_id, actor)
        timeline = []
        for entry in order.status_history.all():
            title, description = TRACKING_COPY.get(
                entry.new_status, (entry.new_status.title(), "")
            )
            timeline.append(
                TrackingEventDTO(
                    kind=TimelineKind.STATUS,
                    status=entry.new_status,
                    title=title,
                    description=description,
                    note=entry.note,
                    timestamp=entry.created_at,
                )
            )
        for tracking_event in order.tracking_events.all():
            timeline.append(
                TrackingEventDTO(
                    kind=TimelineKind.EVENT,
                    status=tracking_event.status,
                    title=tracking_event.event,
                    description=tracking_event.location,
                    location=tracking_event.location,
                    timestamp=tracking_event.occurred_at,
                )
            )
        timeline.sort(key=lambda item: (item.timestamp, item.kind != TimelineKind.STATUS))
        return TrackingDTO(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            tracking_number=order.tracking_number,
            estimated_delivery=order.estimated_delivery,
            actual_delivery=order.actual_delivery,
            timeline=timeline,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _get(self, order_id: UUID) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _reload(self, order: Order) -> Order:
        return self._order_repo.get_by_id(str(order.id)) or order

    @staticmethod
    def _authorize(order: Order, actor: Actor, *kinds: ActorKind) -> None:
        if actor.is_system:
            return
        if actor.kind in kinds:
            owner_id = order.customer_id if actor.kind == ActorKind.CUSTOMER else order.seller_id
            if owner_id == actor.id:
                return
        logger.warning(
            "order.not_authorized",
            order_id=str(order.id),
            actor=actor.label,
        )
        raise NotAuthorized(f"{actor.label} may not perform this action on this order.")

    def _ensure_manual_refund_allowed(self, order: Order) -> None:
        payment = self._payment_repo.get_by_order(order.id)
        if payment is not None and payment.status != PaymentStatus.REFUNDED:
            raise PaymentPending(
                f"Order {order.order_number} was paid online; issue the refund "
                f"through the payment instead."
            )

    def _on_delivered(self, order: Order, actor: Actor) -> None:
        if order.is_cod:
            self._state_machine.mark_payment(
                order, OrderPaymentStatus.PAID, note="Cash collected", actor=actor.label
            )
        self._seller_repo.record_delivered_order(order.seller_id, order.total)
        self._customer_repo.record_delivered_order(order.customer_id, order.total)

    def _apply_return(
        self,
        order: Order,
        reason: str,
        item_ids: Optional[List[UUID]],
        return_status: str,
    ) -> None:
        items = list(order.items.all().order_by("product_id"))
        if item_ids:
            wanted = {str(item_id) for item_id in item_ids}
            unknown = wanted - {str(item.id) for item in items}
            if unknown:
                raise OrderValidationError(
                    f"Items {sorted(unknown)} do not belong to order {order.order_number}."
                )
            items = [item for item in items if str(item.id) in wanted]

        order.return_reason = reason
        order.return_requested_at = timezone.now()
        order.return_item_ids = [str(item.id) for item in items]
        order.return_status = return_status
        self._order_repo.save(
            order,
            update_fields=[
                "return_reason",
                "return_requested_at",
                "return_item_ids",
                "return_status",
            ],
        )
        for item in items:
            self._ledger.release_line(item)

    # ------------------------------------------------------------------
    # Post-transition hooks (best effort, never raise)
    # ------------------------------------------------------------------

    def _after_order_placed(self, placed: _PlacedDraft, customer: Any) -> None:
        order = placed.order
        self._dispatch(
            NotificationKind.ORDER_PLACED,
            order,
            {
                "total": order.total,
                "currency": settings.MARKETPLACE_CURRENCY,
                "estimated_delivery": order.estimated_delivery.date()
                if order.estimated_delivery
                else "",
            },
            recipient=_customer_recipient(customer),
        )
        self._broadcaster.order_status(order.id, _status_payload(order, "Order placed"))
        for reservation in placed.reservations:
            if reservation.low_stock:
                self._alert_low_stock(placed.seller_id, reservation)

    def _after_status_change(self, order: Order, note: str) -> None:
        self._broadcaster.order_status(order.id, _status_payload(order, note))
        if order.status in CUSTOMER_NOTIFIED_STATES:
            self._dispatch(
                NotificationKind.ORDER_STATUS,
                order,
                {
                    "status": order.status,
                    "status_label": TRACKING_COPY[order.status][0],
                    "tracking_line": f"Tracking number: {order.tracking_number}\n"
                    if order.tracking_number
                    else "",
                },
            )

    def _notify_refund(self, outcome: RefundOutcome) -> None:
        self._dispatch(
            NotificationKind.REFUND_ISSUED,
            outcome.order,
            {"amount": outcome.amount, "currency": outcome.payment.currency},
        )

    def _alert_low_stock(self, seller_id: UUID, reservation: Reservation) -> None:
        payload = {
            "product_id": reservation.product_id,
            "remaining": reservation.remaining,
        }
        self._broadcaster.low_stock(seller_id, payload)
        try:
            seller = self._seller_repo.get_by_id(str(seller_id))
            product = self._catalog.get_active_product(reservation.product_id)
        except MarketplaceError:
            logger.info("order.low_stock_alert_skipped", product_id=str(reservation.product_id))
            return
        if seller is None:
            return
        self._dispatcher.dispatch(
            NotificationKind.LOW_STOCK,
            Recipient(name=seller.store_name, email=seller.email, phone=seller.contact_number),
            {**payload, "sku": product.sku, "product_name": product.name},
        )

    def _dispatch(
        self,
        kind: str,
        order: Order,
        payload: Dict[str, Any],
        recipient: Optional[Recipient] = None,
    ) -> bool:
        try:
            recipient = recipient or _customer_recipient(order.customer)
        except Exception:
            logger.exception("notification.recipient_lookup_failed", order_id=str(order.id))
            return False
        return self._dispatcher.dispatch(
            kind,
            recipient,
            {"order_id": order.id, "order_number": order.order_number, **payload},
        )


def _customer_recipient(customer: Any) -> Recipient:
    return Recipient(name=customer.name, email=customer.email, phone=customer.phone)


def _status_payload(order: Order, note: str) -> Dict[str, Any]:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "tracking_number": order.tracking_number,
        "note": note,
        "timestamp": timezone.now().isoformat(),
    }


def build_fulfillment_coordinator(**overrides: Any) -> FulfillmentCoordinator:
    """Wire the coordinator with the Django ORM repositories."""
    from marketplace.customers.repositories import CustomerDjangoRepository
    from marketplace.orders.repositories import OrderDjangoRepository
    from marketplace.payments.repositories import PaymentDjangoRepository
    from marketplace.products.repositories import DjangoCatalogLookup
    from marketplace.sellers.repositories import SellerDjangoRepository

    dependencies: Dict[str, Any] = {
        "order_repository": OrderDjangoRepository(),
        "customer_repository": CustomerDjangoRepository(),
        "seller_repository": SellerDjangoRepository(),
        "payment_repository": PaymentDjangoRepository(),
        "catalog_lookup": DjangoCatalogLookup(),
    }
    dependencies.update(overrides)
    return FulfillmentCoordinator(**dependencies)
