"""Customer use cases.

``PhoneVerificationService`` sends a one-time code to the customer's
phone and stamps ``phone_verified_at`` once the code is confirmed.
Codes are keyed by customer *and* number, so changing the phone number
invalidates a code that is still pending.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import structlog
from django.conf import settings

from marketplace.core.verification import CacheVerificationCodeStore, VerificationCodeStore
from marketplace.customers.exceptions import (
    CustomerNotFound,
    MissingPhone,
    VerificationFailed,
    VerificationNotSent,
)
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.notifications.messages import NotificationKind, Recipient

if TYPE_CHECKING:
    from marketplace.customers.models import Customer
    from marketplace.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class PhoneVerificationService:
    """Issues and confirms phone verification codes.

    Receives the repository, code store and dispatcher via constructor
    injection (DIP).
    """

    def __init__(
        self,
        customer_repository: ICustomerRepository,
        code_store: Optional[VerificationCodeStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ) -> None:
        self._customer_repo = customer_repository
        self._codes = code_store or CacheVerificationCodeStore()
        self._dispatcher = dispatcher or NotificationDispatcher()

    def send_code(self, customer_id: Any) -> int:
        """Text a fresh code to the customer's phone; returns its TTL in seconds.

        Any code issued earlier for the same number is replaced.

        Raises:
            CustomerNotFound: customer does not exist.
            MissingPhone: the customer has no phone number.
            VerificationNotSent: the SMS could not be dispatched.
        """
        customer = self._get(customer_id)
        if not customer.phone:
            raise MissingPhone("Add a phone number before verifying it.")

        key = _code_key(customer)
        ttl = settings.MARKETPLACE_VERIFICATION_CODE_TTL
        code = self._codes.issue(key, ttl)
        sent = self._dispatcher.dispatch(
            NotificationKind.VERIFICATION_CODE,
            Recipient(name=customer.name, phone=customer.phone),
            {"code": code, "ttl_minutes": max(ttl // 60, 1)},
        )
        if not sent:
            self._codes.revoke(key)
            raise VerificationNotSent("The verification code could not be sent.")

        logger.info("customer.verification_sent", customer_id=str(customer.id))
        return ttl

    def confirm(self, customer_id: Any, code: str) -> Customer:
        """Check *code* and mark the phone verified.

        Raises:
            CustomerNotFound: customer does not exist.
            MissingPhone: the customer has no phone number.
            VerificationFailed: the code is wrong, expired or locked.
        """
        customer = self._get(customer_id)
        if not customer.phone:
            raise MissingPhone("Add a phone number before verifying it.")

        if not self._codes.verify(_code_key(customer), code):
            logger.info("customer.verification_rejected", customer_id=str(customer.id))
            raise VerificationFailed("The verification code is invalid or has expired.")

        self._customer_repo.mark_phone_verified(customer.id)
        return self._get(customer.id)

    def _get(self, customer_id: Any) -> Customer:
        customer = self._customer_repo.get_by_id(str(customer_id))
        if customer is None:
            raise CustomerNotFound(f"Customer {customer_id} not found.")
        return customer


def _code_key(customer: Customer) -> str:
    return f"phone:{customer.id}:{customer.phone}"
