"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CartLineDTO``: a single cart line at checkout.
- ``ShippingAddressDTO``: delivery address snapshot.
- ``PlaceOrderDTO``: checkout input (nested lines + address).
- ``DraftLineDTO`` / ``SellerDraftDTO``: order splitter output.
- ``OrderBatchResult``: checkout outcome, created orders + failed sellers.
- ``TrackingDTO``: customer-facing timeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from marketplace.orders.models import Order

PINCODE_RE = re.compile(r"^\d{6}$")
PHONE_RE = re.compile(r"^\d{10,15}$")


# ---------------------------------------------------------------------------
# Plain enums, independent of Django TextChoices
# ---------------------------------------------------------------------------


class PaymentMethodEnum(StrEnum):
    COD = "cod"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"


class TimelineKind(StrEnum):
    STATUS = "status"
    EVENT = "event"


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CartLineDTO(BaseModel):
    """Immutable DTO for a single cart line.

    The client sends ``product_id``, ``quantity`` and an optional variant.
    Price, seller and delivery time are resolved from the catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int
    variant: str = ""

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class ShippingAddressDTO(BaseModel):
    """Immutable delivery address, stored verbatim on every order."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    first_name: str
    last_name: str = ""
    address: str
    city: str
    state: str
    pincode: str
    phone: str

    @field_validator("pincode")
    @classmethod
    def pincode_must_have_six_digits(cls, v: str) -> str:
        if not PINCODE_RE.match(v):
            raise ValueError("Pincode must be exactly 6 digits.")
        return v

    @field_validator("phone")
    @classmethod
    def phone_must_be_digits(cls, v: str) -> str:
        digits = re.sub(r"[\s\-+()]", "", v)
        if not PHONE_RE.match(digits):
            raise ValueError("Phone must contain 10 to 15 digits.")
        return digits


class PlaceOrderDTO(BaseModel):
    """Immutable DTO for checkout requests.

    Validates:
    - ``lines`` must contain at least one line.
    - The same product/variant may appear only once.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    lines: List[CartLineDTO]
    shipping_address: ShippingAddressDTO
    payment_method: PaymentMethodEnum
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = Field(default=None, max_length=255)

    @field_validator("lines")
    @classmethod
    def lines_must_not_be_empty(cls, v: List[CartLineDTO]) -> List[CartLineDTO]:
        if not v:
            raise ValueError("Cart must have at least one line.")
        return v

    @model_validator(mode="after")
    def no_duplicate_lines(self):
        """Prevent the same product/variant appearing twice in one cart."""
        keys = [(line.product_id, line.variant) for line in self.lines]
        if len(keys) != len(set(keys)):
            raise ValueError("Duplicate product lines are not allowed in the same cart.")
        return self


# ---------------------------------------------------------------------------
# Splitter output
# ---------------------------------------------------------------------------


class DraftLineDTO(BaseModel):
    """Snapshot of one cart line, frozen at checkout time."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    sku: str
    name: str
    image_url: str = ""
    variant: str = ""
    unit_price: Decimal
    quantity: int
    delivery_days: int

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class SellerDraftDTO(BaseModel):
    """One order-to-be, covering a single seller's lines."""

    model_config = ConfigDict(frozen=True)

    seller_id: UUID
    lines: List[DraftLineDTO]
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    estimated_delivery: datetime


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class FailedSellerDTO(BaseModel):
    """A seller whose order could not be placed, and why."""

    model_config = ConfigDict(frozen=True)

    seller_id: UUID
    code: str
    reason: str


@dataclass(frozen=True)
class OrderBatchResult:
    """Outcome of a checkout: the orders created and the sellers that failed.

    A partially successful checkout is not an error: ``is_partial`` tells
    the caller some sellers' orders were placed while others failed.
    """

    checkout_id: UUID
    created: List[Order] = field(default_factory=list)
    failed: List[FailedSellerDTO] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.created) and bool(self.failed)

    @property
    def all_failed(self) -> bool:
        return not self.created and bool(self.failed)


class TrackingEventDTO(BaseModel):
    """One timeline entry: a status change or a seller-recorded shipment event."""

    model_config = ConfigDict(frozen=True)

    kind: TimelineKind
    status: str
    title: str
    description: str
    note: str = ""
    location: str = ""
    timestamp: datetime


class TrackingDTO(BaseModel):
    """Customer-facing timeline: status history and tracking events by time."""

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_number: str
    status: str
    tracking_number: str
    estimated_delivery: Optional[datetime]
    actual_delivery: Optional[datetime]
    timeline: List[TrackingEventDTO]


# ---------------------------------------------------------------------------
# Acting party
# ---------------------------------------------------------------------------


class ActorKind(StrEnum):
    SYSTEM = "system"
    CUSTOMER = "customer"
    SELLER = "seller"


@dataclass(frozen=True)
class Actor:
    """Who is performing a use case; recorded on every history entry."""

    kind: ActorKind
    id: Optional[UUID] = None

    @classmethod
    def system(cls) -> Actor:
        return cls(ActorKind.SYSTEM)

    @classmethod
    def customer(cls, customer_id: UUID) -> Actor:
        return cls(ActorKind.CUSTOMER, customer_id)

    @classmethod
    def seller(cls, seller_id: UUID) -> Actor:
        return cls(ActorKind.SELLER, seller_id)

    @property
    def is_system(self) -> bool:
        return self.kind == ActorKind.SYSTEM

    @property
    def label(self) -> str:
        if self.is_system:
            return "system"
        return f"{self.kind}:{self.id}"
