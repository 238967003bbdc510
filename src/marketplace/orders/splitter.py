"""Order splitter: turn one cart into one order draft per seller.

Pure computation over the cart and a catalog lookup; nothing is written.
Given the same cart and catalog state the output is identical, which
keeps client retries of a checkout idempotent.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.utils import timezone

from marketplace.core.exceptions import MarketplaceError
from marketplace.orders.dtos import CartLineDTO, DraftLineDTO, SellerDraftDTO
from marketplace.orders.exceptions import CartValidationError, EmptyCart
from marketplace.products.repositories.interfaces import ICatalogLookup

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
RUPEE = Decimal("1")


class OrderSplitter:
    """Group cart lines by seller and price each group independently.

    Shipping and tax are per seller: two sellers in the same cart each
    get their own shipping fee decision and their own rounded tax.
    """

    def __init__(
        self,
        free_shipping_threshold: Optional[Decimal] = None,
        flat_shipping_fee: Optional[Decimal] = None,
        tax_rate: Optional[Decimal] = None,
    ) -> None:
        self.free_shipping_threshold = (
            free_shipping_threshold
            if free_shipping_threshold is not None
            else settings.MARKETPLACE_FREE_SHIPPING_THRESHOLD
        )
        self.flat_shipping_fee = (
            flat_shipping_fee
            if flat_shipping_fee is not None
            else settings.MARKETPLACE_FLAT_SHIPPING_FEE
        )
        self.tax_rate = tax_rate if tax_rate is not None else settings.MARKETPLACE_TAX_RATE

    def split(
        self,
        cart_lines: Iterable[CartLineDTO],
        catalog_lookup: ICatalogLookup,
        now: Optional[datetime] = None,
    ) -> List[SellerDraftDTO]:
        """Resolve every line and return drafts ordered by seller id.

        Raises:
            EmptyCart: no lines were given.
            CartValidationError: a product is unknown, inactive, out of
                stock at validation time, or listed twice.
        """
        lines = list(cart_lines)
        if not lines:
            raise EmptyCart("Cart must have at least one line.")
        now = now or timezone.now()

        errors: List[Dict[str, str]] = []
        seen: set[tuple[UUID, str]] = set()
        groups: Dict[UUID, List[DraftLineDTO]] = defaultdict(list)

        for line in lines:
            key = (line.product_id, line.variant)
            if key in seen:
                errors.append(_line_error(line, "duplicate_line", "Duplicate cart line."))
                continue
            seen.add(key)

            try:
                product = catalog_lookup.get_active_product(line.product_id)
            except MarketplaceError as exc:
                errors.append(_line_error(line, exc.code, str(exc)))
                continue

            if product.stock < line.quantity:
                errors.append(
                    _line_error(
                        line,
                        "insufficient_stock",
                        f"Product {product.sku}: requested {line.quantity}, "
                        f"available {product.stock}.",
                    )
                )
                continue

            groups[product.seller_id].append(
                DraftLineDTO(
                    product_id=product.id,
                    sku=product.sku,
                    name=product.name,
                    image_url=product.image_url,
                    variant=line.variant,
                    unit_price=product.price,
                    quantity=line.quantity,
                    delivery_days=product.delivery_days,
                )
            )

        if errors:
            logger.info("order.split_rejected", error_count=len(errors))
            raise CartValidationError(errors)

        drafts = [
            self._price(seller_id, groups[seller_id], now)
            for seller_id in sorted(groups, key=str)
        ]
        logger.info(
            "order.split",
            seller_count=len(drafts),
            line_count=len(lines),
        )
        return drafts

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        if subtotal > self.free_shipping_threshold:
            return Decimal("0.00")
        return Decimal(self.flat_shipping_fee).quantize(CENT)

    def tax_for(self, subtotal: Decimal) -> Decimal:
        return (subtotal * self.tax_rate).quantize(RUPEE, rounding=ROUND_HALF_UP).quantize(
            CENT
        )

    def _price(
        self, seller_id: UUID, lines: List[DraftLineDTO], now: datetime
    ) -> SellerDraftDTO:
        subtotal = sum((line.subtotal for line in lines), Decimal("0.00")).quantize(CENT)
        shipping = self.shipping_for(subtotal)
        tax = self.tax_for(subtotal)
        delivery_days = max(line.delivery_days for line in lines)
        return SellerDraftDTO(
            seller_id=seller_id,
            lines=lines,
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            total=subtotal + shipping + tax,
            estimated_delivery=now + timedelta(days=delivery_days),
        )


def _line_error(line: CartLineDTO, code: str, detail: str) -> Dict[str, str]:
    return {"product_id": str(line.product_id), "code": code, "detail": detail}
