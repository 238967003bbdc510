"""Resolve the acting party for an authenticated API request.

Staff users act as ``system``.  Everyone else acts through the customer
or seller profile linked to their account.
"""

from __future__ import annotations

from typing import Any

from marketplace.core.exceptions import NotAuthorized
from marketplace.customers.repositories import CustomerDjangoRepository
from marketplace.orders.dtos import Actor
from marketplace.sellers.repositories import SellerDjangoRepository


def actor_for_user(user: Any) -> Actor:
    if getattr(user, "is_staff", False):
        return Actor.system()
    customer = CustomerDjangoRepository().get_by_user(user)
    if customer is not None:
        return Actor.customer(customer.id)
    seller = SellerDjangoRepository().get_by_user(user)
    if seller is not None:
        return Actor.seller(seller.id)
    raise NotAuthorized("No customer or seller profile is linked to this account.")
