"""Seller repositories package."""

from marketplace.sellers.repositories.django_repository import SellerDjangoRepository
from marketplace.sellers.repositories.interfaces import ISellerRepository

__all__ = ["ISellerRepository", "SellerDjangoRepository"]
