"""Catalog repositories package."""

from marketplace.products.repositories.django_repository import DjangoCatalogLookup
from marketplace.products.repositories.interfaces import CatalogProduct, ICatalogLookup

__all__ = ["CatalogProduct", "DjangoCatalogLookup", "ICatalogLookup"]
