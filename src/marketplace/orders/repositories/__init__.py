"""Order repositories package."""

from marketplace.orders.repositories.django_repository import OrderDjangoRepository
from marketplace.orders.repositories.interfaces import IOrderRepository

__all__ = ["IOrderRepository", "OrderDjangoRepository"]
