"""Customer repositories package."""

from marketplace.customers.repositories.django_repository import CustomerDjangoRepository
from marketplace.customers.repositories.interfaces import ICustomerRepository

__all__ = ["CustomerDjangoRepository", "ICustomerRepository"]
