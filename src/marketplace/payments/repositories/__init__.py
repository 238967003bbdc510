"""Payment repositories package."""

from marketplace.payments.repositories.django_repository import PaymentDjangoRepository
from marketplace.payments.repositories.interfaces import IPaymentRepository

__all__ = ["IPaymentRepository", "PaymentDjangoRepository"]
