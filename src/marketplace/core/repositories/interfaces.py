"""Generic repository interface.

Provides ``IRepository[T]``, the base abstract class that the
domain-specific repository interfaces extend.  Services depend on these
abstractions; only the ``django_repository`` modules touch the ORM.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist (create or update) an entity."""
