"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that domain-specific
repository interfaces extend.  Service-layer code depends on this
abstraction, never on Django ORM directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic keyed repository contract.

    Type parameter ``T`` represents the domain record managed by the
    repository (e.g. ``ShipmentRecord``).  Records are addressed by a
    natural string key.
    """

    @abstractmethod
    def get_by_key(self, key: str) -> Optional[T]:
        """Retrieve a record by its key, ``None`` if absent."""

    @abstractmethod
    def list(self) -> List[T]:
        """Return every record."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a record; ``False`` if it did not exist."""
