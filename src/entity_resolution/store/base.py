"""
Entity store interface consumed by the resolution engine.

The engine never persists or indexes entities itself; every read and
write goes through an ``EntityStore`` backend.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from entity_resolution.entities.schemas import BaseEntity, EntitySummary


class StoreUnavailableError(Exception):
    """The backing store failed to serve a request."""


class EntityNotFoundError(StoreUnavailableError):
    """A write targeted an entity id the store does not hold."""

    def __init__(self, entity_id: str):
        super().__init__(f"Entity not found: {entity_id}")
        self.entity_id = entity_id


class EntityStore(ABC):
    """Abstract base class for entity store backends."""

    @abstractmethod
    async def search(self, entity_type: str, limit: int) -> list[EntitySummary]:
        """List up to ``limit`` entities of one type."""
        pass

    @abstractmethod
    async def get_all_entities(self, limit: int) -> list[EntitySummary]:
        """List up to ``limit`` entities of any type."""
        pass

    @abstractmethod
    async def get(self, entity_id: str) -> Optional[BaseEntity]:
        """Load a full entity, or None if it does not exist."""
        pass

    @abstractmethod
    async def update(self, entity_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to an entity."""
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> None:
        """Delete an entity."""
        pass
