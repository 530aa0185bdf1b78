"""
In-memory entity store for development, testing and the CLI.
"""

import logging
from typing import Any, Iterable, Optional

from entity_resolution.entities.schemas import BaseEntity, EntitySummary, parse_entity
from entity_resolution.store.base import EntityNotFoundError, EntityStore

logger = logging.getLogger(__name__)


class InMemoryEntityStore(EntityStore):
    """
    Dict-backed entity store.

    Reads return deep copies so callers cannot mutate stored state, and
    updates re-validate the entity through the discriminated union.
    """

    def __init__(self, entities: Optional[Iterable[BaseEntity]] = None):
        self._entities: dict[str, BaseEntity] = {}
        if entities:
            self.add_many(entities)

    def add(self, entity: BaseEntity) -> None:
        """Insert or replace an entity."""
        self._entities[entity.id] = entity.model_copy(deep=True)

    def add_many(self, entities: Iterable[BaseEntity]) -> None:
        for entity in entities:
            self.add(entity)

    def count(self, entity_type: Optional[str] = None) -> int:
        if entity_type is None:
            return len(self._entities)
        return sum(1 for e in self._entities.values() if e.type == entity_type)

    def all(self) -> list[BaseEntity]:
        """Snapshot of every stored entity."""
        return [e.model_copy(deep=True) for e in self._entities.values()]

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    async def search(self, entity_type: str, limit: int) -> list[EntitySummary]:
        """List entities of one type in insertion order."""
        summaries = [
            self._summarize(e)
            for e in self._entities.values()
            if e.type == entity_type
        ]
        return summaries[:limit]

    async def get_all_entities(self, limit: int) -> list[EntitySummary]:
        return [self._summarize(e) for e in self._entities.values()][:limit]

    async def get(self, entity_id: str) -> Optional[BaseEntity]:
        entity = self._entities.get(entity_id)
        return entity.model_copy(deep=True) if entity else None

    async def update(self, entity_id: str, fields: dict[str, Any]) -> None:
        """Merge ``fields`` into the stored entity and re-validate it."""
        existing = self._entities.get(entity_id)
        if existing is None:
            raise EntityNotFoundError(entity_id)

        data = existing.model_dump()
        data.update(fields)
        data["id"] = entity_id
        data["type"] = existing.type

        self._entities[entity_id] = parse_entity(data)
        logger.debug(f"Updated entity {entity_id}: {sorted(fields)}")

    async def delete(self, entity_id: str) -> None:
        if entity_id not in self._entities:
            raise EntityNotFoundError(entity_id)
        del self._entities[entity_id]
        logger.debug(f"Deleted entity {entity_id}")

    @staticmethod
    def _summarize(entity: BaseEntity) -> EntitySummary:
        return EntitySummary(id=entity.id, type=entity.type, name=entity.name)
