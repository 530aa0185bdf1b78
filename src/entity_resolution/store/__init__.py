"""
Entity store interface and reference backends.
"""

from entity_resolution.store.base import (
    EntityNotFoundError,
    EntityStore,
    StoreUnavailableError,
)
from entity_resolution.store.memory import InMemoryEntityStore

__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "StoreUnavailableError",
    "EntityNotFoundError",
]
