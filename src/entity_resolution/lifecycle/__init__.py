"""
Entity lifecycle operations.

Provides merging of duplicate entities with survivor selection,
field-level conflict resolution and compensating cleanup on failure.
"""

from entity_resolution.lifecycle.merge import (
    MergeResolver,
    PartialMergeError,
    select_survivor,
)

__all__ = [
    "MergeResolver",
    "PartialMergeError",
    "select_survivor",
]
