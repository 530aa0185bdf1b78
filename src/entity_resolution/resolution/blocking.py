"""
Blocking for efficient candidate generation.

Blocking reduces the O(n²) comparison problem by grouping entities that
share a transformed key. Several independent keys are used so two true
duplicates only need to share one of them to be compared.
"""

import logging
from typing import Any, Optional

from entity_resolution.config import BlockingKeyConfig, BlockingTransform, ResolutionConfig
from entity_resolution.entities.schemas import BaseEntity
from entity_resolution.normalize import normalize_phone
from entity_resolution.resolution.phonetic import metaphone_key, ngrams, soundex

logger = logging.getLogger(__name__)


def extract_field_values(entity: BaseEntity, fields: tuple[str, ...]) -> list[str]:
    """
    Extract string values for dotted field paths.

    Lists met along a path are descended element by element, so
    ``emails.email`` yields every address. A list of scalars at the end of
    a path yields each element. Missing and empty values are dropped.
    """
    data = entity.model_dump()
    values: list[str] = []
    for path in fields:
        values.extend(_walk(data, path.split(".")))
    return [v for v in values if v]


def _walk(current: Any, parts: list[str]) -> list[str]:
    if current is None:
        return []
    if isinstance(current, (list, tuple, set)):
        found: list[str] = []
        for item in current:
            found.extend(_walk(item, parts))
        return found
    if not parts:
        if isinstance(current, dict):
            return []
        return [str(current)]
    if isinstance(current, dict):
        return _walk(current.get(parts[0]), parts[1:])
    return []


def transform_value(value: str, key: BlockingKeyConfig) -> Optional[str]:
    """Apply a blocking transform; returns None when nothing usable remains."""
    if not value:
        return None

    transform = key.transform
    if transform == BlockingTransform.LOWERCASE:
        result = value.lower()
    elif transform == BlockingTransform.PREFIX:
        result = value.lower()[: key.prefix_length or 3]
    elif transform == BlockingTransform.SOUNDEX:
        result = soundex(value)
    elif transform == BlockingTransform.METAPHONE:
        result = metaphone_key(value)
    elif transform == BlockingTransform.NGRAM:
        result = "|".join(ngrams(value.lower(), key.ngram_size or 2))
    elif transform == BlockingTransform.DIGITS:
        result = normalize_phone(value)
    else:
        result = value.lower()

    return result or None


class BlockingIndexer:
    """
    Partition entities into blocks keyed by ``<key name>:<transformed value>``.

    Blocks with fewer than two members are discarded. Oversized blocks are
    kept in the output so the caller can report and skip them; they are
    never truncated.
    """

    def __init__(self, config: Optional[ResolutionConfig] = None):
        self.config = config or ResolutionConfig()

    def blocking_keys(self, entity: BaseEntity) -> list[str]:
        """All distinct blocking keys for an entity, in configuration order."""
        keys: list[str] = []
        seen: set[str] = set()
        for key_config in self.config.blocking_keys:
            for value in extract_field_values(entity, key_config.fields):
                transformed = transform_value(value, key_config)
                if not transformed:
                    continue
                key = f"{key_config.name}:{transformed}"
                if key not in seen:
                    seen.add(key)
                    keys.append(key)
        return keys

    def generate_blocks(self, entities: list[BaseEntity]) -> dict[str, list[BaseEntity]]:
        """Group entities by shared blocking key."""
        blocks: dict[str, list[BaseEntity]] = {}

        for entity in entities:
            for key in self.blocking_keys(entity):
                if key not in blocks:
                    blocks[key] = []
                blocks[key].append(entity)

        blocks = {key: members for key, members in blocks.items() if len(members) >= 2}
        logger.debug(f"Generated {len(blocks)} blocks from {len(entities)} entities")
        return blocks

    def is_oversized(self, block: list[BaseEntity]) -> bool:
        return len(block) > self.config.max_block_size

    def oversized_blocks(self, blocks: dict[str, list[BaseEntity]]) -> list[str]:
        """Keys of blocks too large to compare."""
        return [key for key, members in blocks.items() if self.is_oversized(members)]

    def stats(self, blocks: dict[str, list[BaseEntity]]) -> dict[str, int]:
        """Block statistics."""
        sizes = [len(members) for members in blocks.values()]
        return {
            "blocks": len(blocks),
            "oversized": len(self.oversized_blocks(blocks)),
            "largest": max(sizes, default=0),
            "candidate_pairs": sum(n * (n - 1) // 2 for n in sizes),
        }
