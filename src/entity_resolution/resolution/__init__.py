"""
Entity resolution pipeline.

This module implements rule-based entity resolution:
- Blocking: Sub-quadratic candidate generation
- Comparison: Type-specific weighted pairwise scoring
- Clustering: Transitive inference over connected components
- Resolver: Session orchestration, merging and events
"""

from entity_resolution.normalize import normalize_phone, normalize_url
from entity_resolution.resolution.blocking import (
    BlockingIndexer,
    extract_field_values,
    transform_value,
)
from entity_resolution.resolution.clustering import TransitiveClosureResolver
from entity_resolution.resolution.comparison import PairwiseMatcher
from entity_resolution.resolution.phonetic import metaphone_key, ngrams, soundex
from entity_resolution.resolution.resolver import (
    EngineEvent,
    EntityResolutionEngine,
    ResolutionCancelledError,
)
from entity_resolution.resolution.similarity import compare_names, string_similarity

__all__ = [
    # Blocking
    "BlockingIndexer",
    "extract_field_values",
    "transform_value",
    # Comparison
    "PairwiseMatcher",
    "string_similarity",
    "compare_names",
    "normalize_phone",
    "normalize_url",
    # Phonetic
    "soundex",
    "metaphone_key",
    "ngrams",
    # Clustering
    "TransitiveClosureResolver",
    # Main engine
    "EntityResolutionEngine",
    "EngineEvent",
    "ResolutionCancelledError",
]
