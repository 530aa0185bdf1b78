"""
Entity Resolution Engine

Deduplicates, links and merges records describing the same real-world
entity across sources:
- Blocks candidates by phonetic, prefix and identifier keys
- Scores pairs with type-specific weighted signals
- Infers transitive links between connected matches
- Merges duplicates with survivor selection and an auditable history
"""

__version__ = "0.1.0"
