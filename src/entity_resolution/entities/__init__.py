"""
Entity, match and session models for entity resolution.
"""

from entity_resolution.entities.schemas import (
    BaseEntity,
    EmailIdentifier,
    Entity,
    EntityMatch,
    EntitySummary,
    EntityType,
    GenericEntity,
    MatchReason,
    MatchType,
    MergeResult,
    OrganizationEntity,
    PersonEntity,
    PhoneIdentifier,
    ResolutionSession,
    SessionStatus,
    SuggestedAction,
    parse_entity,
    utcnow,
)

__all__ = [
    # Entities
    "BaseEntity",
    "Entity",
    "EntityType",
    "PersonEntity",
    "OrganizationEntity",
    "GenericEntity",
    "EmailIdentifier",
    "PhoneIdentifier",
    "EntitySummary",
    "parse_entity",
    # Matching
    "MatchReason",
    "MatchType",
    "EntityMatch",
    "SuggestedAction",
    # Sessions and merges
    "ResolutionSession",
    "SessionStatus",
    "MergeResult",
    "utcnow",
]
