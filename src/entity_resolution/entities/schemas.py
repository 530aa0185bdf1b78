"""
Pydantic models for entity resolution.

Entities are a tagged union over ``type``: persons, organizations and a
generic variant covering the remaining ontology types. Match, merge and
session records are plain models so they serialize cleanly for audit.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class EntityType(str, Enum):
    """Entity discriminants known to the ontology."""

    PERSON = "Person"
    ORGANIZATION = "Organization"
    PROJECT = "Project"
    TASK = "Task"
    EVENT = "Event"
    DOCUMENT = "Document"
    TRADE = "Trade"
    SKILL = "Skill"


class EmailIdentifier(BaseModel):
    """An email address attached to a person."""

    email: str
    type: str = "other"  # work, personal, other
    is_primary: bool = False
    verified: bool = False


class PhoneIdentifier(BaseModel):
    """A phone number attached to a person."""

    number: str
    type: str = "other"  # mobile, work, home, other
    is_primary: bool = False


class BaseEntity(BaseModel):
    """Fields shared by every entity variant."""

    id: str
    name: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def entity_type(self) -> str:
        return self.type  # type: ignore[attr-defined]


class PersonEntity(BaseEntity):
    """A person record."""

    type: Literal["Person"] = "Person"
    emails: list[EmailIdentifier] = Field(default_factory=list)
    phones: list[PhoneIdentifier] = Field(default_factory=list)
    current_company: Optional[str] = None
    notes: Optional[str] = None


class OrganizationEntity(BaseEntity):
    """An organization record."""

    type: Literal["Organization"] = "Organization"
    domains: list[str] = Field(default_factory=list)
    website: Optional[str] = None


class GenericEntity(BaseEntity):
    """Any other entity type, compared on name and provenance only."""

    type: Literal["Project", "Task", "Event", "Document", "Trade", "Skill"]
    attributes: dict[str, Any] = Field(default_factory=dict)


Entity = Annotated[
    Union[PersonEntity, OrganizationEntity, GenericEntity],
    Field(discriminator="type"),
]

_entity_adapter: TypeAdapter = TypeAdapter(Entity)


def parse_entity(data: dict[str, Any]) -> BaseEntity:
    """Validate a raw mapping into the matching entity variant."""
    return _entity_adapter.validate_python(data)


class EntitySummary(BaseModel):
    """Lightweight listing row returned by store searches."""

    id: str
    type: str
    name: str = ""


class MatchType(str, Enum):
    """How a field comparison matched."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    SEMANTIC = "semantic"
    TRANSITIVE = "transitive"


class SuggestedAction(str, Enum):
    """What should happen to a matched pair."""

    MERGE = "merge"
    LINK = "link"
    IGNORE = "ignore"


class MatchReason(BaseModel):
    """A single itemized comparison signal."""

    field: str
    type: MatchType
    score: float = Field(ge=0.0, le=1.0)
    details: str = ""


class EntityMatch(BaseModel):
    """A scored candidate duplicate pair."""

    entity1_id: str
    entity2_id: str
    entity_type: str
    confidence: float = Field(ge=0.0, le=1.0)
    match_reasons: list[MatchReason] = Field(default_factory=list)
    suggested_action: SuggestedAction

    @property
    def pair_key(self) -> frozenset[str]:
        """Order-independent identity of the pair."""
        return frozenset((self.entity1_id, self.entity2_id))

    def involves(self, entity_id: str) -> bool:
        return entity_id in (self.entity1_id, self.entity2_id)


class SessionStatus(str, Enum):
    """Lifecycle states of a resolution session."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def new_session_id() -> str:
    """Generate ``res_<epoch-ms>_<6 base36 chars>``."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"res_{int(time.time() * 1000)}_{suffix}"


class ResolutionSession(BaseModel):
    """Progress and outcome of one resolution run."""

    id: str = Field(default_factory=new_session_id)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    entity_type: Optional[str] = None

    total_entities: int = 0
    blocks_generated: int = 0
    blocks_skipped: int = 0
    comparisons_performed: int = 0
    comparison_errors: int = 0
    matches_found: int = 0
    transitive_matches: int = 0
    merges_executed: int = 0
    merges_failed: int = 0

    status: SessionStatus = SessionStatus.RUNNING
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != SessionStatus.RUNNING

    def complete(self) -> None:
        """Transition running -> completed."""
        if self.is_terminal:
            raise ValueError(f"Session {self.id} already {self.status.value}")
        self.status = SessionStatus.COMPLETED
        self.completed_at = utcnow()

    def fail(self, message: str) -> None:
        """Transition running -> failed, recording the error message."""
        if self.is_terminal:
            raise ValueError(f"Session {self.id} already {self.status.value}")
        self.status = SessionStatus.FAILED
        self.error = message
        self.completed_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class MergeResult(BaseModel):
    """Outcome of merging two entities."""

    success: bool
    survivor_id: str
    merged_id: str
    fields_conflicted: list[str] = Field(default_factory=list)
    fields_resolved: list[str] = Field(default_factory=list)
    new_entity: Optional[Entity] = None
    error: Optional[str] = None
