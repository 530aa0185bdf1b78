"""
Entity resolution configuration using pydantic-settings.

``Settings`` is loaded from ``ER_``-prefixed environment variables (or a
``.env`` file). ``ResolutionConfig`` is the immutable per-engine view built
from it, with blocking keys and field weights that are only configurable
in code.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BlockingTransform(str, Enum):
    """Transforms applied to extracted values before keying."""

    LOWERCASE = "lowercase"
    PREFIX = "prefix"
    SOUNDEX = "soundex"
    METAPHONE = "metaphone"
    NGRAM = "ngram"
    DIGITS = "digits"


class ConflictPolicy(str, Enum):
    """How a merge treats two different non-empty names."""

    KEEP_SURVIVOR = "keep_survivor"  # Keep survivor's value, report conflict
    PREFER_LONGEST = "prefer_longest"  # Adopt the longer value
    REQUIRE_REVIEW = "require_review"  # Abort the merge for human review


@dataclass(frozen=True)
class BlockingKeyConfig:
    """A named blocking key over one or more (dotted) field paths."""

    name: str
    fields: tuple[str, ...]
    transform: BlockingTransform = BlockingTransform.LOWERCASE
    prefix_length: int = 3
    ngram_size: int = 2


DEFAULT_BLOCKING_KEYS: tuple[BlockingKeyConfig, ...] = (
    BlockingKeyConfig(name="email", fields=("emails.email",)),
    BlockingKeyConfig(
        name="phone", fields=("phones.number",), transform=BlockingTransform.DIGITS
    ),
    BlockingKeyConfig(
        name="name_soundex", fields=("name",), transform=BlockingTransform.SOUNDEX
    ),
    BlockingKeyConfig(
        name="name_prefix",
        fields=("name",),
        transform=BlockingTransform.PREFIX,
        prefix_length=4,
    ),
    BlockingKeyConfig(name="domain", fields=("domains",)),
    BlockingKeyConfig(name="website", fields=("website",)),
)

DEFAULT_FIELD_WEIGHTS: dict[str, float] = {
    "email": 1.0,
    "phone": 0.9,
    "domain": 1.0,
    "website": 0.8,
    "name": 0.6,
    "organization": 0.3,
    "source": 0.2,
    "transitive": 0.5,
}

# Weight used for any field missing from field_weights
DEFAULT_FIELD_WEIGHT = 0.1


class Settings(BaseSettings):
    """Resolution settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Store access
    fetch_limit: int = Field(
        default=10000, gt=0, description="Max entities fetched per resolution run"
    )
    duplicate_search_limit: int = Field(
        default=1000, gt=0, description="Max candidates scanned by find_duplicates"
    )

    # Blocking
    max_block_size: int = Field(
        default=100, gt=1, description="Blocks larger than this are skipped"
    )

    # Matching thresholds
    min_confidence: float = Field(
        default=0.5, description="Matches below this confidence are dropped"
    )
    auto_merge_threshold: float = Field(
        default=0.9, description="Confidence at or above which pairs are merged"
    )
    manual_review_threshold: float = Field(
        default=0.7, description="Confidence at or above which pairs are linked"
    )

    # Transitive inference
    enable_transitive_matching: bool = Field(
        default=True, description="Infer matches across connected components"
    )
    transitive_confidence: float = Field(
        default=0.7, description="Confidence assigned to inferred matches"
    )

    # Merging
    merge_confidence_boost: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Survivor confidence increase"
    )
    merge_delete_retries: int = Field(
        default=1, ge=0, description="Retries for deleting the merged entity"
    )
    name_conflict_policy: ConflictPolicy = Field(
        default=ConflictPolicy.KEEP_SURVIVOR,
        description="Policy for differing non-empty names on merge",
    )

    # Runs
    resolution_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Abort resolve_all after this long"
    )

    @field_validator(
        "min_confidence",
        "auto_merge_threshold",
        "manual_review_threshold",
        "transitive_confidence",
    )
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        """Thresholds are confidences and must lie in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("threshold must be between 0.0 and 1.0")
        return v

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "Settings":
        """Review threshold cannot exceed the auto-merge threshold."""
        if self.manual_review_threshold > self.auto_merge_threshold:
            raise ValueError(
                "MANUAL_REVIEW_THRESHOLD must not exceed AUTO_MERGE_THRESHOLD"
            )
        return self


@dataclass(frozen=True)
class ResolutionConfig:
    """Configuration for one engine instance."""

    blocking_keys: tuple[BlockingKeyConfig, ...] = DEFAULT_BLOCKING_KEYS
    max_block_size: int = 100
    min_confidence: float = 0.5
    field_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_FIELD_WEIGHTS)
    )
    enable_transitive_matching: bool = True
    transitive_confidence: float = 0.7
    auto_merge_threshold: float = 0.9
    manual_review_threshold: float = 0.7
    merge_confidence_boost: float = 0.1
    merge_delete_retries: int = 1
    name_conflict_policy: ConflictPolicy = ConflictPolicy.KEEP_SURVIVOR
    fetch_limit: int = 10000
    duplicate_search_limit: int = 1000
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: "Settings", **overrides) -> "ResolutionConfig":
        """Build a config from environment settings, with code-level overrides."""
        values = dict(
            max_block_size=settings.max_block_size,
            min_confidence=settings.min_confidence,
            enable_transitive_matching=settings.enable_transitive_matching,
            transitive_confidence=settings.transitive_confidence,
            auto_merge_threshold=settings.auto_merge_threshold,
            manual_review_threshold=settings.manual_review_threshold,
            merge_confidence_boost=settings.merge_confidence_boost,
            merge_delete_retries=settings.merge_delete_retries,
            name_conflict_policy=settings.name_conflict_policy,
            fetch_limit=settings.fetch_limit,
            duplicate_search_limit=settings.duplicate_search_limit,
            timeout_seconds=settings.resolution_timeout_seconds,
        )
        values.update(overrides)
        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError if thresholds are out of range or misordered."""
        for name in (
            "min_confidence",
            "auto_merge_threshold",
            "manual_review_threshold",
            "transitive_confidence",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")
        if self.manual_review_threshold > self.auto_merge_threshold:
            raise ValueError(
                "manual_review_threshold must not exceed auto_merge_threshold"
            )
        if self.max_block_size < 2:
            raise ValueError("max_block_size must be at least 2")

    def weight_for(self, field_name: str) -> float:
        """Weight of a compared field, falling back to the default."""
        return self.field_weights.get(field_name) or DEFAULT_FIELD_WEIGHT


# Global settings instance
settings = Settings()
