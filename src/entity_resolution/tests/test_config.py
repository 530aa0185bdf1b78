"""
Tests for settings and resolution configuration.
"""

import pytest
from pydantic import ValidationError

from entity_resolution.config import (
    DEFAULT_FIELD_WEIGHT,
    ConflictPolicy,
    ResolutionConfig,
    Settings,
)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ER_AUTO_MERGE_THRESHOLD", raising=False)
        s = Settings(_env_file=None)

        assert s.auto_merge_threshold == 0.9
        assert s.manual_review_threshold == 0.7
        assert s.fetch_limit == 10000
        assert s.name_conflict_policy == ConflictPolicy.KEEP_SURVIVOR

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("ER_MAX_BLOCK_SIZE", "50")
        monkeypatch.setenv("ER_NAME_CONFLICT_POLICY", "prefer_longest")

        s = Settings(_env_file=None)

        assert s.max_block_size == 50
        assert s.name_conflict_policy == ConflictPolicy.PREFER_LONGEST

    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, min_confidence=1.2)

    def test_review_above_merge_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, auto_merge_threshold=0.6, manual_review_threshold=0.7)


class TestResolutionConfig:
    """Tests for the per-engine configuration."""

    def test_from_settings_with_overrides(self):
        s = Settings(_env_file=None, max_block_size=20, resolution_timeout_seconds=3)

        config = ResolutionConfig.from_settings(s, enable_transitive_matching=False)

        assert config.max_block_size == 20
        assert config.timeout_seconds == 3
        assert config.enable_transitive_matching is False

    def test_from_settings_validates_overrides(self):
        with pytest.raises(ValueError):
            ResolutionConfig.from_settings(Settings(_env_file=None), transitive_confidence=2.0)

    def test_validate_block_size(self):
        with pytest.raises(ValueError):
            ResolutionConfig(max_block_size=1).validate()

    def test_weight_for_unknown_field(self):
        config = ResolutionConfig()

        assert config.weight_for("email") == 1.0
        assert config.weight_for("shoe_size") == DEFAULT_FIELD_WEIGHT

    def test_field_weights_not_shared(self):
        a = ResolutionConfig()
        b = ResolutionConfig()
        a.field_weights["email"] = 0.0

        assert b.field_weights["email"] == 1.0
