"""
Pytest configuration and shared fixtures for entity resolution tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from entity_resolution.config import ResolutionConfig
from entity_resolution.entities.schemas import (
    EmailIdentifier,
    GenericEntity,
    OrganizationEntity,
    PersonEntity,
    PhoneIdentifier,
)
from entity_resolution.resolution.resolver import EntityResolutionEngine
from entity_resolution.store.memory import InMemoryEntityStore

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def config() -> ResolutionConfig:
    """Default resolution config, independent of the environment."""
    return ResolutionConfig()


@pytest.fixture
def make_person() -> Callable[..., PersonEntity]:
    """Factory for person entities."""

    def _make(
        entity_id: str,
        name: str = "",
        emails: tuple[str, ...] = (),
        phones: tuple[str, ...] = (),
        confidence: float = 0.5,
        sources: tuple[str, ...] = (),
        age_days: int = 0,
        **kwargs,
    ) -> PersonEntity:
        return PersonEntity(
            id=entity_id,
            name=name,
            emails=[EmailIdentifier(email=e) for e in emails],
            phones=[PhoneIdentifier(number=p) for p in phones],
            confidence=confidence,
            sources=list(sources),
            created_at=BASE_TIME - timedelta(days=age_days),
            updated_at=BASE_TIME,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_org() -> Callable[..., OrganizationEntity]:
    """Factory for organization entities."""

    def _make(
        entity_id: str,
        name: str = "",
        domains: tuple[str, ...] = (),
        website: str | None = None,
        confidence: float = 0.5,
        sources: tuple[str, ...] = (),
        age_days: int = 0,
    ) -> OrganizationEntity:
        return OrganizationEntity(
            id=entity_id,
            name=name,
            domains=list(domains),
            website=website,
            confidence=confidence,
            sources=list(sources),
            created_at=BASE_TIME - timedelta(days=age_days),
            updated_at=BASE_TIME,
        )

    return _make


@pytest.fixture
def make_generic() -> Callable[..., GenericEntity]:
    """Factory for generic (e.g. Project) entities."""

    def _make(
        entity_id: str,
        name: str = "",
        entity_type: str = "Project",
        sources: tuple[str, ...] = (),
        confidence: float = 0.5,
    ) -> GenericEntity:
        return GenericEntity(
            id=entity_id,
            type=entity_type,
            name=name,
            sources=list(sources),
            confidence=confidence,
            created_at=BASE_TIME,
            updated_at=BASE_TIME,
        )

    return _make


@pytest.fixture
def store() -> InMemoryEntityStore:
    """Empty in-memory entity store."""
    return InMemoryEntityStore()


@pytest.fixture
def engine(store: InMemoryEntityStore, config: ResolutionConfig) -> EntityResolutionEngine:
    """Engine over the shared in-memory store."""
    return EntityResolutionEngine(store, config)
