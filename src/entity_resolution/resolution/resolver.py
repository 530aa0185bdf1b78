"""
Main entity resolution pipeline.

Orchestrates blocking, pairwise comparison, transitive inference and
merging over the entities held in an external store.
"""

import asyncio
import dataclasses
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Optional

from entity_resolution.config import ResolutionConfig, settings
from entity_resolution.entities.schemas import (
    BaseEntity,
    EntityMatch,
    MergeResult,
    ResolutionSession,
    SuggestedAction,
)
from entity_resolution.lifecycle.merge import MergeResolver
from entity_resolution.resolution.blocking import BlockingIndexer
from entity_resolution.resolution.clustering import TransitiveClosureResolver
from entity_resolution.resolution.comparison import PairwiseMatcher, type_name
from entity_resolution.store.base import EntityStore

logger = logging.getLogger(__name__)


class EngineEvent(str, Enum):
    """Events emitted by the resolution engine."""

    SESSION_STARTED = "session:started"  # payload: ResolutionSession
    SESSION_COMPLETED = "session:completed"  # payload: ResolutionSession
    SESSION_FAILED = "session:failed"  # payload: ResolutionSession
    MERGE_COMPLETED = "merge:completed"  # payload: MergeResult


class ResolutionCancelledError(Exception):
    """Raised inside a run after cancel() was requested."""


class EntityResolutionEngine:
    """
    Resolution engine bound to one entity store.

    Flow per entity type:
    1. Blocking: group entities by shared blocking keys
    2. Comparison: score every pair inside each block
    3. Transitive: infer links across connected components
    4. Merge: apply "merge" matches in descending confidence order

    The engine owns the current session, the merge history and the event
    callbacks. Only one run executes at a time.
    """

    def __init__(
        self,
        store: EntityStore,
        config: Optional[ResolutionConfig] = None,
    ):
        self.store = store
        self.config = config or ResolutionConfig.from_settings(settings)
        self.config.validate()
        self._build_components()

        self._current_session: Optional[ResolutionSession] = None
        self._merge_history: dict[str, str] = {}
        self._session_merged: set[str] = set()
        self._handlers: dict[EngineEvent, list[Callable]] = {e: [] for e in EngineEvent}
        self._run_lock = asyncio.Lock()
        self._merge_lock = asyncio.Lock()
        self._cancel_requested = False

    def _build_components(self) -> None:
        self.blocker = BlockingIndexer(self.config)
        self.matcher = PairwiseMatcher(self.config)
        self.transitive = TransitiveClosureResolver(self.config.transitive_confidence)
        self.merger = MergeResolver(self.store, self.config)

    # Configuration

    def configure(self, **overrides: Any) -> ResolutionConfig:
        """Replace selected configuration values between runs."""
        if self._run_lock.locked():
            raise RuntimeError("Cannot reconfigure while a resolution run is in progress")
        config = dataclasses.replace(self.config, **overrides)
        config.validate()
        self.config = config
        self._build_components()
        logger.info(f"Engine reconfigured: {sorted(overrides)}")
        return config

    # Events

    def on(self, event: EngineEvent | str, callback: Callable) -> None:
        """Register a callback (sync or async) for an event."""
        self._handlers[EngineEvent(event)].append(callback)

    def off(self, event: EngineEvent | str, callback: Callable) -> None:
        """Remove a previously registered callback."""
        handlers = self._handlers[EngineEvent(event)]
        if callback in handlers:
            handlers.remove(callback)

    async def _emit(self, event: EngineEvent, payload: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler for {event.value} raised")

    # Main resolution workflow

    async def resolve_all(
        self,
        entity_type: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ResolutionSession:
        """
        Run entity resolution over all entities, or one type.

        Never raises for run failures: the returned session snapshot has
        status "failed" and the error message instead.
        """
        async with self._run_lock:
            session = ResolutionSession(
                entity_type=type_name(entity_type) if entity_type else None
            )
            self._current_session = session
            self._session_merged = set()
            self._cancel_requested = False

            logger.info(
                f"Starting entity resolution {session.id} "
                f"(entity_type={session.entity_type or 'all'})"
            )
            await self._emit(EngineEvent.SESSION_STARTED, session.model_copy())

            timeout = timeout if timeout is not None else self.config.timeout_seconds
            try:
                if timeout:
                    await asyncio.wait_for(self._run(session, entity_type), timeout)
                else:
                    await self._run(session, entity_type)
            except asyncio.TimeoutError:
                return await self._fail(session, f"Resolution timed out after {timeout}s")
            except asyncio.CancelledError:
                await self._fail(session, "Resolution cancelled")
                raise
            except Exception as e:
                return await self._fail(session, str(e) or type(e).__name__)

            session.complete()
            logger.info(
                f"Entity resolution {session.id} completed: "
                f"{session.matches_found} matches, {session.merges_executed} merges"
            )
            snapshot = session.model_copy()
            await self._emit(EngineEvent.SESSION_COMPLETED, snapshot)
            return snapshot

    async def _fail(self, session: ResolutionSession, message: str) -> ResolutionSession:
        session.fail(message)
        logger.error(f"Entity resolution {session.id} failed: {message}")
        snapshot = session.model_copy()
        await self._emit(EngineEvent.SESSION_FAILED, snapshot)
        return snapshot

    async def _run(self, session: ResolutionSession, entity_type: Optional[str]) -> None:
        entities = await self._fetch_entities(entity_type)
        session.total_entities = len(entities)

        for group_type, group in self._group_by_type(entities).items():
            self._check_cancelled()
            await self._resolve_entities_of_type(session, group_type, group)

    async def _fetch_entities(self, entity_type: Optional[str]) -> list[BaseEntity]:
        """Load full entities for a run, dropping ids that vanished."""
        limit = self.config.fetch_limit
        if entity_type:
            summaries = await self.store.search(type_name(entity_type), limit)
        else:
            summaries = await self.store.get_all_entities(limit)

        entities = await asyncio.gather(*(self.store.get(s.id) for s in summaries))
        return [e for e in entities if e is not None]

    @staticmethod
    def _group_by_type(entities: list[BaseEntity]) -> dict[str, list[BaseEntity]]:
        groups: dict[str, list[BaseEntity]] = {}
        for entity in entities:
            groups.setdefault(entity.type, []).append(entity)
        return groups

    async def _resolve_entities_of_type(
        self,
        session: ResolutionSession,
        entity_type: str,
        entities: list[BaseEntity],
    ) -> None:
        logger.debug(f"Resolving {len(entities)} entities of type {entity_type}")

        blocks = self.blocker.generate_blocks(entities)
        session.blocks_generated += len(blocks)

        matches: list[EntityMatch] = []
        seen_pairs: set[frozenset[str]] = set()

        for block_key, block in blocks.items():
            self._check_cancelled()
            if self.blocker.is_oversized(block):
                logger.warning(f"Block too large, skipping: {block_key} ({len(block)} entities)")
                session.blocks_skipped += 1
                continue

            block_matches, comparisons, errors = self.matcher.find_matches_in_block(
                entity_type, block, seen_pairs
            )
            session.comparisons_performed += comparisons
            session.comparison_errors += errors
            matches.extend(block_matches)

            # Yield to the event loop between blocks
            await asyncio.sleep(0)

        session.matches_found += len(matches)

        if self.config.enable_transitive_matching:
            inferred = self.transitive.apply(matches)
            session.transitive_matches += len(inferred)

        await self._process_matches(session, matches)

    async def _process_matches(
        self,
        session: ResolutionSession,
        matches: list[EntityMatch],
    ) -> None:
        """Apply merge suggestions, highest confidence first."""
        for match in sorted(matches, key=lambda m: m.confidence, reverse=True):
            if match.suggested_action != SuggestedAction.MERGE:
                continue
            if match.entity1_id in self._session_merged or match.entity2_id in self._session_merged:
                continue
            self._check_cancelled()

            result = await self._merge(match.entity1_id, match.entity2_id)
            if result.success:
                self._session_merged.add(result.merged_id)
                session.merges_executed += 1
                await self._emit(EngineEvent.MERGE_COMPLETED, result)
            else:
                session.merges_failed += 1
                logger.debug(
                    f"Merge {match.entity1_id} / {match.entity2_id} not applied: {result.error}"
                )

    async def _merge(self, entity1_id: str, entity2_id: str) -> MergeResult:
        """Serialized merge that records successful merges in the history."""
        async with self._merge_lock:
            result = await self.merger.merge_entities(entity1_id, entity2_id)
            if result.success:
                self._merge_history[result.merged_id] = result.survivor_id
            return result

    def cancel(self) -> None:
        """Ask the running resolve_all to stop at the next checkpoint."""
        if self._run_lock.locked():
            logger.info("Cancellation requested for current resolution run")
            self._cancel_requested = True

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise ResolutionCancelledError("Resolution cancelled")

    # Public API

    async def find_duplicates(self, entity_id: str) -> list[EntityMatch]:
        """
        Score an entity against every other entity of its type.

        No blocking and no merging. Returns matches sorted by confidence,
        or an empty list if the entity does not exist. Store errors
        propagate to the caller.
        """
        entity = await self.store.get(entity_id)
        if entity is None:
            return []

        summaries = await self.store.search(entity.type, self.config.duplicate_search_limit)

        matches: list[EntityMatch] = []
        for summary in summaries:
            if summary.id == entity_id:
                continue
            candidate = await self.store.get(summary.id)
            if candidate is None:
                continue
            try:
                match = self.matcher.compare_entities(entity.type, entity, candidate)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Comparison failed for {entity_id} / {summary.id}: {e}")
                continue
            if match is not None:
                matches.append(match)

        return sorted(matches, key=lambda m: m.confidence, reverse=True)

    async def merge_entities(self, entity1_id: str, entity2_id: str) -> MergeResult:
        """Merge two entities directly, outside of a resolution run."""
        result = await self._merge(entity1_id, entity2_id)
        if result.success:
            await self._emit(EngineEvent.MERGE_COMPLETED, result)
        return result

    def get_session(self) -> Optional[ResolutionSession]:
        """Snapshot of the most recent session, if any."""
        return self._current_session.model_copy() if self._current_session else None

    def get_merge_history(self) -> dict[str, str]:
        """Copy of the merged_id -> survivor_id history."""
        return dict(self._merge_history)

    def resolve_merged_id(self, entity_id: str) -> str:
        """
        Follow the merge history to the current survivor.

        Returns ``entity_id`` unchanged if it was never merged.
        """
        current = entity_id
        visited = {current}
        while current in self._merge_history:
            current = self._merge_history[current]
            if current in visited:
                logger.error(f"Cycle in merge history at {current}")
                break
            visited.add(current)
        return current
