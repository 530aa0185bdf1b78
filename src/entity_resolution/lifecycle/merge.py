"""
Entity merge operations.

Merging combines duplicate entities by:
1. Selecting a survivor (confidence, then sources, then age)
2. Folding the other entity's fields into the survivor
3. Updating the survivor and deleting the other entity in the store
"""

import asyncio
import logging
from typing import Any, Optional

from entity_resolution.config import ConflictPolicy, ResolutionConfig
from entity_resolution.entities.schemas import (
    BaseEntity,
    EmailIdentifier,
    MergeResult,
    OrganizationEntity,
    PersonEntity,
    PhoneIdentifier,
    utcnow,
)
from entity_resolution.normalize import normalize_email, normalize_phone
from entity_resolution.store.base import EntityStore

logger = logging.getLogger(__name__)

NOTES_SEPARATOR = "\n---\n"


class PartialMergeError(Exception):
    """The survivor was updated but the merged entity could not be deleted."""

    def __init__(self, survivor_id: str, merged_id: str, restored: bool):
        state = "survivor restored" if restored else "survivor NOT restored"
        super().__init__(
            f"Merge of {merged_id} into {survivor_id} incomplete: "
            f"delete failed, {state}"
        )
        self.survivor_id = survivor_id
        self.merged_id = merged_id
        self.restored = restored


class FieldMerge:
    """Accumulates merged field values and their resolution status."""

    def __init__(self):
        self.fields: dict[str, Any] = {}
        self.conflicted: list[str] = []
        self.resolved: list[str] = []

    def resolve(self, name: str, value: Any) -> None:
        self.fields[name] = value
        self.resolved.append(name)

    def conflict(self, name: str) -> None:
        self.conflicted.append(name)


def select_survivor(e1: BaseEntity, e2: BaseEntity) -> tuple[BaseEntity, BaseEntity]:
    """
    Return (survivor, merged).

    Higher confidence wins, then more sources, then the older record.
    """
    if e1.confidence != e2.confidence:
        return (e1, e2) if e1.confidence > e2.confidence else (e2, e1)

    if len(e1.sources) != len(e2.sources):
        return (e1, e2) if len(e1.sources) > len(e2.sources) else (e2, e1)

    return (e1, e2) if e1.created_at < e2.created_at else (e2, e1)


class MergeResolver:
    """
    Merge two duplicate entities through an entity store.

    Name conflicts follow ``config.name_conflict_policy``. Everything else
    is resolved by union or by preferring non-empty values.
    """

    def __init__(self, store: EntityStore, config: Optional[ResolutionConfig] = None):
        self.store = store
        self.config = config or ResolutionConfig()

    async def merge_entities(self, entity1_id: str, entity2_id: str) -> MergeResult:
        """
        Merge two entities.

        Returns an unsuccessful result, without touching the store, if
        either entity is missing or the merge is held for review. Store
        failures propagate; a failed delete raises PartialMergeError.
        """
        if entity1_id == entity2_id:
            return self._failed(entity1_id, entity2_id, "Cannot merge entity with itself")

        e1 = await self.store.get(entity1_id)
        e2 = await self.store.get(entity2_id)

        if e1 is None or e2 is None:
            missing = entity1_id if e1 is None else entity2_id
            logger.debug(f"Merge skipped, entity not found: {missing}")
            return self._failed(entity1_id, entity2_id, f"Entity not found: {missing}")

        if e1.type != e2.type:
            return self._failed(
                entity1_id,
                entity2_id,
                f"Cannot merge {e1.type} with {e2.type}",
            )

        survivor, merged = select_survivor(e1, e2)
        merge = self.merge_fields(survivor, merged)

        if (
            "name" in merge.conflicted
            and self.config.name_conflict_policy == ConflictPolicy.REQUIRE_REVIEW
        ):
            logger.info(
                f"Merge of {merged.id} into {survivor.id} held for review: "
                f"conflicting names {survivor.name!r} and {merged.name!r}"
            )
            result = self._failed(survivor.id, merged.id, "Conflicting names require review")
            result.fields_conflicted = merge.conflicted
            return result

        await self._apply(survivor, merged, merge.fields)

        logger.debug(
            f"Merged entities: survivor={survivor.id} merged={merged.id} "
            f"resolved={len(merge.resolved)} conflicted={len(merge.conflicted)}"
        )

        new_entity = survivor.model_copy(update=merge.fields)
        return MergeResult(
            success=True,
            survivor_id=survivor.id,
            merged_id=merged.id,
            fields_conflicted=merge.conflicted,
            fields_resolved=merge.resolved,
            new_entity=new_entity,
        )

    def merge_fields(self, survivor: BaseEntity, merged: BaseEntity) -> FieldMerge:
        """Compute the survivor's updated fields without touching the store."""
        merge = FieldMerge()

        merge.resolve("sources", list(dict.fromkeys([*survivor.sources, *merged.sources])))
        merge.fields["updated_at"] = utcnow()
        merge.fields["confidence"] = min(
            1.0, survivor.confidence + self.config.merge_confidence_boost
        )

        self._merge_name(survivor, merged, merge)

        if isinstance(survivor, PersonEntity) and isinstance(merged, PersonEntity):
            self._merge_person(survivor, merged, merge)
        elif isinstance(survivor, OrganizationEntity) and isinstance(merged, OrganizationEntity):
            self._merge_organization(survivor, merged, merge)

        return merge

    def _merge_name(self, survivor: BaseEntity, merged: BaseEntity, merge: FieldMerge) -> None:
        if not merged.name or survivor.name == merged.name:
            return
        if not survivor.name:
            merge.resolve("name", merged.name)
        elif self.config.name_conflict_policy == ConflictPolicy.PREFER_LONGEST:
            if len(merged.name) > len(survivor.name):
                merge.resolve("name", merged.name)
        else:
            merge.conflict("name")

    def _merge_person(
        self,
        survivor: PersonEntity,
        merged: PersonEntity,
        merge: FieldMerge,
    ) -> None:
        """Union contact details, fill gaps, concatenate notes."""
        emails: dict[str, EmailIdentifier] = {}
        for email in [*survivor.emails, *merged.emails]:
            emails.setdefault(normalize_email(email.email), email)
        merge.resolve("emails", list(emails.values()))

        phones: dict[str, PhoneIdentifier] = {}
        for phone in [*survivor.phones, *merged.phones]:
            phones.setdefault(normalize_phone(phone.number), phone)
        merge.resolve("phones", list(phones.values()))

        if merged.current_company:
            if not survivor.current_company:
                merge.resolve("current_company", merged.current_company)
            elif survivor.current_company != merged.current_company:
                merge.conflict("current_company")

        if merged.notes:
            notes = [n for n in (survivor.notes, merged.notes) if n]
            merge.resolve("notes", NOTES_SEPARATOR.join(notes))

    def _merge_organization(
        self,
        survivor: OrganizationEntity,
        merged: OrganizationEntity,
        merge: FieldMerge,
    ) -> None:
        """Union domains and fill a missing website."""
        domains: dict[str, str] = {}
        for domain in [*survivor.domains, *merged.domains]:
            domains.setdefault(domain.lower(), domain)
        merge.resolve("domains", list(domains.values()))

        if merged.website:
            if not survivor.website:
                merge.resolve("website", merged.website)
            elif survivor.website != merged.website:
                merge.conflict("website")

    async def _apply(
        self,
        survivor: BaseEntity,
        merged: BaseEntity,
        fields: dict[str, Any],
    ) -> None:
        """
        Update the survivor, then delete the merged entity.

        A cancellation (including a run timeout) arriving after the update
        puts the survivor back before the CancelledError propagates.
        """
        try:
            await self.store.update(survivor.id, fields)
            last_error = await self._delete_merged(merged)
        except asyncio.CancelledError:
            restored = await self._restore(survivor, fields)
            logger.error(
                f"Merge of {merged.id} into {survivor.id} cancelled "
                f"(restored={restored})"
            )
            raise

        if last_error is None:
            return

        restored = await self._restore(survivor, fields)
        logger.error(
            f"Partial merge: {survivor.id} updated but {merged.id} not deleted "
            f"(restored={restored})"
        )
        raise PartialMergeError(survivor.id, merged.id, restored) from last_error

    async def _delete_merged(self, merged: BaseEntity) -> Optional[Exception]:
        """Delete with retries; returns the last error, or None on success."""
        attempts = 1 + max(self.config.merge_delete_retries, 0)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                await self.store.delete(merged.id)
                return None
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Delete of merged entity {merged.id} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
        return last_error

    async def _restore(self, survivor: BaseEntity, fields: dict[str, Any]) -> bool:
        """Put the survivor's pre-merge values back after a failed delete."""
        original = {name: getattr(survivor, name) for name in fields}
        try:
            await self.store.update(survivor.id, original)
        except Exception as e:
            logger.error(f"Could not restore survivor {survivor.id}: {e}")
            return False
        return True

    @staticmethod
    def _failed(survivor_id: str, merged_id: str, error: str) -> MergeResult:
        return MergeResult(
            success=False,
            survivor_id=survivor_id,
            merged_id=merged_id,
            error=error,
        )
