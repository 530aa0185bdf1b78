"""
Pairwise comparison for entity resolution.

Each entity type has its own comparator that appends itemized match
reasons. Confidence is the field-weighted mean of the reasons produced,
so a single strong signal is not diluted by fields that had no data.
"""

import logging
from typing import Optional

from entity_resolution.config import ResolutionConfig
from entity_resolution.entities.schemas import (
    BaseEntity,
    EntityMatch,
    EntityType,
    MatchReason,
    MatchType,
    OrganizationEntity,
    PersonEntity,
    SuggestedAction,
)
from entity_resolution.normalize import normalize_email, normalize_phone, normalize_url
from entity_resolution.resolution.similarity import compare_names, string_similarity

logger = logging.getLogger(__name__)

# Minimum similarity for a signal to be reported
PERSON_NAME_THRESHOLD = 0.7
PERSON_COMPANY_THRESHOLD = 0.8
ORGANIZATION_NAME_THRESHOLD = 0.7
GENERIC_NAME_THRESHOLD = 0.8

# Generic shared-source bonus: base + per_source * overlap
SOURCE_BASE_SCORE = 0.3
SOURCE_PER_OVERLAP = 0.2


def type_name(entity_type: str) -> str:
    """Plain string form of an entity type or EntityType member."""
    return entity_type.value if isinstance(entity_type, EntityType) else str(entity_type)


def _match_type(score: float) -> MatchType:
    return MatchType.EXACT if score == 1.0 else MatchType.FUZZY


class PairwiseMatcher:
    """
    Compare two entities of the same type.

    Produces an EntityMatch with a weighted confidence and the reasons
    behind it, or None if no signal fired or the confidence is below
    ``min_confidence``.
    """

    def __init__(self, config: Optional[ResolutionConfig] = None):
        self.config = config or ResolutionConfig()

    def compare_entities(
        self,
        entity_type: str,
        e1: BaseEntity,
        e2: BaseEntity,
    ) -> Optional[EntityMatch]:
        """Score a pair of entities."""
        reasons: list[MatchReason] = []

        if entity_type == EntityType.PERSON:
            self._compare_persons(_expect(e1, PersonEntity), _expect(e2, PersonEntity), reasons)
        elif entity_type == EntityType.ORGANIZATION:
            self._compare_organizations(
                _expect(e1, OrganizationEntity),
                _expect(e2, OrganizationEntity),
                reasons,
            )
        else:
            self._compare_generic(e1, e2, reasons)

        confidence = self.score_reasons(reasons)
        if confidence is None or confidence < self.config.min_confidence:
            return None

        return EntityMatch(
            entity1_id=e1.id,
            entity2_id=e2.id,
            entity_type=type_name(entity_type),
            confidence=confidence,
            match_reasons=reasons,
            suggested_action=self.suggest_action(confidence),
        )

    def score_reasons(self, reasons: list[MatchReason]) -> Optional[float]:
        """
        Weighted mean of reason scores.

        Only fields that produced a reason contribute. Returns None when
        there is nothing to score.
        """
        total = 0.0
        total_weight = 0.0
        for reason in reasons:
            weight = self.config.weight_for(reason.field)
            total += reason.score * weight
            total_weight += weight

        if total_weight == 0:
            return None

        return min(max(total / total_weight, 0.0), 1.0)

    def suggest_action(self, confidence: float) -> SuggestedAction:
        """Map a confidence onto merge / link / ignore."""
        if confidence >= self.config.auto_merge_threshold:
            return SuggestedAction.MERGE
        elif confidence >= self.config.manual_review_threshold:
            return SuggestedAction.LINK
        else:
            return SuggestedAction.IGNORE

    def find_matches_in_block(
        self,
        entity_type: str,
        entities: list[BaseEntity],
        seen_pairs: Optional[set[frozenset[str]]] = None,
    ) -> tuple[list[EntityMatch], int, int]:
        """
        Compare every unordered pair in a block.

        Returns (matches, comparisons performed, comparisons that raised).
        A comparison that raises is logged and skipped so one malformed
        entity cannot abort the whole block.

        Pairs already in ``seen_pairs`` are skipped, and compared pairs are
        added to it, so entities sharing several blocks are compared once.
        """
        matches: list[EntityMatch] = []
        comparisons = 0
        errors = 0

        for i in range(len(entities)):
            for j in range(i + 1, len(entities)):
                if seen_pairs is not None:
                    pair = frozenset((entities[i].id, entities[j].id))
                    if pair in seen_pairs:
                        continue
                    seen_pairs.add(pair)
                comparisons += 1
                try:
                    match = self.compare_entities(entity_type, entities[i], entities[j])
                except (TypeError, ValueError, AttributeError) as e:
                    errors += 1
                    logger.warning(
                        f"Comparison failed for {entities[i].id} / {entities[j].id}: {e}"
                    )
                    continue
                if match is not None:
                    matches.append(match)

        return matches, comparisons, errors

    def _compare_persons(
        self,
        p1: PersonEntity,
        p2: PersonEntity,
        reasons: list[MatchReason],
    ) -> None:
        """Email, phone, name and company signals for persons."""
        emails1 = {normalize_email(e.email) for e in p1.emails} - {""}
        emails2 = {normalize_email(e.email) for e in p2.emails} - {""}
        email_overlap = sorted(emails1 & emails2)
        if email_overlap:
            reasons.append(
                MatchReason(
                    field="email",
                    type=MatchType.EXACT,
                    score=1.0,
                    details=f"Matching emails: {', '.join(email_overlap)}",
                )
            )

        phones1 = {normalize_phone(p.number) for p in p1.phones} - {""}
        phones2 = {normalize_phone(p.number) for p in p2.phones} - {""}
        if phones1 & phones2:
            reasons.append(
                MatchReason(
                    field="phone",
                    type=MatchType.EXACT,
                    score=1.0,
                    details="Matching phone numbers",
                )
            )

        name_similarity = compare_names(p1.name, p2.name) if p1.name and p2.name else 0.0
        if name_similarity > PERSON_NAME_THRESHOLD:
            reasons.append(
                MatchReason(
                    field="name",
                    type=_match_type(name_similarity),
                    score=name_similarity,
                    details=f"Name similarity: {round(name_similarity * 100)}%",
                )
            )

        if p1.current_company and p2.current_company:
            company_similarity = string_similarity(
                p1.current_company.lower(), p2.current_company.lower()
            )
            if company_similarity > PERSON_COMPANY_THRESHOLD:
                reasons.append(
                    MatchReason(
                        field="organization",
                        type=_match_type(company_similarity),
                        score=company_similarity,
                        details="Same organization",
                    )
                )

    def _compare_organizations(
        self,
        o1: OrganizationEntity,
        o2: OrganizationEntity,
        reasons: list[MatchReason],
    ) -> None:
        """Domain, name and website signals for organizations."""
        domains1 = {d.lower() for d in o1.domains if d}
        domains2 = {d.lower() for d in o2.domains if d}
        domain_overlap = sorted(domains1 & domains2)
        if domain_overlap:
            reasons.append(
                MatchReason(
                    field="domain",
                    type=MatchType.EXACT,
                    score=1.0,
                    details=f"Matching domains: {', '.join(domain_overlap)}",
                )
            )

        name_similarity = _name_similarity(o1, o2)
        if name_similarity > ORGANIZATION_NAME_THRESHOLD:
            reasons.append(
                MatchReason(
                    field="name",
                    type=_match_type(name_similarity),
                    score=name_similarity,
                    details=f"Name similarity: {round(name_similarity * 100)}%",
                )
            )

        if o1.website and o2.website:
            if normalize_url(o1.website) == normalize_url(o2.website):
                reasons.append(
                    MatchReason(
                        field="website",
                        type=MatchType.EXACT,
                        score=1.0,
                        details="Same website",
                    )
                )

    def _compare_generic(
        self,
        e1: BaseEntity,
        e2: BaseEntity,
        reasons: list[MatchReason],
    ) -> None:
        """Name similarity and shared provenance for any other type."""
        name_similarity = _name_similarity(e1, e2)
        if name_similarity > GENERIC_NAME_THRESHOLD:
            reasons.append(
                MatchReason(
                    field="name",
                    type=_match_type(name_similarity),
                    score=name_similarity,
                    details=f"Name similarity: {round(name_similarity * 100)}%",
                )
            )

        source_overlap = sorted(set(e1.sources) & set(e2.sources))
        if source_overlap:
            score = min(1.0, SOURCE_BASE_SCORE + SOURCE_PER_OVERLAP * len(source_overlap))
            reasons.append(
                MatchReason(
                    field="source",
                    type=MatchType.EXACT,
                    score=score,
                    details=f"Common sources: {', '.join(source_overlap)}",
                )
            )


def _expect(entity: BaseEntity, model: type) -> BaseEntity:
    """Guard the comparator dispatch against mismatched variants."""
    if not isinstance(entity, model):
        raise TypeError(
            f"Expected {model.__name__} for {entity.id}, got {type(entity).__name__}"
        )
    return entity


def _name_similarity(e1: BaseEntity, e2: BaseEntity) -> float:
    """Case-insensitive name similarity; two blank names do not match."""
    if not e1.name or not e2.name:
        return 0.0
    return string_similarity(e1.name.lower(), e2.name.lower())
