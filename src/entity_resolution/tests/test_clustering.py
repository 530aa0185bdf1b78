"""
Tests for transitive closure over matches.
"""

import pytest

from entity_resolution.entities.schemas import (
    EntityMatch,
    MatchReason,
    MatchType,
    SuggestedAction,
)
from entity_resolution.resolution.clustering import TransitiveClosureResolver


def direct(id1: str, id2: str, entity_type: str = "Person", confidence: float = 0.95) -> EntityMatch:
    return EntityMatch(
        entity1_id=id1,
        entity2_id=id2,
        entity_type=entity_type,
        confidence=confidence,
        match_reasons=[MatchReason(field="email", type=MatchType.EXACT, score=1.0)],
        suggested_action=SuggestedAction.MERGE,
    )


class TestTransitiveClosure:
    """Tests for TransitiveClosureResolver."""

    def test_chain_infers_missing_pair(self):
        matches = [direct("A", "B"), direct("B", "C")]

        inferred = TransitiveClosureResolver().apply(matches)

        assert len(inferred) == 1
        match = inferred[0]
        assert match.pair_key == frozenset({"A", "C"})
        assert match.confidence == 0.7
        assert match.suggested_action == SuggestedAction.LINK
        assert match.entity_type == "Person"
        assert match.match_reasons[0].field == "transitive"
        assert match.match_reasons[0].type == MatchType.TRANSITIVE

    def test_input_list_extended_in_place(self):
        matches = [direct("A", "B"), direct("B", "C")]

        TransitiveClosureResolver().apply(matches)

        assert len(matches) == 3

    def test_inferred_never_merge_even_at_high_confidence(self):
        matches = [direct("A", "B"), direct("B", "C")]

        inferred = TransitiveClosureResolver(confidence=0.99).apply(matches)

        assert inferred[0].suggested_action == SuggestedAction.LINK

    def test_existing_direct_pair_not_duplicated(self):
        matches = [direct("A", "B"), direct("B", "C"), direct("C", "A")]

        assert TransitiveClosureResolver().apply(matches) == []

    def test_pairs_have_no_inference(self):
        matches = [direct("A", "B"), direct("C", "D")]

        assert TransitiveClosureResolver().apply(matches) == []

    def test_long_chain(self):
        matches = [direct("A", "B"), direct("B", "C"), direct("C", "D")]

        inferred = TransitiveClosureResolver().apply(matches)

        assert {m.pair_key for m in inferred} == {
            frozenset({"A", "C"}),
            frozenset({"A", "D"}),
            frozenset({"B", "D"}),
        }

    def test_entity_type_propagated(self):
        matches = [direct("A", "B", "Organization"), direct("B", "C", "Organization")]

        inferred = TransitiveClosureResolver().apply(matches)

        assert inferred[0].entity_type == "Organization"

    def test_mixed_type_component_skipped(self):
        matches = [direct("A", "B", "Person"), direct("B", "C", "Organization")]

        assert TransitiveClosureResolver().apply(matches) == []

    def test_connected_components(self):
        matches = [direct("A", "B"), direct("B", "C"), direct("D", "E")]

        assert TransitiveClosureResolver().connected_components(matches) == [["A", "B", "C"]]

    def test_invalid_confidence(self):
        with pytest.raises(ValueError):
            TransitiveClosureResolver(confidence=1.5)
