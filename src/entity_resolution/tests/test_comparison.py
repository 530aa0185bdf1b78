"""
Tests for pairwise entity comparison.
"""

import pytest

from entity_resolution.config import ResolutionConfig
from entity_resolution.entities.schemas import MatchReason, MatchType, SuggestedAction
from entity_resolution.resolution.comparison import PairwiseMatcher


@pytest.fixture
def matcher(config):
    return PairwiseMatcher(config)


class TestPersonComparison:
    """Tests for person comparison signals."""

    def test_shared_email_is_exact_reason(self, matcher, make_person):
        a = make_person("a", name="Alice Smith", emails=("alice@x.com",))
        b = make_person("b", name="Bob Jones", emails=("ALICE@x.com ",))

        match = matcher.compare_entities("Person", a, b)

        assert match is not None
        email_reasons = [r for r in match.match_reasons if r.field == "email"]
        assert len(email_reasons) == 1
        assert email_reasons[0].type == MatchType.EXACT
        assert email_reasons[0].score == 1.0

    def test_phone_only_match_is_full_confidence_merge(self, matcher, make_person):
        """A single normalized phone match is not diluted by empty fields."""
        a = make_person("a", name="John Doe", phones=("555-123-4567",))
        b = make_person("b", name="Xavier Quint", phones=("(555) 123 4567",))

        match = matcher.compare_entities("Person", a, b)

        assert match.confidence == 1.0
        assert match.suggested_action == SuggestedAction.MERGE
        assert [r.field for r in match.match_reasons] == ["phone"]

    def test_no_shared_signal_returns_none(self, matcher, make_person):
        a = make_person("a", name="Alice", emails=("a@x.com",))
        b = make_person("b", name="Zed", emails=("z@x.com",))

        assert matcher.compare_entities("Person", a, b) is None

    def test_blank_names_do_not_match(self, matcher, make_person):
        assert matcher.compare_entities("Person", make_person("a"), make_person("b")) is None

    def test_name_and_company_signals(self, matcher, make_person):
        a = make_person("a", name="Jonathan Smith", current_company="Acme Corp")
        b = make_person("b", name="Jonathon Smith", current_company="acme corp")

        match = matcher.compare_entities("Person", a, b)

        fields = {r.field: r for r in match.match_reasons}
        assert fields["name"].score == 1.0
        assert fields["organization"].score == 1.0
        assert match.confidence == pytest.approx(1.0)

    def test_partial_name_below_threshold_ignored(self, matcher, make_person):
        a = make_person("a", name="Alice Smith")
        b = make_person("b", name="Alice Jones")

        assert matcher.compare_entities("Person", a, b) is None

    def test_mismatched_variant_raises(self, matcher, make_person, make_org):
        with pytest.raises(TypeError):
            matcher.compare_entities("Person", make_person("a"), make_org("o"))


class TestOrganizationComparison:
    """Tests for organization comparison signals."""

    def test_domain_overlap_case_insensitive(self, matcher, make_org):
        a = make_org("a", name="Acme", domains=("Acme.com",))
        b = make_org("b", name="Globex", domains=("acme.com",))

        match = matcher.compare_entities("Organization", a, b)

        assert [r.field for r in match.match_reasons] == ["domain"]
        assert match.confidence == 1.0

    def test_website_normalized(self, matcher, make_org):
        a = make_org("a", name="Acme", website="https://www.acme.com/")
        b = make_org("b", name="Globex", website="http://acme.com")

        match = matcher.compare_entities("Organization", a, b)

        assert [r.field for r in match.match_reasons] == ["website"]

    def test_fuzzy_name(self, matcher, make_org):
        a = make_org("a", name="Acme Corp")
        b = make_org("b", name="Acme Corp.")

        match = matcher.compare_entities("Organization", a, b)

        reason = match.match_reasons[0]
        assert reason.type == MatchType.FUZZY
        assert reason.score == pytest.approx(0.9)


class TestGenericComparison:
    """Tests for generic entity comparison."""

    def test_shared_sources_score(self, matcher, make_generic):
        a = make_generic("a", name="Apollo", sources=("crm", "mail"))
        b = make_generic("b", name="Borealis", sources=("mail", "crm"))

        match = matcher.compare_entities("Project", a, b)

        assert match.match_reasons[0].field == "source"
        assert match.confidence == pytest.approx(0.7)

    def test_source_score_capped(self, matcher, make_generic):
        sources = ("a", "b", "c", "d", "e")
        a = make_generic("a", name="Apollo", sources=sources)
        b = make_generic("b", name="Borealis", sources=sources)

        match = matcher.compare_entities("Project", a, b)

        assert match.match_reasons[0].score == 1.0

    def test_below_min_confidence_dropped(self, make_generic):
        matcher = PairwiseMatcher(ResolutionConfig(min_confidence=0.6))
        a = make_generic("a", name="Apollo", sources=("crm",))
        b = make_generic("b", name="Borealis", sources=("crm",))

        assert matcher.compare_entities("Project", a, b) is None


class TestScoring:
    """Tests for confidence aggregation and action mapping."""

    def test_weighted_mean(self, matcher):
        reasons = [
            MatchReason(field="email", type=MatchType.EXACT, score=1.0),
            MatchReason(field="name", type=MatchType.FUZZY, score=0.5),
        ]
        assert matcher.score_reasons(reasons) == pytest.approx(1.3 / 1.6)

    def test_unknown_field_uses_default_weight(self, matcher):
        reasons = [
            MatchReason(field="email", type=MatchType.EXACT, score=1.0),
            MatchReason(field="mystery", type=MatchType.FUZZY, score=0.0),
        ]
        assert matcher.score_reasons(reasons) == pytest.approx(1.0 / 1.1)

    def test_no_reasons(self, matcher):
        assert matcher.score_reasons([]) is None

    def test_action_monotonic_in_confidence(self, matcher):
        order = {SuggestedAction.IGNORE: 0, SuggestedAction.LINK: 1, SuggestedAction.MERGE: 2}
        confidences = [0.0, 0.5, 0.69, 0.7, 0.89, 0.9, 1.0]
        ranks = [order[matcher.suggest_action(c)] for c in confidences]

        assert ranks == sorted(ranks)
        assert matcher.suggest_action(0.7) == SuggestedAction.LINK
        assert matcher.suggest_action(0.9) == SuggestedAction.MERGE


class TestFindMatchesInBlock:
    """Tests for in-block pair enumeration."""

    def test_counts_comparisons_and_matches(self, matcher, make_person):
        people = [
            make_person("a", emails=("x@x.com",)),
            make_person("b", emails=("x@x.com",)),
            make_person("c", emails=("y@x.com",)),
        ]

        matches, comparisons, errors = matcher.find_matches_in_block("Person", people)

        assert comparisons == 3
        assert errors == 0
        assert [(m.entity1_id, m.entity2_id) for m in matches] == [("a", "b")]

    def test_seen_pairs_skipped(self, matcher, make_person):
        people = [make_person("a", emails=("x@x.com",)), make_person("b", emails=("x@x.com",))]
        seen: set[frozenset[str]] = set()

        first, _, _ = matcher.find_matches_in_block("Person", people, seen)
        second, comparisons, _ = matcher.find_matches_in_block("Person", people, seen)

        assert len(first) == 1
        assert second == []
        assert comparisons == 0

    def test_comparison_errors_counted_not_raised(self, matcher, make_person, make_org):
        block = [make_person("a"), make_org("o"), make_person("b")]

        matches, comparisons, errors = matcher.find_matches_in_block("Person", block)

        assert comparisons == 3
        assert errors == 2
        assert matches == []
