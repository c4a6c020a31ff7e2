"""Tests for the name and label match strategies and their chain."""

from dice_kg.resolution.matching import (
    ChainedMatchStrategy,
    ExactNameStrategy,
    FuzzyNameStrategy,
    LabelCompatibilityStrategy,
    MatchResult,
    MatchStrategy,
    NormalizedNameStrategy,
    PartialNameStrategy,
    default_entity_matching_strategies,
    default_match_strategies,
)
from dice_kg.types import NamedEntityData, SuggestedEntity


def _suggested(name: str, *labels: str) -> SuggestedEntity:
    return SuggestedEntity(name=name, labels=list(labels) or ["Person"])


def _entity(name: str, *labels: str) -> NamedEntityData:
    return NamedEntityData(name=name, labels=frozenset(labels or ("Person",)))


class _AlwaysMatch(MatchStrategy):
    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        return MatchResult.MATCH


class TestNameStrategies:
    """Test the individual name strategies."""

    def test_exact_is_case_and_whitespace_insensitive(self, schema):
        result = ExactNameStrategy().evaluate(_suggested(" sherlock HOLMES "), _entity("Sherlock Holmes"), schema)
        assert result is MatchResult.MATCH

    def test_exact_never_vetoes(self, schema):
        result = ExactNameStrategy().evaluate(_suggested("Watson"), _entity("Holmes"), schema)
        assert result is MatchResult.INCONCLUSIVE

    def test_normalized_strips_titles(self, schema):
        result = NormalizedNameStrategy().evaluate(_suggested("Dr. Watson"), _entity("Watson"), schema)
        assert result is MatchResult.MATCH

    def test_partial_single_word_in_multi_word(self, schema):
        strategy = PartialNameStrategy()
        assert strategy.evaluate(_suggested("Holmes"), _entity("Sherlock Holmes"), schema) is MatchResult.MATCH
        assert strategy.evaluate(_suggested("Sherlock Holmes"), _entity("Holmes"), schema) is MatchResult.MATCH

    def test_partial_requires_min_part_length(self, schema):
        strategy = PartialNameStrategy(min_part_length=4)
        result = strategy.evaluate(_suggested("Al"), _entity("Al Capone"), schema)
        assert result is MatchResult.INCONCLUSIVE

    def test_partial_two_multi_word_names(self, schema):
        result = PartialNameStrategy().evaluate(
            _suggested("Mycroft Holmes"), _entity("Sherlock Holmes"), schema
        )
        assert result is MatchResult.INCONCLUSIVE

    def test_fuzzy_within_bound(self, schema):
        """'Jon Smith' vs 'John Smith': distance 1 <= floor(9 * 0.2)."""
        result = FuzzyNameStrategy().evaluate(_suggested("Jon Smith"), _entity("John Smith"), schema)
        assert result is MatchResult.MATCH

    def test_fuzzy_beyond_bound(self, schema):
        """'Smith' vs 'Smythe': distance 2 > floor(5 * 0.2)."""
        result = FuzzyNameStrategy().evaluate(_suggested("Smith"), _entity("Smythe"), schema)
        assert result is MatchResult.INCONCLUSIVE

    def test_fuzzy_short_names_never_match(self, schema):
        result = FuzzyNameStrategy().evaluate(_suggested("Al"), _entity("Bob"), schema)
        assert result is MatchResult.INCONCLUSIVE


class TestLabelCompatibility:
    """Test the type veto."""

    def test_overlapping_labels(self, schema):
        strategy = LabelCompatibilityStrategy()
        assert strategy.labels_compatible(["person"], ["Person"], schema)
        assert strategy.labels_compatible(["com.example.Person"], ["Person"], schema)

    def test_subtype_is_compatible(self, schema):
        result = LabelCompatibilityStrategy().evaluate(
            _suggested("Holmes", "Detective"), _entity("Holmes", "Person"), schema
        )
        assert result is MatchResult.INCONCLUSIVE

    def test_siblings_with_meaningful_parent(self, schema):
        assert LabelCompatibilityStrategy().labels_compatible(["Detective"], ["Doctor"], schema)

    def test_generic_ancestor_is_not_enough(self, schema):
        """Person and Place only share NamedEntity."""
        assert not LabelCompatibilityStrategy().labels_compatible(["Person"], ["Place"], schema)

    def test_incompatible_types_veto(self, schema):
        result = LabelCompatibilityStrategy().evaluate(
            _suggested("Hamlet", "Person"), _entity("Hamlet", "Work"), schema
        )
        assert result is MatchResult.NO_MATCH

    def test_unknown_distinct_labels_are_incompatible(self, schema):
        assert not LabelCompatibilityStrategy().labels_compatible(["Spaceship"], ["Robot"], schema)

    def test_compatible_labels_span_the_hierarchy(self, schema):
        labels = LabelCompatibilityStrategy().compatible_labels(["Detective"], schema)
        assert {"Detective", "Person", "NamedEntity", "Doctor", "Composer"} <= labels
        assert not labels & {"Work", "Place", "Company"}

    def test_compatible_labels_without_labels_is_empty(self, schema):
        assert LabelCompatibilityStrategy().compatible_labels([], schema) == set()


class TestChainedMatchStrategy:
    """Test strategy composition."""

    def test_veto_wins_over_name_match(self, schema):
        chain = default_match_strategies()
        result = chain.evaluate(_suggested("Hamlet", "Person"), _entity("Hamlet", "Work"), schema)
        assert result is MatchResult.NO_MATCH
        assert not chain.matches(_suggested("Hamlet", "Person"), _entity("Hamlet", "Work"), schema)

    def test_name_match_with_compatible_labels(self, schema):
        chain = default_match_strategies()
        assert chain.matches(_suggested("Holmes", "Detective"), _entity("Sherlock Holmes", "Person"), schema)

    def test_no_opinion_is_inconclusive(self, schema):
        chain = default_match_strategies()
        result = chain.evaluate(_suggested("Moriarty"), _entity("Sherlock Holmes"), schema)
        assert result is MatchResult.INCONCLUSIVE

    def test_with_strategy_is_evaluated_first(self, schema):
        chain = default_match_strategies().with_strategy(_AlwaysMatch())
        assert chain.matches(_suggested("Hamlet", "Person"), _entity("Hamlet", "Work"), schema)

    def test_added_strategy_is_evaluated_last(self, schema):
        chain = ChainedMatchStrategy([LabelCompatibilityStrategy()]) + _AlwaysMatch()
        assert not chain.matches(_suggested("Hamlet", "Person"), _entity("Hamlet", "Work"), schema)
        assert chain.matches(_suggested("Moriarty"), _entity("Holmes"), schema)

    def test_entity_matching_strategies_skip_type_veto(self, schema):
        chain = default_entity_matching_strategies()
        assert chain.matches(_suggested("Hamlet", "Person"), _entity("Hamlet", "Work"), schema)
