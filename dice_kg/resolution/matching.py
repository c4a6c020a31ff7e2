"""
Match Strategies

Pure predicates comparing one suggested entity with one stored candidate.
Each returns MATCH, NO_MATCH or INCONCLUSIVE. Absence of a match is never
proof of non-identity, so only LabelCompatibilityStrategy ever vetoes.

Strategies compose through ChainedMatchStrategy: the first definite answer
wins, so a veto placed first short-circuits any later match.

Example:
    >>> chain = default_match_strategies()
    >>> chain.evaluate(suggested, candidate, schema)
    <MatchResult.MATCH: 'match'>
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum

from dice_kg.schema import DataDictionary, DomainType
from dice_kg.types import NamedEntityData, SuggestedEntity
from dice_kg.utils.text import levenshtein_distance, name_parts, normalize_name, simple_labels

# Ancestors too broad to make two types compatible
GENERIC_ANCESTORS = frozenset({
    "NamedEntity",
    "Entity",
    "RetrievableEntity",
    "Retrievable",
    "Object",
    "Any",
    "Embeddable",
    "EntityData",
    "NamedEntityData",
})


class MatchResult(str, Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    INCONCLUSIVE = "inconclusive"


class MatchStrategy(ABC):
    """Compares a suggested entity with one candidate."""

    @abstractmethod
    def evaluate(
        self,
        suggested: SuggestedEntity,
        candidate: NamedEntityData,
        schema: DataDictionary,
    ) -> MatchResult:
        ...


# -----------------------------------------------------------------------------
# Name Strategies
# -----------------------------------------------------------------------------


class ExactNameStrategy(MatchStrategy):
    """Case-insensitive equality of the full names."""

    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        if suggested.name.strip().lower() == candidate.name.strip().lower():
            return MatchResult.MATCH
        return MatchResult.INCONCLUSIVE


class NormalizedNameStrategy(MatchStrategy):
    """Equality after stripping titles and suffixes: "Dr. Watson" matches "Watson"."""

    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        left = normalize_name(suggested.name).lower()
        if left and left == normalize_name(candidate.name).lower():
            return MatchResult.MATCH
        return MatchResult.INCONCLUSIVE


class PartialNameStrategy(MatchStrategy):
    """
    A single-word name matches a multi-word name containing it.

    "Holmes" matches "Sherlock Holmes". Both the single word and the
    matching part must be at least min_part_length characters long.
    """

    def __init__(self, min_part_length: int = 4) -> None:
        self.min_part_length = min_part_length

    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        parts1 = name_parts(suggested.name)
        parts2 = name_parts(candidate.name)
        if self._single_in_multi(parts1, parts2) or self._single_in_multi(parts2, parts1):
            return MatchResult.MATCH
        return MatchResult.INCONCLUSIVE

    def _single_in_multi(self, single: list[str], multi: list[str]) -> bool:
        if len(single) != 1 or len(multi) < 2:
            return False
        word = single[0]
        return len(word) >= self.min_part_length and word in multi


class FuzzyNameStrategy(MatchStrategy):
    """
    Levenshtein distance within a ratio of the shorter name.

    Match iff distance <= floor(min_len * max_distance_ratio). Names shorter
    than min_length never match.
    """

    def __init__(self, max_distance_ratio: float = 0.2, min_length: int = 4) -> None:
        self.max_distance_ratio = max_distance_ratio
        self.min_length = min_length

    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        name1 = suggested.name.strip().lower()
        name2 = candidate.name.strip().lower()
        min_len = min(len(name1), len(name2))
        if min_len < self.min_length:
            return MatchResult.INCONCLUSIVE

        max_distance = int(min_len * self.max_distance_ratio)
        if levenshtein_distance(name1, name2) <= max_distance:
            return MatchResult.MATCH
        return MatchResult.INCONCLUSIVE


# -----------------------------------------------------------------------------
# Type Compatibility
# -----------------------------------------------------------------------------


class LabelCompatibilityStrategy(MatchStrategy):
    """
    Vetoes candidates whose type cannot be the suggested type.

    Labels are compatible when they overlap (case-insensitive, raw or
    simplified), when one domain type descends from the other, or when the
    two types share a meaningful ancestor. Never returns MATCH.
    """

    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        if self.labels_compatible(suggested.labels, candidate.labels, schema):
            return MatchResult.INCONCLUSIVE
        return MatchResult.NO_MATCH

    def labels_compatible(
        self,
        labels1: Iterable[str],
        labels2: Iterable[str],
        schema: DataDictionary,
    ) -> bool:
        labels1, labels2 = list(labels1), list(labels2)
        raw1 = {l.lower() for l in labels1}
        raw2 = {l.lower() for l in labels2}
        if raw1 & raw2:
            return True

        simple1 = simple_labels(labels1)
        simple2 = simple_labels(labels2)
        if {l.lower() for l in simple1} & {l.lower() for l in simple2}:
            return True

        type1 = schema.domain_type_for_labels(sorted(simple1))
        type2 = schema.domain_type_for_labels(sorted(simple2))
        if type1 is None or type2 is None:
            return False
        if schema.is_subtype_of(type1, type2) or schema.is_subtype_of(type2, type1):
            return True
        return self._share_meaningful_ancestor(type1, type2, schema)

    def compatible_labels(self, labels: Iterable[str], schema: DataDictionary) -> set[str]:
        """The labels plus the name of every schema type compatible with them."""
        labels = list(labels)
        if not labels:
            return set()
        widened = {
            t.name for t in schema.domain_types if self.labels_compatible(labels, [t.name], schema)
        }
        return set(labels) | widened

    @staticmethod
    def _share_meaningful_ancestor(
        type1: DomainType,
        type2: DomainType,
        schema: DataDictionary,
    ) -> bool:
        def meaningful(domain_type: DomainType) -> set[str]:
            return {
                a.name.lower() for a in schema.ancestors(domain_type)
                if a.name not in GENERIC_ANCESTORS
            }

        return bool(meaningful(type1) & meaningful(type2))


# -----------------------------------------------------------------------------
# Composition
# -----------------------------------------------------------------------------


class ChainedMatchStrategy(MatchStrategy):
    """Evaluates strategies in order. The first MATCH or NO_MATCH wins."""

    def __init__(self, strategies: Iterable[MatchStrategy]) -> None:
        self.strategies = list(strategies)

    def evaluate(self, suggested, candidate, schema) -> MatchResult:
        for strategy in self.strategies:
            result = strategy.evaluate(suggested, candidate, schema)
            if result is not MatchResult.INCONCLUSIVE:
                return result
        return MatchResult.INCONCLUSIVE

    def matches(
        self,
        suggested: SuggestedEntity,
        candidate: NamedEntityData,
        schema: DataDictionary,
    ) -> bool:
        return self.evaluate(suggested, candidate, schema) is MatchResult.MATCH

    def with_strategy(self, strategy: MatchStrategy) -> "ChainedMatchStrategy":
        """New chain with strategy evaluated first."""
        return ChainedMatchStrategy([strategy, *self.strategies])

    def __add__(self, strategy: MatchStrategy) -> "ChainedMatchStrategy":
        return ChainedMatchStrategy([*self.strategies, strategy])


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------


def default_match_strategies(
    *,
    fuzzy_max_distance_ratio: float = 0.2,
    fuzzy_min_length: int = 4,
    partial_min_part_length: int = 4,
) -> ChainedMatchStrategy:
    """Type veto first, then exact, normalized, partial and fuzzy name matching."""
    return ChainedMatchStrategy([
        LabelCompatibilityStrategy(),
        ExactNameStrategy(),
        NormalizedNameStrategy(),
        PartialNameStrategy(partial_min_part_length),
        FuzzyNameStrategy(fuzzy_max_distance_ratio, fuzzy_min_length),
    ])


def default_entity_matching_strategies() -> ChainedMatchStrategy:
    """Name-only matching: normalized, partial and fuzzy, without the type veto."""
    return ChainedMatchStrategy([
        NormalizedNameStrategy(),
        PartialNameStrategy(),
        FuzzyNameStrategy(),
    ])
