"""
Candidate Searchers

Each searcher wraps one retrieval mechanism over the entity store and
returns either a confident match or the candidates it saw.

"Exactly one" gates confidence throughout: when two or more results are
equally plausible, confident stays None and the results escalate as
candidates to later searchers or the LLM bakeoff.

Searchers catch store failures, log them at debug level and return what
they have so far. A broken mechanism never aborts resolution.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

from dice_kg.resolution.matching import (
    ChainedMatchStrategy,
    FuzzyNameStrategy,
    LabelCompatibilityStrategy,
    MatchResult,
    PartialNameStrategy,
    default_match_strategies,
)
from dice_kg.schema import DataDictionary
from dice_kg.storage.base import NamedEntityRepository, SimilarityResult
from dice_kg.types import NamedEntityData, SuggestedEntity
from dice_kg.utils.text import normalize_name

logger = logging.getLogger(__name__)


class ResolutionLevel(IntEnum):
    """How a resolution was reached, cheapest first. Observability only."""

    EXACT_MATCH = 0
    HEURISTIC_MATCH = 1
    EMBEDDING_MATCH = 2
    LLM_VERIFICATION = 3
    LLM_BAKEOFF = 4
    NO_MATCH = 5


@dataclass
class SearchResult:
    """
    Outcome of one searcher.

    Attributes:
        confident: Accept immediately when set
        candidates: Everything the searcher saw, for later arbitration
    """

    confident: NamedEntityData | None = None
    candidates: list[NamedEntityData] = field(default_factory=list)

    @classmethod
    def of_confident(cls, entity: NamedEntityData) -> "SearchResult":
        return cls(confident=entity, candidates=[entity])

    @classmethod
    def of_candidates(cls, candidates: list[NamedEntityData]) -> "SearchResult":
        return cls(candidates=list(candidates))

    @classmethod
    def empty(cls) -> "SearchResult":
        return cls()


class CandidateSearcher(ABC):
    """One retrieval mechanism. Subclasses declare the level of their confident matches."""

    level: ClassVar[ResolutionLevel] = ResolutionLevel.HEURISTIC_MATCH

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def search(self, suggested: SuggestedEntity, schema: DataDictionary) -> SearchResult:
        ...


def _label_filter(suggested: SuggestedEntity, schema: DataDictionary) -> set[str]:
    # Widened across the type hierarchy so a stored Person is found for a Detective
    return LabelCompatibilityStrategy().compatible_labels(suggested.labels, schema)


# -----------------------------------------------------------------------------
# Exact Searchers
# -----------------------------------------------------------------------------


class ByIdSearcher(CandidateSearcher):
    """Confident when the suggestion carries a pre-known id that is stored."""

    level = ResolutionLevel.EXACT_MATCH

    def __init__(self, repository: NamedEntityRepository) -> None:
        self.repository = repository

    async def search(self, suggested, schema) -> SearchResult:
        if not suggested.id:
            return SearchResult.empty()
        try:
            found = await self.repository.find_by_id(suggested.id)
        except Exception as e:
            logger.debug(f"Id lookup failed for '{suggested.name}': {e}")
            return SearchResult.empty()
        if found is None:
            return SearchResult.empty()
        logger.debug(f"BY_ID: '{suggested.name}' -> '{found.name}'")
        return SearchResult.of_confident(found)


class ByExactNameSearcher(CandidateSearcher):
    """
    Quoted exact-name text search.

    One case-insensitive exact match is confident; several are returned as
    candidates so the ambiguity is arbitrated rather than guessed.
    """

    level = ResolutionLevel.EXACT_MATCH

    def __init__(
        self,
        repository: NamedEntityRepository,
        top_k: int = 5,
        threshold: float = 0.99,
    ) -> None:
        self.repository = repository
        self.top_k = top_k
        self.threshold = threshold

    async def search(self, suggested, schema) -> SearchResult:
        try:
            results = await self.repository.text_search(
                f'"{suggested.name}"',
                label_filter=_label_filter(suggested, schema),
                top_k=self.top_k,
                threshold=self.threshold,
            )
        except Exception as e:
            logger.debug(f"Exact name search failed for '{suggested.name}': {e}")
            return SearchResult.empty()

        wanted = suggested.name.strip().lower()
        exact = [r.match for r in results if r.match.name.strip().lower() == wanted]
        if len(exact) == 1:
            logger.debug(f"EXACT_NAME: '{suggested.name}' -> '{exact[0].name}'")
            return SearchResult.of_confident(exact[0])
        if exact:
            logger.debug(
                f"EXACT_NAME: '{suggested.name}' has {len(exact)} matches, returning as candidates"
            )
            return SearchResult.of_candidates(exact)
        return SearchResult.empty()


# -----------------------------------------------------------------------------
# Heuristic Searchers
# -----------------------------------------------------------------------------


class _FilteredTextSearcher(CandidateSearcher):
    """
    Text search followed by a name filter.

    Every result becomes a candidate; the search is confident when exactly
    one result passes the filter.
    """

    level = ResolutionLevel.HEURISTIC_MATCH
    tag: ClassVar[str] = "TEXT"

    def __init__(
        self,
        repository: NamedEntityRepository,
        top_k: int = 10,
        threshold: float = 0.5,
    ) -> None:
        self.repository = repository
        self.top_k = top_k
        self.threshold = threshold

    def query_for(self, suggested: SuggestedEntity) -> str:
        return suggested.name

    @abstractmethod
    def accepts(
        self,
        suggested: SuggestedEntity,
        candidate: NamedEntityData,
        schema: DataDictionary,
    ) -> bool:
        ...

    async def search(self, suggested, schema) -> SearchResult:
        try:
            results = await self.repository.text_search(
                self.query_for(suggested),
                label_filter=_label_filter(suggested, schema),
                top_k=self.top_k,
                threshold=self.threshold,
            )
        except Exception as e:
            logger.debug(f"{self.tag} search failed for '{suggested.name}': {e}")
            return SearchResult.empty()

        candidates = [r.match for r in results]
        matches = [c for c in candidates if self.accepts(suggested, c, schema)]
        if len(matches) == 1:
            logger.debug(f"{self.tag}: '{suggested.name}' -> '{matches[0].name}'")
            return SearchResult(confident=matches[0], candidates=candidates)
        return SearchResult.of_candidates(candidates)


class NormalizedNameSearcher(_FilteredTextSearcher):
    """Searches the normalized name; "Dr. Watson" finds "Watson"."""

    tag = "NORMALIZED"

    def query_for(self, suggested: SuggestedEntity) -> str:
        return normalize_name(suggested.name)

    def accepts(self, suggested, candidate, schema) -> bool:
        wanted = normalize_name(suggested.name).lower()
        return bool(wanted) and normalize_name(candidate.name).lower() == wanted


class PartialNameSearcher(_FilteredTextSearcher):
    """Single-word names against multi-word names: "Holmes" finds "Sherlock Holmes"."""

    tag = "PARTIAL"

    def __init__(
        self,
        repository: NamedEntityRepository,
        min_part_length: int = 4,
        top_k: int = 10,
        threshold: float = 0.5,
    ) -> None:
        super().__init__(repository, top_k, threshold)
        self._strategy = PartialNameStrategy(min_part_length)

    def accepts(self, suggested, candidate, schema) -> bool:
        return self._strategy.evaluate(suggested, candidate, schema) is MatchResult.MATCH


class FuzzyNameSearcher(_FilteredTextSearcher):
    """Small edit distances: "Jon Smith" finds "John Smith"."""

    tag = "FUZZY"

    def __init__(
        self,
        repository: NamedEntityRepository,
        max_distance_ratio: float = 0.2,
        min_length: int = 4,
        top_k: int = 10,
        threshold: float = 0.5,
    ) -> None:
        super().__init__(repository, top_k, threshold)
        self._strategy = FuzzyNameStrategy(max_distance_ratio, min_length)

    def accepts(self, suggested, candidate, schema) -> bool:
        return self._strategy.evaluate(suggested, candidate, schema) is MatchResult.MATCH


class TextSearcher(_FilteredTextSearcher):
    """
    Boosted phrase plus per-term and fuzzy-term text search.

    Results are confirmed through the match chain, so a label veto wins
    over a name match.
    """

    tag = "HEURISTIC"

    def __init__(
        self,
        repository: NamedEntityRepository,
        match_strategies: ChainedMatchStrategy | None = None,
        top_k: int = 10,
        threshold: float = 0.5,
    ) -> None:
        super().__init__(repository, top_k, threshold)
        self.match_strategies = match_strategies or default_match_strategies()

    def query_for(self, suggested: SuggestedEntity) -> str:
        return build_text_query(suggested.name)

    def accepts(self, suggested, candidate, schema) -> bool:
        return self.match_strategies.matches(suggested, candidate, schema)


def build_text_query(name: str) -> str:
    """
    Lucene-style query for a name.

    Example:
        >>> build_text_query("Sherlock Holmes")
        '"Sherlock Holmes"^2 OR Sherlock OR Sherlock~ OR Holmes OR Holmes~'
    """
    parts = [f'"{name}"^2']
    for term in re.split(r"\s+", name.strip()):
        if len(term) < 2:
            continue
        parts.append(term)
        if len(term) >= 4:
            parts.append(f"{term}~")
    return " OR ".join(parts)


# -----------------------------------------------------------------------------
# Embedding Searcher
# -----------------------------------------------------------------------------


class VectorSearcher(CandidateSearcher):
    """
    Embedding similarity on "name summary".

    Confident only when exactly one result reaches the auto-accept
    threshold and the match chain does not veto it.
    """

    level = ResolutionLevel.EMBEDDING_MATCH

    def __init__(
        self,
        repository: NamedEntityRepository,
        match_strategies: ChainedMatchStrategy | None = None,
        auto_accept_threshold: float = 0.95,
        candidate_threshold: float = 0.7,
        top_k: int = 10,
    ) -> None:
        self.repository = repository
        self.match_strategies = match_strategies or default_match_strategies()
        self.auto_accept_threshold = auto_accept_threshold
        self.candidate_threshold = candidate_threshold
        self.top_k = top_k

    async def search(self, suggested, schema) -> SearchResult:
        query = f"{suggested.name} {suggested.summary}".strip()
        try:
            results = await self.repository.vector_search(
                query,
                label_filter=_label_filter(suggested, schema),
                top_k=self.top_k,
                threshold=self.candidate_threshold,
            )
        except Exception as e:
            logger.debug(f"Vector search failed for '{suggested.name}': {e}")
            return SearchResult.empty()

        candidates = [r.match for r in results]
        accepted = [r for r in results if self._auto_accepts(r, suggested, schema)]
        if len(accepted) == 1:
            best = accepted[0]
            logger.debug(
                f"EMBEDDING: '{suggested.name}' -> '{best.match.name}' "
                f"(score: {best.score:.3f} >= {self.auto_accept_threshold})"
            )
            return SearchResult(confident=best.match, candidates=candidates)
        return SearchResult.of_candidates(candidates)

    def _auto_accepts(
        self,
        result: SimilarityResult[NamedEntityData],
        suggested: SuggestedEntity,
        schema: DataDictionary,
    ) -> bool:
        if result.score < self.auto_accept_threshold:
            return False
        verdict = self.match_strategies.evaluate(suggested, result.match, schema)
        return verdict is not MatchResult.NO_MATCH


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------


def default_candidate_searchers(
    repository: NamedEntityRepository,
    match_strategies: ChainedMatchStrategy | None = None,
) -> list[CandidateSearcher]:
    """Id, exact name, text and vector search, cheapest first."""
    match_strategies = match_strategies or default_match_strategies()
    return [
        ByIdSearcher(repository),
        ByExactNameSearcher(repository),
        TextSearcher(repository, match_strategies),
        VectorSearcher(repository, match_strategies),
    ]


def candidate_searchers_without_vector(
    repository: NamedEntityRepository,
    match_strategies: ChainedMatchStrategy | None = None,
) -> list[CandidateSearcher]:
    """For stores without embeddings."""
    return [
        ByIdSearcher(repository),
        ByExactNameSearcher(repository),
        TextSearcher(repository, match_strategies),
    ]


def exact_only_candidate_searchers(repository: NamedEntityRepository) -> list[CandidateSearcher]:
    return [ByIdSearcher(repository), ByExactNameSearcher(repository)]
