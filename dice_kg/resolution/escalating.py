"""
Escalating Entity Resolver

Resolves each suggested entity by trying searchers cheapest-first:

    START -> searcher 1 -> confident? DONE(ExistingEntity)
          -> ... accumulate candidates ...
          -> no candidates                    -> creation policy (New / Vetoed)
          -> candidates, no arbiter / heuristic_only -> creation policy
          -> candidates, arbiter -> LLM bakeoff over unique candidates
                                 -> match? ExistingEntity : creation policy

Searchers for one entity run strictly in order; different entities of one
batch resolve concurrently under a semaphore. The level a resolution was
reached at is logged and traced for tuning only; it never affects the
outcome.

Example:
    >>> resolver = create_escalating_resolver(repository, bakeoff=LlmCandidateBakeoff(llm))
    >>> resolutions = await resolver.resolve(suggested_entities, schema)
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field

from dice_kg.config import DiceConfig
from dice_kg.resolution.bakeoff import CandidateBakeoff
from dice_kg.resolution.base import EntityResolver
from dice_kg.resolution.compression import ContextCompressor, WindowContextCompressor
from dice_kg.resolution.matching import default_match_strategies
from dice_kg.resolution.searchers import (
    ByExactNameSearcher,
    ByIdSearcher,
    CandidateSearcher,
    ResolutionLevel,
    TextSearcher,
    VectorSearcher,
)
from dice_kg.schema import DataDictionary
from dice_kg.storage.base import NamedEntityRepository, SimilarityResult
from dice_kg.types import (
    EntityResolution,
    ExistingEntity,
    NamedEntityData,
    NewEntity,
    Resolutions,
    SuggestedEntities,
    SuggestedEntity,
    VetoedEntity,
)
from dice_kg.utils.text import simple_label

logger = logging.getLogger(__name__)

# Candidate pools carry no comparable score across searchers
BAKEOFF_CANDIDATE_SCORE = 0.8


@dataclass
class EntityResolutionTrace:
    """How one suggested entity was resolved."""

    suggested_name: str
    level: ResolutionLevel
    searchers_tried: list[str] = field(default_factory=list)
    candidates_considered: int = 0
    matched_by: str | None = None


def creation_policy(suggested: SuggestedEntity, schema: DataDictionary) -> EntityResolution:
    """
    New or Vetoed for a suggestion nothing matched.

    Types the schema does not know are creatable.
    """
    domain_type = schema.domain_type_for_labels([simple_label(l) for l in suggested.labels])
    if domain_type is None or domain_type.creation_permitted:
        return NewEntity(suggested=suggested)
    return VetoedEntity(
        suggested=suggested,
        reason=f"Creation of {domain_type.name} entities is not permitted",
    )


class EscalatingEntityResolver(EntityResolver):
    """
    Args:
        searchers: Ordered cheapest and most confident first
        bakeoff: Optional LLM arbiter for inconclusive candidates
        context_compressor: Shrinks source text before the bakeoff
        heuristic_only: Never call the bakeoff
        concurrency: Max suggested entities resolved at once
    """

    def __init__(
        self,
        searchers: list[CandidateSearcher],
        bakeoff: CandidateBakeoff | None = None,
        context_compressor: ContextCompressor | None = None,
        heuristic_only: bool = False,
        concurrency: int = 10,
    ) -> None:
        self.searchers = list(searchers)
        self.bakeoff = bakeoff
        self.context_compressor = context_compressor
        self.heuristic_only = heuristic_only
        self.concurrency = max(1, concurrency)

    async def resolve(
        self,
        suggested_entities: SuggestedEntities,
        schema: DataDictionary,
    ) -> Resolutions[EntityResolution]:
        resolutions, _ = await self.resolve_with_trace(suggested_entities, schema)
        return resolutions

    async def resolve_with_trace(
        self,
        suggested_entities: SuggestedEntities,
        schema: DataDictionary,
    ) -> tuple[Resolutions[EntityResolution], list[EntityResolutionTrace]]:
        """resolve() plus one trace per suggestion, in input order."""
        suggestions = suggested_entities.suggested_entities
        logger.info(
            f"Escalating resolution of {len(suggestions)} entities "
            f"from chunks {sorted(suggested_entities.chunk_ids)}"
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def resolve_one(suggested: SuggestedEntity):
            async with semaphore:
                return await self.resolve_entity(
                    suggested, schema, suggested_entities.source_text
                )

        outcomes = await asyncio.gather(*(resolve_one(s) for s in suggestions))

        level_counts = Counter(trace.level.name for _, trace in outcomes)
        logger.info(
            "Escalating resolution complete: "
            + ", ".join(f"{level}={count}" for level, count in sorted(level_counts.items()))
        )

        resolutions = Resolutions(
            chunk_ids=suggested_entities.chunk_ids,
            resolutions=[resolution for resolution, _ in outcomes],
        )
        return resolutions, [trace for _, trace in outcomes]

    async def resolve_entity(
        self,
        suggested: SuggestedEntity,
        schema: DataDictionary,
        source_text: str | None = None,
    ) -> tuple[EntityResolution, EntityResolutionTrace]:
        """Escalate through the searchers for one suggestion."""
        trace = EntityResolutionTrace(suggested_name=suggested.name, level=ResolutionLevel.NO_MATCH)
        all_candidates: list[NamedEntityData] = []

        for searcher in self.searchers:
            trace.searchers_tried.append(searcher.name)
            try:
                result = await searcher.search(suggested, schema)
            except Exception as e:
                logger.debug(f"Searcher {searcher.name} failed for '{suggested.name}': {e!r}")
                continue
            all_candidates.extend(result.candidates)
            if result.confident is not None:
                trace.level = searcher.level
                trace.matched_by = searcher.name
                trace.candidates_considered = len(all_candidates)
                logger.debug(
                    f"{searcher.level.name}: '{suggested.name}' -> '{result.confident.name}' "
                    f"(searcher: {searcher.name})"
                )
                return ExistingEntity(suggested=suggested, existing=result.confident), trace

        unique: list[NamedEntityData] = []
        seen: set[str] = set()
        for candidate in all_candidates:
            if candidate.id not in seen:
                seen.add(candidate.id)
                unique.append(candidate)
        trace.candidates_considered = len(unique)

        if not unique:
            logger.debug(f"No candidates found for '{suggested.name}'")
            return creation_policy(suggested, schema), trace

        if self.heuristic_only or self.bakeoff is None:
            logger.debug(
                f"No LLM available/enabled for '{suggested.name}' ({len(unique)} candidates)"
            )
            return creation_policy(suggested, schema), trace

        context = source_text
        if self.context_compressor is not None:
            context = self.context_compressor.compress(source_text, suggested.name) or source_text

        level = ResolutionLevel.LLM_VERIFICATION if len(unique) == 1 else ResolutionLevel.LLM_BAKEOFF
        scored = [SimilarityResult(match=c, score=BAKEOFF_CANDIDATE_SCORE) for c in unique]
        try:
            best = await self.bakeoff.select_best_match(suggested, scored, context)
        except Exception as e:
            logger.warning(f"Bakeoff raised for '{suggested.name}': {e!r}")
            best = None

        if best is None:
            return creation_policy(suggested, schema), trace

        trace.level = level
        trace.matched_by = type(self.bakeoff).__name__
        logger.debug(
            f"{level.name}: '{suggested.name}' -> '{best.name}' (from {len(unique)} candidates)"
        )
        return ExistingEntity(suggested=suggested, existing=best), trace


def create_escalating_resolver(
    repository: NamedEntityRepository,
    bakeoff: CandidateBakeoff | None = None,
    *,
    use_vector: bool = True,
    config: DiceConfig | None = None,
) -> EscalatingEntityResolver:
    """Escalating resolver with the default searchers and window compression."""
    config = config or DiceConfig()
    strategies = default_match_strategies(
        fuzzy_max_distance_ratio=config.fuzzy_max_distance_ratio,
        fuzzy_min_length=config.fuzzy_min_length,
        partial_min_part_length=config.partial_min_part_length,
    )
    searchers: list[CandidateSearcher] = [
        ByIdSearcher(repository),
        ByExactNameSearcher(repository),
        TextSearcher(
            repository,
            strategies,
            top_k=config.text_search_top_k,
            threshold=config.text_search_threshold,
        ),
    ]
    if use_vector:
        searchers.append(
            VectorSearcher(
                repository,
                strategies,
                auto_accept_threshold=config.vector_auto_accept_threshold,
                candidate_threshold=config.vector_candidate_threshold,
            )
        )
    return EscalatingEntityResolver(
        searchers,
        bakeoff=bakeoff,
        context_compressor=WindowContextCompressor(),
        heuristic_only=config.heuristic_only,
        concurrency=config.resolution_concurrency,
    )
