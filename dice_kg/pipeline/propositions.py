"""
Proposition Pipeline

Turns chunks into stored propositions with resolved entity mentions.

Per chunk:
    1. Extract suggested propositions
    2. Drop mentions rejected by the mention filter
    3. Unique mentions -> suggested entities -> resolve (known entities first)
    4. Attach resolved ids to mentions
    5. Optionally revise against the proposition store and persist the outcome

process() wraps the context's resolver in a chain with a fresh
InMemoryEntityResolver, so an entity first seen in chunk 1 is recognised in
chunk 2 even when nothing has been written to the entity store.

Example:
    >>> pipeline = PropositionPipeline(extractor, reviser=reviser, repository=store)
    >>> results = await pipeline.process(chunks, context)
    >>> print(results.stats)
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import assert_never

from dice_kg.extraction.base import PropositionExtractor, SourceAnalysisContext
from dice_kg.extraction.filters import MentionFilter
from dice_kg.resolution.resolvers import (
    ChainedEntityResolver,
    InMemoryEntityResolver,
    KnownEntityResolver,
)
from dice_kg.revision.reviser import PropositionReviser
from dice_kg.storage.base import PropositionRepository
from dice_kg.types import (
    Chunk,
    Contradicted,
    EntityResolution,
    ExistingEntity,
    Generalized,
    Merged,
    NamedEntityData,
    New,
    NewEntity,
    Proposition,
    Reinforced,
    Resolutions,
    RevisionResult,
    SuggestedPropositions,
)

logger = logging.getLogger(__name__)


def _to_persist(result: RevisionResult) -> Proposition | None:
    """The new proposition a revision outcome adds, if any."""
    match result:
        case New() | Generalized():
            return result.proposition
        case Contradicted():
            return result.new
        case Merged() | Reinforced():
            return None
        case _:
            assert_never(result)


def _distinct_by_id(entities) -> list[NamedEntityData]:
    seen: dict[str, NamedEntityData] = {}
    for entity in entities:
        seen.setdefault(entity.id, entity)
    return list(seen.values())


@dataclass
class ChunkPropositionResult:
    chunk_id: str
    suggested_propositions: SuggestedPropositions
    entity_resolutions: Resolutions[EntityResolution]
    propositions: list[Proposition]
    revision_results: list[RevisionResult] = field(default_factory=list)

    def new_entities(self) -> list[NamedEntityData]:
        return [
            r.recommended for r in self.entity_resolutions.resolutions if isinstance(r, NewEntity)
        ]

    def updated_entities(self) -> list[NamedEntityData]:
        return [
            r.existing for r in self.entity_resolutions.resolutions if isinstance(r, ExistingEntity)
        ]

    def propositions_to_persist(self) -> list[Proposition]:
        return [p for p in (_to_persist(r) for r in self.revision_results) if p is not None]


@dataclass
class PropositionResults:
    chunk_results: list[ChunkPropositionResult] = field(default_factory=list)

    @property
    def all_propositions(self) -> list[Proposition]:
        return [p for c in self.chunk_results for p in c.propositions]

    @property
    def revision_results(self) -> list[RevisionResult]:
        return [r for c in self.chunk_results for r in c.revision_results]

    @property
    def has_revision(self) -> bool:
        return bool(self.revision_results)

    @property
    def stats(self) -> Counter[str]:
        """Revision outcomes by kind: new, merged, reinforced, contradicted, generalized."""
        return Counter(r.kind for r in self.revision_results)

    @property
    def fully_resolved_count(self) -> int:
        return sum(1 for p in self.all_propositions if p.is_fully_resolved())

    def propositions_to_persist(self) -> list[Proposition]:
        return [p for c in self.chunk_results for p in c.propositions_to_persist()]

    def new_entities(self) -> list[NamedEntityData]:
        return _distinct_by_id(e for c in self.chunk_results for e in c.new_entities())

    def updated_entities(self) -> list[NamedEntityData]:
        return _distinct_by_id(e for c in self.chunk_results for e in c.updated_entities())


class PropositionPipeline:
    """
    Args:
        extractor: Chunk -> suggested propositions
        reviser: Optional reviser; requires repository
        repository: Proposition store revised against and written to
        mention_filter: Optional filter applied to mentions before resolution
    """

    def __init__(
        self,
        extractor: PropositionExtractor,
        reviser: PropositionReviser | None = None,
        repository: PropositionRepository | None = None,
        mention_filter: MentionFilter | None = None,
    ) -> None:
        if reviser is not None and repository is None:
            raise ValueError("A proposition repository is required for revision")
        self.extractor = extractor
        self.reviser = reviser
        self.repository = repository
        self.mention_filter = mention_filter

    @property
    def has_revision(self) -> bool:
        return self.reviser is not None

    async def process_chunk(self, chunk: Chunk, context: SourceAnalysisContext) -> ChunkPropositionResult:
        logger.debug(f"Processing chunk: {chunk.id}")

        suggested = self._filter_mentions(await self.extractor.extract(chunk, context))
        suggested_entities = self.extractor.to_suggested_entities(suggested, chunk.text)

        resolver = KnownEntityResolver.with_known_entities(context.known_entities, context.entity_resolver)
        resolutions = await resolver.resolve(suggested_entities, context.schema)
        propositions = self.extractor.resolve_propositions(suggested, resolutions, context)
        logger.debug(
            f"Chunk {chunk.id}: {len(propositions)} propositions, "
            f"{len(resolutions.resolutions)} entity resolutions"
        )

        revision_results: list[RevisionResult] = []
        if self.reviser is not None and self.repository is not None:
            revision_results = await self.reviser.revise_all(propositions, self.repository)
            await self._persist(self.repository, revision_results)
            counts = Counter(r.kind for r in revision_results)
            logger.debug(f"Revised {len(revision_results)} propositions: {dict(counts)}")

        return ChunkPropositionResult(
            chunk_id=chunk.id,
            suggested_propositions=suggested,
            entity_resolutions=resolutions,
            propositions=propositions,
            revision_results=revision_results,
        )

    async def process(self, chunks: list[Chunk], context: SourceAnalysisContext) -> PropositionResults:
        logger.info(f"Processing {len(chunks)} chunks{' with revision' if self.has_revision else ''}")

        cross_chunk = context.with_entity_resolver(
            ChainedEntityResolver([context.entity_resolver, InMemoryEntityResolver()])
        )
        results = PropositionResults()
        for chunk in chunks:
            results.chunk_results.append(await self.process_chunk(chunk, cross_chunk))

        all_propositions = results.all_propositions
        if results.has_revision:
            stats = results.stats
            logger.info(
                f"Extracted {len(all_propositions)} propositions from {len(chunks)} chunks: "
                f"{stats['new']} new, {stats['generalized']} generalized, {stats['merged']} merged, "
                f"{stats['reinforced']} reinforced, {stats['contradicted']} contradicted "
                f"({results.fully_resolved_count} fully resolved)"
            )
        else:
            logger.info(
                f"Extracted {len(all_propositions)} propositions from {len(chunks)} chunks "
                f"({results.fully_resolved_count} fully resolved)"
            )
        return results

    def _filter_mentions(self, suggested: SuggestedPropositions) -> SuggestedPropositions:
        if self.mention_filter is None:
            return suggested
        propositions = []
        for proposition in suggested.propositions:
            kept = [m for m in proposition.mentions if self.mention_filter.is_valid(m, proposition.text)]
            propositions.append(proposition.model_copy(update={"mentions": kept}))
        return suggested.model_copy(update={"propositions": propositions})

    @staticmethod
    async def _persist(repository: PropositionRepository, results: list[RevisionResult]) -> None:
        """Write revision outcomes so later chunks revise against them."""
        for result in results:
            match result:
                case Merged() | Reinforced():
                    await repository.save(result.revised)
                case Contradicted():
                    await repository.save(result.original)
                    await repository.save(result.new)
                case New() | Generalized():
                    await repository.save(result.proposition)
                case _:
                    assert_never(result)
