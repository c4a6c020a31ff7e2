"""
Multi-Pass Knowledge Graph Builder

For each chunk, in order:
    1. Suggest entities (SourceAnalyzer)
    2. Resolve them (EntityResolver)
    3. Suggest relationships between the resolved entities
    4. Resolve relationships, apply merge policies
    5. Write new and merged convergence targets to the entity repository

Chunks are processed sequentially so an entity written for chunk i is
found by the searches made for chunk i+1.

Example:
    >>> builder = MultiPassKnowledgeGraphBuilder(analyzer, resolver, entity_repository=repo)
    >>> delta = await builder.compute_delta(chunks, context)
    >>> print(delta.info_string())
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import assert_never

from dice_kg.extraction.base import SourceAnalysisContext
from dice_kg.pipeline.delta import EntityMerge, KnowledgeGraphDelta, Merges, RelationshipMerge
from dice_kg.pipeline.policies import (
    AcceptRecommendedRelationshipMergePolicy,
    AcceptSuggestionRelationshipResolver,
    EntityMergePolicy,
    RelationshipMergePolicy,
    RelationshipResolver,
    UseNewEntityMergePolicy,
)
from dice_kg.resolution.base import EntityResolver
from dice_kg.storage.base import EntityNotFoundError, NamedEntityRepository
from dice_kg.types import (
    Chunk,
    EntityResolution,
    ExistingEntity,
    NamedEntityData,
    NewEntity,
    ReferenceOnlyEntity,
    Resolutions,
    SuggestedEntities,
    SuggestedRelationships,
    VetoedEntity,
)

logger = logging.getLogger(__name__)


class SourceAnalyzer(ABC):
    """Suggests entities and relationships for a chunk, typically with an LLM."""

    @abstractmethod
    async def suggest_entities(self, chunk: Chunk, context: SourceAnalysisContext) -> SuggestedEntities:
        ...

    @abstractmethod
    async def suggest_relationships(
        self,
        chunk: Chunk,
        resolutions: Resolutions[EntityResolution],
        context: SourceAnalysisContext,
    ) -> SuggestedRelationships:
        ...


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class EntityCreatedEvent:
    entity: NamedEntityData
    chunk_ids: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class EntityMergedEvent:
    existing: NamedEntityData
    merged: NamedEntityData
    chunk_ids: set[str] = field(default_factory=set)


DiceEvent = EntityCreatedEvent | EntityMergedEvent
DiceEventListener = Callable[[DiceEvent], None]


class MultiPassKnowledgeGraphBuilder:
    """
    Args:
        source_analyzer: Suggests entities and relationships per chunk
        entity_resolver: Resolves suggested entities
        relationship_resolver: Defaults to accepting every suggestion
        entity_merge_policy: Defaults to the recommended entity
        relationship_merge_policy: Defaults to the recommended relationship
        entity_repository: When set, targets are written after each chunk
        listeners: Called with EntityCreatedEvent / EntityMergedEvent
    """

    def __init__(
        self,
        source_analyzer: SourceAnalyzer,
        entity_resolver: EntityResolver,
        *,
        relationship_resolver: RelationshipResolver | None = None,
        entity_merge_policy: EntityMergePolicy | None = None,
        relationship_merge_policy: RelationshipMergePolicy | None = None,
        entity_repository: NamedEntityRepository | None = None,
        listeners: list[DiceEventListener] | None = None,
    ) -> None:
        self.source_analyzer = source_analyzer
        self.entity_resolver = entity_resolver
        self.relationship_resolver = relationship_resolver or AcceptSuggestionRelationshipResolver()
        self.entity_merge_policy = entity_merge_policy or UseNewEntityMergePolicy()
        self.relationship_merge_policy = (
            relationship_merge_policy or AcceptRecommendedRelationshipMergePolicy()
        )
        self.entity_repository = entity_repository
        self.listeners = list(listeners or [])

    async def compute_delta(
        self,
        chunks: Iterable[Chunk],
        context: SourceAnalysisContext,
    ) -> KnowledgeGraphDelta:
        chunks = list(chunks)
        entity_merges: list[EntityMerge] = []
        relationship_merges: list[RelationshipMerge] = []

        for chunk in chunks:
            suggested = await self.source_analyzer.suggest_entities(chunk, context)
            logger.info(f"Chunk {chunk.id}: {len(suggested.suggested_entities)} suggested entities")

            resolutions = await self.entity_resolver.resolve(suggested, context.schema)
            logger.debug(resolutions.info_string())

            suggested_relationships = await self.source_analyzer.suggest_relationships(
                chunk, resolutions, context
            )
            relationship_resolutions = await self.relationship_resolver.resolve_relationships(
                resolutions, suggested_relationships, context.schema
            )

            chunk_entity_merges = self.entity_merge_policy.determine_entities(
                resolutions, context.schema
            ).merges
            await self._apply(chunk_entity_merges, resolutions.chunk_ids or {chunk.id})
            entity_merges.extend(chunk_entity_merges)

            relationship_merges.extend(
                self.relationship_merge_policy.merge_relationships(
                    relationship_resolutions, context.schema
                ).merges
            )

        delta = KnowledgeGraphDelta(
            chunk_ids={c.id for c in chunks},
            entity_merges=Merges(entity_merges),
            relationship_merges=Merges(relationship_merges),
        )
        logger.info(delta.info_string())
        return delta

    async def _apply(self, merges: list[EntityMerge], chunk_ids: set[str]) -> None:
        """Write targets and notify listeners. ReferenceOnly and vetoed entities are untouched."""
        for merge in merges:
            target = merge.convergence_target
            match merge.resolution:
                case VetoedEntity() | ReferenceOnlyEntity():
                    logger.debug(f"Not written ({merge.resolution.kind}): {merge.resolution.suggested.name}")
                case _ if target is None:
                    logger.debug(f"No convergence target for {merge.resolution.suggested.name}")
                case NewEntity():
                    if self.entity_repository is not None:
                        await self.entity_repository.save(target)
                    self._emit(EntityCreatedEvent(entity=target, chunk_ids=chunk_ids))
                case ExistingEntity(existing=existing):
                    if self.entity_repository is not None:
                        try:
                            await self.entity_repository.update(target)
                        except EntityNotFoundError:
                            await self.entity_repository.save(target)
                    self._emit(EntityMergedEvent(existing=existing, merged=target, chunk_ids=chunk_ids))
                case _:
                    assert_never(merge.resolution)

    def _emit(self, event: DiceEvent) -> None:
        for listener in self.listeners:
            listener(event)
