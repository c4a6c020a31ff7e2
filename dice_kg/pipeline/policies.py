"""
Merge Policies and Relationship Resolution

Policies turn resolver decisions into convergence targets. The defaults
accept the recommendation unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import assert_never

from dice_kg.pipeline.delta import Merge, Merges
from dice_kg.schema import DataDictionary
from dice_kg.types import (
    EntityResolution,
    ExistingEntity,
    NamedEntityData,
    NewEntity,
    NewRelationship,
    ReferenceOnlyEntity,
    RelationshipInstance,
    RelationshipResolution,
    Resolutions,
    SuggestedRelationships,
    VetoedEntity,
)


class EntityMergePolicy(ABC):
    @abstractmethod
    def determine_entities(
        self,
        resolutions: Resolutions[EntityResolution],
        schema: DataDictionary,
    ) -> Merges[EntityResolution, NamedEntityData]:
        ...


class UseNewEntityMergePolicy(EntityMergePolicy):
    """Converge on the recommended entity; vetoed entities have no target."""

    def determine_entities(self, resolutions, schema) -> Merges[EntityResolution, NamedEntityData]:
        merges = []
        for resolution in resolutions.resolutions:
            match resolution:
                case NewEntity() | ExistingEntity() | ReferenceOnlyEntity():
                    merges.append(Merge(resolution, resolution.recommended))
                case VetoedEntity():
                    merges.append(Merge(resolution, None))
                case _:
                    assert_never(resolution)
        return Merges(merges)


class RelationshipMergePolicy(ABC):
    @abstractmethod
    def merge_relationships(
        self,
        resolutions: Resolutions[RelationshipResolution],
        schema: DataDictionary,
    ) -> Merges[RelationshipResolution, RelationshipInstance]:
        ...


class AcceptRecommendedRelationshipMergePolicy(RelationshipMergePolicy):
    def merge_relationships(self, resolutions, schema) -> Merges[RelationshipResolution, RelationshipInstance]:
        return Merges([Merge(r, r.recommended) for r in resolutions.resolutions])


class RelationshipResolver(ABC):
    @abstractmethod
    async def resolve_relationships(
        self,
        entity_resolutions: Resolutions[EntityResolution],
        suggested_relationships: SuggestedRelationships,
        schema: DataDictionary,
    ) -> Resolutions[RelationshipResolution]:
        ...


class AcceptSuggestionRelationshipResolver(RelationshipResolver):
    """Every suggested relationship is new."""

    async def resolve_relationships(
        self,
        entity_resolutions,
        suggested_relationships,
        schema,
    ) -> Resolutions[RelationshipResolution]:
        return Resolutions(
            chunk_ids=entity_resolutions.chunk_ids,
            resolutions=[
                NewRelationship(suggested=s) for s in suggested_relationships.suggested_relationships
            ],
        )
