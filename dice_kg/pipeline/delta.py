"""
Knowledge Graph Delta

The auditable outcome of analysing a batch of chunks: every entity and
relationship resolution paired with its convergence target, the value
actually written to the store (None for vetoed entities).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar, assert_never

from dice_kg.types import (
    EntityResolution,
    ExistingEntity,
    ExistingRelationship,
    NamedEntityData,
    NewEntity,
    NewRelationship,
    ReferenceOnlyEntity,
    RelationshipInstance,
    RelationshipResolution,
    VetoedEntity,
)

R = TypeVar("R")
T = TypeVar("T")


@dataclass(frozen=True)
class Merge(Generic[R, T]):
    """A resolution and the value it converges to."""

    resolution: R
    convergence_target: T | None


@dataclass(frozen=True)
class Merges(Generic[R, T]):
    merges: list[Merge[R, T]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.merges)


EntityMerge = Merge[EntityResolution, NamedEntityData]
RelationshipMerge = Merge[RelationshipResolution, RelationshipInstance]


EntityChange = Literal["new", "merged", "referenced", "vetoed"]


def entity_change(merge: EntityMerge) -> EntityChange:
    """What applying merge does to the entity store."""
    match merge.resolution:
        case VetoedEntity():
            return "vetoed"
        case _ if merge.convergence_target is None:
            return "vetoed"
        case NewEntity():
            return "new"
        case ExistingEntity():
            return "merged"
        case ReferenceOnlyEntity():
            return "referenced"
        case _:
            assert_never(merge.resolution)


@dataclass(frozen=True)
class KnowledgeGraphDelta:
    """
    Attributes:
        chunk_ids: Chunks the delta was computed from
        entity_merges: One merge per entity resolution, in processing order
        relationship_merges: One merge per relationship resolution
    """

    chunk_ids: set[str]
    entity_merges: Merges[EntityResolution, NamedEntityData]
    relationship_merges: Merges[RelationshipResolution, RelationshipInstance]

    def _entity_merges(self, change: EntityChange) -> list[EntityMerge]:
        return [m for m in self.entity_merges.merges if entity_change(m) == change]

    def new_entities(self) -> list[NamedEntityData]:
        return [m.convergence_target for m in self._entity_merges("new") if m.convergence_target is not None]

    def merged_entities(self) -> list[EntityMerge]:
        return self._entity_merges("merged")

    def referenced_entities(self) -> list[NamedEntityData]:
        """Existing entities linked to but never written."""
        return [
            m.convergence_target
            for m in self._entity_merges("referenced")
            if m.convergence_target is not None
        ]

    def new_or_modified_entities(self) -> list[NamedEntityData]:
        """
        Entities to write, one per id.

        The same entity can be new in one chunk and merged in later ones.
        Merged entries come first and take precedence; labels are unioned
        across every entry for the id so an upgraded label is never lost.
        """
        ordered = [m.convergence_target for m in self.merged_entities()] + self.new_entities()
        by_id: dict[str, NamedEntityData] = {}
        for entity in ordered:
            if entity is None:
                continue
            current = by_id.get(entity.id)
            by_id[entity.id] = entity if current is None else current.with_labels(entity.labels)
        return list(by_id.values())

    def new_relationships(self) -> list[NewRelationship]:
        return [
            m.resolution
            for m in self.relationship_merges.merges
            if isinstance(m.resolution, NewRelationship)
        ]

    def merged_relationships(self) -> list[ExistingRelationship]:
        return [
            m.resolution
            for m in self.relationship_merges.merges
            if isinstance(m.resolution, ExistingRelationship)
        ]

    def info_string(self) -> str:
        vetoed = len(self._entity_merges("vetoed"))
        relationship_types = sorted({r.recommended.type for r in self.new_relationships()})
        return (
            f"KnowledgeGraphDelta(chunks={len(self.chunk_ids)}, "
            f"new_entities={len(self.new_entities())}, "
            f"merged_entities={len(self.merged_entities())}, "
            f"referenced_entities={len(self.referenced_entities())}, vetoed={vetoed}, "
            f"new_relationships={len(self.new_relationships())}, "
            f"merged_relationships={len(self.merged_relationships())}, "
            f"relationship_types=[{', '.join(relationship_types)}])"
        )
