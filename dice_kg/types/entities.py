"""
Entity Types

Entities are the named things a knowledge graph keeps identity for.

Storage Models:
    - NamedEntityData: Persisted entity with stable id and a label set that only grows

Extraction Models (ephemeral, per chunk):
    - SuggestedEntity: Candidate entity proposed by an extractor
    - SuggestedEntities: The suggestions from one input plus optional source text
    - KnownEntity: Caller-supplied entity that suggestions should bind to first
"""

from __future__ import annotations

import uuid
from functools import cached_property
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dice_kg.utils.text import simple_label


class NamedEntityData(BaseModel):
    """
    A persisted entity.

    The id never changes once assigned. Merges return a new value whose
    label set is the union of the inputs.

    Attributes:
        id: Stable identifier (UUID unless supplied)
        name: Canonical name
        description: Free-text description
        labels: Type labels, simple names only
        properties: Arbitrary property map
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    labels: frozenset[str] = frozenset()
    properties: dict[str, Any] = Field(default_factory=dict)

    def with_labels(self, labels: set[str] | frozenset[str]) -> "NamedEntityData":
        """Copy with additional labels. Existing labels are kept."""
        return self.model_copy(update={"labels": self.labels | {simple_label(l) for l in labels}})

    def info_string(self) -> str:
        labels = ", ".join(sorted(self.labels))
        return f"{self.name} ({labels}) [{self.id}]"


class SuggestedEntity(BaseModel):
    """
    Candidate entity mention produced by an extractor for one chunk.

    Attributes:
        labels: Type labels, most specific first
        name: Name as it appears in the text
        summary: What the text says about the entity
        chunk_id: Chunk the suggestion came from
        id: Pre-known id, when the extractor recognised a specific entity
        properties: Additional properties
    """

    labels: list[str] = Field(..., description="Type labels, most specific first")
    name: str = Field(..., description="Entity name as it appears in the text")
    summary: str = Field(default="", description="Brief description from this chunk")
    chunk_id: str | None = Field(default=None, description="Source chunk id")
    id: str | None = Field(default=None, description="Pre-known entity id, if any")
    properties: dict[str, Any] = Field(default_factory=dict)

    @cached_property
    def suggested_entity(self) -> NamedEntityData:
        """The entity this suggestion would create. Computed once per suggestion."""
        return NamedEntityData(
            id=self.id or str(uuid.uuid4()),
            name=self.name,
            description=self.summary,
            labels=frozenset(simple_label(label) for label in self.labels),
            properties=dict(self.properties),
        )

    @property
    def primary_label(self) -> str:
        return self.labels[0] if self.labels else "Entity"


class SuggestedEntities(BaseModel):
    """
    Entities suggested from a single input. They may duplicate existing entities.

    Attributes:
        suggested_entities: The suggestions
        source_text: Optional source text (conversation, document) used as
            context during LLM arbitration
    """

    suggested_entities: list[SuggestedEntity] = Field(default_factory=list)
    source_text: str | None = None

    @property
    def chunk_ids(self) -> set[str]:
        return {e.chunk_id for e in self.suggested_entities if e.chunk_id is not None}


class KnownEntity(BaseModel):
    """
    An entity the caller already knows is in play, such as the current user.

    reference_only entities are bound to but never updated.
    """

    entity: NamedEntityData
    role: str = ""
    reference_only: bool = False

    @classmethod
    def as_current_user(cls, entity: NamedEntityData) -> "KnownEntity":
        return cls(entity=entity, role="The user in the conversation")
