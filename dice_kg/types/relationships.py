"""
Relationship Types

Typed edges between entities, and the outcome of resolving suggested edges.

Variants (closed set, see RelationshipResolution):
    - NewRelationship: recommended is the suggestion
    - ExistingRelationship: recommended is the stored relationship
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from dice_kg.types.resolutions import Resolutions


class RelationshipInstance(BaseModel):
    """A typed edge from source entity to target entity."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    target_id: str
    type: str = Field(..., description="Relationship type, e.g. WORKS_FOR")
    description: str | None = None


class SuggestedRelationship(RelationshipInstance):
    """A relationship proposed by an extractor between resolved entities."""


class SuggestedRelationships(BaseModel):
    """Suggested relationships for one chunk, with the entity resolutions they refer to."""

    entity_resolutions: Resolutions = Field(default_factory=Resolutions)
    suggested_relationships: list[SuggestedRelationship] = Field(default_factory=list)


class NewRelationship(BaseModel):
    """No stored relationship matched; create the suggestion."""

    kind: Literal["new"] = "new"
    suggested: SuggestedRelationship

    @property
    def existing(self) -> None:
        return None

    @property
    def recommended(self) -> RelationshipInstance:
        return self.suggested

    def info_string(self) -> str:
        s = self.suggested
        return f"NewRelationship(type={s.type}, source_id={s.source_id}, target_id={s.target_id})"


class ExistingRelationship(BaseModel):
    """The suggestion matches a stored relationship."""

    kind: Literal["existing"] = "existing"
    suggested: SuggestedRelationship
    existing: RelationshipInstance

    @property
    def recommended(self) -> RelationshipInstance:
        return self.existing

    def info_string(self) -> str:
        s = self.suggested
        return f"ExistingRelationship(type={s.type}, source_id={s.source_id}, target_id={s.target_id})"


RelationshipResolution = NewRelationship | ExistingRelationship
