"""
Resolution Types

The outcome of deciding whether a suggested entity refers to something
already stored.

Variants (closed set, see EntityResolution):
    - NewEntity: nothing matched; recommended is the suggested entity
    - ExistingEntity: matched; recommended is a fresh merge of existing + suggested
    - VetoedEntity: not to be created; recommended is None
    - ReferenceOnlyEntity: matched an entity that is referenced but never updated

Consumers dispatch with ``match`` and finish with ``assert_never`` so a new
variant fails type checking everywhere it is not handled.
"""

from __future__ import annotations

from functools import cached_property
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from dice_kg.types.entities import NamedEntityData, SuggestedEntity
from dice_kg.utils.text import simple_label


class NewEntity(BaseModel):
    """No entity existed; create the suggested one."""

    kind: Literal["new"] = "new"
    suggested: SuggestedEntity

    @property
    def existing(self) -> None:
        return None

    @property
    def recommended(self) -> NamedEntityData:
        return self.suggested.suggested_entity

    def info_string(self) -> str:
        return f"NewEntity({self.recommended.info_string()})"


class ExistingEntity(BaseModel):
    """
    An existing entity matched the suggestion.

    The recommended entity keeps the existing id and name, unions labels
    (a Person later identified as a Detective carries both) and overlays
    suggested properties on existing ones.
    """

    kind: Literal["existing"] = "existing"
    suggested: SuggestedEntity
    existing: NamedEntityData

    @cached_property
    def recommended(self) -> NamedEntityData:
        labels = {simple_label(l) for l in self.existing.labels} | {
            simple_label(l) for l in self.suggested.labels
        }
        return NamedEntityData(
            id=self.existing.id,
            name=self.existing.name,
            description=self.existing.description or self.suggested.summary,
            labels=frozenset(labels),
            properties={**self.existing.properties, **self.suggested.properties},
        )

    def info_string(self) -> str:
        return f"ExistingEntity({self.existing.info_string()})"


class VetoedEntity(BaseModel):
    """The suggestion must not progress (creation not permitted)."""

    kind: Literal["vetoed"] = "vetoed"
    suggested: SuggestedEntity
    reason: str = ""

    @property
    def existing(self) -> None:
        return None

    @property
    def recommended(self) -> None:
        return None

    def info_string(self) -> str:
        return f"VetoedEntity({self.suggested.name}: {self.reason})"


class ReferenceOnlyEntity(BaseModel):
    """Matched an entity that may be linked to but not modified."""

    kind: Literal["reference_only"] = "reference_only"
    suggested: SuggestedEntity
    existing: NamedEntityData

    @property
    def recommended(self) -> NamedEntityData:
        return self.existing

    def info_string(self) -> str:
        return f"ReferenceOnlyEntity({self.existing.info_string()})"


EntityResolution = NewEntity | ExistingEntity | VetoedEntity | ReferenceOnlyEntity

R = TypeVar("R")


class Resolutions(BaseModel, Generic[R]):
    """A batch of resolutions tagged with the chunk ids it was derived from."""

    chunk_ids: set[str] = Field(default_factory=set)
    resolutions: list[R] = Field(default_factory=list)

    def info_string(self) -> str:
        lines = [getattr(r, "info_string", lambda r=r: str(r))() for r in self.resolutions]
        return "Resolutions(resolutions:\n\t" + "\n\t".join(lines) + ")"
