"""
Revision Types

The outcome of revising a new proposition against stored ones.

Variants (closed set, see RevisionResult):
    - Merged: identical to a stored proposition; revised is the boosted original
    - Reinforced: similar to a stored proposition; revised is the reinforced original
    - Contradicted: contradicts a stored proposition; original is the weakened
      stored proposition, new is stored alongside it
    - Generalized: new proposition generalizes stored ones
    - New: nothing related was found
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from dice_kg.types.propositions import Proposition


class Merged(BaseModel):
    kind: Literal["merged"] = "merged"
    original: Proposition
    revised: Proposition


class Reinforced(BaseModel):
    kind: Literal["reinforced"] = "reinforced"
    original: Proposition
    revised: Proposition


class Contradicted(BaseModel):
    kind: Literal["contradicted"] = "contradicted"
    original: Proposition = Field(..., description="Stored proposition after weakening")
    new: Proposition


class Generalized(BaseModel):
    kind: Literal["generalized"] = "generalized"
    proposition: Proposition
    generalizes: list[Proposition] = Field(default_factory=list)


class New(BaseModel):
    kind: Literal["new"] = "new"
    proposition: Proposition


RevisionResult = Merged | Reinforced | Contradicted | Generalized | New
