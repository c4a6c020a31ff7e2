"""
Result Types

Structured LLM responses and intermediate results used during resolution
and revision.

Resolution Models:
    - AgenticSearchStep: One step of the agentic entity search loop
    - AgenticSearchResult: The agentic searcher's final answer

Revision Models:
    - PropositionRelation: Relation of a new proposition to a stored one
    - ClassificationItem, ClassificationResponse: Single-proposition classification
    - PropositionClassifications, BatchClassificationResponse: Batch classification
    - ClassifiedProposition: A candidate paired with its parsed classification

Extraction Models:
    - PropositionExtractionResponse: Propositions extracted from one chunk
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from dice_kg.types.propositions import Proposition, SuggestedProposition

# -----------------------------------------------------------------------------
# Resolution Models
# -----------------------------------------------------------------------------


class AgenticSearchStep(BaseModel):
    """One step of the agentic search: run a search, or answer."""

    action: Literal["text_search", "vector_search", "answer"] = Field(
        ..., description="text_search or vector_search to look for candidates, answer when done"
    )
    query: str = Field(default="", description="Search query for text_search/vector_search")
    matched_entity_id: str | None = Field(
        default=None,
        description="When answering: the ID of the matched entity, or null if no match was found",
    )
    reason: str = Field(
        default="", description="Brief explanation of this step or of the final answer"
    )


class AgenticSearchResult(BaseModel):
    """Final answer of the agentic searcher."""

    matched_entity_id: str | None = Field(
        default=None, description="The ID of the matched entity, or null if no match was found"
    )
    reason: str = Field(
        default="", description="Why this entity was selected or why no match was found"
    )


# -----------------------------------------------------------------------------
# Revision Models
# -----------------------------------------------------------------------------


class PropositionRelation(str, Enum):
    """Relation of a new proposition to a stored candidate."""

    IDENTICAL = "IDENTICAL"
    SIMILAR = "SIMILAR"
    CONTRADICTORY = "CONTRADICTORY"
    GENERALIZES = "GENERALIZES"
    UNRELATED = "UNRELATED"

    @classmethod
    def parse(cls, value: str) -> "PropositionRelation":
        """Lenient parse; anything unrecognised is UNRELATED."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNRELATED


class ClassificationItem(BaseModel):
    """LLM classification of one candidate."""

    proposition_id: str = Field(
        ..., description="Index of the candidate proposition as given in the prompt (e.g. '0')"
    )
    relation: str = Field(
        ..., description="IDENTICAL, SIMILAR, CONTRADICTORY, GENERALIZES, or UNRELATED"
    )
    similarity: float = Field(default=0.0, description="Semantic similarity 0.0-1.0")
    reasoning: str = Field(default="", description="Brief justification")


class ClassificationResponse(BaseModel):
    """Classifications of all candidates for one new proposition."""

    classifications: list[ClassificationItem] = Field(default_factory=list)


class PropositionClassifications(BaseModel):
    """Classifications for one new proposition within a batch."""

    proposition_index: int = Field(
        ..., description="Index of the NEW proposition in the batch, as given in the prompt"
    )
    classifications: list[ClassificationItem] = Field(default_factory=list)


class BatchClassificationResponse(BaseModel):
    """Classifications for several new propositions in one call."""

    propositions: list[PropositionClassifications] = Field(default_factory=list)


class ClassifiedProposition(BaseModel):
    """A stored candidate with its parsed classification."""

    proposition: Proposition
    relation: PropositionRelation
    similarity: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""


# -----------------------------------------------------------------------------
# Extraction Models
# -----------------------------------------------------------------------------


class PropositionExtractionResponse(BaseModel):
    """Propositions extracted from one chunk."""

    propositions: list[SuggestedProposition] = Field(default_factory=list)
