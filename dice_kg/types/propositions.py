"""
Proposition Types

Propositions are atomic natural-language claims with confidence and decay.

Storage Models:
    - Proposition: Persisted claim; changed only through copy methods
    - EntityMention: A span in the proposition referring to an entity
    - PropositionStatus, MentionRole: Enums

Extraction Models (LLM output):
    - SuggestedMention, SuggestedProposition, SuggestedPropositions
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PropositionStatus(str, Enum):
    """Lifecycle status of a proposition."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"
    CONTRADICTED = "contradicted"
    RETRACTED = "retracted"
    PROMOTED = "promoted"


class MentionRole(str, Enum):
    """Role of a mention within its proposition."""

    SUBJECT = "subject"  # "Jim" in "Jim knows Neo4j"
    OBJECT = "object"  # "Neo4j" in "Jim knows Neo4j"
    OTHER = "other"


class EntityMention(BaseModel):
    """A span of proposition text that refers to an entity."""

    model_config = ConfigDict(frozen=True)

    span: str
    type: str
    resolved_id: str | None = None
    role: MentionRole = MentionRole.OTHER
    hints: dict[str, Any] = Field(default_factory=dict)

    def with_resolved_id(self, resolved_id: str | None) -> "EntityMention":
        return self.model_copy(update={"resolved_id": resolved_id})

    def info_string(self) -> str:
        return f"{self.span}:{self.type}->{self.resolved_id or '?'}"


class Proposition(BaseModel):
    """
    A stored claim.

    Attributes:
        id: Stable identifier
        context_id: Tenant/session scope
        text: The claim in natural language
        mentions: Entity mentions, in order
        confidence: Certainty in [0, 1]
        decay: Staleness rate in [0, 1] (0 = permanent)
        importance: How much the claim matters, independent of confidence
        grounding: Chunk ids the claim was derived from
        status: Lifecycle status
        level: Abstraction level (0 = raw, 1+ = derived from source_ids)
        reinforce_count: Times the claim was merged or reinforced
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    context_id: str
    text: str
    mentions: list[EntityMention] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    decay: float = Field(default=0.0, ge=0.0, le=1.0)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str | None = None
    grounding: list[str] = Field(default_factory=list)
    created: datetime = Field(default_factory=_utcnow)
    revised: datetime = Field(default_factory=_utcnow)
    status: PropositionStatus = PropositionStatus.ACTIVE
    level: int = Field(default=0, ge=0)
    source_ids: list[str] = Field(default_factory=list)
    reinforce_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _abstractions_have_sources(self) -> "Proposition":
        if self.level > 0 and not self.source_ids:
            raise ValueError("Propositions with level > 0 must have source_ids")
        return self

    def with_status(self, status: PropositionStatus) -> "Proposition":
        return self.model_copy(update={"status": status, "revised": _utcnow()})

    def with_confidence(self, confidence: float) -> "Proposition":
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {confidence}")
        return self.model_copy(update={"confidence": confidence, "revised": _utcnow()})

    def with_grounding(self, chunk_ids: list[str]) -> "Proposition":
        """Copy with chunk ids appended to grounding, without duplicates."""
        grounding = list(dict.fromkeys([*self.grounding, *chunk_ids]))
        return self.model_copy(update={"grounding": grounding})

    def with_mentions(self, mentions: list[EntityMention]) -> "Proposition":
        return self.model_copy(update={"mentions": list(mentions)})

    def effective_confidence_at(self, as_of: datetime, decay_k: float = 2.0) -> float:
        """confidence * exp(-decay * k * age_in_whole_days), age measured from revised."""
        age_days = max(0, (as_of - self.revised).days)
        return self.confidence * math.exp(-self.decay * decay_k * age_days)

    def effective_confidence(self, decay_k: float = 2.0, now: datetime | None = None) -> float:
        return self.effective_confidence_at(now or _utcnow(), decay_k)

    def with_decay_applied(self, decay_k: float = 2.0) -> "Proposition":
        """Copy whose confidence is the current effective confidence. Used for ranking."""
        effective = min(1.0, max(0.0, self.effective_confidence(decay_k)))
        return self.model_copy(update={"confidence": effective})

    def is_fully_resolved(self) -> bool:
        return all(m.resolved_id is not None for m in self.mentions)

    def info_string(self) -> str:
        mentions = ", ".join(m.info_string() for m in self.mentions)
        return (
            f"Proposition({self.text!r}, conf={self.confidence:.2f}, "
            f"decay={self.decay:.2f}, status={self.status.value}, mentions=[{mentions}])"
        )


# -----------------------------------------------------------------------------
# Extraction Models (LLM output)
# -----------------------------------------------------------------------------


class SuggestedMention(BaseModel):
    """An entity mention proposed by the extractor."""

    span: str = Field(
        ..., description="The text as it appears in the proposition (e.g., Jim). No quotes."
    )
    type: str = Field(
        ..., description="Suggested entity type from the schema (e.g., 'Person', 'Technology')"
    )
    suggested_id: str | None = Field(
        default=None, description="Entity ID if identifiable, null otherwise"
    )
    role: str = Field(default="OTHER", description="Role: SUBJECT, OBJECT, or OTHER")

    def parsed_role(self) -> MentionRole:
        try:
            return MentionRole(self.role.strip().lower())
        except ValueError:
            return MentionRole.OTHER

    def to_entity_mention(self, resolved_id: str | None = None) -> EntityMention:
        hints: dict[str, Any] = {}
        if self.suggested_id:
            hints["suggested_id"] = self.suggested_id
        return EntityMention(
            span=self.span,
            type=self.type,
            resolved_id=resolved_id if resolved_id is not None else self.suggested_id,
            role=self.parsed_role(),
            hints=hints,
        )


class SuggestedProposition(BaseModel):
    """A proposition proposed by the extractor."""

    text: str = Field(
        ..., description="The factual statement in natural language (e.g., 'Jim is an expert in GOAP')"
    )
    mentions: list[SuggestedMention] = Field(
        default_factory=list,
        description="Entities mentioned in this statement. Omit any you are unsure of.",
    )
    confidence: float = Field(..., description="Certainty of this fact (0.0-1.0)")
    decay: float = Field(
        default=0.0, description="How quickly this becomes stale (0.0=permanent, 1.0=very temporary)"
    )
    importance: float = Field(
        default=0.5, description="How much this fact matters to remember (0.0=trivial, 1.0=critical)"
    )
    reasoning: str = Field(default="", description="Why this was extracted")

    def to_proposition(self, context_id: str, chunk_ids: list[str]) -> Proposition:
        """Build a stored proposition, clamping scores into [0, 1]."""

        def clamp(value: float) -> float:
            return min(1.0, max(0.0, value))

        return Proposition(
            context_id=context_id,
            text=self.text,
            mentions=[m.to_entity_mention() for m in self.mentions],
            confidence=clamp(self.confidence),
            decay=clamp(self.decay),
            importance=clamp(self.importance),
            reasoning=self.reasoning or None,
            grounding=list(chunk_ids),
        )


class SuggestedPropositions(BaseModel):
    """Propositions extracted from one chunk."""

    chunk_id: str
    propositions: list[SuggestedProposition] = Field(default_factory=list)
