"""
Type Definitions

Pydantic models for all data structures.

Storage Models:
    - NamedEntityData - Persisted entities
    - Proposition, EntityMention - Persisted claims
    - RelationshipInstance - Typed edges
    - Chunk - Source text segments

Extraction Models (ephemeral):
    - SuggestedEntity, SuggestedEntities, KnownEntity
    - SuggestedProposition, SuggestedMention, SuggestedPropositions
    - SuggestedRelationship, SuggestedRelationships

Resolution Models:
    - NewEntity, ExistingEntity, VetoedEntity, ReferenceOnlyEntity, Resolutions
    - NewRelationship, ExistingRelationship
    - Merged, Reinforced, Contradicted, Generalized, New (proposition revision)

LLM Response Models:
    - AgenticSearchStep, ClassificationResponse, BatchClassificationResponse,
      PropositionExtractionResponse
"""

from dice_kg.types.chunks import Chunk
from dice_kg.types.entities import (
    KnownEntity,
    NamedEntityData,
    SuggestedEntities,
    SuggestedEntity,
)
from dice_kg.types.propositions import (
    EntityMention,
    MentionRole,
    Proposition,
    PropositionStatus,
    SuggestedMention,
    SuggestedProposition,
    SuggestedPropositions,
)
from dice_kg.types.relationships import (
    ExistingRelationship,
    NewRelationship,
    RelationshipInstance,
    RelationshipResolution,
    SuggestedRelationship,
    SuggestedRelationships,
)
from dice_kg.types.resolutions import (
    EntityResolution,
    ExistingEntity,
    NewEntity,
    ReferenceOnlyEntity,
    Resolutions,
    VetoedEntity,
)
from dice_kg.types.results import (
    AgenticSearchResult,
    AgenticSearchStep,
    BatchClassificationResponse,
    ClassificationItem,
    ClassificationResponse,
    ClassifiedProposition,
    PropositionClassifications,
    PropositionExtractionResponse,
    PropositionRelation,
)
from dice_kg.types.revisions import (
    Contradicted,
    Generalized,
    Merged,
    New,
    Reinforced,
    RevisionResult,
)

__all__ = [
    # Storage
    "Chunk",
    "NamedEntityData",
    "Proposition",
    "EntityMention",
    "MentionRole",
    "PropositionStatus",
    "RelationshipInstance",
    # Extraction
    "SuggestedEntity",
    "SuggestedEntities",
    "KnownEntity",
    "SuggestedMention",
    "SuggestedProposition",
    "SuggestedPropositions",
    "SuggestedRelationship",
    "SuggestedRelationships",
    # Resolution
    "EntityResolution",
    "NewEntity",
    "ExistingEntity",
    "VetoedEntity",
    "ReferenceOnlyEntity",
    "Resolutions",
    "RelationshipResolution",
    "NewRelationship",
    "ExistingRelationship",
    "RevisionResult",
    "Merged",
    "Reinforced",
    "Contradicted",
    "Generalized",
    "New",
    # LLM responses
    "AgenticSearchStep",
    "AgenticSearchResult",
    "PropositionRelation",
    "ClassificationItem",
    "ClassificationResponse",
    "PropositionClassifications",
    "BatchClassificationResponse",
    "ClassifiedProposition",
    "PropositionExtractionResponse",
]
