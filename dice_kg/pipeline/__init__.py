"""
Pipelines

    - builder: multi-pass knowledge graph builder producing a KnowledgeGraphDelta
    - propositions: proposition pipeline (extract, resolve, revise, persist)
    - delta: merges and the knowledge graph delta
    - policies: entity/relationship merge policies and relationship resolution
"""

from dice_kg.pipeline.builder import (
    DiceEvent,
    DiceEventListener,
    EntityCreatedEvent,
    EntityMergedEvent,
    MultiPassKnowledgeGraphBuilder,
    SourceAnalyzer,
)
from dice_kg.pipeline.delta import KnowledgeGraphDelta, Merge, Merges
from dice_kg.pipeline.policies import (
    AcceptRecommendedRelationshipMergePolicy,
    AcceptSuggestionRelationshipResolver,
    EntityMergePolicy,
    RelationshipMergePolicy,
    RelationshipResolver,
    UseNewEntityMergePolicy,
)
from dice_kg.pipeline.propositions import (
    ChunkPropositionResult,
    PropositionPipeline,
    PropositionResults,
)

__all__ = [
    "SourceAnalyzer",
    "MultiPassKnowledgeGraphBuilder",
    "EntityCreatedEvent",
    "EntityMergedEvent",
    "DiceEvent",
    "DiceEventListener",
    "KnowledgeGraphDelta",
    "Merge",
    "Merges",
    "EntityMergePolicy",
    "UseNewEntityMergePolicy",
    "RelationshipMergePolicy",
    "AcceptRecommendedRelationshipMergePolicy",
    "RelationshipResolver",
    "AcceptSuggestionRelationshipResolver",
    "PropositionPipeline",
    "ChunkPropositionResult",
    "PropositionResults",
]
