"""
Proposition Extraction

    - PropositionExtractor / LlmPropositionExtractor: chunk -> suggested propositions
    - SourceAnalysisContext: context id, schema, resolver and known entities
    - Mention filters applied before entity resolution
"""

from dice_kg.extraction.base import (
    MENTION_ENTITY_SUMMARY,
    PropositionExtractor,
    SourceAnalysisContext,
    mention_key,
    mention_to_suggested_entity,
)
from dice_kg.extraction.filters import (
    CompositeMentionFilter,
    MentionFilter,
    ObservableMentionFilter,
    PropositionDuplicateFilter,
    SchemaValidatedMentionFilter,
)
from dice_kg.extraction.llm import ExtractionPerspective, LlmPropositionExtractor

__all__ = [
    "SourceAnalysisContext",
    "PropositionExtractor",
    "LlmPropositionExtractor",
    "ExtractionPerspective",
    "MENTION_ENTITY_SUMMARY",
    "mention_key",
    "mention_to_suggested_entity",
    "MentionFilter",
    "SchemaValidatedMentionFilter",
    "PropositionDuplicateFilter",
    "CompositeMentionFilter",
    "ObservableMentionFilter",
]
