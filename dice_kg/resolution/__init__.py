"""
Entity Resolution

Decides whether suggested entities are new or already stored.

Components:
    - matching: name/label match strategies and their chain
    - searchers: candidate searchers, cheapest first
    - agentic: LLM-driven searcher
    - compression: source text compression for LLM prompts
    - bakeoff: LLM arbitration between candidates
    - escalating: the escalating resolver
    - resolvers: always-create, in-memory, chained and known-entity resolvers

Example:
    >>> from dice_kg.resolution import create_escalating_resolver, LlmCandidateBakeoff
    >>> resolver = create_escalating_resolver(repository, bakeoff=LlmCandidateBakeoff(llm))
    >>> resolutions = await resolver.resolve(suggested_entities, schema)
"""

from dice_kg.resolution.agentic import AgenticCandidateSearcher
from dice_kg.resolution.bakeoff import CandidateBakeoff, LlmCandidateBakeoff, PromptMode
from dice_kg.resolution.base import EntityResolver
from dice_kg.resolution.compression import (
    AdaptiveContextCompressor,
    ContextCompressor,
    NoOpContextCompressor,
    SentenceContextCompressor,
    WindowContextCompressor,
)
from dice_kg.resolution.escalating import (
    EntityResolutionTrace,
    EscalatingEntityResolver,
    create_escalating_resolver,
    creation_policy,
)
from dice_kg.resolution.matching import (
    ChainedMatchStrategy,
    ExactNameStrategy,
    FuzzyNameStrategy,
    LabelCompatibilityStrategy,
    MatchResult,
    MatchStrategy,
    NormalizedNameStrategy,
    PartialNameStrategy,
    default_entity_matching_strategies,
    default_match_strategies,
)
from dice_kg.resolution.resolvers import (
    AlwaysCreateEntityResolver,
    ChainedEntityResolver,
    InMemoryEntityResolver,
    KnownEntityResolver,
)
from dice_kg.resolution.searchers import (
    ByExactNameSearcher,
    ByIdSearcher,
    CandidateSearcher,
    FuzzyNameSearcher,
    NormalizedNameSearcher,
    PartialNameSearcher,
    ResolutionLevel,
    SearchResult,
    TextSearcher,
    VectorSearcher,
    candidate_searchers_without_vector,
    default_candidate_searchers,
    exact_only_candidate_searchers,
)

__all__ = [
    # Matching
    "MatchResult",
    "MatchStrategy",
    "ExactNameStrategy",
    "NormalizedNameStrategy",
    "PartialNameStrategy",
    "FuzzyNameStrategy",
    "LabelCompatibilityStrategy",
    "ChainedMatchStrategy",
    "default_match_strategies",
    "default_entity_matching_strategies",
    # Searchers
    "ResolutionLevel",
    "SearchResult",
    "CandidateSearcher",
    "ByIdSearcher",
    "ByExactNameSearcher",
    "NormalizedNameSearcher",
    "PartialNameSearcher",
    "FuzzyNameSearcher",
    "TextSearcher",
    "VectorSearcher",
    "AgenticCandidateSearcher",
    "default_candidate_searchers",
    "candidate_searchers_without_vector",
    "exact_only_candidate_searchers",
    # Compression
    "ContextCompressor",
    "NoOpContextCompressor",
    "WindowContextCompressor",
    "SentenceContextCompressor",
    "AdaptiveContextCompressor",
    # Arbitration
    "PromptMode",
    "CandidateBakeoff",
    "LlmCandidateBakeoff",
    # Resolvers
    "EntityResolver",
    "EscalatingEntityResolver",
    "EntityResolutionTrace",
    "create_escalating_resolver",
    "creation_policy",
    "AlwaysCreateEntityResolver",
    "InMemoryEntityResolver",
    "ChainedEntityResolver",
    "KnownEntityResolver",
]
