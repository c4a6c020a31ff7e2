"""
DICE KG - Entity Resolution and Proposition Revision

Keeps a knowledge graph consistent as new text arrives: suggested entities
are matched against stored ones through an escalating chain of searchers
and an optional LLM arbiter, and extracted propositions are merged,
reinforced, contradicted or added against the proposition store.

Example:
    >>> from dice_kg import create_escalating_resolver, LlmCandidateBakeoff
    >>> resolver = create_escalating_resolver(repository, bakeoff=LlmCandidateBakeoff(llm))
    >>> resolutions = await resolver.resolve(suggested_entities, schema)

Main Classes:
    EscalatingEntityResolver: Cheapest-first entity resolution
    LlmPropositionReviser: Proposition revision against a store
    PropositionPipeline: Chunks -> resolved, revised propositions
    MultiPassKnowledgeGraphBuilder: Chunks -> KnowledgeGraphDelta
    DiceConfig: Configuration management
"""

__version__ = "0.1.0"

_RESOLUTION = (
    "EscalatingEntityResolver",
    "create_escalating_resolver",
    "LlmCandidateBakeoff",
    "InMemoryEntityResolver",
    "ChainedEntityResolver",
    "KnownEntityResolver",
    "AlwaysCreateEntityResolver",
)
_PIPELINE = ("PropositionPipeline", "MultiPassKnowledgeGraphBuilder", "KnowledgeGraphDelta")


def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "DiceConfig":
        from dice_kg.config.settings import DiceConfig
        return DiceConfig

    if name in _RESOLUTION:
        from dice_kg import resolution
        return getattr(resolution, name)

    if name == "LlmPropositionReviser":
        from dice_kg.revision import LlmPropositionReviser
        return LlmPropositionReviser

    if name in _PIPELINE:
        from dice_kg import pipeline
        return getattr(pipeline, name)

    if name in ("InMemoryNamedEntityRepository", "InMemoryPropositionRepository"):
        from dice_kg import storage
        return getattr(storage, name)

    if name in ("InMemoryDataDictionary", "DomainType"):
        from dice_kg import schema
        return getattr(schema, name)

    raise AttributeError(f"module 'dice_kg' has no attribute {name!r}")


__all__ = [
    "DiceConfig",
    *_RESOLUTION,
    "LlmPropositionReviser",
    *_PIPELINE,
    "InMemoryNamedEntityRepository",
    "InMemoryPropositionRepository",
    "InMemoryDataDictionary",
    "DomainType",
    "__version__",
]
