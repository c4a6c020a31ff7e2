"""
Storage

Entity and proposition store contracts and in-memory implementations.

Modules:
    base: Abstract store interfaces, query and result types
    memory/: Dict-backed stores with text query scoring and cosine vector search
"""

from dice_kg.storage.base import (
    EntityNotFoundError,
    NamedEntityRepository,
    PropositionNotFoundError,
    PropositionQuery,
    PropositionRepository,
    SimilarityResult,
)
from dice_kg.storage.memory import InMemoryNamedEntityRepository, InMemoryPropositionRepository

__all__ = [
    "EntityNotFoundError",
    "NamedEntityRepository",
    "PropositionNotFoundError",
    "PropositionQuery",
    "PropositionRepository",
    "SimilarityResult",
    "InMemoryNamedEntityRepository",
    "InMemoryPropositionRepository",
]
