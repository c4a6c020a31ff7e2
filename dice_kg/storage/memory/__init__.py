"""
In-memory stores for tests, demos and single-process sessions.
"""

from dice_kg.storage.memory.entities import InMemoryNamedEntityRepository
from dice_kg.storage.memory.propositions import InMemoryPropositionRepository
from dice_kg.storage.memory.text_query import TextQuery

__all__ = [
    "InMemoryNamedEntityRepository",
    "InMemoryPropositionRepository",
    "TextQuery",
]
