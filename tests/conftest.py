"""Shared fixtures: a deterministic embedding provider, a schema and in-memory stores."""

import re

import pytest

from dice_kg.providers.base import EmbeddingProvider
from dice_kg.schema import DomainType, InMemoryDataDictionary, PropertyDefinition
from dice_kg.storage import InMemoryNamedEntityRepository, InMemoryPropositionRepository


class BagOfWordsEmbeddingProvider(EmbeddingProvider):
    """
    Token-count vectors over a vocabulary grown on demand.

    Texts with the same tokens embed identically, so cosine similarity is
    exactly predictable in tests.
    """

    def __init__(self, dimensions: int = 512) -> None:
        self.dimensions = dimensions
        self.embedded_texts: list[str] = []
        self._vocabulary: dict[str, int] = {}

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            index = self._vocabulary.setdefault(token, len(self._vocabulary) % self.dimensions)
            vector[index] += 1.0
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embedded_texts.extend(texts)
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.embedded_texts.append(text)
        return self._vector(text)

    @property
    def model_name(self) -> str:
        return "bag-of-words"


@pytest.fixture
def embeddings() -> BagOfWordsEmbeddingProvider:
    return BagOfWordsEmbeddingProvider()


@pytest.fixture
def schema() -> InMemoryDataDictionary:
    """Person > Detective/Doctor/Composer, a closed Work type and a validated Company name."""
    return InMemoryDataDictionary([
        DomainType(name="NamedEntity"),
        DomainType(name="Person", parent_names=["NamedEntity"]),
        DomainType(name="Detective", parent_names=["Person"]),
        DomainType(name="Doctor", parent_names=["Person"]),
        DomainType(name="Composer", parent_names=["Person"]),
        DomainType(name="Place", parent_names=["NamedEntity"]),
        DomainType(name="Work", creation_permitted=False),
        DomainType(
            name="Company",
            properties=[
                PropertyDefinition(
                    name="name",
                    min_length=2,
                    disallowed_values=frozenset({"company", "the company"}),
                )
            ],
        ),
    ])


@pytest.fixture
def entity_repository(embeddings) -> InMemoryNamedEntityRepository:
    return InMemoryNamedEntityRepository(embeddings)


@pytest.fixture
def proposition_repository(embeddings) -> InMemoryPropositionRepository:
    return InMemoryPropositionRepository(embeddings)
