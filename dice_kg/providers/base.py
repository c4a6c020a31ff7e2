"""
Provider Contracts

Resolution, revision and extraction talk to models only through these two
interfaces, so tests can substitute AsyncMock or deterministic fakes.

Failures surface as exceptions. Callers (bakeoff, agentic searcher,
reviser, extractor) catch them at their own boundary and degrade to "no
match" / "no propositions" rather than failing the batch.
"""

from abc import ABC, abstractmethod
from typing import TypeVar

from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMProvider(ABC):
    """
    A chat model.

    generate() is used where the answer is parsed leniently from free text
    (candidate verification and selection); generate_structured() where the
    answer is a pydantic schema (classification, extraction, agentic steps).
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        ...

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: type[SchemaT],
        *,
        system: str | None = None,
    ) -> SchemaT:
        """Return an instance of schema; raise when the model output does not parse."""
        ...


class EmbeddingProvider(ABC):
    """Text embeddings for entity and proposition vector search."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """One vector per text, in input order."""
        ...

    async def embed_single(self, text: str) -> list[float]:
        [vector] = await self.embed([text])
        return vector
