"""
In-memory proposition repository with embedding similarity search.

Embeddings are computed once per save and cached by proposition id.
"""

from __future__ import annotations

from dice_kg.providers.base import EmbeddingProvider
from dice_kg.storage.base import (
    PropositionNotFoundError,
    PropositionQuery,
    PropositionRepository,
    SimilarityResult,
)
from dice_kg.types import Proposition
from dice_kg.utils.similarity import cosine_similarities


class InMemoryPropositionRepository(PropositionRepository):
    """Dict-backed proposition store. Not intended for production use."""

    def __init__(self, embedding_provider: EmbeddingProvider) -> None:
        self._embedding_provider = embedding_provider
        self._propositions: dict[str, Proposition] = {}
        self._embeddings: dict[str, list[float]] = {}

    async def save(self, proposition: Proposition) -> Proposition:
        existing = self._propositions.get(proposition.id)
        self._propositions[proposition.id] = proposition
        if existing is None or existing.text != proposition.text:
            self._embeddings[proposition.id] = await self._embedding_provider.embed_single(
                proposition.text
            )
        return proposition

    async def save_all(self, propositions: list[Proposition]) -> None:
        pending = [
            p for p in propositions
            if p.id not in self._propositions or self._propositions[p.id].text != p.text
        ]
        vectors = await self._embedding_provider.embed([p.text for p in pending]) if pending else []
        for proposition, vector in zip(pending, vectors):
            self._embeddings[proposition.id] = vector
        for proposition in propositions:
            self._propositions[proposition.id] = proposition

    async def update(self, proposition: Proposition) -> Proposition:
        if proposition.id not in self._propositions:
            raise PropositionNotFoundError(proposition.id)
        return await self.save(proposition)

    async def find_by_id(self, proposition_id: str) -> Proposition | None:
        return self._propositions.get(proposition_id)

    async def query(self, query: PropositionQuery) -> list[Proposition]:
        return [p for p in self._propositions.values() if query.accepts(p)]

    async def find_similar_with_scores(
        self,
        text: str,
        top_k: int = 10,
        threshold: float = 0.0,
        query: PropositionQuery | None = None,
    ) -> list[SimilarityResult[Proposition]]:
        query = query or PropositionQuery()
        candidates = [
            p for p in self._propositions.values()
            if query.accepts(p) and p.id in self._embeddings
        ]
        if not candidates:
            return []

        query_vector = await self._embedding_provider.embed_single(text)
        scores = cosine_similarities(query_vector, [self._embeddings[p.id] for p in candidates])
        results = [
            SimilarityResult(match=p, score=score)
            for p, score in zip(candidates, scores)
            if score >= threshold
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def delete(self, proposition_id: str) -> bool:
        self._embeddings.pop(proposition_id, None)
        return self._propositions.pop(proposition_id, None) is not None

    async def count(self) -> int:
        return len(self._propositions)

    def clear(self) -> None:
        self._propositions.clear()
        self._embeddings.clear()
