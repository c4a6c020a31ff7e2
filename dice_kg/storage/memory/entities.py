"""
In-memory entity repository.

Not intended for production use. Text search scores names with TextQuery;
vector search embeds "name description" at save time and compares with
cosine similarity.
"""

from __future__ import annotations

from dice_kg.providers.base import EmbeddingProvider
from dice_kg.storage.base import EntityNotFoundError, NamedEntityRepository, SimilarityResult
from dice_kg.storage.memory.text_query import TextQuery
from dice_kg.types import NamedEntityData
from dice_kg.utils.similarity import cosine_similarities
from dice_kg.utils.text import simple_labels


def _has_any_label(entity: NamedEntityData, label_filter: set[str] | None) -> bool:
    if not label_filter:
        return True
    wanted = {l.lower() for l in simple_labels(label_filter)}
    if not wanted:
        return True
    return any(l.lower() in wanted for l in simple_labels(entity.labels))


def _embedding_text(entity: NamedEntityData) -> str:
    return f"{entity.name} {entity.description}".strip()


class InMemoryNamedEntityRepository(NamedEntityRepository):
    """
    Dict-backed entity store.

    Args:
        embedding_provider: Enables vector_search. Without it vector_search
            returns no results.
    """

    def __init__(self, embedding_provider: EmbeddingProvider | None = None) -> None:
        self._embedding_provider = embedding_provider
        self._entities: dict[str, NamedEntityData] = {}
        self._embeddings: dict[str, list[float]] = {}

    async def find_by_id(self, entity_id: str) -> NamedEntityData | None:
        return self._entities.get(entity_id)

    async def find_by_label(self, label: str) -> list[NamedEntityData]:
        return [e for e in self._entities.values() if _has_any_label(e, {label})]

    async def find_all(self) -> list[NamedEntityData]:
        return list(self._entities.values())

    async def text_search(
        self,
        query: str,
        label_filter: set[str] | None = None,
        top_k: int = 10,
        threshold: float = 0.0,
    ) -> list[SimilarityResult[NamedEntityData]]:
        parsed = TextQuery.parse(query)
        if parsed.is_empty:
            return []

        results = []
        for entity in self._entities.values():
            if not _has_any_label(entity, label_filter):
                continue
            score = parsed.score(entity.name)
            if score > 0.0 and score >= threshold:
                results.append(SimilarityResult(match=entity, score=score))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def vector_search(
        self,
        query: str,
        label_filter: set[str] | None = None,
        top_k: int = 10,
        threshold: float = 0.0,
    ) -> list[SimilarityResult[NamedEntityData]]:
        if self._embedding_provider is None or not self._entities:
            return []

        candidates = [
            e for e in self._entities.values()
            if _has_any_label(e, label_filter) and e.id in self._embeddings
        ]
        if not candidates:
            return []

        query_vector = await self._embedding_provider.embed_single(query)
        scores = cosine_similarities(query_vector, [self._embeddings[e.id] for e in candidates])
        results = [
            SimilarityResult(match=entity, score=score)
            for entity, score in zip(candidates, scores)
            if score >= threshold
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def save(self, entity: NamedEntityData) -> NamedEntityData:
        self._entities[entity.id] = entity
        if self._embedding_provider is not None:
            self._embeddings[entity.id] = await self._embedding_provider.embed_single(
                _embedding_text(entity)
            )
        return entity

    async def update(self, entity: NamedEntityData) -> NamedEntityData:
        if entity.id not in self._entities:
            raise EntityNotFoundError(entity.id)
        return await self.save(entity)

    async def delete(self, entity_id: str) -> bool:
        self._embeddings.pop(entity_id, None)
        return self._entities.pop(entity_id, None) is not None

    def clear(self) -> None:
        self._entities.clear()
        self._embeddings.clear()

    def __len__(self) -> int:
        return len(self._entities)
