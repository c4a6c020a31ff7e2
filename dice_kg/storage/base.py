"""
Abstract Storage Interfaces

Defines the contracts for the entity and proposition stores consumed by
resolution and revision.

The store is the only shared mutable resource. Implementations must give
read-your-writes within one resolution session: an entity saved while
processing chunk i is visible to searches made for chunk i+1.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from dice_kg.types import NamedEntityData, Proposition, PropositionStatus

T = TypeVar("T")


class EntityNotFoundError(KeyError):
    """update() was called for an entity id that is not stored."""


class PropositionNotFoundError(KeyError):
    """update() was called for a proposition id that is not stored."""


@dataclass(frozen=True)
class SimilarityResult(Generic[T]):
    """A search hit with its score in [0, 1]."""

    match: T
    score: float


@dataclass(frozen=True)
class PropositionQuery:
    """
    Filters applied before proposition similarity search.

    None means "don't filter on this".
    """

    context_id: str | None = None
    status: PropositionStatus | None = None
    entity_id: str | None = None
    any_entity_ids: frozenset[str] | None = None
    min_level: int | None = None
    max_level: int | None = None
    min_reinforce_count: int | None = None

    def accepts(self, proposition: Proposition) -> bool:
        entity_ids = {m.resolved_id for m in proposition.mentions if m.resolved_id}
        return all((
            self.context_id is None or proposition.context_id == self.context_id,
            self.status is None or proposition.status == self.status,
            self.entity_id is None or self.entity_id in entity_ids,
            self.any_entity_ids is None or bool(entity_ids & self.any_entity_ids),
            self.min_level is None or proposition.level >= self.min_level,
            self.max_level is None or proposition.level <= self.max_level,
            self.min_reinforce_count is None
            or proposition.reinforce_count >= self.min_reinforce_count,
        ))


class NamedEntityRepository(ABC):
    """
    Entity store contract.

    Text queries use a small Lucene-like syntax: quoted phrases (optionally
    boosted with ^n), bare terms, fuzzy terms ending in ~, joined by OR.
    """

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> "NamedEntityData | None":
        ...

    @abstractmethod
    async def text_search(
        self,
        query: str,
        label_filter: set[str] | None = None,
        top_k: int = 10,
        threshold: float = 0.0,
    ) -> list[SimilarityResult["NamedEntityData"]]:
        """Search names by text query. Results ordered by descending score."""
        ...

    @abstractmethod
    async def vector_search(
        self,
        query: str,
        label_filter: set[str] | None = None,
        top_k: int = 10,
        threshold: float = 0.0,
    ) -> list[SimilarityResult["NamedEntityData"]]:
        """Search by embedding similarity of the query text. Ordered by descending score."""
        ...

    @abstractmethod
    async def find_by_label(self, label: str) -> list["NamedEntityData"]:
        ...

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save(self, entity: "NamedEntityData") -> "NamedEntityData":
        """Insert or replace by id."""
        ...

    @abstractmethod
    async def update(self, entity: "NamedEntityData") -> "NamedEntityData":
        """
        Replace a stored entity.

        Raises:
            EntityNotFoundError: If no entity with this id is stored
        """
        ...

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """Delete by id. Returns False if nothing was stored under it."""
        ...


class PropositionRepository(ABC):
    """Proposition store contract."""

    @abstractmethod
    async def save(self, proposition: "Proposition") -> "Proposition":
        """Insert or replace by id."""
        ...

    async def save_all(self, propositions: list["Proposition"]) -> None:
        for proposition in propositions:
            await self.save(proposition)

    @abstractmethod
    async def update(self, proposition: "Proposition") -> "Proposition":
        """
        Replace a stored proposition.

        Raises:
            PropositionNotFoundError: If no proposition with this id is stored
        """
        ...

    @abstractmethod
    async def find_by_id(self, proposition_id: str) -> "Proposition | None":
        ...

    @abstractmethod
    async def query(self, query: PropositionQuery) -> list["Proposition"]:
        ...

    @abstractmethod
    async def find_similar_with_scores(
        self,
        text: str,
        top_k: int = 10,
        threshold: float = 0.0,
        query: PropositionQuery | None = None,
    ) -> list[SimilarityResult["Proposition"]]:
        """Embedding search over propositions accepted by query. Most similar first."""
        ...

    async def find_by_entity(self, entity_id: str) -> list["Proposition"]:
        return await self.query(PropositionQuery(entity_id=entity_id))

    async def find_by_status(self, status: "PropositionStatus") -> list["Proposition"]:
        return await self.query(PropositionQuery(status=status))

    async def find_by_grounding(self, chunk_id: str) -> list["Proposition"]:
        return [p for p in await self.query(PropositionQuery()) if chunk_id in p.grounding]

    @abstractmethod
    async def delete(self, proposition_id: str) -> bool:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...
