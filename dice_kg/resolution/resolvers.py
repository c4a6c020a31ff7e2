"""
Auxiliary Entity Resolvers

    - AlwaysCreateEntityResolver: every suggestion is new
    - InMemoryEntityResolver: session memory for cross-chunk identity
    - ChainedEntityResolver: tries resolvers in turn until a match is found
    - KnownEntityResolver: binds to caller-supplied entities before delegating
"""

from __future__ import annotations

import logging
from typing import assert_never

from dice_kg.resolution.base import EntityResolver
from dice_kg.resolution.matching import ChainedMatchStrategy, default_match_strategies
from dice_kg.schema import DataDictionary
from dice_kg.types import (
    EntityResolution,
    ExistingEntity,
    KnownEntity,
    NamedEntityData,
    NewEntity,
    ReferenceOnlyEntity,
    Resolutions,
    SuggestedEntities,
    SuggestedEntity,
    VetoedEntity,
)

logger = logging.getLogger(__name__)


class AlwaysCreateEntityResolver(EntityResolver):
    """Never matches. Useful for first loads into an empty store."""

    async def resolve(self, suggested_entities, schema) -> Resolutions[EntityResolution]:
        return Resolutions(
            chunk_ids=suggested_entities.chunk_ids,
            resolutions=[NewEntity(suggested=s) for s in suggested_entities.suggested_entities],
        )


class InMemoryEntityResolver(EntityResolver):
    """
    Remembers the entities it has resolved in this session.

    Later suggestions that match a remembered entity through the match chain
    resolve to it, so "Sherlock Holmes" in chunk 1 and "Holmes" in chunk 2
    become one entity even before anything is persisted.
    """

    def __init__(
        self,
        match_strategies: ChainedMatchStrategy | None = None,
        *,
        fuzzy_max_distance_ratio: float = 0.2,
        fuzzy_min_length: int = 4,
        partial_min_part_length: int = 4,
    ) -> None:
        self.match_strategies = match_strategies or default_match_strategies(
            fuzzy_max_distance_ratio=fuzzy_max_distance_ratio,
            fuzzy_min_length=fuzzy_min_length,
            partial_min_part_length=partial_min_part_length,
        )
        self._entities: dict[str, NamedEntityData] = {}

    async def resolve(self, suggested_entities, schema) -> Resolutions[EntityResolution]:
        resolutions: list[EntityResolution] = []
        for suggested in suggested_entities.suggested_entities:
            existing = self._find_match(suggested, schema)
            if existing is not None:
                resolution = ExistingEntity(suggested=suggested, existing=existing)
                self._entities[existing.id] = resolution.recommended
            else:
                resolution = NewEntity(suggested=suggested)
                self._entities[resolution.recommended.id] = resolution.recommended
            resolutions.append(resolution)
        return Resolutions(chunk_ids=suggested_entities.chunk_ids, resolutions=resolutions)

    def _find_match(self, suggested: SuggestedEntity, schema: DataDictionary) -> NamedEntityData | None:
        """
        The single remembered entity the suggestion matches.

        Several matches narrow to the one with the same name (case-insensitive);
        when that is still not unique the suggestion is treated as unmatched.
        """
        matches = [
            e for e in self._entities.values() if self.match_strategies.matches(suggested, e, schema)
        ]
        if len(matches) <= 1:
            return matches[0] if matches else None

        wanted = suggested.name.strip().lower()
        same_name = [e for e in matches if e.name.strip().lower() == wanted]
        if len(same_name) == 1:
            return same_name[0]
        logger.debug(f"{len(matches)} remembered entities match '{suggested.name}', not choosing one")
        return None

    def clear(self) -> None:
        self._entities.clear()

    @property
    def size(self) -> int:
        return len(self._entities)


class ChainedEntityResolver(EntityResolver):
    """
    Runs resolvers in order over the suggestions still unresolved.

    A match (ExistingEntity or ReferenceOnlyEntity) from any resolver wins
    and removes the suggestion from later rounds. Otherwise the first
    non-match decision is kept.
    """

    def __init__(self, resolvers: list[EntityResolver]) -> None:
        if not resolvers:
            raise ValueError("At least one resolver is required")
        self.resolvers = list(resolvers)

    async def resolve(self, suggested_entities, schema) -> Resolutions[EntityResolution]:
        suggestions = suggested_entities.suggested_entities
        best: list[EntityResolution | None] = [None] * len(suggestions)
        unresolved = list(range(len(suggestions)))

        for resolver in self.resolvers:
            if not unresolved:
                break
            subset = SuggestedEntities(
                suggested_entities=[suggestions[i] for i in unresolved],
                source_text=suggested_entities.source_text,
            )
            result = await resolver.resolve(subset, schema)

            still_unresolved = []
            for index, resolution in zip(unresolved, result.resolutions):
                match resolution:
                    case ExistingEntity() | ReferenceOnlyEntity():
                        best[index] = resolution
                    case NewEntity() | VetoedEntity():
                        if best[index] is None:
                            best[index] = resolution
                        still_unresolved.append(index)
                    case _:
                        assert_never(resolution)
            unresolved = still_unresolved

        return Resolutions(
            chunk_ids=suggested_entities.chunk_ids,
            resolutions=[r for r in best if r is not None],
        )


class KnownEntityResolver(EntityResolver):
    """
    Matches suggestions against known entities first, then delegates the rest.

    A match with a reference_only known entity yields ReferenceOnlyEntity.
    Input order is preserved when merging with the delegate's results.
    """

    def __init__(
        self,
        known_entities: list[KnownEntity],
        delegate: EntityResolver,
        match_strategies: ChainedMatchStrategy | None = None,
    ) -> None:
        self.known_entities = list(known_entities)
        self.delegate = delegate
        self.match_strategies = match_strategies or default_match_strategies()

    @classmethod
    def with_known_entities(
        cls,
        known_entities: list[KnownEntity],
        delegate: EntityResolver,
    ) -> EntityResolver:
        """The delegate itself when there is nothing known."""
        if not known_entities:
            return delegate
        return cls(known_entities, delegate)

    async def resolve(self, suggested_entities, schema) -> Resolutions[EntityResolution]:
        if not self.known_entities:
            return await self.delegate.resolve(suggested_entities, schema)

        suggestions = suggested_entities.suggested_entities
        known_matches: list[EntityResolution | None] = []
        for suggested in suggestions:
            known = self._find_known(suggested, schema)
            if known is None:
                known_matches.append(None)
                continue
            logger.info(f"Matched '{suggested.name}' to known entity '{known.entity.name}'")
            if known.reference_only:
                known_matches.append(ReferenceOnlyEntity(suggested=suggested, existing=known.entity))
            else:
                known_matches.append(ExistingEntity(suggested=suggested, existing=known.entity))

        unmatched = [s for s, r in zip(suggestions, known_matches) if r is None]
        delegated: list[EntityResolution] = []
        if unmatched:
            result = await self.delegate.resolve(
                SuggestedEntities(
                    suggested_entities=unmatched,
                    source_text=suggested_entities.source_text,
                ),
                schema,
            )
            delegated = list(result.resolutions)

        pending = iter(delegated)
        merged = [r if r is not None else next(pending) for r in known_matches]
        return Resolutions(chunk_ids=suggested_entities.chunk_ids, resolutions=merged)

    def _find_known(self, suggested: SuggestedEntity, schema: DataDictionary) -> KnownEntity | None:
        for known in self.known_entities:
            if self.match_strategies.matches(suggested, known.entity, schema):
                return known
        return None
