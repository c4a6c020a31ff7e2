"""
Extraction Contracts

SourceAnalysisContext carries what extraction and resolution need for one
source: the context id propositions are scoped to, the schema, the entity
resolver and any entities already known to be in play.

PropositionExtractor turns a chunk into suggested propositions, and
converts their mentions to and from the entity resolution world.
"""

from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from dice_kg.resolution.base import EntityResolver
from dice_kg.schema import DataDictionary
from dice_kg.types import (
    Chunk,
    EntityResolution,
    KnownEntity,
    Proposition,
    Resolutions,
    SuggestedEntities,
    SuggestedEntity,
    SuggestedMention,
    SuggestedPropositions,
)

logger = logging.getLogger(__name__)

MENTION_ENTITY_SUMMARY = "Entity mentioned in proposition"


@dataclass(frozen=True)
class SourceAnalysisContext:
    """
    Attributes:
        context_id: Scope for stored propositions (user, session, tenant)
        schema: Domain types entities may take
        entity_resolver: Resolver for mentions that are not known entities
        known_entities: Entities suggestions should bind to first
        directions: Optional extra instructions for the extractor
    """

    context_id: str
    schema: DataDictionary
    entity_resolver: EntityResolver
    known_entities: list[KnownEntity] = field(default_factory=list)
    directions: str | None = None

    def with_entity_resolver(self, resolver: EntityResolver) -> "SourceAnalysisContext":
        return dataclasses.replace(self, entity_resolver=resolver)


def mention_key(mention: SuggestedMention) -> tuple[str, str]:
    """Mentions with the same key are one entity within a chunk."""
    return mention.span.lower().strip(), mention.type


def mention_to_suggested_entity(mention: SuggestedMention, chunk_id: str | None = None) -> SuggestedEntity:
    return SuggestedEntity(
        labels=[mention.type],
        name=mention.span,
        summary=MENTION_ENTITY_SUMMARY,
        chunk_id=chunk_id,
        id=mention.suggested_id,
    )


class PropositionExtractor(ABC):
    """Extracts propositions from chunks."""

    @abstractmethod
    async def extract(self, chunk: Chunk, context: SourceAnalysisContext) -> SuggestedPropositions:
        ...

    def to_suggested_entities(
        self,
        suggested: SuggestedPropositions,
        source_text: str | None = None,
    ) -> SuggestedEntities:
        """
        One suggested entity per unique mention.

        When the same mention appears several times, the first one carrying a
        suggested id is used.
        """
        unique: dict[tuple[str, str], SuggestedMention] = {}
        for proposition in suggested.propositions:
            for mention in proposition.mentions:
                key = mention_key(mention)
                current = unique.get(key)
                if current is None or (current.suggested_id is None and mention.suggested_id):
                    unique[key] = mention
        return SuggestedEntities(
            suggested_entities=[
                mention_to_suggested_entity(m, suggested.chunk_id) for m in unique.values()
            ],
            source_text=source_text,
        )

    def resolve_propositions(
        self,
        suggested: SuggestedPropositions,
        resolutions: Resolutions[EntityResolution],
        context: SourceAnalysisContext,
    ) -> list[Proposition]:
        """Stored propositions with mention ids taken from the entity resolutions."""
        resolved_ids: dict[tuple[str, str], str] = {}
        for resolution in resolutions.resolutions:
            recommended = resolution.recommended
            if recommended is None:
                continue
            entity = resolution.suggested
            key = (entity.name.lower().strip(), entity.labels[0] if entity.labels else "")
            resolved_ids[key] = recommended.id

        propositions = []
        for proposition in suggested.propositions:
            stored = proposition.to_proposition(context.context_id, [suggested.chunk_id])
            mentions = [
                m.to_entity_mention(resolved_ids.get(mention_key(m)))
                for m in proposition.mentions
            ]
            propositions.append(stored.with_mentions(mentions))
        return propositions
