"""
LLM Proposition Extractor

Extracts atomic propositions with entity mentions from a chunk using a
structured PropositionExtractionResponse.

The prompt lists the schema's types, the known entities (with ids, so the
LLM can tag mentions of them) and, when a proposition repository is
configured, the strongest existing propositions of the context so the LLM
does not restate them.

Example:
    >>> extractor = LlmPropositionExtractor(llm)
    >>> suggested = await extractor.extract(chunk, context)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from dice_kg.extraction.base import PropositionExtractor, SourceAnalysisContext
from dice_kg.storage.base import PropositionQuery, PropositionRepository
from dice_kg.types import (
    Chunk,
    Proposition,
    PropositionExtractionResponse,
    PropositionStatus,
    SuggestedPropositions,
)
from dice_kg.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dice_kg.providers.base import LLMProvider

logger = logging.getLogger(__name__)


class ExtractionPerspective(str, Enum):
    """Whose statements facts are taken from."""

    ALL = "Extract facts stated by any speaker in the text."
    USER = (
        "Extract facts SOLELY from the user's messages. Do NOT extract facts that originate only "
        "from assistant or system messages. Always attribute facts to the user using their name "
        "as an entity mention."
    )
    AGENT = (
        "Extract facts about the assistant's own knowledge, decisions, and expressed opinions. "
        "Do NOT extract facts about the user unless the assistant is referencing them."
    )


# -----------------------------------------------------------------------------
# LLM Prompts
# -----------------------------------------------------------------------------

_EXTRACTION_SYSTEM_PROMPT = """\
You extract atomic factual propositions from text for a long-term memory.

A proposition is ONE self-contained claim in natural language, understandable
without the surrounding text. Resolve pronouns to names ("She founded it" ->
"Alice founded Acme").

For each proposition:
- text: the claim
- mentions: the entities it refers to, with the span exactly as written in the
  proposition, the entity type and role (SUBJECT, OBJECT or OTHER)
- confidence: how certain the text is about the claim (0.0-1.0)
- decay: how quickly the claim goes stale (0.0 permanent, 1.0 very temporary)
- importance: how much the claim matters to remember (0.0-1.0)

Do not extract opinions about the text itself, greetings or filler."""

_EXTRACTION_TEMPLATE = """\
{perspective}

ENTITY TYPES:
{types}
{known}{existing}{directions}
TEXT:
{text}

Extract the propositions."""


class LlmPropositionExtractor(PropositionExtractor):
    """
    Args:
        llm: Provider returning PropositionExtractionResponse objects
        proposition_repository: Optional store of existing propositions shown to the LLM
        existing_propositions_to_show: Max existing propositions in the prompt
        perspective: Whose statements to extract
        timeout_seconds: Per-call timeout; a timeout yields no propositions
    """

    def __init__(
        self,
        llm: "LLMProvider",
        *,
        proposition_repository: PropositionRepository | None = None,
        existing_propositions_to_show: int = 100,
        perspective: ExtractionPerspective = ExtractionPerspective.ALL,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.llm = llm
        self.proposition_repository = proposition_repository
        self.existing_propositions_to_show = existing_propositions_to_show
        self.perspective = perspective
        self.timeout_seconds = timeout_seconds

    async def extract(self, chunk: Chunk, context: SourceAnalysisContext) -> SuggestedPropositions:
        logger.debug(f"Extracting propositions from chunk {chunk.id}")
        existing = await self._existing_propositions(context)
        prompt = self._build_prompt(chunk, context, existing)

        try:
            with telemetry_stage("proposition_extraction"):
                response = await asyncio.wait_for(
                    self.llm.generate_structured(
                        prompt, PropositionExtractionResponse, system=_EXTRACTION_SYSTEM_PROMPT
                    ),
                    timeout=self.timeout_seconds,
                )
        except Exception as e:
            logger.warning(f"Proposition extraction failed for chunk {chunk.id}: {e!r}")
            return SuggestedPropositions(chunk_id=chunk.id)

        logger.info(f"Extracted {len(response.propositions)} propositions from chunk {chunk.id}")
        return SuggestedPropositions(chunk_id=chunk.id, propositions=response.propositions)

    async def _existing_propositions(self, context: SourceAnalysisContext) -> list[Proposition]:
        if self.proposition_repository is None or self.existing_propositions_to_show <= 0:
            return []
        stored = await self.proposition_repository.query(
            PropositionQuery(context_id=context.context_id, status=PropositionStatus.ACTIVE)
        )
        stored.sort(key=lambda p: p.confidence, reverse=True)
        return stored[: self.existing_propositions_to_show]

    def _build_prompt(
        self,
        chunk: Chunk,
        context: SourceAnalysisContext,
        existing: list[Proposition],
    ) -> str:
        types = "\n".join(
            f"- {t.name}: {t.description}" if t.description else f"- {t.name}"
            for t in context.schema.domain_types
        ) or "- (any)"

        known = ""
        if context.known_entities:
            lines = [
                f"- {k.entity.name} (id: {k.entity.id}, type: {', '.join(sorted(k.entity.labels))})"
                + (f": {k.role}" if k.role else "")
                for k in context.known_entities
            ]
            known = (
                "\nKNOWN ENTITIES (set suggested_id when a mention refers to one):\n"
                + "\n".join(lines)
                + "\n"
            )

        existing_block = ""
        if existing:
            existing_block = (
                "\nALREADY KNOWN (do not repeat unless the text changes them):\n"
                + "\n".join(f"- {p.text}" for p in existing)
                + "\n"
            )

        directions = f"\nINSTRUCTIONS:\n{context.directions}\n" if context.directions else ""

        return _EXTRACTION_TEMPLATE.format(
            perspective=self.perspective.value,
            types=types,
            known=known,
            existing=existing_block,
            directions=directions,
            text=chunk.text,
        )
