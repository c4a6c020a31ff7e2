"""
LLM Candidate Bakeoff

Arbitrates between the candidates the searchers could not decide on.

    - 0 candidates: None, no LLM call
    - 1 candidate: yes/no verification prompt
    - N candidates: "pick a number or NONE" comparison prompt

Responses are parsed leniently: a "none" prefix means no match, leading
digits select a 1-based candidate. Anything else, an out-of-range number,
a timeout or a provider error yields None. Calls are never retried here.

Example:
    >>> bakeoff = LlmCandidateBakeoff(llm)
    >>> match = await bakeoff.select_best_match(suggested, candidates, source_text)
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from dice_kg.storage.base import SimilarityResult
from dice_kg.types import NamedEntityData, SuggestedEntity
from dice_kg.utils.cost_telemetry import telemetry_stage
from dice_kg.utils.text import simple_labels, truncate

if TYPE_CHECKING:
    from dice_kg.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^(\d+)")


class PromptMode(str, Enum):
    """Prompt verbosity."""

    COMPACT = "compact"  # minimal prompts, cheap
    FULL = "full"  # detailed instructions for hard disambiguation


class CandidateBakeoff(ABC):
    """Selects the candidate that is the same entity as the suggestion, if any."""

    @abstractmethod
    async def select_best_match(
        self,
        suggested: SuggestedEntity,
        candidates: list[SimilarityResult[NamedEntityData]],
        source_text: str | None = None,
    ) -> NamedEntityData | None:
        ...


# -----------------------------------------------------------------------------
# LLM Prompts
# -----------------------------------------------------------------------------

_COMPACT_BAKEOFF_TEMPLATE = """\
Match "{name}" ({type}) to a candidate or NONE.{context}

{candidates}

Reply: number or NONE + brief reason"""

_FULL_BAKEOFF_TEMPLATE = """\
You are selecting the best database entity match for something mentioned in a conversation.

LOOKING FOR:
- Name: "{name}"
- Expected type: {type}
- Entity context: {summary}{context}

CANDIDATES FROM DATABASE:
{candidates}

TASK: Which candidate (if any) is the SAME entity as what was mentioned?

Rules:
1. The names must refer to the same thing (e.g., "Brahms" = "Johannes Brahms")
2. Types must be compatible (if looking for a Composer, a Work is NOT a match)
3. Use the conversation context: a work discussed alongside a composer should be BY that composer
4. Coincidental word overlap is NOT a match (e.g., "Wagner" is not "Piece about Wagner")
5. Common alternate names count as matches
6. If NONE of the candidates are a true match, say "NONE"

Answer with ONLY the candidate number (1, 2, 3, etc.) or "NONE", followed by a brief reason.
Example: "2 - Johannes Brahms is the composer commonly known as Brahms"
Example: "NONE - None of these works are by the composer discussed in conversation"
"""

_COMPACT_VERIFY_TEMPLATE = """\
Is "{name}" ({type}) = "{candidate_name}" ({candidate_type})?{context}
Answer: Yes/No + reason"""

_FULL_VERIFY_TEMPLATE = """\
Is this database entity the same as what was mentioned in conversation?

MENTIONED: "{name}" (type: {type})
Context: {summary}{context}

DATABASE ENTITY:
- Name: "{candidate_name}"
- Type(s): {candidate_types}
- Description: {description}

Answer "Yes" or "No" with brief reason. Types must be compatible (Composer is not Work)."""


def _display_labels(entity: NamedEntityData) -> list[str]:
    return sorted(simple_labels(entity.labels)) or ["Entity"]


class LlmCandidateBakeoff(CandidateBakeoff):
    """
    Bakeoff backed by an LLMProvider's free-text generation.

    Args:
        llm: Provider used for both prompts
        prompt_mode: COMPACT (default) or FULL
        timeout_seconds: Per-call timeout; a timeout counts as no match
    """

    COMPACT_CONTEXT_CHARS = 300
    FULL_CONTEXT_CHARS = 1000

    def __init__(
        self,
        llm: "LLMProvider",
        prompt_mode: PromptMode = PromptMode.COMPACT,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.llm = llm
        self.prompt_mode = prompt_mode
        self.timeout_seconds = timeout_seconds

    async def select_best_match(
        self,
        suggested: SuggestedEntity,
        candidates: list[SimilarityResult[NamedEntityData]],
        source_text: str | None = None,
    ) -> NamedEntityData | None:
        if not candidates:
            return None
        if len(candidates) == 1:
            match = candidates[0].match
            return match if await self.verify(suggested, match, source_text) else None

        prompt = self._bakeoff_prompt(suggested, candidates, source_text)
        try:
            response = await self._generate(prompt)
        except Exception as e:
            logger.warning(f"LLM bakeoff failed for '{suggested.name}': {e!r}")
            return None

        logger.info(
            f"LLM bakeoff for '{suggested.name}' ({len(candidates)} candidates): {response[:100]}"
        )
        return self.parse_selection(response, candidates)

    async def verify(
        self,
        suggested: SuggestedEntity,
        candidate: NamedEntityData,
        source_text: str | None = None,
    ) -> bool:
        """Yes/no check of a single candidate. Failures answer no."""
        prompt = self._verification_prompt(suggested, candidate, source_text)
        try:
            response = await self._generate(prompt)
        except Exception as e:
            logger.warning(f"LLM verification failed for '{suggested.name}': {e!r}")
            return False

        answer = response.strip().lower()
        logger.debug(f"LLM verification for '{suggested.name}' vs '{candidate.name}': {answer}")
        return answer.startswith("yes")

    def parse_selection(
        self,
        answer: str,
        candidates: list[SimilarityResult[NamedEntityData]],
    ) -> NamedEntityData | None:
        """Map a free-text answer to a candidate. Fails closed."""
        trimmed = answer.strip().lower()
        if trimmed.startswith("none"):
            logger.debug("LLM selected NONE of the candidates")
            return None

        number = _LEADING_NUMBER.match(trimmed)
        if number:
            index = int(number.group(1)) - 1
            if 0 <= index < len(candidates):
                logger.debug(f"LLM selected candidate {index + 1}: {candidates[index].match.name}")
                return candidates[index].match

        logger.warning(f"Could not parse LLM selection: {answer[:50]}")
        return None

    async def _generate(self, prompt: str) -> str:
        with telemetry_stage("entity_bakeoff"):
            return await asyncio.wait_for(
                self.llm.generate(prompt, max_tokens=256),
                timeout=self.timeout_seconds,
            )

    # -------------------------------------------------------------------------
    # Prompt building
    # -------------------------------------------------------------------------

    def _context(self, source_text: str | None, full: bool) -> str:
        if not source_text or not source_text.strip():
            return ""
        if full:
            return "\n\nCONVERSATION CONTEXT:\n" + truncate(source_text, self.FULL_CONTEXT_CHARS)
        return "\nContext: " + truncate(source_text, self.COMPACT_CONTEXT_CHARS)

    def _bakeoff_prompt(
        self,
        suggested: SuggestedEntity,
        candidates: list[SimilarityResult[NamedEntityData]],
        source_text: str | None,
    ) -> str:
        if self.prompt_mode is PromptMode.FULL:
            blocks = []
            for i, result in enumerate(candidates, 1):
                c = result.match
                blocks.append(
                    f"CANDIDATE {i}:\n"
                    f'  Name: "{c.name}"\n'
                    f"  Type(s): {', '.join(_display_labels(c))}\n"
                    f"  Description: {c.description or 'None'}\n"
                    f"  Search Score: {result.score:.2f}"
                )
            return _FULL_BAKEOFF_TEMPLATE.format(
                name=suggested.name,
                type=suggested.primary_label,
                summary=suggested.summary or "No additional context",
                context=self._context(source_text, full=True),
                candidates="\n".join(blocks),
            )

        lines = [
            f"{i}. {r.match.name} ({_display_labels(r.match)[0]}) [{r.score:.2f}]"
            for i, r in enumerate(candidates, 1)
        ]
        return _COMPACT_BAKEOFF_TEMPLATE.format(
            name=suggested.name,
            type=suggested.primary_label,
            context=self._context(source_text, full=False),
            candidates="\n".join(lines),
        )

    def _verification_prompt(
        self,
        suggested: SuggestedEntity,
        candidate: NamedEntityData,
        source_text: str | None,
    ) -> str:
        if self.prompt_mode is PromptMode.FULL:
            return _FULL_VERIFY_TEMPLATE.format(
                name=suggested.name,
                type=suggested.primary_label,
                summary=suggested.summary or "No additional context",
                context=self._context(source_text, full=True),
                candidate_name=candidate.name,
                candidate_types=", ".join(_display_labels(candidate)),
                description=candidate.description or "None",
            )
        return _COMPACT_VERIFY_TEMPLATE.format(
            name=suggested.name,
            type=suggested.primary_label,
            candidate_name=candidate.name,
            candidate_type=_display_labels(candidate)[0],
            context=self._context(source_text, full=False),
        )
