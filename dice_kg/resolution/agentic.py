"""
Agentic Candidate Searcher

Lets an LLM drive the search: each step it either runs a text or vector
search against the entity store or answers with the id it believes matches.

The answer is only trusted when the id was actually returned by one of the
LLM's own searches and the entity's labels are compatible with the
suggestion. Otherwise everything found becomes a candidate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from dice_kg.resolution.matching import LabelCompatibilityStrategy
from dice_kg.resolution.searchers import CandidateSearcher, ResolutionLevel, SearchResult
from dice_kg.schema import DataDictionary
from dice_kg.storage.base import NamedEntityRepository
from dice_kg.types import AgenticSearchStep, NamedEntityData, SuggestedEntity
from dice_kg.utils.cost_telemetry import telemetry_stage

if TYPE_CHECKING:
    from dice_kg.providers.base import LLMProvider

logger = logging.getLogger(__name__)


_AGENTIC_SYSTEM_PROMPT = """\
You find existing entities in a knowledge base.

Each turn, choose ONE action:
- text_search: search entity names with a query (try exact names, partial names, alternate spellings)
- vector_search: semantic search with a short description
- answer: report the ID of the matching entity, or null if none matches

IMPORTANT: Only select an entity if it ACTUALLY is the entity being looked for.
- Similar names are not enough; the type and context must fit.
- A work must be BY the right creator; a person must be the same person.
- If after trying different searches you cannot find the entity, answer with null.

Only answer with IDs that appeared in your search results."""

_AGENTIC_USER_TEMPLATE = """\
Find the entity "{name}" of type "{type}" in the knowledge base.

Entity details:
- Name: {name}
- Type(s): {labels}
{context}
SEARCHES SO FAR:
{history}

Steps remaining: {remaining}. Choose your next action."""


class AgenticCandidateSearcher(CandidateSearcher):
    """
    LLM-driven search with a bounded number of tool steps.

    Args:
        repository: Store searched by the LLM's actions
        llm: Provider returning AgenticSearchStep objects
        max_steps: Actions allowed before giving up
        top_k: Results per search action
        timeout_seconds: Per-call timeout
    """

    level = ResolutionLevel.LLM_VERIFICATION

    def __init__(
        self,
        repository: NamedEntityRepository,
        llm: "LLMProvider",
        max_steps: int = 4,
        top_k: int = 5,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.repository = repository
        self.llm = llm
        self.max_steps = max_steps
        self.top_k = top_k
        self.timeout_seconds = timeout_seconds
        self._labels = LabelCompatibilityStrategy()

    async def search(self, suggested: SuggestedEntity, schema: DataDictionary) -> SearchResult:
        found: dict[str, NamedEntityData] = {}
        history: list[str] = []

        try:
            for step_number in range(self.max_steps):
                step = await self._next_step(suggested, history, self.max_steps - step_number)
                if step.action == "answer":
                    return self._evaluate_answer(suggested, step, found, schema)
                results = await self._run_action(suggested, step, schema)
                for entity in results:
                    found.setdefault(entity.id, entity)
                history.append(self._describe(step, results))
            logger.debug(f"Agentic search for '{suggested.name}' ran out of steps")
        except Exception as e:
            logger.warning(f"Agentic search failed for '{suggested.name}': {e!r}")

        return SearchResult.of_candidates(list(found.values()))

    async def _next_step(
        self,
        suggested: SuggestedEntity,
        history: list[str],
        remaining: int,
    ) -> AgenticSearchStep:
        context = f"- Context: {suggested.summary}\n" if suggested.summary.strip() else ""
        prompt = _AGENTIC_USER_TEMPLATE.format(
            name=suggested.name,
            type=suggested.primary_label,
            labels=", ".join(suggested.labels) or "Entity",
            context=context,
            history="\n".join(history) if history else "(none yet)",
            remaining=remaining,
        )
        with telemetry_stage("agentic_search"):
            return await asyncio.wait_for(
                self.llm.generate_structured(prompt, AgenticSearchStep, system=_AGENTIC_SYSTEM_PROMPT),
                timeout=self.timeout_seconds,
            )

    async def _run_action(
        self,
        suggested: SuggestedEntity,
        step: AgenticSearchStep,
        schema: DataDictionary,
    ) -> list[NamedEntityData]:
        query = step.query.strip() or suggested.name
        search = (
            self.repository.vector_search
            if step.action == "vector_search"
            else self.repository.text_search
        )
        labels = self._labels.compatible_labels(suggested.labels, schema)
        results = await search(query, label_filter=labels, top_k=self.top_k)
        return [r.match for r in results]

    @staticmethod
    def _describe(step: AgenticSearchStep, results: list[NamedEntityData]) -> str:
        lines = [f"{step.action}({step.query!r}) -> {len(results)} result(s)"]
        for entity in results:
            description = f": {entity.description}" if entity.description else ""
            lines.append(f"  - [{entity.id}] {entity.name} ({', '.join(sorted(entity.labels))}){description}")
        return "\n".join(lines)

    def _evaluate_answer(
        self,
        suggested: SuggestedEntity,
        step: AgenticSearchStep,
        found: dict[str, NamedEntityData],
        schema: DataDictionary,
    ) -> SearchResult:
        candidates = list(found.values())
        if step.matched_entity_id is None:
            logger.debug(f"LLM found no match for '{suggested.name}': {step.reason}")
            return SearchResult.of_candidates(candidates)

        matched = found.get(step.matched_entity_id)
        if matched is None:
            logger.warning(
                f"LLM selected entity id '{step.matched_entity_id}' but it was not in its search results"
            )
            return SearchResult.of_candidates(candidates)

        if not self._labels.labels_compatible(suggested.labels, matched.labels, schema):
            logger.warning(
                f"LLM selected '{matched.name}' but labels don't match: "
                f"suggested={suggested.labels}, matched={sorted(matched.labels)}"
            )
            return SearchResult.of_candidates(candidates)

        logger.info(f"AGENTIC: '{suggested.name}' -> '{matched.name}' ({step.reason})")
        return SearchResult(confident=matched, candidates=candidates)
