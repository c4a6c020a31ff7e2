"""
Proposition Revision

Decides how a newly extracted proposition relates to what is already stored
and produces the revised state.

Per proposition:
    1. Exact canonical-text match in the same context (ACTIVE only) -> Merged
    2. Embedding search (top-K, threshold, same context, ACTIVE)
       - nothing found -> New
       - top score >= auto_merge_threshold -> Merged (no LLM)
    3. Entity-overlap pre-filter; if it removes every candidate -> New
    4. LLM classification of the remaining candidates:
       IDENTICAL -> Merged, CONTRADICTORY -> Contradicted,
       SIMILAR (>= min_similarity_for_reinforce) -> Reinforced,
       GENERALIZES -> Generalized, otherwise New

Candidates are given to the LLM as small integer indices, never as ids, and
the response is mapped back by index. Invalid indices are skipped.

Example:
    >>> reviser = LlmPropositionReviser(llm)
    >>> result = await reviser.revise(proposition, repository)
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, assert_never

from dice_kg.storage.base import PropositionQuery, PropositionRepository
from dice_kg.types import (
    BatchClassificationResponse,
    ClassificationItem,
    ClassificationResponse,
    ClassifiedProposition,
    Contradicted,
    Generalized,
    Merged,
    New,
    Proposition,
    PropositionRelation,
    PropositionStatus,
    Reinforced,
    RevisionResult,
)
from dice_kg.utils.cost_telemetry import telemetry_stage
from dice_kg.utils.text import canonicalize, truncate

if TYPE_CHECKING:
    from dice_kg.config import DiceConfig
    from dice_kg.providers.base import LLMProvider

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Update Rules
# -----------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _union_grounding(existing: Proposition, new: Proposition) -> list[str]:
    return list(dict.fromkeys([*existing.grounding, *new.grounding]))


def merge_propositions(existing: Proposition, new: Proposition) -> Proposition:
    """The stored proposition after seeing the same claim again."""
    return existing.model_copy(
        update={
            "confidence": min(0.99, existing.confidence + new.confidence * 0.3),
            "decay": max(0.0, existing.decay * 0.7),
            "grounding": _union_grounding(existing, new),
            "reinforce_count": existing.reinforce_count + 1,
            "revised": _now(),
        }
    )


def reinforce_proposition(existing: Proposition, new: Proposition) -> Proposition:
    """The stored proposition after seeing a similar, supporting claim."""
    return existing.model_copy(
        update={
            "confidence": min(0.95, existing.confidence + new.confidence * 0.1),
            "decay": max(0.0, existing.decay * 0.85),
            "grounding": _union_grounding(existing, new),
            "reinforce_count": existing.reinforce_count + 1,
            "revised": _now(),
        }
    )


def contradict_proposition(existing: Proposition) -> Proposition:
    """The stored proposition after a contradicting claim: weaker, faster decay."""
    return (
        existing.with_confidence(max(0.05, existing.confidence * 0.3))
        .with_status(PropositionStatus.CONTRADICTED)
        .model_copy(update={"decay": min(1.0, existing.decay + 0.15)})
    )


def _chain_revisions(
    propositions: list[Proposition],
    results: list[RevisionResult],
) -> list[RevisionResult]:
    """
    Reapply revisions that target the same stored proposition in sequence.

    Batch results are computed against one store snapshot; a later revision
    of the same stored proposition builds on the earlier revised value.
    """
    latest: dict[str, Proposition] = {}
    chained: list[RevisionResult] = []
    for proposition, result in zip(propositions, results):
        match result:
            case Merged(original=original):
                base = latest.get(original.id, original)
                result = Merged(original=base, revised=merge_propositions(base, proposition))
                latest[original.id] = result.revised
            case Reinforced(original=original):
                base = latest.get(original.id, original)
                result = Reinforced(original=base, revised=reinforce_proposition(base, proposition))
                latest[original.id] = result.revised
            case Contradicted(original=weakened):
                if weakened.id in latest:
                    weaker = contradict_proposition(latest[weakened.id])
                    result = Contradicted(original=weaker, new=result.new)
                latest[weakened.id] = result.original
            case Generalized() | New():
                pass
            case _:
                assert_never(result)
        chained.append(result)
    return chained


def has_entity_overlap(a: Proposition, b: Proposition) -> bool:
    """
    True when the propositions share an entity.

    Mentions compare by resolved id when both are resolved, otherwise by
    case-insensitive span. Propositions without mentions always overlap.
    """
    if not a.mentions or not b.mentions:
        return True
    for mention_a in a.mentions:
        for mention_b in b.mentions:
            if mention_a.resolved_id is not None and mention_b.resolved_id is not None:
                if mention_a.resolved_id == mention_b.resolved_id:
                    return True
            elif mention_a.span.lower() == mention_b.span.lower():
                return True
    return False


# -----------------------------------------------------------------------------
# LLM Prompts
# -----------------------------------------------------------------------------

_CLASSIFY_SYSTEM_PROMPT = """\
You maintain a memory of factual propositions.

Compare a NEW proposition with EXISTING ones and classify each existing
proposition's relation to the new one:

- IDENTICAL: Same meaning, possibly different wording
- SIMILAR: Same topic and supporting, but not the same claim
- CONTRADICTORY: Both cannot be true at the same time
- GENERALIZES: The new proposition is a more general statement covering the existing one
- UNRELATED: Different topics

For each existing proposition give a similarity between 0.0 and 1.0 and a
brief reason. Refer to existing propositions ONLY by the index shown."""

_CLASSIFY_TEMPLATE = """\
NEW PROPOSITION:
"{text}" (confidence: {confidence:.2f})
Reasoning: {reasoning}

EXISTING PROPOSITIONS:
{candidates}

Classify every existing proposition."""

_CLASSIFY_BATCH_TEMPLATE = """\
Classify the existing propositions for each of the following {count} new propositions.
Return one entry per new proposition, using its proposition_index.

{items}"""


def _format_candidates(candidates: list[Proposition]) -> str:
    # Candidates arrive with decay already applied
    return "\n".join(
        f'[{i}] "{c.text}" (confidence: {c.confidence:.2f})'
        for i, c in enumerate(candidates)
    )


@dataclass
class PendingClassification:
    """A proposition the fast paths could not decide, with its candidates."""

    proposition: Proposition
    candidates: list[Proposition]


# -----------------------------------------------------------------------------
# Reviser
# -----------------------------------------------------------------------------


class PropositionReviser(ABC):
    """Revises new propositions against a proposition store."""

    @abstractmethod
    async def revise(
        self,
        proposition: Proposition,
        repository: PropositionRepository,
    ) -> RevisionResult:
        ...

    @abstractmethod
    async def classify(
        self,
        proposition: Proposition,
        candidates: list[Proposition],
    ) -> list[ClassifiedProposition]:
        ...

    async def revise_all(
        self,
        propositions: list[Proposition],
        repository: PropositionRepository,
    ) -> list[RevisionResult]:
        return [await self.revise(p, repository) for p in propositions]


class LlmPropositionReviser(PropositionReviser):
    """
    Reviser using embedding fast paths and LLM classification.

    Args:
        llm: Provider for classification calls
        classify_llm: Optional cheaper provider used instead of llm for classification
        top_k: Candidates retrieved per proposition
        similarity_threshold: Minimum embedding similarity for a candidate
        min_similarity_for_reinforce: SIMILAR below this is ignored
        decay_k: Decay multiplier used when ranking candidates
        auto_merge_threshold: Embedding score that merges without an LLM call (>1 disables)
        classify_batch_size: Pending propositions per batch LLM call
        entity_overlap_filter: Drop candidates sharing no entity before classifying
        timeout_seconds: Per-call timeout; a timeout counts as an empty classification
        concurrency: Batch classification calls in flight at once
    """

    def __init__(
        self,
        llm: "LLMProvider",
        *,
        classify_llm: "LLMProvider | None" = None,
        top_k: int = 5,
        similarity_threshold: float = 0.5,
        min_similarity_for_reinforce: float = 0.7,
        decay_k: float = 2.0,
        auto_merge_threshold: float = 0.95,
        classify_batch_size: int = 15,
        entity_overlap_filter: bool = True,
        timeout_seconds: float = 30.0,
        concurrency: int = 4,
    ) -> None:
        self.llm = llm
        self.classify_llm = classify_llm
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.min_similarity_for_reinforce = min_similarity_for_reinforce
        self.decay_k = decay_k
        self.auto_merge_threshold = auto_merge_threshold
        self.classify_batch_size = max(1, classify_batch_size)
        self.entity_overlap_filter = entity_overlap_filter
        self.timeout_seconds = timeout_seconds
        self.concurrency = max(1, concurrency)

    @classmethod
    def from_config(
        cls,
        llm: "LLMProvider",
        config: "DiceConfig",
        classify_llm: "LLMProvider | None" = None,
    ) -> "LlmPropositionReviser":
        return cls(
            llm,
            classify_llm=classify_llm,
            top_k=config.revision_top_k,
            similarity_threshold=config.revision_similarity_threshold,
            min_similarity_for_reinforce=config.min_similarity_for_reinforce,
            decay_k=config.decay_k,
            auto_merge_threshold=config.auto_merge_threshold,
            classify_batch_size=config.classify_batch_size,
            entity_overlap_filter=config.entity_overlap_filter,
            timeout_seconds=config.llm_timeout_seconds,
        )

    @property
    def _classifier(self) -> "LLMProvider":
        return self.classify_llm or self.llm

    # -------------------------------------------------------------------------
    # Revision
    # -------------------------------------------------------------------------

    async def revise(
        self,
        proposition: Proposition,
        repository: PropositionRepository,
    ) -> RevisionResult:
        outcome = await self.retrieve_and_fast_path(proposition, repository)
        if not isinstance(outcome, PendingClassification):
            return outcome
        classified = await self.classify(outcome.proposition, outcome.candidates)
        return await self.classified_to_result(outcome.proposition, classified, repository)

    async def revise_all(
        self,
        propositions: list[Proposition],
        repository: PropositionRepository,
    ) -> list[RevisionResult]:
        """
        Revise a batch, deduplicating by canonical text first.

        Results are in the order of the deduplicated input (first occurrence
        of each canonical text kept).
        """
        seen: set[str] = set()
        deduped: list[Proposition] = []
        for proposition in propositions:
            key = canonicalize(proposition.text)
            if not key or key not in seen:
                seen.add(key)
                deduped.append(proposition)
        dropped = len(propositions) - len(deduped)
        if dropped:
            logger.info(
                f"Batch dedup: dropped {dropped} of {len(propositions)} propositions "
                f"with identical canonical text"
            )

        results: list[RevisionResult | None] = [None] * len(deduped)
        pending: list[tuple[int, PendingClassification]] = []
        for index, proposition in enumerate(deduped):
            outcome = await self.retrieve_and_fast_path(proposition, repository)
            if isinstance(outcome, PendingClassification):
                pending.append((index, outcome))
            else:
                results[index] = outcome

        if pending:
            logger.info(
                f"Batch classify: {len(pending)} of {len(deduped)} propositions need LLM "
                f"(batch size {self.classify_batch_size})"
            )
            classified = await self.classify_batch([item for _, item in pending], repository)
            for (index, _), result in zip(pending, classified):
                results[index] = result

        return _chain_revisions(deduped, [r for r in results if r is not None])

    async def retrieve_and_fast_path(
        self,
        proposition: Proposition,
        repository: PropositionRepository,
    ) -> RevisionResult | PendingClassification:
        """Resolve without the LLM where possible, else return the candidates to classify."""
        active_in_context = PropositionQuery(
            context_id=proposition.context_id,
            status=PropositionStatus.ACTIVE,
        )

        canonical = canonicalize(proposition.text)
        for stored in await repository.query(active_in_context):
            if canonical and stored.id != proposition.id and canonicalize(stored.text) == canonical:
                original = await repository.find_by_id(stored.id) or stored
                logger.debug(f"Canonical text match: {truncate(proposition.text, 60)}")
                return Merged(original=original, revised=merge_propositions(original, proposition))

        similar = await repository.find_similar_with_scores(
            proposition.text,
            top_k=self.top_k,
            threshold=self.similarity_threshold,
            query=active_in_context,
        )
        similar = [s for s in similar if s.match.id != proposition.id]
        if not similar:
            logger.debug(f"New proposition (no canonical or embedding match): {proposition.text}")
            return New(proposition=proposition)

        top = similar[0]
        if top.score >= self.auto_merge_threshold:
            original = await repository.find_by_id(top.match.id) or top.match
            logger.debug(
                f"Auto-merge (embedding score {top.score:.3f} >= {self.auto_merge_threshold}): "
                f"{truncate(proposition.text, 60)}"
            )
            return Merged(original=original, revised=merge_propositions(original, proposition))

        candidates = [s.match.with_decay_applied(self.decay_k) for s in similar]

        if self.entity_overlap_filter and proposition.mentions:
            filtered = [c for c in candidates if has_entity_overlap(proposition, c)]
            if len(filtered) < len(candidates):
                logger.debug(
                    f"Entity-overlap filter eliminated {len(candidates) - len(filtered)} "
                    f"of {len(candidates)} candidates"
                )
            if not filtered:
                return New(proposition=proposition)
            candidates = filtered

        return PendingClassification(proposition=proposition, candidates=candidates)

    async def classified_to_result(
        self,
        proposition: Proposition,
        classified: list[ClassifiedProposition],
        repository: PropositionRepository,
    ) -> RevisionResult:
        """Apply the precedence IDENTICAL > CONTRADICTORY > SIMILAR > GENERALIZES > New."""

        async def stored(candidate: Proposition) -> Proposition:
            # Candidates carry decayed confidence; revise the stored value
            return await repository.find_by_id(candidate.id) or candidate

        identical = next((c for c in classified if c.relation is PropositionRelation.IDENTICAL), None)
        if identical is not None:
            original = await stored(identical.proposition)
            logger.debug(f"Merged: {original.text} + {proposition.text}")
            return Merged(original=original, revised=merge_propositions(original, proposition))

        contradictory = next(
            (c for c in classified if c.relation is PropositionRelation.CONTRADICTORY), None
        )
        if contradictory is not None:
            original = await stored(contradictory.proposition)
            logger.debug(f"Contradicted: {original.text} vs new: {proposition.text}")
            return Contradicted(original=contradict_proposition(original), new=proposition)

        similar = [c for c in classified if c.relation is PropositionRelation.SIMILAR]
        accepted = [c for c in similar if c.similarity >= self.min_similarity_for_reinforce]
        if len(accepted) < len(similar):
            logger.debug(
                f"Rejected {len(similar) - len(accepted)} SIMILAR classifications "
                f"below {self.min_similarity_for_reinforce}"
            )
        if accepted:
            best = min(accepted, key=lambda c: (-c.similarity, c.proposition.id))
            original = await stored(best.proposition)
            logger.debug(f"Reinforced: {original.text}")
            return Reinforced(original=original, revised=reinforce_proposition(original, proposition))

        generalizes = [c.proposition for c in classified if c.relation is PropositionRelation.GENERALIZES]
        if generalizes:
            logger.debug(f"Generalized: {proposition.text} covers {len(generalizes)} propositions")
            return Generalized(proposition=proposition, generalizes=generalizes)

        logger.debug(f"New proposition (unrelated): {proposition.text}")
        return New(proposition=proposition)

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    async def classify(
        self,
        proposition: Proposition,
        candidates: list[Proposition],
    ) -> list[ClassifiedProposition]:
        """Classify candidates against one proposition. LLM failure yields []."""
        if not candidates:
            return []

        prompt = _CLASSIFY_TEMPLATE.format(
            text=proposition.text,
            confidence=proposition.confidence,
            reasoning=proposition.reasoning or "N/A",
            candidates=_format_candidates(candidates),
        )
        try:
            with telemetry_stage("proposition_classify"):
                response = await asyncio.wait_for(
                    self._classifier.generate_structured(
                        prompt, ClassificationResponse, system=_CLASSIFY_SYSTEM_PROMPT
                    ),
                    timeout=self.timeout_seconds,
                )
        except Exception as e:
            logger.warning(f"Proposition classification failed: {e!r}")
            return []

        logger.info(
            f"Classified '{truncate(proposition.text, 60)}' against {len(candidates)} candidates: "
            + ", ".join(f"{c.proposition_id}={c.relation}" for c in response.classifications)
        )
        return self._map_classifications(response.classifications, candidates)

    async def classify_batch(
        self,
        items: list[PendingClassification],
        repository: PropositionRepository,
    ) -> list[RevisionResult]:
        """Classify pending items in chunks of classify_batch_size, one LLM call per chunk."""
        if not items:
            return []
        if len(items) == 1:
            item = items[0]
            classified = await self.classify(item.proposition, item.candidates)
            return [await self.classified_to_result(item.proposition, classified, repository)]

        chunks = [
            items[i : i + self.classify_batch_size]
            for i in range(0, len(items), self.classify_batch_size)
        ]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(chunk: list[PendingClassification]) -> list[RevisionResult]:
            async with semaphore:
                return await self._classify_chunk(chunk, repository)

        chunk_results = await asyncio.gather(*(run(c) for c in chunks))
        return [result for results in chunk_results for result in results]

    async def _classify_chunk(
        self,
        chunk: list[PendingClassification],
        repository: PropositionRepository,
    ) -> list[RevisionResult]:
        blocks = []
        for index, item in enumerate(chunk):
            blocks.append(
                f"=== proposition_index {index} ===\n"
                + _CLASSIFY_TEMPLATE.format(
                    text=item.proposition.text,
                    confidence=item.proposition.confidence,
                    reasoning=item.proposition.reasoning or "N/A",
                    candidates=_format_candidates(item.candidates),
                )
            )
        prompt = _CLASSIFY_BATCH_TEMPLATE.format(count=len(chunk), items="\n\n".join(blocks))

        try:
            with telemetry_stage("proposition_classify"):
                response = await asyncio.wait_for(
                    self._classifier.generate_structured(
                        prompt, BatchClassificationResponse, system=_CLASSIFY_SYSTEM_PROMPT
                    ),
                    timeout=self.timeout_seconds,
                )
        except Exception as e:
            logger.warning(f"Batch proposition classification failed: {e!r}")
            response = BatchClassificationResponse()
        else:
            logger.info(f"Batch classified {len(chunk)} propositions in one LLM call")

        by_index = {p.proposition_index: p for p in response.propositions}
        results: list[RevisionResult] = []
        for index, item in enumerate(chunk):
            entry = by_index.get(index)
            if entry is None:
                logger.warning(
                    f"No classification returned for batch index {index}, treating as new: "
                    f"{truncate(item.proposition.text, 60)}"
                )
                results.append(New(proposition=item.proposition))
                continue
            classified = self._map_classifications(entry.classifications, item.candidates)
            results.append(await self.classified_to_result(item.proposition, classified, repository))
        return results

    @staticmethod
    def _map_classifications(
        classifications: list[ClassificationItem],
        candidates: list[Proposition],
    ) -> list[ClassifiedProposition]:
        mapped = []
        for item in classifications:
            raw = item.proposition_id.strip()
            index = int(raw) if raw.isdecimal() and raw.isascii() else -1
            if not 0 <= index < len(candidates):
                logger.warning(f"Invalid candidate index '{item.proposition_id}' in classification, skipping")
                continue
            mapped.append(
                ClassifiedProposition(
                    proposition=candidates[index],
                    relation=PropositionRelation.parse(item.relation),
                    similarity=min(1.0, max(0.0, item.similarity)),
                    reasoning=item.reasoning,
                )
            )
        return mapped
