"""Tests for the LLM-driven agentic searcher."""

from unittest.mock import AsyncMock

import pytest

from dice_kg.resolution.agentic import AgenticCandidateSearcher
from dice_kg.storage.base import SimilarityResult
from dice_kg.types import AgenticSearchStep, NamedEntityData, SuggestedEntity


@pytest.fixture
def llm():
    return AsyncMock()


def _suggested(name: str = "Holmes", *labels: str) -> SuggestedEntity:
    return SuggestedEntity(name=name, labels=list(labels) or ["Person"], summary="The detective")


class TestAgenticCandidateSearcher:
    """Test the search-then-answer loop."""

    @pytest.mark.asyncio
    async def test_answer_from_own_search_is_confident(self, llm, entity_repository, schema):
        holmes = await entity_repository.save(
            NamedEntityData(name="Sherlock Holmes", labels=frozenset({"Person"}))
        )
        llm.generate_structured.side_effect = [
            AgenticSearchStep(action="text_search", query="Holmes"),
            AgenticSearchStep(action="answer", matched_entity_id=holmes.id, reason="same detective"),
        ]

        result = await AgenticCandidateSearcher(entity_repository, llm).search(_suggested(), schema)
        assert result.confident == holmes
        assert result.candidates == [holmes]

        second_prompt = llm.generate_structured.await_args_list[1].args[0]
        assert f"[{holmes.id}] Sherlock Holmes (Person)" in second_prompt

    @pytest.mark.asyncio
    async def test_answer_not_seen_in_searches_is_rejected(self, llm, entity_repository, schema):
        await entity_repository.save(NamedEntityData(name="Sherlock Holmes", labels=frozenset({"Person"})))
        llm.generate_structured.side_effect = [
            AgenticSearchStep(action="text_search", query="Holmes"),
            AgenticSearchStep(action="answer", matched_entity_id="made-up-id"),
        ]

        result = await AgenticCandidateSearcher(entity_repository, llm).search(_suggested(), schema)
        assert result.confident is None
        assert len(result.candidates) == 1

    @pytest.mark.asyncio
    async def test_incompatible_labels_are_rejected(self, llm, schema):
        hamlet = NamedEntityData(name="Hamlet", labels=frozenset({"Work"}))
        repository = AsyncMock()
        repository.text_search.return_value = [SimilarityResult(match=hamlet, score=1.0)]
        llm.generate_structured.side_effect = [
            AgenticSearchStep(action="text_search", query="Hamlet"),
            AgenticSearchStep(action="answer", matched_entity_id=hamlet.id),
        ]

        result = await AgenticCandidateSearcher(repository, llm).search(_suggested("Hamlet"), schema)
        assert result.confident is None
        assert result.candidates == [hamlet]

    @pytest.mark.asyncio
    async def test_null_answer(self, llm, entity_repository, schema):
        llm.generate_structured.return_value = AgenticSearchStep(action="answer", matched_entity_id=None)
        result = await AgenticCandidateSearcher(entity_repository, llm).search(_suggested(), schema)
        assert result.confident is None
        assert result.candidates == []

    @pytest.mark.asyncio
    async def test_step_budget(self, llm, entity_repository, schema):
        llm.generate_structured.return_value = AgenticSearchStep(action="vector_search", query="detective")
        searcher = AgenticCandidateSearcher(entity_repository, llm, max_steps=3)

        result = await searcher.search(_suggested(), schema)
        assert result.confident is None
        assert llm.generate_structured.await_count == 3

    @pytest.mark.asyncio
    async def test_llm_failure_returns_candidates_so_far(self, llm, entity_repository, schema):
        holmes = await entity_repository.save(
            NamedEntityData(name="Sherlock Holmes", labels=frozenset({"Person"}))
        )
        llm.generate_structured.side_effect = [
            AgenticSearchStep(action="text_search", query="Holmes"),
            RuntimeError("provider down"),
        ]

        result = await AgenticCandidateSearcher(entity_repository, llm).search(_suggested(), schema)
        assert result.confident is None
        assert result.candidates == [holmes]
