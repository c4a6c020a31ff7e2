"""Tests for the escalating entity resolver."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dice_kg.config import DiceConfig
from dice_kg.resolution.bakeoff import CandidateBakeoff
from dice_kg.resolution.escalating import (
    BAKEOFF_CANDIDATE_SCORE,
    EscalatingEntityResolver,
    create_escalating_resolver,
    creation_policy,
)
from dice_kg.resolution.searchers import CandidateSearcher, ResolutionLevel, SearchResult
from dice_kg.types import (
    ExistingEntity,
    NamedEntityData,
    NewEntity,
    SuggestedEntities,
    SuggestedEntity,
    VetoedEntity,
)


def _searcher(name: str, result: SearchResult, level=ResolutionLevel.HEURISTIC_MATCH):
    searcher = MagicMock(spec=CandidateSearcher)
    searcher.name = name
    searcher.level = level
    searcher.search = AsyncMock(return_value=result)
    return searcher


def _bakeoff(returns=None):
    bakeoff = MagicMock(spec=CandidateBakeoff)
    bakeoff.select_best_match = AsyncMock(return_value=returns)
    return bakeoff


def _suggested(name: str = "Holmes", *labels: str, chunk_id: str | None = "chunk-1") -> SuggestedEntity:
    return SuggestedEntity(name=name, labels=list(labels) or ["Person"], chunk_id=chunk_id)


HOLMES = NamedEntityData(name="Sherlock Holmes", labels=frozenset({"Person"}))
MYCROFT = NamedEntityData(name="Mycroft Holmes", labels=frozenset({"Person"}))


class TestCreationPolicy:
    """Test New vs Vetoed for unmatched suggestions."""

    def test_creatable_type(self, schema):
        assert isinstance(creation_policy(_suggested("Moriarty", "Person"), schema), NewEntity)

    def test_closed_type_is_vetoed(self, schema):
        resolution = creation_policy(_suggested("The Hound", "Work"), schema)
        assert isinstance(resolution, VetoedEntity)
        assert "Work" in resolution.reason

    def test_unknown_type_is_creatable(self, schema):
        assert isinstance(creation_policy(_suggested("HAL", "Spaceship"), schema), NewEntity)


class TestEscalation:
    """Test the searcher escalation for one suggestion."""

    @pytest.mark.asyncio
    async def test_confident_searcher_short_circuits(self, schema):
        first = _searcher("first", SearchResult.of_confident(HOLMES), ResolutionLevel.EXACT_MATCH)
        second = _searcher("second", SearchResult.of_confident(MYCROFT))
        resolver = EscalatingEntityResolver([first, second])

        resolution, trace = await resolver.resolve_entity(_suggested(), schema)
        assert isinstance(resolution, ExistingEntity)
        assert resolution.existing == HOLMES
        assert trace.level is ResolutionLevel.EXACT_MATCH
        assert trace.matched_by == "first"
        second.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_candidates_applies_creation_policy(self, schema):
        resolver = EscalatingEntityResolver([_searcher("s", SearchResult.empty())], bakeoff=_bakeoff())

        new, trace = await resolver.resolve_entity(_suggested("Moriarty", "Person"), schema)
        vetoed, _ = await resolver.resolve_entity(_suggested("The Hound", "Work"), schema)
        assert isinstance(new, NewEntity)
        assert isinstance(vetoed, VetoedEntity)
        assert trace.level is ResolutionLevel.NO_MATCH

    @pytest.mark.asyncio
    async def test_candidates_without_bakeoff(self, schema):
        resolver = EscalatingEntityResolver([_searcher("s", SearchResult.of_candidates([HOLMES]))])
        resolution, trace = await resolver.resolve_entity(_suggested(), schema)
        assert isinstance(resolution, NewEntity)
        assert trace.candidates_considered == 1

    @pytest.mark.asyncio
    async def test_heuristic_only_skips_bakeoff(self, schema):
        bakeoff = _bakeoff(HOLMES)
        resolver = EscalatingEntityResolver(
            [_searcher("s", SearchResult.of_candidates([HOLMES]))],
            bakeoff=bakeoff,
            heuristic_only=True,
        )
        resolution, _ = await resolver.resolve_entity(_suggested(), schema)
        assert isinstance(resolution, NewEntity)
        bakeoff.select_best_match.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bakeoff_gets_unique_candidates(self, schema):
        bakeoff = _bakeoff(HOLMES)
        resolver = EscalatingEntityResolver(
            [
                _searcher("a", SearchResult.of_candidates([HOLMES])),
                _searcher("b", SearchResult.of_candidates([HOLMES, MYCROFT])),
            ],
            bakeoff=bakeoff,
        )

        resolution, trace = await resolver.resolve_entity(_suggested(), schema, "Holmes smoked a pipe.")
        assert isinstance(resolution, ExistingEntity)
        assert resolution.existing == HOLMES
        assert trace.level is ResolutionLevel.LLM_BAKEOFF

        suggested, scored, source_text = bakeoff.select_best_match.await_args.args
        assert [r.match for r in scored] == [HOLMES, MYCROFT]
        assert all(r.score == BAKEOFF_CANDIDATE_SCORE for r in scored)
        assert source_text == "Holmes smoked a pipe."

    @pytest.mark.asyncio
    async def test_single_candidate_is_verification_level(self, schema):
        resolver = EscalatingEntityResolver(
            [_searcher("a", SearchResult.of_candidates([HOLMES]))], bakeoff=_bakeoff(HOLMES)
        )
        _, trace = await resolver.resolve_entity(_suggested(), schema)
        assert trace.level is ResolutionLevel.LLM_VERIFICATION

    @pytest.mark.asyncio
    async def test_bakeoff_no_match_or_failure(self, schema):
        searchers = [_searcher("a", SearchResult.of_candidates([HOLMES, MYCROFT]))]
        rejected, _ = await EscalatingEntityResolver(searchers, bakeoff=_bakeoff(None)).resolve_entity(
            _suggested(), schema
        )
        assert isinstance(rejected, NewEntity)

        failing = _bakeoff()
        failing.select_best_match.side_effect = RuntimeError("boom")
        failed, _ = await EscalatingEntityResolver(searchers, bakeoff=failing).resolve_entity(
            _suggested("The Hound", "Work"), schema
        )
        assert isinstance(failed, VetoedEntity)

    @pytest.mark.asyncio
    async def test_failing_searcher_is_skipped(self, schema):
        broken = _searcher("broken", SearchResult.empty())
        broken.search.side_effect = RuntimeError("index offline")
        working = _searcher("working", SearchResult.of_confident(HOLMES))

        resolution, trace = await EscalatingEntityResolver([broken, working]).resolve_entity(
            _suggested(), schema
        )
        assert resolution.existing == HOLMES
        assert trace.searchers_tried == ["broken", "working"]


class TestResolveBatch:
    """Test batch resolution against a real store."""

    @pytest.mark.asyncio
    async def test_order_and_chunk_ids(self, entity_repository, schema):
        holmes = await entity_repository.save(HOLMES)
        resolver = create_escalating_resolver(
            entity_repository, use_vector=False, config=DiceConfig(resolution_concurrency=2)
        )

        resolutions = await resolver.resolve(
            SuggestedEntities(
                suggested_entities=[
                    _suggested("Moriarty"),
                    _suggested("sherlock holmes"),
                    _suggested("The Hound", "Work", chunk_id="chunk-2"),
                ]
            ),
            schema,
        )
        kinds = [r.kind for r in resolutions.resolutions]
        assert kinds == ["new", "existing", "vetoed"]
        assert resolutions.resolutions[1].existing.id == holmes.id
        assert resolutions.chunk_ids == {"chunk-1", "chunk-2"}

    @pytest.mark.asyncio
    async def test_traces_follow_input_order(self, entity_repository, schema):
        await entity_repository.save(HOLMES)
        resolver = create_escalating_resolver(entity_repository, use_vector=False)

        _, traces = await resolver.resolve_with_trace(
            SuggestedEntities(suggested_entities=[_suggested("Sherlock Holmes"), _suggested("Holmes")]),
            schema,
        )
        assert [t.suggested_name for t in traces] == ["Sherlock Holmes", "Holmes"]
        assert traces[0].level is ResolutionLevel.EXACT_MATCH
        assert traces[1].level is ResolutionLevel.HEURISTIC_MATCH

    @pytest.mark.asyncio
    async def test_subtype_suggestion_finds_stored_supertype(self, entity_repository, schema):
        """A Detective suggestion resolves to the stored Person of the same name."""
        holmes = await entity_repository.save(HOLMES)
        resolver = create_escalating_resolver(entity_repository)

        resolutions = await resolver.resolve(
            SuggestedEntities(suggested_entities=[_suggested("Sherlock Holmes", "Detective")]), schema
        )
        [resolution] = resolutions.resolutions
        assert resolution.kind == "existing"
        assert resolution.existing.id == holmes.id

    @pytest.mark.asyncio
    async def test_supertype_suggestion_finds_stored_subtype(self, entity_repository, schema):
        detective = await entity_repository.save(
            NamedEntityData(name="Sherlock Holmes", labels=frozenset({"Detective"}))
        )
        resolver = create_escalating_resolver(entity_repository, use_vector=False)

        resolutions = await resolver.resolve(
            SuggestedEntities(suggested_entities=[_suggested("Sherlock Holmes", "Person")]), schema
        )
        assert resolutions.resolutions[0].existing.id == detective.id

    @pytest.mark.asyncio
    async def test_incompatible_type_with_same_name_is_new(self, entity_repository, schema):
        await entity_repository.save(NamedEntityData(name="Hamlet", labels=frozenset({"Work"})))
        resolver = create_escalating_resolver(entity_repository, use_vector=False)

        resolutions = await resolver.resolve(
            SuggestedEntities(suggested_entities=[_suggested("Hamlet", "Person")]), schema
        )
        assert resolutions.resolutions[0].kind == "new"

    def test_factory_uses_config(self, entity_repository):
        resolver = create_escalating_resolver(
            entity_repository, config=DiceConfig(heuristic_only=True, resolution_concurrency=3)
        )
        assert resolver.heuristic_only is True
        assert resolver.concurrency == 3
        assert [s.name for s in resolver.searchers][-1] == "VectorSearcher"
