"""Tests for the knowledge graph builder, delta and proposition pipeline."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dice_kg.extraction.base import PropositionExtractor, SourceAnalysisContext
from dice_kg.extraction.filters import SchemaValidatedMentionFilter
from dice_kg.pipeline.builder import (
    EntityCreatedEvent,
    EntityMergedEvent,
    MultiPassKnowledgeGraphBuilder,
    SourceAnalyzer,
)
from dice_kg.pipeline.delta import KnowledgeGraphDelta, Merge, Merges
from dice_kg.pipeline.policies import UseNewEntityMergePolicy
from dice_kg.pipeline.propositions import PropositionPipeline
from dice_kg.resolution.base import EntityResolver
from dice_kg.resolution.escalating import create_escalating_resolver
from dice_kg.resolution.resolvers import AlwaysCreateEntityResolver
from dice_kg.revision.reviser import LlmPropositionReviser
from dice_kg.storage.base import PropositionQuery
from dice_kg.types import (
    Chunk,
    ExistingEntity,
    KnownEntity,
    NamedEntityData,
    NewEntity,
    ReferenceOnlyEntity,
    Resolutions,
    SuggestedEntities,
    SuggestedEntity,
    SuggestedMention,
    SuggestedProposition,
    SuggestedPropositions,
    SuggestedRelationship,
    SuggestedRelationships,
    VetoedEntity,
)


def _suggested(name: str, *labels: str, chunk_id: str = "c1") -> SuggestedEntity:
    return SuggestedEntity(name=name, labels=list(labels) or ["Person"], chunk_id=chunk_id)


# ---- Delta and policies ----


class TestKnowledgeGraphDelta:
    """Test delta views."""

    def test_labels_are_unioned_per_id(self):
        holmes = NamedEntityData(name="Holmes", labels=frozenset({"Person"}))
        upgraded = holmes.with_labels({"Detective"})
        watson = NamedEntityData(name="Watson", labels=frozenset({"Doctor"}))
        delta = KnowledgeGraphDelta(
            chunk_ids={"c1", "c2"},
            entity_merges=Merges([
                Merge(NewEntity(suggested=_suggested("Holmes")), holmes),
                Merge(NewEntity(suggested=_suggested("Watson", "Doctor")), watson),
                Merge(ExistingEntity(suggested=_suggested("Holmes", "Detective"), existing=holmes), upgraded),
                Merge(VetoedEntity(suggested=_suggested("The Hound", "Work"), reason="closed"), None),
            ]),
            relationship_merges=Merges([]),
        )

        entities = delta.new_or_modified_entities()
        assert [e.id for e in entities] == [holmes.id, watson.id]
        assert entities[0].labels == {"Person", "Detective"}
        assert len(delta.new_entities()) == 2
        assert len(delta.merged_entities()) == 1
        assert "vetoed=1" in delta.info_string()

    def test_use_new_policy_targets(self, schema):
        holmes = NamedEntityData(name="Holmes", labels=frozenset({"Person"}))
        new = NewEntity(suggested=_suggested("Watson"))
        vetoed = VetoedEntity(suggested=_suggested("The Hound", "Work"), reason="closed")
        reference = ReferenceOnlyEntity(suggested=_suggested("Holmes"), existing=holmes)

        merges = UseNewEntityMergePolicy().determine_entities(
            Resolutions(resolutions=[new, vetoed, reference]), schema
        ).merges
        assert [m.convergence_target for m in merges] == [new.recommended, None, holmes]

    def test_reference_only_is_reported_but_not_written(self):
        holmes = NamedEntityData(name="Holmes", labels=frozenset({"Person"}))
        delta = KnowledgeGraphDelta(
            chunk_ids={"c1"},
            entity_merges=Merges([
                Merge(ReferenceOnlyEntity(suggested=_suggested("Holmes"), existing=holmes), holmes),
            ]),
            relationship_merges=Merges([]),
        )

        assert delta.referenced_entities() == [holmes]
        assert delta.new_or_modified_entities() == []
        assert "referenced_entities=1" in delta.info_string()
        assert "vetoed=0" in delta.info_string()


# ---- Builder ----


class ScriptedSourceAnalyzer(SourceAnalyzer):
    """Suggests entities scripted per chunk id and links the first two resolutions."""

    def __init__(self, entities: dict[str, list[SuggestedEntity]]) -> None:
        self.entities = entities

    async def suggest_entities(self, chunk, context):
        return SuggestedEntities(suggested_entities=self.entities[chunk.id], source_text=chunk.text)

    async def suggest_relationships(self, chunk, resolutions, context):
        targets = [r.recommended for r in resolutions.resolutions if r.recommended is not None]
        relationships = []
        if len(targets) >= 2:
            relationships.append(
                SuggestedRelationship(source_id=targets[0].id, target_id=targets[1].id, type="KNOWS")
            )
        return SuggestedRelationships(entity_resolutions=resolutions, suggested_relationships=relationships)


class TestMultiPassKnowledgeGraphBuilder:
    """Test chunk-by-chunk resolution and writes."""

    @pytest.mark.asyncio
    async def test_later_chunks_resolve_against_earlier_writes(self, entity_repository, schema):
        analyzer = ScriptedSourceAnalyzer({
            "c1": [_suggested("Sherlock Holmes"), _suggested("John Watson", "Doctor")],
            "c2": [_suggested("Holmes", "Detective", "Person", chunk_id="c2"),
                   _suggested("The Hound", "Work", chunk_id="c2")],
        })
        resolver = create_escalating_resolver(entity_repository, use_vector=False)
        events = []
        builder = MultiPassKnowledgeGraphBuilder(
            analyzer, resolver, entity_repository=entity_repository, listeners=[events.append]
        )
        context = SourceAnalysisContext(context_id="ctx", schema=schema, entity_resolver=resolver)

        delta = await builder.compute_delta(
            [Chunk(id="c1", text="Holmes met Watson."), Chunk(id="c2", text="Holmes and the hound.")],
            context,
        )

        assert delta.chunk_ids == {"c1", "c2"}
        assert len(delta.new_entities()) == 2
        [merged] = delta.merged_entities()
        assert merged.convergence_target.name == "Sherlock Holmes"
        assert merged.convergence_target.labels == {"Person", "Detective"}
        assert len(delta.new_relationships()) == 1
        assert "vetoed=1" in delta.info_string()

        stored = await entity_repository.find_by_id(merged.convergence_target.id)
        assert stored.labels == {"Person", "Detective"}
        assert [type(e) for e in events] == [EntityCreatedEvent, EntityCreatedEvent, EntityMergedEvent]
        assert events[2].chunk_ids == {"c2"}

    @pytest.mark.asyncio
    async def test_missing_existing_entity_is_saved(self, entity_repository, schema):
        ghost = NamedEntityData(name="Irene Adler", labels=frozenset({"Person"}))
        suggestion = _suggested("Irene")
        resolver = MagicMock(spec=EntityResolver)
        resolver.resolve = AsyncMock(
            return_value=Resolutions(resolutions=[ExistingEntity(suggested=suggestion, existing=ghost)])
        )
        builder = MultiPassKnowledgeGraphBuilder(
            ScriptedSourceAnalyzer({"c1": [suggestion]}), resolver, entity_repository=entity_repository
        )
        context = SourceAnalysisContext(context_id="ctx", schema=schema, entity_resolver=resolver)

        await builder.compute_delta([Chunk(id="c1", text="Irene")], context)
        assert await entity_repository.find_by_id(ghost.id) is not None

    @pytest.mark.asyncio
    async def test_reference_only_entity_is_not_written(self, entity_repository, schema):
        known = NamedEntityData(name="Baker Street", labels=frozenset({"Place"}))
        suggestion = _suggested("Baker Street", "Place")
        resolver = MagicMock(spec=EntityResolver)
        resolver.resolve = AsyncMock(
            return_value=Resolutions(resolutions=[ReferenceOnlyEntity(suggested=suggestion, existing=known)])
        )
        events = []
        builder = MultiPassKnowledgeGraphBuilder(
            ScriptedSourceAnalyzer({"c1": [suggestion]}),
            resolver,
            entity_repository=entity_repository,
            listeners=[events.append],
        )
        context = SourceAnalysisContext(context_id="ctx", schema=schema, entity_resolver=resolver)

        delta = await builder.compute_delta([Chunk(id="c1", text="Baker Street")], context)
        assert delta.referenced_entities() == [known]
        assert await entity_repository.find_by_id(known.id) is None
        assert events == []


# ---- Proposition pipeline ----


class ScriptedExtractor(PropositionExtractor):
    """Returns scripted propositions per chunk id."""

    def __init__(self, propositions: dict[str, list[SuggestedProposition]]) -> None:
        self.propositions = propositions

    async def extract(self, chunk, context):
        return SuggestedPropositions(chunk_id=chunk.id, propositions=self.propositions.get(chunk.id, []))


def _alice_likes_tea() -> SuggestedProposition:
    return SuggestedProposition(
        text="Alice likes tea",
        mentions=[SuggestedMention(span="Alice", type="Person", role="SUBJECT")],
        confidence=0.6,
    )


@pytest.fixture
def context(schema):
    return SourceAnalysisContext(context_id="ctx", schema=schema, entity_resolver=AlwaysCreateEntityResolver())


CHUNKS = [Chunk(id="c1", text="Alice: I like tea."), Chunk(id="c2", text="Alice: Tea is great.")]


class TestPropositionPipeline:
    """Test extraction, mention resolution and revision across chunks."""

    def test_reviser_requires_repository(self):
        with pytest.raises(ValueError, match="repository is required"):
            PropositionPipeline(ScriptedExtractor({}), reviser=LlmPropositionReviser(AsyncMock()))

    @pytest.mark.asyncio
    async def test_mentions_resolve_to_same_entity_across_chunks(self, context):
        extractor = ScriptedExtractor({"c1": [_alice_likes_tea()], "c2": [_alice_likes_tea()]})

        results = await PropositionPipeline(extractor).process(CHUNKS, context)
        first, second = results.all_propositions
        assert first.mentions[0].resolved_id is not None
        assert first.mentions[0].resolved_id == second.mentions[0].resolved_id
        assert len(results.new_entities()) == 1
        assert len(results.updated_entities()) == 1
        assert results.fully_resolved_count == 2
        assert not results.has_revision

    @pytest.mark.asyncio
    async def test_revision_merges_and_persists(self, context, proposition_repository):
        llm = AsyncMock()
        extractor = ScriptedExtractor({"c1": [_alice_likes_tea()], "c2": [_alice_likes_tea()]})
        pipeline = PropositionPipeline(
            extractor, reviser=LlmPropositionReviser(llm), repository=proposition_repository
        )

        results = await pipeline.process(CHUNKS, context)
        assert results.stats == {"new": 1, "merged": 1}
        assert len(results.propositions_to_persist()) == 1
        llm.generate_structured.assert_not_awaited()

        [stored] = await proposition_repository.query(PropositionQuery(context_id="ctx"))
        assert stored.grounding == ["c1", "c2"]
        assert stored.reinforce_count == 1
        assert stored.confidence == pytest.approx(0.78)

    @pytest.mark.asyncio
    async def test_mention_filter_drops_invalid_mentions(self, context):
        extractor = ScriptedExtractor({
            "c1": [
                SuggestedProposition(
                    text="The company hired Alice",
                    mentions=[
                        SuggestedMention(span="the company", type="Company"),
                        SuggestedMention(span="Alice", type="Person"),
                    ],
                    confidence=0.7,
                )
            ]
        })
        pipeline = PropositionPipeline(extractor, mention_filter=SchemaValidatedMentionFilter(context.schema))

        result = await pipeline.process_chunk(CHUNKS[0], context)
        assert [m.span for m in result.propositions[0].mentions] == ["Alice"]
        assert [e.name for e in result.new_entities()] == ["Alice"]

    @pytest.mark.asyncio
    async def test_known_entities_bind_first(self, schema):
        alice = NamedEntityData(name="Alice", labels=frozenset({"Person"}))
        context = SourceAnalysisContext(
            context_id="ctx",
            schema=schema,
            entity_resolver=AlwaysCreateEntityResolver(),
            known_entities=[KnownEntity.as_current_user(alice)],
        )
        extractor = ScriptedExtractor({"c1": [_alice_likes_tea()]})

        results = await PropositionPipeline(extractor).process(CHUNKS[:1], context)
        assert results.all_propositions[0].mentions[0].resolved_id == alice.id
        assert results.new_entities() == []
