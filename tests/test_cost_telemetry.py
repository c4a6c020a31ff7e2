"""Tests for run-scoped cost telemetry aggregation."""

import pytest

from dice_kg.config.pricing import PRICING_VERSION, estimate_cost_usd
from dice_kg.types.telemetry import CostUsageRecord
from dice_kg.utils.cost_telemetry import (
    CostCollector,
    current_stage,
    record_usage,
    telemetry_collector,
    telemetry_stage,
)


def _record(stage: str, cost: float, tokens: int = 100, **kwargs) -> CostUsageRecord:
    defaults = dict(
        provider="openai",
        model="gpt-5-mini",
        operation="generate_structured",
        stage=stage,
        input_tokens=tokens,
        output_tokens=0,
        total_tokens=tokens,
        estimated_cost_usd=cost,
        latency_ms=10,
        estimated=False,
    )
    defaults.update(kwargs)
    return CostUsageRecord(**defaults)


def test_cost_collector_aggregates_by_stage() -> None:
    """Collector should aggregate totals and per-stage metrics, costliest stage first."""
    collector = CostCollector()
    collector.add(_record("entity_bakeoff", 0.0001, tokens=50))
    collector.add(_record("proposition_classify", 0.002, tokens=120))
    collector.add(_record("proposition_classify", 0.001, tokens=30))

    report = collector.summary()
    assert report.pricing_version == PRICING_VERSION
    assert report.total_calls == 3
    assert report.total_tokens == 200
    assert report.total_estimated_cost_usd == pytest.approx(0.0031)
    assert [s.stage for s in report.by_stage] == ["proposition_classify", "entity_bakeoff"]
    assert report.by_stage[0].calls == 2
    assert report.by_stage[0].total_latency_ms == 20
    assert report.warnings == []


def test_cost_collector_warns_on_threshold() -> None:
    """Collector should include warning when threshold is exceeded."""
    collector = CostCollector(warn_threshold_usd=0.001)
    collector.add(_record("proposition_extraction", 0.002))

    report = collector.summary()
    assert any("exceeded threshold" in w for w in report.warnings)


def test_cost_collector_warns_once_on_missing_pricing() -> None:
    """Unpriced models produce one warning per model and stage."""
    collector = CostCollector()
    for _ in range(2):
        collector.add(_record("entity_bakeoff", 0.0, model="local-llama", metadata={"pricing_found": False}))

    report = collector.summary()
    assert len(report.warnings) == 1
    assert "local-llama" in report.warnings[0]


def test_record_usage_requires_active_collector() -> None:
    """Usage is recorded only inside telemetry_collector."""
    collector = CostCollector()
    record_usage(_record("unknown", 0.0))
    with telemetry_collector(collector):
        record_usage(_record("unknown", 0.0))
    record_usage(_record("unknown", 0.0))

    assert len(collector.records) == 1


def test_telemetry_stage_nests_and_resets() -> None:
    """Stage labels nest and restore the outer label on exit."""
    assert current_stage() == "unknown"
    with telemetry_stage("entity_resolution"):
        with telemetry_stage("entity_bakeoff"):
            assert current_stage() == "entity_bakeoff"
        assert current_stage() == "entity_resolution"
    assert current_stage() == "unknown"


class TestEstimateCost:
    """Test per-call cost estimation."""

    def test_known_model(self):
        cost, priced = estimate_cost_usd("gpt-5-mini", input_tokens=1_000_000, output_tokens=500_000)
        assert priced is True
        assert cost == pytest.approx(1.25)

    def test_embedding_model_ignores_output(self):
        cost, priced = estimate_cost_usd("text-embedding-3-small", input_tokens=2_000_000)
        assert priced is True
        assert cost == pytest.approx(0.04)

    def test_unknown_model(self):
        assert estimate_cost_usd("local-llama", input_tokens=1000) == (0.0, False)

    def test_dated_snapshot_priced_as_base_model(self):
        cost, priced = estimate_cost_usd("gpt-5-mini-2025-08-07", input_tokens=1_000_000)
        assert priced is True
        assert cost == pytest.approx(0.25)

    def test_snapshot_prefix_needs_date(self):
        assert estimate_cost_usd("gpt-5-turbo", input_tokens=1000) == (0.0, False)
