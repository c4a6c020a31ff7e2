"""
Cost Telemetry

Usage accounting for one resolution or ingestion run. Nothing is recorded
unless a CostCollector is attached with telemetry_collector(); providers
then report every call, labelled with the innermost telemetry_stage().

Stages used by the library:
    entity_bakeoff, agentic_search, proposition_classify, proposition_extraction

Example:
    >>> collector = CostCollector(warn_threshold_usd=0.50)
    >>> with telemetry_collector(collector):
    ...     await pipeline.process(chunks, context)
    >>> report = collector.summary()
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from dice_kg.config.pricing import PRICING_VERSION
from dice_kg.types.telemetry import CostReport, CostUsageRecord, StageCostBreakdown

UNKNOWN_STAGE = "unknown"

_active_collector: ContextVar[CostCollector | None] = ContextVar("dice_cost_collector", default=None)
_active_stage: ContextVar[str] = ContextVar("dice_cost_stage", default=UNKNOWN_STAGE)


def _stage_breakdown(stage: str, records: list[CostUsageRecord]) -> StageCostBreakdown:
    return StageCostBreakdown(
        stage=stage,
        calls=len(records),
        input_tokens=sum(r.input_tokens for r in records),
        output_tokens=sum(r.output_tokens for r in records),
        total_tokens=sum(r.total_tokens for r in records),
        estimated_cost_usd=sum(r.estimated_cost_usd for r in records),
        total_latency_ms=sum(r.latency_ms for r in records),
    )


class CostCollector:
    """
    Collects usage records for one run.

    Args:
        warn_threshold_usd: Add a warning to the report once the estimated
            total reaches this amount
    """

    def __init__(self, *, warn_threshold_usd: float | None = None) -> None:
        self._records: list[CostUsageRecord] = []
        self._warn_threshold_usd = warn_threshold_usd

    @property
    def records(self) -> list[CostUsageRecord]:
        return list(self._records)

    def add(self, record: CostUsageRecord) -> None:
        self._records.append(record)

    def summary(self) -> CostReport:
        """Totals plus one breakdown per stage, most expensive stage first."""
        by_stage: dict[str, list[CostUsageRecord]] = defaultdict(list)
        for record in self._records:
            by_stage[record.stage].append(record)

        breakdowns = [_stage_breakdown(stage, records) for stage, records in by_stage.items()]
        breakdowns.sort(key=lambda b: b.estimated_cost_usd, reverse=True)
        total_cost = sum(b.estimated_cost_usd for b in breakdowns)

        return CostReport(
            pricing_version=PRICING_VERSION,
            total_calls=len(self._records),
            total_tokens=sum(b.total_tokens for b in breakdowns),
            total_estimated_cost_usd=total_cost,
            by_stage=breakdowns,
            warnings=self._warnings(total_cost),
        )

    def _warnings(self, total_cost: float) -> list[str]:
        unpriced = sorted({
            (r.model, r.stage) for r in self._records if r.metadata.get("pricing_found") is False
        })
        warnings = [
            f"Missing pricing for model '{model}' in stage '{stage}'. Cost shown as 0.0 for those calls."
            for model, stage in unpriced
        ]
        threshold = self._warn_threshold_usd
        if threshold is not None and total_cost >= threshold:
            warnings.append(f"Estimated cost ${total_cost:.6f} exceeded threshold ${threshold:.6f}.")
        return warnings


@contextmanager
def telemetry_collector(collector: CostCollector | None) -> Iterator[CostCollector | None]:
    """Attach collector for the duration of the block (None detaches)."""
    token = _active_collector.set(collector)
    try:
        yield collector
    finally:
        _active_collector.reset(token)


@contextmanager
def telemetry_stage(stage: str) -> Iterator[None]:
    token = _active_stage.set(stage)
    try:
        yield
    finally:
        _active_stage.reset(token)


def current_stage() -> str:
    return _active_stage.get()


def record_usage(record: CostUsageRecord) -> None:
    """Hand record to the attached collector; a no-op when telemetry is off."""
    collector = _active_collector.get()
    if collector is not None:
        collector.add(record)
