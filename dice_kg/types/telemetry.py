"""
Telemetry Types

Usage records emitted by providers and the aggregated per-stage report.
"""

from typing import Any

from pydantic import BaseModel, Field


class CostUsageRecord(BaseModel):
    """One provider call."""

    provider: str
    model: str
    operation: str = Field(..., description="generate, generate_structured, embed")
    stage: str = Field(default="unknown", description="Pipeline stage label active during the call")
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    latency_ms: int = 0
    estimated: bool = Field(
        default=False, description="True when token counts came from local counting"
    )
    metadata: dict[str, Any] = Field(default_factory=dict)


class StageCostBreakdown(BaseModel):
    """Aggregated usage for one stage."""

    stage: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    total_latency_ms: int = 0


class CostReport(BaseModel):
    """Aggregated usage for one collector."""

    pricing_version: str
    total_calls: int = 0
    total_tokens: int = 0
    total_estimated_cost_usd: float = 0.0
    by_stage: list[StageCostBreakdown] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
