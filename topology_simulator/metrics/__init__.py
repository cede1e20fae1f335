"""Metric sampling, run results and resilience analysis."""

from .analysis import analyze, summarize
from .collector import MetricsCollector
from .results import (
    Analysis,
    EventLedger,
    EventRecord,
    MetricSample,
    MetricsSummary,
    RunStatus,
    SimulationResult,
)

__all__ = [
    "Analysis",
    "EventLedger",
    "EventRecord",
    "MetricSample",
    "MetricsCollector",
    "MetricsSummary",
    "RunStatus",
    "SimulationResult",
    "analyze",
    "summarize",
]
