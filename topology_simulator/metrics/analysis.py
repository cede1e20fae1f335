"""Post-run resilience analysis.

Threshold rules over a finished result's metric series and event ledger.
Both functions are pure over the result's timeline and ledger, so re-running
them on the same frozen result yields identical output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from topology_simulator.config import AnalysisThresholds
from topology_simulator.metrics.results import Analysis, MetricsSummary

if TYPE_CHECKING:
    from topology_simulator.metrics.results import SimulationResult

HIGH_LATENCY = "High network latency detected"
LOW_AVAILABILITY = "Low availability during simulation"
SLOW_CONSENSUS = "Slow consensus times"
UNRECOVERED_EVENTS = "Some events did not complete properly"

RECOMMENDATIONS: dict[str, str] = {
    HIGH_LATENCY: "Consider increasing network bandwidth and reducing latency",
    LOW_AVAILABILITY: "Add redundant nodes and cross-region links to improve availability",
    SLOW_CONSENSUS: "Tune consensus timeouts or place validators closer together",
}
FAILURE_RECOMMENDATION = "Implement better failure detection and recovery mechanisms"
RECOVERY_RECOMMENDATION = "Improve automatic recovery procedures"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def recovery_times(result: SimulationResult) -> list[float]:
    """Completion minus trigger time for every completed event."""
    triggered_at = result.events.trigger_times()
    return [
        record.time - triggered_at[record.event.id]
        for record in result.events.completed
        if record.event.id in triggered_at
    ]


def summarize(result: SimulationResult) -> MetricsSummary:
    tps = result.series("tps")
    return MetricsSummary(
        average_tps=_mean(tps),
        peak_tps=max(tps, default=0.0),
        average_latency=_mean(result.series("latency")),
        availability=_mean(result.series("availability")),
        consensus_time=_mean(result.series("consensus_time")),
        # No completed events counts as instant recovery
        recovery_time=_mean(recovery_times(result)),
    )


def resilience_score(
    summary: MetricsSummary,
    triggered: int,
    failed: int,
    thresholds: AnalysisThresholds,
) -> float:
    """Unweighted mean of the availability, recovery and failure sub-scores."""
    availability_score = min(100.0, max(0.0, summary.availability))

    penalty = summary.recovery_time / 60 * thresholds.recovery_penalty_per_minute
    recovery_score = min(100.0, max(0.0, 100.0 - penalty))

    attempted = triggered + failed
    if attempted == 0:
        failure_score = 100.0
    else:
        failure_score = min(100.0, max(0.0, 100.0 - failed / attempted * 100))

    return (availability_score + recovery_score + failure_score) / 3


def analyze(
    result: SimulationResult,
    thresholds: AnalysisThresholds | None = None,
) -> Analysis:
    """Recompute and assign `result.analysis`."""
    if thresholds is None:
        thresholds = AnalysisThresholds()

    summary = summarize(result)
    analysis = Analysis()

    if summary.average_latency > thresholds.max_average_latency:
        analysis.bottlenecks.append(HIGH_LATENCY)
    if summary.availability < thresholds.min_availability:
        analysis.bottlenecks.append(LOW_AVAILABILITY)
    if summary.consensus_time > thresholds.max_consensus_time:
        analysis.bottlenecks.append(SLOW_CONSENSUS)

    for record in result.events.failed:
        point = f"Failed event: {record.event.type.value} on {record.event.target}"
        if record.reason:
            point += f" ({record.reason})"
        analysis.failure_points.append(point)
    if len(result.events.completed) < len(result.events.triggered):
        analysis.failure_points.append(UNRECOVERED_EVENTS)

    analysis.recommendations.extend(RECOMMENDATIONS[b] for b in analysis.bottlenecks)
    if analysis.failure_points:
        analysis.recommendations.append(FAILURE_RECOMMENDATION)
    if summary.recovery_time > thresholds.slow_recovery_time:
        analysis.recommendations.append(RECOVERY_RECOMMENDATION)

    analysis.resilience_score = resilience_score(
        summary,
        triggered=len(result.events.triggered),
        failed=len(result.events.failed),
        thresholds=thresholds,
    )

    result.analysis = analysis
    return analysis
