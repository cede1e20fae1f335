"""Tests for post-run resilience analysis."""

from datetime import UTC, datetime

import pytest
from conftest import fault

from topology_simulator.config import AnalysisThresholds
from topology_simulator.core.events import FaultEvent, FaultType
from topology_simulator.core.types import ScenarioId, SimulationId, TopologyId
from topology_simulator.metrics.analysis import (
    FAILURE_RECOMMENDATION,
    HIGH_LATENCY,
    LOW_AVAILABILITY,
    RECOMMENDATIONS,
    RECOVERY_RECOMMENDATION,
    SLOW_CONSENSUS,
    UNRECOVERED_EVENTS,
    analyze,
    recovery_times,
    resilience_score,
    summarize,
)
from topology_simulator.metrics.results import (
    EventRecord,
    MetricSample,
    MetricsSummary,
    RunStatus,
    SimulationResult,
)


def sample(
    t: float, latency: float = 20.0, availability: float = 100.0, **extra: float
) -> MetricSample:
    values = {
        "tps": 500.0,
        "latency": latency,
        "availability": availability,
        "consensus_time": latency * 2,
        "error_rate": 0.0,
        **extra,
    }
    return MetricSample(timestamp=t, values=values)


def make_result(*samples: MetricSample) -> SimulationResult:
    return SimulationResult(
        id=SimulationId("sim"),
        scenario_id=ScenarioId("scenario"),
        topology_id=TopologyId("topology"),
        start_time=datetime.now(UTC),
        duration=60.0,
        status=RunStatus.COMPLETED,
        timeline=list(samples),
    )


def node_failure(event_id: str, offset: float, duration: float | None = None) -> FaultEvent:
    return fault(event_id, FaultType.NODE_FAILURE, offset, "validator-1", duration=duration)


class TestSummarize:
    def test_means_and_peak(self) -> None:
        result = make_result(sample(0, latency=10), sample(10, latency=30, tps=900.0))

        summary = summarize(result)

        assert summary.average_latency == pytest.approx(20.0)
        assert summary.peak_tps == 900.0
        assert summary.average_tps == pytest.approx(700.0)
        assert summary.consensus_time == pytest.approx(40.0)

    def test_empty_timeline(self) -> None:
        summary = summarize(make_result())

        assert summary == MetricsSummary()

    def test_recovery_time_averages_completed_events(self) -> None:
        result = make_result(sample(0))
        first, second = node_failure("a", 10, 20), node_failure("b", 15, 40)
        result.events.triggered = [EventRecord(first, 10), EventRecord(second, 15)]
        result.events.completed = [EventRecord(first, 30), EventRecord(second, 55)]

        assert recovery_times(result) == [20, 40]
        assert summarize(result).recovery_time == pytest.approx(30.0)

    def test_no_completed_events_counts_as_instant_recovery(self) -> None:
        result = make_result(sample(0))
        result.events.triggered = [EventRecord(node_failure("a", 10), 10)]

        assert summarize(result).recovery_time == 0.0


class TestResilienceScore:
    def test_mean_of_three_sub_scores(self) -> None:
        """90 availability, 2 minutes of recovery and half the events failed."""
        summary = MetricsSummary(availability=90.0, recovery_time=120.0)

        score = resilience_score(summary, triggered=1, failed=1, thresholds=AnalysisThresholds())

        assert score == pytest.approx((90 + 80 + 50) / 3)

    def test_nothing_attempted_is_full_failure_credit(self) -> None:
        summary = MetricsSummary(availability=100.0)

        score = resilience_score(summary, triggered=0, failed=0, thresholds=AnalysisThresholds())

        assert score == pytest.approx(100.0)

    def test_sub_scores_are_clamped(self) -> None:
        summary = MetricsSummary(availability=150.0, recovery_time=10_000.0)

        score = resilience_score(summary, triggered=0, failed=4, thresholds=AnalysisThresholds())

        assert score == pytest.approx(100 / 3)


class TestAnalyze:
    def test_healthy_run(self) -> None:
        result = make_result(sample(0), sample(10))

        analysis = analyze(result)

        assert analysis.bottlenecks == []
        assert analysis.failure_points == []
        assert analysis.recommendations == []
        assert analysis.resilience_score == pytest.approx(100.0)
        assert result.analysis is analysis

    def test_bottlenecks_and_recommendations(self) -> None:
        result = make_result(sample(0, latency=150, availability=95))

        analysis = analyze(result)

        assert analysis.bottlenecks == [HIGH_LATENCY, LOW_AVAILABILITY, SLOW_CONSENSUS]
        assert analysis.recommendations == [
            RECOMMENDATIONS[HIGH_LATENCY],
            RECOMMENDATIONS[LOW_AVAILABILITY],
            RECOMMENDATIONS[SLOW_CONSENSUS],
        ]

    def test_thresholds_are_strict(self) -> None:
        result = make_result(sample(0, latency=100, availability=99))
        result.timeline[0].values["consensus_time"] = 250.0

        assert analyze(result).bottlenecks == []

    def test_failed_and_unrecovered_events(self) -> None:
        result = make_result(sample(0))
        ghost = fault("ghost", FaultType.DDOS_ATTACK, 5, "ghost-node")
        result.events.failed = [EventRecord(ghost, 5, reason="Unknown node ghost-node")]
        result.events.triggered = [EventRecord(node_failure("a", 10), 10)]

        analysis = analyze(result)

        assert analysis.failure_points == [
            "Failed event: ddos-attack on ghost-node (Unknown node ghost-node)",
            UNRECOVERED_EVENTS,
        ]
        assert analysis.recommendations == [FAILURE_RECOMMENDATION]
        assert analysis.resilience_score == pytest.approx((100 + 100 + 50) / 3)

    def test_slow_recovery_recommendation(self) -> None:
        result = make_result(sample(0))
        event = node_failure("a", 0, 90)
        result.events.triggered = [EventRecord(event, 0)]
        result.events.completed = [EventRecord(event, 90)]

        analysis = analyze(result)

        assert analysis.recommendations == [RECOVERY_RECOMMENDATION]
        assert analysis.resilience_score == pytest.approx((100 + 85 + 100) / 3)

    def test_custom_thresholds(self) -> None:
        result = make_result(sample(0, latency=50))

        analysis = analyze(result, AnalysisThresholds(max_average_latency=40.0))

        assert analysis.bottlenecks == [HIGH_LATENCY]

    def test_idempotent_on_frozen_result(self) -> None:
        result = make_result(sample(0, latency=150, availability=80), sample(10))
        result.events.failed = [EventRecord(node_failure("x", 1), 1, reason="boom")]
        result.freeze()

        first = analyze(result).to_dict()
        second = analyze(result).to_dict()

        assert first == second
