"""Simulation results and snapshot data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from topology_simulator.core.events import FaultEvent
    from topology_simulator.core.types import (
        ConnectionId,
        EventId,
        NodeId,
        ScenarioId,
        SimulationId,
        TopologyId,
    )


class RunStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MetricSample:
    """Point-in-time metric snapshot."""

    timestamp: float  # Simulated seconds since scenario start
    values: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "data": dict(self.values)}


@dataclass(frozen=True)
class EventRecord:
    """A ledger entry: the event as scheduled and when it changed state."""

    event: FaultEvent
    time: float
    reason: str | None = None  # Why the event failed

    def to_dict(self) -> dict[str, Any]:
        data = self.event.to_dict()
        data["time"] = self.time
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class EventLedger:
    triggered: Sequence[EventRecord] = field(default_factory=list)
    completed: Sequence[EventRecord] = field(default_factory=list)
    failed: Sequence[EventRecord] = field(default_factory=list)

    def trigger_times(self) -> dict[EventId, float]:
        return {record.event.id: record.time for record in self.triggered}

    def freeze(self) -> None:
        self.triggered = tuple(self.triggered)
        self.completed = tuple(self.completed)
        self.failed = tuple(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "triggered": [r.to_dict() for r in self.triggered],
            "completed": [r.to_dict() for r in self.completed],
            "failed": [r.to_dict() for r in self.failed],
        }


@dataclass
class MetricsSummary:
    average_tps: float = 0.0
    peak_tps: float = 0.0
    average_latency: float = 0.0  # ms
    availability: float = 0.0  # percent
    consensus_time: float = 0.0  # ms
    recovery_time: float = 0.0  # seconds

    def to_dict(self) -> dict[str, float]:
        return {
            "average_tps": self.average_tps,
            "peak_tps": self.peak_tps,
            "average_latency": self.average_latency,
            "availability": self.availability,
            "consensus_time": self.consensus_time,
            "recovery_time": self.recovery_time,
        }


@dataclass
class Analysis:
    bottlenecks: list[str] = field(default_factory=list)
    failure_points: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    resilience_score: float = 0.0  # 0-100

    def to_dict(self) -> dict[str, Any]:
        return {
            "bottlenecks": list(self.bottlenecks),
            "failure_points": list(self.failure_points),
            "recommendations": list(self.recommendations),
            "resilience_score": self.resilience_score,
        }


@dataclass
class SimulationResult:
    """Output record of one run.

    Mutated only by the engine while the run is in progress; frozen once the
    run finishes, after which only analysis may be (re)computed.
    """

    id: SimulationId
    scenario_id: ScenarioId
    topology_id: TopologyId
    start_time: datetime
    duration: float  # Scenario duration in simulated seconds
    seed: int | None = None
    status: RunStatus = RunStatus.IDLE
    end_time: datetime | None = None
    elapsed: float = 0.0  # Simulated seconds actually covered

    events: EventLedger = field(default_factory=EventLedger)
    timeline: Sequence[MetricSample] = field(default_factory=list)
    summary: MetricsSummary = field(default_factory=MetricsSummary)
    node_metrics: dict[NodeId, dict[str, Any]] = field(default_factory=dict)
    connection_metrics: dict[ConnectionId, dict[str, Any]] = field(default_factory=dict)
    analysis: Analysis = field(default_factory=Analysis)

    frozen: bool = False

    def series(self, name: str) -> list[float]:
        """Values of one metric across the timeline, skipping samples without it."""
        return [s.values[name] for s in self.timeline if name in s.values]

    def freeze(self) -> None:
        self.events.freeze()
        self.timeline = tuple(self.timeline)
        self.frozen = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "scenario_id": self.scenario_id,
            "topology_id": self.topology_id,
            "status": self.status.value,
            "seed": self.seed,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "elapsed": self.elapsed,
            "events": self.events.to_dict(),
            "metrics": {
                "timeline": [s.to_dict() for s in self.timeline],
                "summary": self.summary.to_dict(),
                "node_metrics": dict(self.node_metrics),
                "connection_metrics": dict(self.connection_metrics),
            },
            "analysis": self.analysis.to_dict(),
        }
