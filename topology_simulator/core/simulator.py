"""Fixed-step fault injection engine."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from random import Random
from typing import TYPE_CHECKING

from topology_simulator.config import SimulatorConfig
from topology_simulator.core.effects import WorkingTopology, apply_fault, revert_fault
from topology_simulator.core.types import SimulationId
from topology_simulator.errors import FaultResolutionError
from topology_simulator.metrics.analysis import analyze, summarize
from topology_simulator.metrics.collector import MetricsCollector
from topology_simulator.metrics.results import (
    EventRecord,
    MetricSample,
    RunStatus,
    SimulationResult,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from topology_simulator.core.events import FaultEvent, Scenario
    from topology_simulator.core.topology import Topology

# Tolerance when comparing accumulated float clock values
EPSILON = 1e-9


@dataclass
class RunState:
    """Everything one run mutates. Owned by exactly one engine."""

    scenario: Scenario
    work: WorkingTopology
    collector: MetricsCollector
    result: SimulationResult
    rng: Random
    ticks_per_sample: int
    time_step: float  # Never longer than the configured step; divides the interval

    tick: int = 0
    clock: float = 0.0
    last_time: float = 0.0  # Clock of the last executed step
    pending: list[FaultEvent] = field(default_factory=list)  # Not yet triggered
    active: list[FaultEvent] = field(default_factory=list)  # Triggered, awaiting completion

    @property
    def finished(self) -> bool:
        return self.clock > self.scenario.duration + EPSILON


def step(state: RunState, dt: float) -> RunState:
    """Execute trigger, completion and sampling for the current tick, then advance.

    Mutates the run's private state in place and returns it.
    """
    now = state.clock
    ledger = state.result.events

    while state.pending and state.pending[0].offset <= now + EPSILON:
        event = state.pending.pop(0)
        try:
            apply_fault(state.work, event)
        except FaultResolutionError as e:
            ledger.failed.append(EventRecord(event=event, time=now, reason=str(e)))
            continue
        ledger.triggered.append(EventRecord(event=event, time=now))
        if event.duration is not None:
            state.active.append(event)

    due = [e for e in state.active if e.end is not None and e.end <= now + EPSILON]
    for event in sorted(due, key=lambda e: e.end or 0.0):
        revert_fault(state.work, event)
        state.active.remove(event)
        ledger.completed.append(EventRecord(event=event, time=now))

    if state.tick % state.ticks_per_sample == 0:
        values = state.collector.snapshot(state.work, state.rng)
        state.result.timeline.append(MetricSample(timestamp=now, values=values))

    state.last_time = now
    state.tick += 1
    state.clock = round(state.tick * dt, 9)
    return state


class SimulationEngine:
    """Replays a scenario against a private copy of a topology.

    The canonical topology passed in is never mutated. `run()` executes the
    whole scenario synchronously; `run_paced()` sleeps between steps for
    interactive use. Cancellation only takes effect between steps.
    """

    def __init__(
        self,
        topology: Topology,
        scenario: Scenario,
        config: SimulatorConfig | None = None,
        seed: int | None = None,
        simulation_id: SimulationId | None = None,
    ) -> None:
        self.topology = topology
        self.scenario = scenario
        self.config = config or SimulatorConfig()
        self.seed = seed if seed is not None else self.config.seed
        self.simulation_id = simulation_id or SimulationId(f"{scenario.id}-on-{topology.id}")

        self._state: RunState | None = None
        self._status = RunStatus.IDLE
        self._cancel_requested = False

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def result(self) -> SimulationResult | None:
        return self._state.result if self._state else None

    @property
    def working_topology(self) -> Topology:
        if self._state is None:
            raise RuntimeError("Simulation not started")
        return self._state.work.topology

    def start(self) -> SimulationResult:
        """Clone the topology and prepare the run. Raises ConfigurationError on bad input."""
        if self._state is not None:
            raise RuntimeError(f"Simulation {self.simulation_id} already started")

        time_step = self.config.time_step
        interval = self.scenario.metrics.collect_interval
        ticks_per_sample = max(1, round(interval / time_step))
        if abs(ticks_per_sample * time_step - interval) > EPSILON:
            # Shorten the step so every interval boundary falls on a tick
            ticks_per_sample = math.ceil(interval / time_step)
            time_step = interval / ticks_per_sample
        collector = MetricsCollector(self.scenario.metrics.targets)

        # Draw a seed when none was given so every run can be replayed
        seed = self.seed if self.seed is not None else Random().randrange(2**32)
        rng = Random(seed)

        result = SimulationResult(
            id=self.simulation_id,
            scenario_id=self.scenario.id,
            topology_id=self.topology.id,
            start_time=datetime.now(UTC),
            duration=self.scenario.duration,
            seed=seed,
            status=RunStatus.RUNNING,
        )
        self._state = RunState(
            scenario=self.scenario,
            work=WorkingTopology(self.topology.clone(), rng, self.config.recovery),
            collector=collector,
            result=result,
            rng=rng,
            ticks_per_sample=ticks_per_sample,
            time_step=time_step,
            pending=list(self.scenario.events),
        )
        self._status = RunStatus.RUNNING
        return result

    def step(self) -> RunStatus:
        if self._state is None:
            self.start()
        if self._status is not RunStatus.RUNNING:
            return self._status
        assert self._state is not None

        if self._cancel_requested:
            self._finish(RunStatus.CANCELLED)
            return self._status

        step(self._state, self._state.time_step)
        if self._state.finished:
            self._finish(RunStatus.COMPLETED)
        return self._status

    def run(self) -> SimulationResult:
        while self.step() is RunStatus.RUNNING:
            pass
        assert self._state is not None
        return self._state.result

    def run_paced(
        self,
        delay: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> SimulationResult:
        """Run with a wall-clock pause between steps."""
        while self.step() is RunStatus.RUNNING:
            sleep(delay)
        assert self._state is not None
        return self._state.result

    def cancel(self) -> None:
        """Stop the run at the next step boundary."""
        self._cancel_requested = True
        if self._status is RunStatus.IDLE:
            self.step()

    def _finish(self, status: RunStatus) -> None:
        assert self._state is not None
        state = self._state
        result = state.result

        result.status = status
        result.end_time = datetime.now(UTC)
        result.elapsed = state.last_time
        result.summary = summarize(result)
        result.node_metrics = {
            node.id: {
                "online": node.online,
                "uptime": node.uptime,
                "peer_count": node.peer_count,
                "consensus_participation": node.consensus_participation,
                "load": {
                    "cpu": node.load.cpu,
                    "memory": node.load.memory,
                    "storage": node.load.storage,
                    "network": node.load.network,
                },
            }
            for node in state.work.topology.nodes
        }
        result.connection_metrics = {
            conn.id: {
                "active": conn.active,
                "latency": conn.latency,
                "bandwidth": conn.bandwidth,
                "errors": conn.errors,
                "traffic": {"incoming": conn.traffic_in, "outgoing": conn.traffic_out},
            }
            for conn in state.work.topology.connections
        }
        state.work.topology.recompute_properties()
        analyze(result, self.config.thresholds)
        result.freeze()
        self._status = status
