"""Property-based tests for topology and run invariants."""

from random import Random

import pytest
from conftest import make_quad
from hypothesis import given, settings
from hypothesis import strategies as st

from topology_simulator.config import SimulatorConfig
from topology_simulator.core.builder import SMALL_TESTNET, build_topology
from topology_simulator.core.events import FaultEvent, FaultType, MetricPolicy, Scenario
from topology_simulator.core.simulator import SimulationEngine
from topology_simulator.core.topology import Topology
from topology_simulator.core.types import EventId, ScenarioId
from topology_simulator.metrics.analysis import analyze
from topology_simulator.metrics.results import RunStatus

# small-testnet ids, plus targets that never resolve
TARGETS = [
    *[f"validator-{i}" for i in range(1, 5)],
    *[f"miner-{i}" for i in range(5, 11)],
    *[f"full-relay-{i}" for i in range(11, 15)],
    "us-east",
    "eu-central",
    "global",
    "ghost-node",
    "mars",
]


@st.composite
def fault_events(draw: st.DrawFn) -> list[FaultEvent]:
    count = draw(st.integers(min_value=0, max_value=8))
    events = []
    for i in range(count):
        fault_type = draw(st.sampled_from(FaultType))
        parameters: dict[str, object] = {}
        match fault_type:
            case FaultType.LATENCY_SPIKE:
                parameters["multiplier"] = draw(st.floats(min_value=0.5, max_value=5.0))
            case FaultType.BANDWIDTH_THROTTLE:
                parameters["factor"] = draw(st.floats(min_value=0.1, max_value=1.0))
            case FaultType.DDOS_ATTACK:
                parameters["intensity"] = draw(st.sampled_from(["high", "medium", "low"]))
        events.append(
            FaultEvent(
                id=EventId(f"event-{i}"),
                type=fault_type,
                offset=draw(st.integers(min_value=0, max_value=40)),
                target=draw(st.sampled_from(TARGETS)),
                parameters=parameters,
                duration=draw(st.none() | st.integers(min_value=1, max_value=20)),
            )
        )
    return events


def assert_adjacency_invariants(topology: Topology) -> None:
    topology.validate()
    nodes = topology.node_index()
    for node in topology.nodes:
        for peer_id in node.connections:
            assert node.id in nodes[peer_id].connections
        if not node.online:
            assert node.connections == set()
    for conn in topology.connections:
        assert conn.source != conn.target
        if not (nodes[conn.source].online and nodes[conn.target].online):
            assert not conn.active


class TestTopologyInvariants:
    @given(seed=st.integers(min_value=0, max_value=2**32 - 1))
    @settings(max_examples=20, deadline=None)
    def test_generated_topology_is_well_formed(self, seed: int) -> None:
        """Generated topologies are symmetric with no self loops or duplicate pairs."""
        topology = build_topology(SMALL_TESTNET, rng=Random(seed))

        assert_adjacency_invariants(topology)
        pairs = [conn.pair for conn in topology.connections]
        assert len(pairs) == len(set(pairs))

    @given(events=fault_events(), seed=st.integers(min_value=0, max_value=2**16))
    @settings(max_examples=25, deadline=None)
    def test_invariants_hold_at_every_step(self, events: list[FaultEvent], seed: int) -> None:
        """No step ever leaves the working topology in an invalid state."""
        topology = build_topology(SMALL_TESTNET, rng=Random(seed))
        scenario = Scenario(
            id=ScenarioId("random"), name="Random", duration=50, events=tuple(events)
        )
        engine = SimulationEngine(topology, scenario, SimulatorConfig(seed=seed))

        while engine.step() is RunStatus.RUNNING:
            assert_adjacency_invariants(engine.working_topology)
        assert_adjacency_invariants(engine.working_topology)


class TestRunInvariants:
    @given(events=fault_events(), seed=st.integers(min_value=0, max_value=2**16))
    @settings(max_examples=25, deadline=None)
    def test_ledger_and_analysis(self, events: list[FaultEvent], seed: int) -> None:
        """Ledgers stay consistent, scores stay bounded and analysis is repeatable."""
        topology = build_topology(SMALL_TESTNET, rng=Random(seed))
        scenario = Scenario(
            id=ScenarioId("random"), name="Random", duration=50, events=tuple(events)
        )

        result = SimulationEngine(topology, scenario, SimulatorConfig(seed=seed)).run()

        triggered = {r.event.id for r in result.events.triggered}
        completed = {r.event.id for r in result.events.completed}
        failed = {r.event.id for r in result.events.failed}
        assert completed <= triggered
        assert not failed & triggered
        assert 0 <= result.analysis.resilience_score <= 100

        before = result.analysis.to_dict()
        assert analyze(result).to_dict() == before
        assert analyze(result).to_dict() == before

    @given(
        duration=st.integers(min_value=1, max_value=60),
        interval_cents=st.integers(min_value=10, max_value=2000),
        time_step=st.sampled_from([0.25, 0.5, 1.0, 2.0, 3.0]),
    )
    @settings(max_examples=50, deadline=None)
    def test_sampling_cadence(
        self, duration: int, interval_cents: int, time_step: float
    ) -> None:
        """One sample per interval, inclusive of t=0, whatever the step."""
        interval = interval_cents / 100
        scenario = Scenario(
            id=ScenarioId("cadence"),
            name="Cadence",
            duration=duration,
            events=(),
            metrics=MetricPolicy(collect_interval=interval),
        )

        result = SimulationEngine(make_quad(), scenario, SimulatorConfig(time_step=time_step)).run()

        assert len(result.timeline) == duration * 100 // interval_cents + 1
        timestamps = [s.timestamp for s in result.timeline]
        assert timestamps == pytest.approx([i * interval for i in range(len(timestamps))])
