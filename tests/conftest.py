"""Shared pytest fixtures for topology simulator tests."""

from random import Random

import pytest

from topology_simulator.config import SimulatorConfig
from topology_simulator.core.builder import SMALL_TESTNET, build_topology
from topology_simulator.core.events import FaultEvent, FaultType, MetricPolicy, Scenario
from topology_simulator.core.topology import Connection, Node, NodeRole, Topology
from topology_simulator.core.types import EventId, ScenarioId, TopologyId
from topology_simulator.service import TopologySimulator


def make_node(
    node_id: str,
    region: str = "us-east",
    role: NodeRole = NodeRole.VALIDATOR,
    online: bool = True,
    participation: float = 0.0,
) -> Node:
    """Create a node from a minimal record."""
    return Node.from_dict({
        "id": node_id,
        "role": role.value,
        "region": region,
        "status": {"online": online, "load": {"cpu": 30.0, "memory": 40.0, "network": 10.0}},
        "metrics": {"consensus_participation": participation},
    })


def make_connection(conn_id: str, a: str, b: str, latency: float = 10.0) -> Connection:
    return Connection.from_dict({
        "id": conn_id,
        "from": a,
        "to": b,
        "properties": {"latency": latency, "bandwidth": 1000},
    })


def make_quad() -> Topology:
    """Four nodes across two regions, joined in a ring."""
    nodes = [
        make_node("validator-a", "us-east", participation=98.0),
        make_node("miner-b", "us-east", NodeRole.MINER),
        make_node("validator-c", "eu-central", participation=97.0),
        make_node("relay-d", "eu-central", NodeRole.FULL_RELAY),
    ]
    connections = [
        make_connection("conn-1", "validator-a", "miner-b", latency=2.0),
        make_connection("conn-2", "validator-c", "relay-d", latency=2.0),
        make_connection("conn-3", "validator-a", "validator-c", latency=80.0),
        make_connection("conn-4", "miner-b", "relay-d", latency=80.0),
    ]
    return Topology.from_parts(TopologyId("quad"), "Quad", nodes, connections)


def make_scenario(
    *events: FaultEvent,
    duration: float = 30.0,
    interval: float = 5.0,
    targets: tuple[str, ...] = (),
) -> Scenario:
    return Scenario(
        id=ScenarioId("test-scenario"),
        name="Test Scenario",
        duration=duration,
        events=events,
        metrics=MetricPolicy(collect_interval=interval, targets=targets),
    )


def fault(
    event_id: str,
    fault_type: FaultType,
    offset: float,
    target: str,
    duration: float | None = None,
    **parameters: object,
) -> FaultEvent:
    return FaultEvent(
        id=EventId(event_id),
        type=fault_type,
        offset=offset,
        target=target,
        parameters=dict(parameters),
        duration=duration,
    )


@pytest.fixture
def rng() -> Random:
    return Random(42)


@pytest.fixture
def config() -> SimulatorConfig:
    return SimulatorConfig(seed=42)


@pytest.fixture
def quad() -> Topology:
    """Create a fresh hand-built four node topology."""
    return make_quad()


@pytest.fixture
def small_topology() -> Topology:
    """Create a seeded small-testnet topology."""
    return build_topology(SMALL_TESTNET, rng=Random(7))


@pytest.fixture
def simulator(config: SimulatorConfig) -> TopologySimulator:
    """Create an isolated simulator holding small-testnet and the quad topology."""
    simulator = TopologySimulator(config=config)
    simulator.build_topology("small-testnet", seed=7)
    simulator.topologies.add(make_quad())
    return simulator
