"""Stock fault scenarios.

Node targets use the ids generated for the medium-enterprise profile. Run
against a smaller topology, events aimed at missing nodes or regions are
recorded as failed rather than aborting the run.
"""

from __future__ import annotations

from topology_simulator.core.events import FaultEvent, FaultType, MetricPolicy, Scenario
from topology_simulator.core.types import EventId, ScenarioId
from topology_simulator.errors import ConfigurationError


def _event(
    event_id: str,
    fault: FaultType,
    offset: float,
    target: str,
    duration: float | None,
    **parameters: object,
) -> FaultEvent:
    return FaultEvent(
        id=EventId(event_id),
        type=fault,
        offset=offset,
        target=target,
        parameters=dict(parameters),
        duration=duration,
    )


NODE_FAILURE_TEST = Scenario(
    id=ScenarioId("node-failure-test"),
    name="Node Failure Test",
    description="Simulate random node failures and recovery",
    duration=300,
    events=(
        _event("fail-1", FaultType.NODE_FAILURE, 30, "validator-1", 60, reason="hardware-failure"),
        _event("fail-2", FaultType.NODE_FAILURE, 90, "miner-23", 45, reason="network-outage"),
        _event("fail-3", FaultType.NODE_FAILURE, 180, "full-relay-54", 30, reason="software-crash"),
    ),
    metrics=MetricPolicy(
        collect_interval=10,
        targets=("tps", "latency", "availability", "consensus-time"),
    ),
)

NETWORK_PARTITION_TEST = Scenario(
    id=ScenarioId("network-partition-test"),
    name="Network Partition Test",
    description="Simulate network partitions between regions",
    duration=600,
    events=(
        _event(
            "partition-1",
            FaultType.NETWORK_PARTITION,
            60,
            "us-east",
            120,
            isolated_regions=["us-east"],
        ),
        _event(
            "partition-2",
            FaultType.NETWORK_PARTITION,
            240,
            "eu-central",
            90,
            isolated_regions=["eu-central", "asia-southeast"],
        ),
    ),
    metrics=MetricPolicy(
        collect_interval=15,
        targets=("tps", "latency", "availability", "consensus-time", "recovery-time", "partitions"),
    ),
)

LATENCY_SPIKE_TEST = Scenario(
    id=ScenarioId("latency-spike-test"),
    name="Latency Spike Test",
    description="Simulate sudden latency increases",
    duration=180,
    events=(
        _event("spike-1", FaultType.LATENCY_SPIKE, 30, "us-east", 60, multiplier=5.0),
        _event("spike-2", FaultType.LATENCY_SPIKE, 120, "global", 30, multiplier=3.0),
    ),
    metrics=MetricPolicy(
        collect_interval=5,
        targets=("tps", "latency", "consensus-time", "error-rate"),
    ),
)

DDOS_ATTACK_TEST = Scenario(
    id=ScenarioId("ddos-attack-test"),
    name="DDoS Attack Test",
    description="Simulate distributed denial of service attacks",
    duration=420,
    events=(
        _event("ddos-1", FaultType.DDOS_ATTACK, 60, "api-gateway-77", 120, intensity="high"),
        _event("ddos-2", FaultType.DDOS_ATTACK, 240, "validator-5", 90, intensity="medium"),
    ),
    metrics=MetricPolicy(
        collect_interval=10,
        targets=("tps", "latency", "availability", "error-rate", "recovery-time", "cpu-load"),
    ),
)

COMPREHENSIVE_STRESS_TEST = Scenario(
    id=ScenarioId("comprehensive-stress-test"),
    name="Comprehensive Stress Test",
    description="Multiple simultaneous failure scenarios",
    duration=900,
    events=(
        _event(
            "multi-fail-1",
            FaultType.NODE_FAILURE,
            60,
            "validator-2",
            120,
            reason="hardware-failure",
        ),
        _event(
            "multi-partition-1",
            FaultType.NETWORK_PARTITION,
            90,
            "us-west",
            180,
            isolated_regions=["us-west"],
        ),
        _event("multi-spike-1", FaultType.LATENCY_SPIKE, 150, "global", 60, multiplier=4.0),
        _event("multi-ddos-1", FaultType.DDOS_ATTACK, 300, "api-gateway-79", 150, intensity="high"),
    ),
    metrics=MetricPolicy(
        collect_interval=15,
        targets=(
            "tps",
            "latency",
            "availability",
            "consensus-time",
            "recovery-time",
            "error-rate",
            "partitions",
            "validator-participation",
        ),
    ),
)

SCENARIOS: dict[str, Scenario] = {
    scenario.id: scenario
    for scenario in (
        NODE_FAILURE_TEST,
        NETWORK_PARTITION_TEST,
        LATENCY_SPIKE_TEST,
        DDOS_ATTACK_TEST,
        COMPREHENSIVE_STRESS_TEST,
    )
}


def get_scenario(name: str) -> Scenario:
    scenario = SCENARIOS.get(name)
    if scenario is None:
        raise ConfigurationError(f"Unknown scenario: {name}")
    return scenario
