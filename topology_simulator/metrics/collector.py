"""Per-tick metric sampling over a working topology.

Core metrics are always sampled. Optional metrics are switched on by a
scenario's metric targets; callers can register their own.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

import networkx as nx

from topology_simulator.core.topology import NodeRole
from topology_simulator.errors import ConfigurationError

if TYPE_CHECKING:
    from random import Random

    from topology_simulator.core.effects import WorkingTopology

type MetricFn = Callable[[WorkingTopology, Random], float]


def tps(work: WorkingTopology, rng: Random) -> float:
    """Synthetic throughput: miners contribute more than other roles."""
    total = 0.0
    for node in work.online_nodes():
        if node.role is NodeRole.MINER:
            total += 100 + rng.random() * 50
        else:
            total += 50 + rng.random() * 25
    return total


def latency(work: WorkingTopology, rng: Random) -> float:
    """Mean effective latency (link plus endpoint base latency) of active connections."""
    active = work.active_connections()
    if not active:
        return 0.0
    total = 0.0
    for conn in active:
        endpoints = (work.nodes[conn.source], work.nodes[conn.target])
        base = sum(n.resources.latency_ms for n in endpoints) / 2
        total += conn.latency + base
    return total / len(active)


def availability(work: WorkingTopology, rng: Random) -> float:
    if not work.nodes:
        return 0.0
    return len(work.online_nodes()) / len(work.nodes) * 100


def consensus_time(work: WorkingTopology, rng: Random) -> float:
    # Two message rounds plus up to 20% scheduling margin
    return latency(work, rng) * 2 * (1 + rng.random() * 0.2)


def error_rate(work: WorkingTopology, rng: Random) -> float:
    active = work.active_connections()
    if not active:
        return 0.0
    return sum(conn.errors for conn in active) / len(active)


def partitions(work: WorkingTopology, rng: Random) -> float:
    return float(nx.number_connected_components(work.topology.to_graph()))


def online_nodes(work: WorkingTopology, rng: Random) -> float:
    return float(len(work.online_nodes()))


def active_connections(work: WorkingTopology, rng: Random) -> float:
    return float(len(work.active_connections()))


def validator_participation(work: WorkingTopology, rng: Random) -> float:
    validators = [n for n in work.nodes.values() if n.role is NodeRole.VALIDATOR]
    if not validators:
        return 0.0
    return sum(n.consensus_participation for n in validators) / len(validators)


def cpu_load(work: WorkingTopology, rng: Random) -> float:
    online = work.online_nodes()
    if not online:
        return 0.0
    return sum(n.load.cpu for n in online) / len(online)


CORE_METRICS: dict[str, MetricFn] = {
    "tps": tps,
    "latency": latency,
    "availability": availability,
    "consensus_time": consensus_time,
    "error_rate": error_rate,
}

OPTIONAL_METRICS: dict[str, MetricFn] = {
    "partitions": partitions,
    "online_nodes": online_nodes,
    "active_connections": active_connections,
    "validator_participation": validator_participation,
    "cpu_load": cpu_load,
}

# Targets that name summary figures rather than per-tick samples
SUMMARY_TARGETS = frozenset({"recovery_time"})


def normalize_metric_name(name: str) -> str:
    return name.strip().lower().replace("-", "_")


class MetricsCollector:
    """Samples the core metrics plus whichever optional metrics were requested."""

    def __init__(
        self,
        targets: Iterable[str] = (),
        registry: dict[str, MetricFn] | None = None,
    ) -> None:
        self.registry = dict(OPTIONAL_METRICS if registry is None else registry)
        self.metrics: dict[str, MetricFn] = dict(CORE_METRICS)

        unknown: list[str] = []
        for target in targets:
            name = normalize_metric_name(target)
            if name in CORE_METRICS or name in SUMMARY_TARGETS:
                continue
            fn = self.registry.get(name)
            if fn is None:
                unknown.append(target)
            else:
                self.metrics[name] = fn
        if unknown:
            raise ConfigurationError(f"Unknown metric targets: {', '.join(unknown)}")

    @property
    def names(self) -> list[str]:
        return list(self.metrics)

    def snapshot(self, work: WorkingTopology, rng: Random) -> dict[str, float]:
        return {name: fn(work, rng) for name, fn in self.metrics.items()}
