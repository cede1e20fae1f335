"""Fault effects: how each fault type perturbs and restores a working topology.

Every effect resolves its target and parameters before touching any state, so
an event that raises FaultResolutionError leaves the topology unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from topology_simulator.core.builder import ConnectionIdAllocator, connection_between
from topology_simulator.core.events import FaultType
from topology_simulator.core.topology import NodeRole, normalize_pair
from topology_simulator.core.types import GLOBAL_TARGET, NodeId, RegionId
from topology_simulator.errors import FaultResolutionError

if TYPE_CHECKING:
    from random import Random

    from topology_simulator.config import RecoveryPolicy
    from topology_simulator.core.events import FaultEvent
    from topology_simulator.core.topology import Connection, Node, Topology
    from topology_simulator.core.types import ConnectionId, EventId

DDOS_INTENSITY: dict[str, float] = {"high": 5.0, "medium": 3.0, "low": 2.0}
DEFAULT_DDOS_FACTOR = 2.0
DEFAULT_LATENCY_MULTIPLIER = 2.0
DEFAULT_THROTTLE_FACTOR = 0.5


class WorkingTopology:
    """Indexed, mutable view over a run's private topology copy.

    A connection is active exactly when both endpoints are online, each lists
    the other as a peer, and no active partition separates their regions.
    """

    def __init__(self, topology: Topology, rng: Random, recovery: RecoveryPolicy) -> None:
        self.topology = topology
        self.rng = rng
        self.recovery = recovery
        self.nodes: dict[NodeId, Node] = topology.node_index()
        self.connections: dict[ConnectionId, Connection] = {
            conn.id: conn for conn in topology.connections
        }
        self.regions: set[RegionId] = topology.regions
        self.partitions: dict[EventId, frozenset[RegionId]] = {}
        self.memo: dict[EventId, dict[str, Any]] = {}
        # Overlapping failures per node, and participation before the first one
        self.failures: dict[NodeId, int] = {}
        self.participation: dict[NodeId, float] = {}
        self._by_pair = {conn.pair: conn for conn in topology.connections}
        self._ids = ConnectionIdAllocator(self.connections)

    def connections_of(self, node_id: NodeId) -> list[Connection]:
        return [conn for conn in self.topology.connections if conn.touches(node_id)]

    def active_connections(self) -> list[Connection]:
        return [conn for conn in self.topology.connections if conn.active]

    def online_nodes(self) -> list[Node]:
        return [node for node in self.topology.nodes if node.online]

    def is_partitioned(self, conn: Connection) -> bool:
        region_a = self.nodes[conn.source].region
        region_b = self.nodes[conn.target].region
        return any((region_a in iso) != (region_b in iso) for iso in self.partitions.values())

    def refresh(self, conn: Connection) -> None:
        a, b = self.nodes[conn.source], self.nodes[conn.target]
        active = a.online and b.online and b.id in a.connections and not self.is_partitioned(conn)
        if active and not conn.active:
            conn.traffic_in = self.rng.random() * conn.bandwidth * 0.3
            conn.traffic_out = self.rng.random() * conn.bandwidth * 0.3
        elif not active:
            conn.traffic_in = conn.traffic_out = 0.0
        conn.active = active

    def refresh_all(self) -> None:
        for conn in self.topology.connections:
            self.refresh(conn)

    def link(self, a: Node, b: Node) -> Connection:
        """Peer two nodes, reusing a severed connection when one exists."""
        conn = self._by_pair.get(normalize_pair(a.id, b.id))
        if conn is None:
            conn = connection_between(self._ids.next(), a, b, self.rng)
            conn.active = False
            self.topology.connections.append(conn)
            self.connections[conn.id] = conn
            self._by_pair[conn.pair] = conn
        a.connect(b)
        self.refresh(conn)
        return conn

    def sever(self, node: Node) -> None:
        for peer_id in list(node.connections):
            node.disconnect(self.nodes[peer_id])
        for conn in self.connections_of(node.id):
            self.refresh(conn)

    def reconnect(self, node: Node) -> None:
        """Re-peer a recovered node, biased toward its own region."""
        candidates = [n for n in self.topology.nodes if n.id != node.id and n.online]
        chosen: list[Node] = []
        for other in candidates:
            if other.region == node.region:
                p = self.recovery.same_region_probability
            else:
                p = self.recovery.cross_region_probability
            if self.rng.random() < p:
                chosen.append(other)

        # Never leave a recovered node stranded while peers exist
        if not chosen and candidates:
            same_region = [n for n in candidates if n.region == node.region]
            chosen.append((same_region or candidates)[0])

        for other in chosen:
            self.link(node, other)


def apply_fault(work: WorkingTopology, event: FaultEvent) -> None:
    match event.type:
        case FaultType.NODE_FAILURE:
            _fail_node(work, event)
        case FaultType.NETWORK_PARTITION:
            _partition(work, event)
        case FaultType.LATENCY_SPIKE:
            _spike_latency(work, event)
        case FaultType.BANDWIDTH_THROTTLE:
            _throttle_bandwidth(work, event)
        case FaultType.DDOS_ATTACK:
            _ddos(work, event)
        case FaultType.SOFTWARE_UPDATE:
            _resolve_scope(work, event.target)
            work.memo[event.id] = {}


def revert_fault(work: WorkingTopology, event: FaultEvent) -> None:
    memo = work.memo.pop(event.id, None)
    if memo is None:
        return

    match event.type:
        case FaultType.NODE_FAILURE:
            _recover_node(work, memo)
        case FaultType.NETWORK_PARTITION:
            work.partitions.pop(event.id, None)
            work.refresh_all()
        case FaultType.LATENCY_SPIKE:
            _scale_latency(work, memo, 1 / memo["multiplier"])
        case FaultType.BANDWIDTH_THROTTLE:
            _scale_bandwidth(work, memo, 1 / memo["factor"])
        case FaultType.DDOS_ATTACK:
            node = work.nodes[memo["node"]]
            factor = memo["factor"]
            node.load.cpu = max(0.0, node.load.cpu / factor)
            node.load.memory = max(0.0, node.load.memory / factor)
            node.load.network = max(0.0, node.load.network / factor)
        case FaultType.SOFTWARE_UPDATE:
            pass


def _resolve_node(work: WorkingTopology, target: str) -> Node:
    node = work.nodes.get(NodeId(target))
    if node is None:
        raise FaultResolutionError(f"Unknown node {target}")
    return node


def _resolve_scope(work: WorkingTopology, target: str) -> tuple[str, str]:
    if target == GLOBAL_TARGET:
        return ("global", target)
    if target in work.regions:
        return ("region", target)
    if target in work.nodes:
        return ("node", target)
    raise FaultResolutionError(f"Unknown target {target}")


def _number(event: FaultEvent, name: str, default: float) -> float:
    value = event.parameters.get(name, default)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise FaultResolutionError(f"Parameter {name}={value!r} is not a number") from e


def _scoped_nodes(work: WorkingTopology, scope: tuple[str, str]) -> list[Node]:
    kind, target = scope
    if kind == "region":
        return [n for n in work.topology.nodes if n.region == target]
    if kind == "node":
        return [work.nodes[NodeId(target)]]
    return []


def _fail_node(work: WorkingTopology, event: FaultEvent) -> None:
    node = _resolve_node(work, event.target)
    work.memo[event.id] = {"node": node.id}
    count = work.failures.get(node.id, 0)
    if count == 0:
        work.participation[node.id] = node.consensus_participation
    work.failures[node.id] = count + 1

    node.online = False
    node.uptime = 0.0
    node.consensus_participation = 0.0
    work.sever(node)


def _recover_node(work: WorkingTopology, memo: dict[str, Any]) -> None:
    """Bring a node back once the last failure holding it down has completed."""
    node = work.nodes[memo["node"]]
    remaining = work.failures.pop(node.id) - 1
    if remaining > 0:
        work.failures[node.id] = remaining
        return

    participation = work.participation.pop(node.id)
    floor = work.recovery.uptime_floor
    node.online = True
    node.uptime = floor + work.rng.random() * (100.0 - floor)
    if node.role is NodeRole.VALIDATOR:
        node.consensus_participation = participation
    work.reconnect(node)


def _partition(work: WorkingTopology, event: FaultEvent) -> None:
    isolated = event.parameters.get("isolated_regions") or [event.target]
    if not isinstance(isolated, list | tuple):
        raise FaultResolutionError(f"isolated_regions must be a list, got {isolated!r}")
    for region in isolated:
        if region not in work.regions:
            raise FaultResolutionError(f"Unknown region {region}")

    work.partitions[event.id] = frozenset(RegionId(r) for r in isolated)
    work.memo[event.id] = {"isolated": sorted(isolated)}
    work.refresh_all()


def _spike_latency(work: WorkingTopology, event: FaultEvent) -> None:
    scope = _resolve_scope(work, event.target)
    multiplier = _number(event, "multiplier", DEFAULT_LATENCY_MULTIPLIER)
    if multiplier <= 0:
        raise FaultResolutionError(f"multiplier ({multiplier}) <= 0")

    if scope[0] == "global":
        memo = {"connections": list(work.connections), "nodes": []}
    else:
        memo = {"connections": [], "nodes": [n.id for n in _scoped_nodes(work, scope)]}
    memo["multiplier"] = multiplier
    work.memo[event.id] = memo
    _scale_latency(work, memo, multiplier)


def _scale_latency(work: WorkingTopology, memo: dict[str, Any], factor: float) -> None:
    for conn_id in memo["connections"]:
        work.connections[conn_id].latency *= factor
    for node_id in memo["nodes"]:
        work.nodes[node_id].resources.latency_ms *= factor


def _throttle_bandwidth(work: WorkingTopology, event: FaultEvent) -> None:
    scope = _resolve_scope(work, event.target)
    factor = _number(event, "factor", DEFAULT_THROTTLE_FACTOR)
    if not 0 < factor <= 1:
        raise FaultResolutionError(f"factor ({factor}) outside (0, 1]")

    if scope[0] == "global":
        memo = {"connections": list(work.connections), "nodes": []}
    else:
        nodes = _scoped_nodes(work, scope)
        ids = {n.id for n in nodes}
        memo = {
            "connections": [
                c.id for c in work.topology.connections if c.source in ids or c.target in ids
            ],
            "nodes": [n.id for n in nodes],
        }
    memo["factor"] = factor
    work.memo[event.id] = memo
    _scale_bandwidth(work, memo, factor)


def _scale_bandwidth(work: WorkingTopology, memo: dict[str, Any], factor: float) -> None:
    for conn_id in memo["connections"]:
        conn = work.connections[conn_id]
        conn.bandwidth *= factor
        conn.traffic_in = min(conn.traffic_in, conn.bandwidth)
        conn.traffic_out = min(conn.traffic_out, conn.bandwidth)
    for node_id in memo["nodes"]:
        work.nodes[node_id].resources.bandwidth_mbps *= factor


def _ddos(work: WorkingTopology, event: FaultEvent) -> None:
    node = _resolve_node(work, event.target)
    intensity = event.parameters.get("intensity", "low")
    factor = DDOS_INTENSITY.get(str(intensity), DEFAULT_DDOS_FACTOR)

    work.memo[event.id] = {"node": node.id, "factor": factor}
    node.load.cpu = min(100.0, node.load.cpu * factor)
    node.load.memory = min(100.0, node.load.memory * factor)
    node.load.network = min(100.0, node.load.network * factor)

    for conn in work.connections_of(node.id):
        conn.errors += work.rng.randint(0, 99)
