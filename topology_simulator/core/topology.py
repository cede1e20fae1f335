"""Topology model: nodes, connections and derived network properties."""

from __future__ import annotations

import copy
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import networkx as nx

from topology_simulator.core.regions import REGION_CATALOG
from topology_simulator.core.types import ConnectionId, NodeId, RegionId, TopologyId
from topology_simulator.errors import ConfigurationError, TopologyValidationError


class NodeRole(Enum):
    VALIDATOR = "validator"
    MINER = "miner"
    FULL_RELAY = "full-relay"
    LIGHT_CLIENT = "light-client"
    ARCHIVE = "archive"
    API_GATEWAY = "api-gateway"


class ConsensusFamily(Enum):
    PROOF_OF_STAKE = "proof-of-stake"
    PROOF_OF_WORK = "proof-of-work"
    DELEGATED_PROOF_OF_STAKE = "delegated-proof-of-stake"
    PBFT = "practical-byzantine-fault-tolerance"


@dataclass
class ResourceSpec:
    """Hardware capacity of a node."""

    cpu_cores: int
    cpu_speed_ghz: float
    memory_gb: float
    storage_gb: float
    storage_iops: int
    bandwidth_mbps: float
    latency_ms: float  # Base network latency


@dataclass
class NodeLoad:
    """Resource utilisation percentages (0-100)."""

    cpu: float = 0.0
    memory: float = 0.0
    storage: float = 0.0
    network: float = 0.0


@dataclass
class Node:
    """A participant in the simulated network."""

    id: NodeId
    name: str
    role: NodeRole
    region: RegionId
    datacenter: str
    latitude: float
    longitude: float
    resources: ResourceSpec

    online: bool = True
    last_seen: datetime = field(default_factory=lambda: datetime.now(UTC))
    uptime: float = 100.0
    load: NodeLoad = field(default_factory=NodeLoad)

    # Symmetric adjacency; empty while offline
    connections: set[NodeId] = field(default_factory=set)

    transactions_processed: int = 0
    blocks_produced: int = 0  # Miners only
    consensus_participation: float = 0.0  # Validators only
    peer_count: int = 0

    def connect(self, other: Node) -> None:
        self.connections.add(other.id)
        other.connections.add(self.id)
        self.peer_count = len(self.connections)
        other.peer_count = len(other.connections)

    def disconnect(self, other: Node) -> None:
        self.connections.discard(other.id)
        other.connections.discard(self.id)
        self.peer_count = len(self.connections)
        other.peer_count = len(other.connections)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "location": {
                "region": self.region,
                "datacenter": self.datacenter,
                "latitude": self.latitude,
                "longitude": self.longitude,
            },
            "specifications": {
                "cpu_cores": self.resources.cpu_cores,
                "cpu_speed_ghz": self.resources.cpu_speed_ghz,
                "memory_gb": self.resources.memory_gb,
                "storage_gb": self.resources.storage_gb,
                "storage_iops": self.resources.storage_iops,
                "bandwidth_mbps": self.resources.bandwidth_mbps,
                "latency_ms": self.resources.latency_ms,
            },
            "status": {
                "online": self.online,
                "last_seen": self.last_seen.isoformat(),
                "uptime": self.uptime,
                "load": {
                    "cpu": self.load.cpu,
                    "memory": self.load.memory,
                    "storage": self.load.storage,
                    "network": self.load.network,
                },
            },
            "connections": sorted(self.connections),
            "metrics": {
                "transactions_processed": self.transactions_processed,
                "blocks_produced": self.blocks_produced,
                "consensus_participation": self.consensus_participation,
                "peer_count": self.peer_count,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        """Build a node from a (possibly partial) record.

        Only id, role and region are required; everything else falls back to
        modest defaults so hand-written topologies stay short.
        """
        try:
            location = data.get("location", {})
            region = location.get("region", data.get("region"))
            if region is None:
                raise KeyError("region")
            default_dc, default_lat, default_lng = "unknown", 0.0, 0.0
            if region in REGION_CATALOG:
                known = REGION_CATALOG.get(region)
                default_dc, default_lat, default_lng = (
                    known.datacenter,
                    known.latitude,
                    known.longitude,
                )

            specs = data.get("specifications", {})
            status = data.get("status", {})
            load = status.get("load", {})
            metrics = data.get("metrics", {})
            last_seen = status.get("last_seen")

            return cls(
                id=NodeId(data["id"]),
                name=data.get("name", data["id"]),
                role=NodeRole(data["role"]),
                region=RegionId(region),
                datacenter=location.get("datacenter", default_dc),
                latitude=float(location.get("latitude", default_lat)),
                longitude=float(location.get("longitude", default_lng)),
                resources=ResourceSpec(
                    cpu_cores=int(specs.get("cpu_cores", 4)),
                    cpu_speed_ghz=float(specs.get("cpu_speed_ghz", 3.0)),
                    memory_gb=float(specs.get("memory_gb", 16)),
                    storage_gb=float(specs.get("storage_gb", 500)),
                    storage_iops=int(specs.get("storage_iops", 50000)),
                    bandwidth_mbps=float(specs.get("bandwidth_mbps", 1000)),
                    latency_ms=float(specs.get("latency_ms", 2.0)),
                ),
                online=bool(status.get("online", True)),
                last_seen=(
                    datetime.fromisoformat(last_seen) if last_seen else datetime.now(UTC)
                ),
                uptime=float(status.get("uptime", 100.0)),
                load=NodeLoad(
                    cpu=float(load.get("cpu", 0.0)),
                    memory=float(load.get("memory", 0.0)),
                    storage=float(load.get("storage", 0.0)),
                    network=float(load.get("network", 0.0)),
                ),
                connections={NodeId(n) for n in data.get("connections", [])},
                transactions_processed=int(metrics.get("transactions_processed", 0)),
                blocks_produced=int(metrics.get("blocks_produced", 0)),
                consensus_participation=float(metrics.get("consensus_participation", 0.0)),
                peer_count=int(metrics.get("peer_count", 0)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Malformed node record: {e}") from e


@dataclass
class Connection:
    """An undirected logical link between two nodes."""

    id: ConnectionId
    source: NodeId
    target: NodeId
    bandwidth: float  # Mbps
    latency: float  # ms
    reliability: float  # 0-1
    cost: float = 0.01  # per GB
    encryption: bool = True
    compression: bool = False

    active: bool = True
    last_used: datetime = field(default_factory=lambda: datetime.now(UTC))
    traffic_in: float = 0.0  # Mbps
    traffic_out: float = 0.0  # Mbps
    errors: int = 0

    @property
    def pair(self) -> tuple[NodeId, NodeId]:
        return normalize_pair(self.source, self.target)

    def touches(self, node_id: NodeId) -> bool:
        return node_id in (self.source, self.target)

    def other(self, node_id: NodeId) -> NodeId:
        return self.target if node_id == self.source else self.source

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.source,
            "to": self.target,
            "properties": {
                "bandwidth": self.bandwidth,
                "latency": self.latency,
                "reliability": self.reliability,
                "cost": self.cost,
                "encryption": self.encryption,
                "compression": self.compression,
            },
            "status": {
                "active": self.active,
                "last_used": self.last_used.isoformat(),
                "traffic": {"incoming": self.traffic_in, "outgoing": self.traffic_out},
                "errors": self.errors,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connection:
        try:
            props = data.get("properties", {})
            status = data.get("status", {})
            traffic = status.get("traffic", {})
            last_used = status.get("last_used")
            return cls(
                id=ConnectionId(data["id"]),
                source=NodeId(data["from"]),
                target=NodeId(data["to"]),
                bandwidth=float(props.get("bandwidth", 1000)),
                latency=float(props.get("latency", 5.0)),
                reliability=float(props.get("reliability", 0.999)),
                cost=float(props.get("cost", 0.01)),
                encryption=bool(props.get("encryption", True)),
                compression=bool(props.get("compression", False)),
                active=bool(status.get("active", True)),
                last_used=(
                    datetime.fromisoformat(last_used) if last_used else datetime.now(UTC)
                ),
                traffic_in=float(traffic.get("incoming", 0.0)),
                traffic_out=float(traffic.get("outgoing", 0.0)),
                errors=int(status.get("errors", 0)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Malformed connection record: {e}") from e


@dataclass
class TopologyProperties:
    """Aggregates derived from nodes and connections."""

    total_nodes: int = 0
    total_connections: int = 0
    average_latency: float = 0.0
    total_bandwidth: float = 0.0
    redundancy: float = 0.0  # Mean adjacency size
    decentralization: float = 0.0  # Normalized region entropy, 0-1


@dataclass(frozen=True)
class TopologyConfiguration:
    consensus: ConsensusFamily = ConsensusFamily.PROOF_OF_STAKE
    shard_count: int = 1
    replication_factor: int = 3
    minimum_validators: int = 4
    block_time: float = 5.0  # seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "consensus": self.consensus.value,
            "shard_count": self.shard_count,
            "replication_factor": self.replication_factor,
            "minimum_validators": self.minimum_validators,
            "block_time": self.block_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopologyConfiguration:
        try:
            return cls(
                consensus=ConsensusFamily(data.get("consensus", "proof-of-stake")),
                shard_count=int(data.get("shard_count", 1)),
                replication_factor=int(data.get("replication_factor", 3)),
                minimum_validators=int(data.get("minimum_validators", 4)),
                block_time=float(data.get("block_time", 5.0)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Malformed topology configuration: {e}") from e


@dataclass
class Topology:
    """The full set of simulated nodes, their connections and aggregates."""

    id: TopologyId
    name: str
    nodes: list[Node]
    connections: list[Connection]
    description: str = ""
    version: str = "1.0.0"
    configuration: TopologyConfiguration = field(default_factory=TopologyConfiguration)
    properties: TopologyProperties = field(default_factory=TopologyProperties)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def regions(self) -> set[RegionId]:
        return {node.region for node in self.nodes}

    def node_index(self) -> dict[NodeId, Node]:
        return {node.id: node for node in self.nodes}

    def validate(self) -> None:
        """Reject structurally invalid topologies."""
        nodes: dict[NodeId, Node] = {}
        for node in self.nodes:
            if node.id in nodes:
                raise TopologyValidationError(f"Duplicate node id: {node.id}")
            nodes[node.id] = node

        connection_ids: set[ConnectionId] = set()
        pairs: set[tuple[NodeId, NodeId]] = set()
        for conn in self.connections:
            if conn.id in connection_ids:
                raise TopologyValidationError(f"Duplicate connection id: {conn.id}")
            connection_ids.add(conn.id)

            if conn.source == conn.target:
                raise TopologyValidationError(f"Connection {conn.id} is a self loop")
            for endpoint in (conn.source, conn.target):
                if endpoint not in nodes:
                    raise TopologyValidationError(
                        f"Connection {conn.id} references unknown node {endpoint}"
                    )
            if conn.pair in pairs:
                raise TopologyValidationError(
                    f"Duplicate connection between {conn.source} and {conn.target}"
                )
            pairs.add(conn.pair)

            if conn.active and not (nodes[conn.source].online and nodes[conn.target].online):
                raise TopologyValidationError(
                    f"Connection {conn.id} is active but touches an offline node"
                )

        for node in self.nodes:
            if not node.online and node.connections:
                raise TopologyValidationError(f"Offline node {node.id} has peers")
            for peer_id in node.connections:
                peer = nodes.get(peer_id)
                if peer is None:
                    raise TopologyValidationError(f"Node {node.id} lists unknown peer {peer_id}")
                if node.id not in peer.connections:
                    raise TopologyValidationError(
                        f"Adjacency is not symmetric: {node.id} -> {peer_id}"
                    )

    def recompute_properties(self) -> TopologyProperties:
        props = TopologyProperties(
            total_nodes=len(self.nodes),
            total_connections=len(self.connections),
        )

        active = [c for c in self.connections if c.active]
        if active:
            props.average_latency = sum(c.latency for c in active) / len(active)
        props.total_bandwidth = sum(c.bandwidth for c in self.connections)

        if self.nodes:
            props.redundancy = sum(len(n.connections) for n in self.nodes) / len(self.nodes)
            props.decentralization = region_entropy(Counter(n.region for n in self.nodes))

        self.properties = props
        self.updated_at = datetime.now(UTC)
        return props

    def clone(self) -> Topology:
        """Deep copy used as an isolated working copy for a run."""
        return copy.deepcopy(self)

    def to_graph(self) -> nx.Graph:
        """Graph of online nodes joined by active connections."""
        graph = nx.Graph()
        for node in self.nodes:
            if node.online:
                graph.add_node(node.id, region=node.region, role=node.role.value)
        for conn in self.connections:
            if conn.active:
                graph.add_edge(conn.source, conn.target, latency=conn.latency)
        return graph

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "nodes": [node.to_dict() for node in self.nodes],
            "connections": [conn.to_dict() for conn in self.connections],
            "properties": {
                "total_nodes": self.properties.total_nodes,
                "total_connections": self.properties.total_connections,
                "average_latency": self.properties.average_latency,
                "total_bandwidth": self.properties.total_bandwidth,
                "redundancy": self.properties.redundancy,
                "decentralization": self.properties.decentralization,
            },
            "configuration": self.configuration.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Topology:
        try:
            return cls.from_parts(
                topology_id=TopologyId(data["id"]),
                name=data["name"],
                description=data.get("description", ""),
                nodes=[Node.from_dict(n) for n in data["nodes"]],
                connections=[Connection.from_dict(c) for c in data["connections"]],
                configuration=TopologyConfiguration.from_dict(data.get("configuration", {})),
            )
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed topology record: {e}") from e

    @classmethod
    def from_parts(
        cls,
        topology_id: TopologyId,
        name: str,
        nodes: list[Node],
        connections: list[Connection],
        description: str = "",
        configuration: TopologyConfiguration | None = None,
    ) -> Topology:
        """Assemble a hand-built topology.

        Adjacency is derived from active connections whose endpoints are both
        online; connections touching offline nodes are forced inactive. Raises
        TopologyValidationError if the result is still invalid.
        """
        index = {node.id: node for node in nodes}
        for node in nodes:
            node.connections = set()

        for conn in connections:
            a, b = index.get(conn.source), index.get(conn.target)
            if a is None or b is None or a is b:
                continue  # validate() reports it
            if not (a.online and b.online):
                conn.active = False
                conn.traffic_in = conn.traffic_out = 0.0
            elif conn.active:
                a.connect(b)

        for node in nodes:
            node.peer_count = len(node.connections)

        topology = cls(
            id=topology_id,
            name=name,
            description=description,
            nodes=nodes,
            connections=connections,
            configuration=configuration or TopologyConfiguration(),
        )
        topology.validate()
        topology.recompute_properties()
        return topology


def normalize_pair(a: NodeId, b: NodeId) -> tuple[NodeId, NodeId]:
    """Normalize pair to avoid duplicates (smaller ID first)."""
    return (a, b) if a < b else (b, a)


def region_entropy(counts: Counter[RegionId]) -> float:
    """Shannon entropy of the region distribution, normalized to 0-1."""
    total = sum(counts.values())
    if total == 0 or len(counts) < 2:
        return 0.0

    entropy = 0.0
    for count in counts.values():
        p = count / total
        entropy -= p * math.log2(p)
    return entropy / math.log2(len(counts))
