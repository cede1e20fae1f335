"""Topology generation from role profiles and region lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import TYPE_CHECKING

from topology_simulator.core.regions import REGION_CATALOG, Region, link_latency_ms
from topology_simulator.core.topology import (
    Connection,
    ConsensusFamily,
    Node,
    NodeLoad,
    NodeRole,
    ResourceSpec,
    Topology,
    TopologyConfiguration,
)
from topology_simulator.core.types import ConnectionId, NodeId, RegionId, TopologyId
from topology_simulator.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True)
class ResourceEnvelope:
    """Nominal resources for a role; individual nodes jitter around these."""

    cpu_cores: int
    memory_gb: float
    storage_gb: float
    bandwidth_mbps: float


DEFAULT_ENVELOPES: dict[NodeRole, ResourceEnvelope] = {
    # cores, memory GB, storage GB, bandwidth Mbps
    NodeRole.VALIDATOR: ResourceEnvelope(8, 32, 1000, 1000),
    NodeRole.MINER: ResourceEnvelope(16, 64, 2000, 1000),
    NodeRole.FULL_RELAY: ResourceEnvelope(4, 16, 500, 500),
    NodeRole.LIGHT_CLIENT: ResourceEnvelope(2, 8, 100, 500),
    NodeRole.ARCHIVE: ResourceEnvelope(16, 128, 10000, 1000),
    NodeRole.API_GATEWAY: ResourceEnvelope(8, 32, 500, 5000),
}


@dataclass(frozen=True)
class TopologyProfile:
    """Recipe for a generated topology.

    `populations` is the number of nodes of each role created in every region.
    """

    name: str
    populations: dict[NodeRole, int]
    regions: tuple[RegionId, ...] = ()
    description: str = ""
    envelopes: dict[NodeRole, ResourceEnvelope] = field(
        default_factory=lambda: dict(DEFAULT_ENVELOPES)
    )
    p_intra: float = 0.8
    p_inter: float = 0.4
    inter_links_per_pair: int = 3
    jitter: float = 0.1  # Max relative deviation from the envelope
    configuration: TopologyConfiguration = field(default_factory=TopologyConfiguration)

    def __post_init__(self) -> None:
        errors: list[str] = []
        if not 0.0 <= self.p_intra <= 1.0:
            errors.append(f"p_intra ({self.p_intra}) outside [0, 1]")
        if not 0.0 <= self.p_inter <= 1.0:
            errors.append(f"p_inter ({self.p_inter}) outside [0, 1]")
        if self.inter_links_per_pair < 0:
            errors.append(f"inter_links_per_pair ({self.inter_links_per_pair}) < 0")
        if not 0.0 <= self.jitter < 1.0:
            errors.append(f"jitter ({self.jitter}) outside [0, 1)")
        for role, count in self.populations.items():
            if count < 0:
                errors.append(f"population of {role.value} ({count}) < 0")
            if count > 0 and role not in self.envelopes:
                errors.append(f"no resource envelope for {role.value}")
        if errors:
            raise ConfigurationError(f"Invalid profile {self.name}: " + "; ".join(errors))


SMALL_TESTNET = TopologyProfile(
    name="small-testnet",
    description="Compact network for development and testing",
    regions=(RegionId("us-east"), RegionId("eu-central")),
    populations={NodeRole.VALIDATOR: 2, NodeRole.MINER: 3, NodeRole.FULL_RELAY: 2},
    envelopes={
        NodeRole.VALIDATOR: ResourceEnvelope(8, 32, 1000, 1000),
        NodeRole.MINER: ResourceEnvelope(16, 64, 2000, 1000),
        NodeRole.FULL_RELAY: ResourceEnvelope(4, 16, 500, 500),
    },
    p_intra=1.0,
    p_inter=0.7,
    configuration=TopologyConfiguration(
        consensus=ConsensusFamily.PROOF_OF_STAKE,
        shard_count=1,
        replication_factor=3,
        minimum_validators=4,
        block_time=5,
    ),
)

MEDIUM_ENTERPRISE = TopologyProfile(
    name="medium-enterprise",
    description="Mid-sized network for enterprise applications",
    regions=(
        RegionId("us-east"),
        RegionId("us-west"),
        RegionId("eu-central"),
        RegionId("asia-southeast"),
    ),
    populations={
        NodeRole.VALIDATOR: 5,
        NodeRole.MINER: 8,
        NodeRole.FULL_RELAY: 5,
        NodeRole.ARCHIVE: 1,
        NodeRole.API_GATEWAY: 2,
    },
    envelopes={
        NodeRole.VALIDATOR: ResourceEnvelope(12, 48, 1500, 2000),
        NodeRole.MINER: ResourceEnvelope(24, 96, 3000, 2000),
        NodeRole.FULL_RELAY: ResourceEnvelope(8, 32, 1000, 1000),
        NodeRole.ARCHIVE: ResourceEnvelope(16, 128, 10000, 1000),
        NodeRole.API_GATEWAY: ResourceEnvelope(8, 32, 500, 5000),
    },
    p_intra=0.9,
    p_inter=0.6,
    configuration=TopologyConfiguration(
        consensus=ConsensusFamily.DELEGATED_PROOF_OF_STAKE,
        shard_count=4,
        replication_factor=5,
        minimum_validators=21,
        block_time=3,
    ),
)

LARGE_GLOBAL = TopologyProfile(
    name="large-global",
    description="Global-scale network with high availability",
    regions=(
        RegionId("us-east"),
        RegionId("us-west"),
        RegionId("eu-central"),
        RegionId("eu-west"),
        RegionId("asia-southeast"),
        RegionId("asia-northeast"),
        RegionId("sa-east"),
        RegionId("af-south"),
    ),
    populations={
        NodeRole.VALIDATOR: 19,
        NodeRole.MINER: 25,
        NodeRole.FULL_RELAY: 12,
        NodeRole.ARCHIVE: 3,
        NodeRole.API_GATEWAY: 4,
        NodeRole.LIGHT_CLIENT: 6,
    },
    envelopes={
        NodeRole.VALIDATOR: ResourceEnvelope(16, 64, 2000, 5000),
        NodeRole.MINER: ResourceEnvelope(32, 128, 4000, 5000),
        NodeRole.FULL_RELAY: ResourceEnvelope(12, 48, 1500, 2000),
        NodeRole.ARCHIVE: ResourceEnvelope(24, 256, 50000, 2000),
        NodeRole.API_GATEWAY: ResourceEnvelope(16, 64, 1000, 10000),
        NodeRole.LIGHT_CLIENT: ResourceEnvelope(2, 8, 100, 500),
    },
    p_intra=0.6,
    p_inter=0.4,
    configuration=TopologyConfiguration(
        consensus=ConsensusFamily.PBFT,
        shard_count=16,
        replication_factor=7,
        minimum_validators=100,
        block_time=1,
    ),
)

PROFILES: dict[str, TopologyProfile] = {
    profile.name: profile for profile in (SMALL_TESTNET, MEDIUM_ENTERPRISE, LARGE_GLOBAL)
}


def get_profile(name: str) -> TopologyProfile:
    profile = PROFILES.get(name)
    if profile is None:
        raise ConfigurationError(f"Unknown topology profile: {name}")
    return profile


class ConnectionIdAllocator:
    """Hands out `conn-{n}` ids that do not collide with existing ones."""

    def __init__(self, existing: Iterable[str] = ()) -> None:
        self._used = set(existing)
        self._next = 1

    def next(self) -> ConnectionId:
        while f"conn-{self._next}" in self._used:
            self._next += 1
        conn_id = f"conn-{self._next}"
        self._used.add(conn_id)
        self._next += 1
        return ConnectionId(conn_id)


def build_topology(
    profile: TopologyProfile,
    regions: list[str | Region] | None = None,
    rng: Random | None = None,
    topology_id: str | None = None,
) -> Topology:
    """Generate nodes per region and role, then wire them in two passes."""
    if rng is None:
        rng = Random()

    resolved = REGION_CATALOG.resolve(list(regions if regions is not None else profile.regions))
    region_ids = [r.id for r in resolved]
    if len(set(region_ids)) != len(region_ids):
        raise ConfigurationError(f"Duplicate regions in {region_ids}")

    region_nodes: dict[RegionId, list[Node]] = {r.id: [] for r in resolved}
    nodes: list[Node] = []
    node_number = 1
    for role, count in profile.populations.items():
        if count == 0:
            continue
        envelope = profile.envelopes[role]
        for region in resolved:
            for _ in range(count):
                node_id = NodeId(f"{role.value}-{node_number}")
                node = _create_node(node_id, role, region, envelope, profile.jitter, rng)
                node_number += 1
                nodes.append(node)
                region_nodes[region.id].append(node)

    ids = ConnectionIdAllocator()
    connections: list[Connection] = []

    # Pass 1: dense intra-region mesh
    for members in region_nodes.values():
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                if rng.random() < profile.p_intra:
                    connections.append(connection_between(ids.next(), members[i], members[j], rng))
                    members[i].connect(members[j])

    # Pass 2: sparse inter-region links between matched indices
    for i in range(len(region_ids)):
        for j in range(i + 1, len(region_ids)):
            nodes1 = region_nodes[region_ids[i]]
            nodes2 = region_nodes[region_ids[j]]
            links = min(profile.inter_links_per_pair, len(nodes1), len(nodes2))
            for k in range(links):
                if rng.random() < profile.p_inter:
                    connections.append(
                        connection_between(ids.next(), nodes1[k], nodes2[k], rng, profile.jitter)
                    )
                    nodes1[k].connect(nodes2[k])

    topology = Topology(
        id=TopologyId(topology_id or profile.name),
        name=profile.name.replace("-", " ").title(),
        description=profile.description,
        nodes=nodes,
        connections=connections,
        configuration=profile.configuration,
    )
    topology.validate()
    topology.recompute_properties()
    return topology


def connection_between(
    conn_id: ConnectionId,
    a: Node,
    b: Node,
    rng: Random,
    jitter: float = 0.1,
) -> Connection:
    """Create a link using the intra-region or inter-region rule."""
    if a.region == b.region:
        latency = 1 + rng.random() * 4
        bandwidth = 1000 + rng.random() * 4000
        reliability = 0.999
    else:
        base = link_latency_ms(_region_of(a), _region_of(b))
        latency = base * (1 + rng.uniform(-jitter, jitter))
        bandwidth = 500 + rng.random() * 1500
        reliability = 0.995

    return Connection(
        id=conn_id,
        source=a.id,
        target=b.id,
        bandwidth=round(bandwidth),
        latency=round(latency, 2),
        reliability=reliability,
        cost=0.01 + rng.random() * 0.05,
        encryption=True,
        compression=rng.random() > 0.3,
        traffic_in=rng.random() * bandwidth * 0.3,
        traffic_out=rng.random() * bandwidth * 0.3,
        errors=rng.randint(0, 9),
    )


def _create_node(
    node_id: NodeId,
    role: NodeRole,
    region: Region,
    envelope: ResourceEnvelope,
    jitter: float,
    rng: Random,
) -> Node:
    def vary(value: float) -> float:
        return value * (1 + rng.uniform(-jitter, jitter))

    return Node(
        id=node_id,
        name=node_id.replace("-", " ").title(),
        role=role,
        region=region.id,
        datacenter=region.datacenter,
        latitude=region.latitude,
        longitude=region.longitude,
        resources=ResourceSpec(
            cpu_cores=max(1, round(vary(envelope.cpu_cores))),
            cpu_speed_ghz=2.5 + rng.random() * 2.0,
            memory_gb=round(vary(envelope.memory_gb), 1),
            storage_gb=round(vary(envelope.storage_gb), 1),
            storage_iops=50000 + rng.randint(0, 49999),
            bandwidth_mbps=round(vary(envelope.bandwidth_mbps), 1),
            latency_ms=1 + rng.random() * 4,
        ),
        uptime=99.9 + rng.random() * 0.1,
        load=NodeLoad(
            cpu=rng.random() * 30,
            memory=rng.random() * 40,
            storage=rng.random() * 20,
            network=rng.random() * 25,
        ),
        transactions_processed=rng.randint(0, 999_999),
        blocks_produced=rng.randint(0, 9999) if role is NodeRole.MINER else 0,
        consensus_participation=95 + rng.random() * 5 if role is NodeRole.VALIDATOR else 0.0,
    )


def _region_of(node: Node) -> Region:
    return Region(
        id=node.region,
        datacenter=node.datacenter,
        latitude=node.latitude,
        longitude=node.longitude,
    )
