"""Tests for topology generation."""

from random import Random

import pytest

from topology_simulator.core.builder import (
    LARGE_GLOBAL,
    MEDIUM_ENTERPRISE,
    PROFILES,
    SMALL_TESTNET,
    ConnectionIdAllocator,
    TopologyProfile,
    build_topology,
    get_profile,
)
from topology_simulator.core.regions import REGION_CATALOG, haversine_km, link_latency_ms
from topology_simulator.core.topology import ConsensusFamily, NodeRole, Topology
from topology_simulator.core.types import RegionId
from topology_simulator.errors import ConfigurationError


def two_validators_per_region(p_inter: float = 0.0) -> TopologyProfile:
    return TopologyProfile(
        name="pairs",
        populations={NodeRole.VALIDATOR: 2},
        regions=(RegionId("us-east"), RegionId("eu-central")),
        p_intra=1.0,
        p_inter=p_inter,
    )


class TestRegions:
    def test_catalog_contains_all_regions(self) -> None:
        assert len(REGION_CATALOG.ids) == 8
        assert "af-south" in REGION_CATALOG

    def test_unknown_region(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown region"):
            REGION_CATALOG.get("atlantis")

    def test_haversine_transatlantic(self) -> None:
        """us-east to eu-central is roughly 6,500 km."""
        distance = haversine_km(REGION_CATALOG.get("us-east"), REGION_CATALOG.get("eu-central"))

        assert 6000 < distance < 7000

    def test_link_latency_includes_processing(self) -> None:
        region = REGION_CATALOG.get("us-east")

        assert link_latency_ms(region, region) == pytest.approx(5.0)


class TestBuildTopology:
    def test_two_regions_without_inter_links(self) -> None:
        """Full intra mesh with no inter-region pass yields one link per region."""
        topology = build_topology(two_validators_per_region(), rng=Random(1))

        assert len(topology.nodes) == 4
        assert len(topology.connections) == 2
        nodes = topology.node_index()
        for conn in topology.connections:
            assert nodes[conn.source].region == nodes[conn.target].region
        assert topology.properties.decentralization == pytest.approx(1.0)

    def test_inter_links_use_matched_indices(self) -> None:
        topology = build_topology(two_validators_per_region(p_inter=1.0), rng=Random(1))

        nodes = topology.node_index()
        inter = [
            c for c in topology.connections if nodes[c.source].region != nodes[c.target].region
        ]
        assert {c.pair for c in inter} == {
            ("validator-1", "validator-3"),
            ("validator-2", "validator-4"),
        }
        for conn in inter:
            assert conn.reliability == 0.995
            assert conn.latency > 40

    def test_intra_links_are_fast_and_reliable(self, small_topology: Topology) -> None:
        nodes = small_topology.node_index()
        for conn in small_topology.connections:
            if nodes[conn.source].region == nodes[conn.target].region:
                assert 1 <= conn.latency <= 5
                assert conn.reliability == 0.999

    def test_node_ids_use_global_counter(self, small_topology: Topology) -> None:
        ids = [n.id for n in small_topology.nodes]

        assert ids[:4] == ["validator-1", "validator-2", "validator-3", "validator-4"]
        assert ids[4] == "miner-5"
        assert ids[-1] == "full-relay-14"
        assert small_topology.nodes[0].name == "Validator 1"

    def test_node_count_matches_profile(self) -> None:
        topology = build_topology(MEDIUM_ENTERPRISE, rng=Random(3))

        per_region = sum(MEDIUM_ENTERPRISE.populations.values())
        assert len(topology.nodes) == per_region * len(MEDIUM_ENTERPRISE.regions)
        assert topology.configuration.consensus is ConsensusFamily.DELEGATED_PROOF_OF_STAKE

    def test_at_most_three_links_per_region_pair(self) -> None:
        topology = build_topology(MEDIUM_ENTERPRISE, rng=Random(3))

        nodes = topology.node_index()
        pairs: dict[tuple[str, str], int] = {}
        for conn in topology.connections:
            a, b = nodes[conn.source].region, nodes[conn.target].region
            if a != b:
                key = (min(a, b), max(a, b))
                pairs[key] = pairs.get(key, 0) + 1
        assert all(count <= 3 for count in pairs.values())

    def test_role_specific_counters(self, small_topology: Topology) -> None:
        for node in small_topology.nodes:
            if node.role is not NodeRole.MINER:
                assert node.blocks_produced == 0
            if node.role is not NodeRole.VALIDATOR:
                assert node.consensus_participation == 0.0
            else:
                assert 95 <= node.consensus_participation <= 100

    def test_resources_stay_within_jitter(self, small_topology: Topology) -> None:
        envelope = SMALL_TESTNET.envelopes[NodeRole.MINER]
        for node in small_topology.nodes:
            if node.role is NodeRole.MINER:
                memory = node.resources.memory_gb
                assert envelope.memory_gb * 0.89 <= memory <= envelope.memory_gb * 1.11

    def test_single_node_region_has_no_intra_links(self) -> None:
        profile = TopologyProfile(
            name="lonely",
            populations={NodeRole.ARCHIVE: 1},
            regions=(RegionId("us-east"),),
        )

        topology = build_topology(profile, rng=Random(1))

        assert len(topology.nodes) == 1
        assert topology.connections == []

    def test_zero_population_roles_are_skipped(self) -> None:
        profile = TopologyProfile(
            name="sparse",
            populations={NodeRole.VALIDATOR: 0, NodeRole.MINER: 2},
            regions=(RegionId("us-east"),),
        )

        topology = build_topology(profile, rng=Random(1))

        assert [n.id for n in topology.nodes] == ["miner-1", "miner-2"]

    def test_same_seed_same_topology(self) -> None:
        first = build_topology(SMALL_TESTNET, rng=Random(11))
        second = build_topology(SMALL_TESTNET, rng=Random(11))

        assert [c.to_dict()["properties"] for c in first.connections] == [
            c.to_dict()["properties"] for c in second.connections
        ]

    def test_region_override(self) -> None:
        topology = build_topology(SMALL_TESTNET, regions=["sa-east", "af-south"], rng=Random(1))

        assert topology.regions == {"sa-east", "af-south"}

    def test_duplicate_regions_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate regions"):
            build_topology(SMALL_TESTNET, regions=["us-east", "us-east"], rng=Random(1))

    def test_unknown_region_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            build_topology(SMALL_TESTNET, regions=["atlantis"], rng=Random(1))

    def test_generated_topology_is_valid(self) -> None:
        topology = build_topology(LARGE_GLOBAL, rng=Random(5))

        topology.validate()
        assert len(topology.regions) == 8


class TestProfiles:
    def test_presets_registered(self) -> None:
        assert set(PROFILES) == {"small-testnet", "medium-enterprise", "large-global"}

    def test_unknown_profile(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown topology profile"):
            get_profile("gigantic")

    def test_invalid_probability(self) -> None:
        with pytest.raises(ConfigurationError, match="p_intra"):
            TopologyProfile(name="bad", populations={NodeRole.VALIDATOR: 1}, p_intra=1.5)

    def test_negative_population(self) -> None:
        with pytest.raises(ConfigurationError, match="population"):
            TopologyProfile(name="bad", populations={NodeRole.VALIDATOR: -1})


class TestConnectionIdAllocator:
    def test_skips_existing_ids(self) -> None:
        ids = ConnectionIdAllocator(["conn-1", "conn-2", "conn-4"])

        assert ids.next() == "conn-3"
        assert ids.next() == "conn-5"
