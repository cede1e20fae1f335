"""Topology model, generation and scenario definitions."""

from topology_simulator.core.builder import PROFILES, TopologyProfile, build_topology
from topology_simulator.core.events import FaultEvent, FaultType, MetricPolicy, Scenario
from topology_simulator.core.regions import REGION_CATALOG, Region
from topology_simulator.core.topology import Connection, Node, NodeRole, Topology
from topology_simulator.core.types import (
    GLOBAL_TARGET,
    ConnectionId,
    EventId,
    NodeId,
    RegionId,
    ScenarioId,
    SimulationId,
    TopologyId,
)

__all__ = [
    "GLOBAL_TARGET",
    "PROFILES",
    "REGION_CATALOG",
    "Connection",
    "ConnectionId",
    "EventId",
    "FaultEvent",
    "FaultType",
    "MetricPolicy",
    "Node",
    "NodeId",
    "NodeRole",
    "Region",
    "RegionId",
    "Scenario",
    "ScenarioId",
    "SimulationId",
    "Topology",
    "TopologyId",
    "TopologyProfile",
    "build_topology",
]
