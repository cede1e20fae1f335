"""Core type aliases for the simulation."""

from typing import NewType

# Unique within a topology
NodeId = NewType("NodeId", str)
ConnectionId = NewType("ConnectionId", str)

# Geographic grouping, e.g. "us-east"
RegionId = NewType("RegionId", str)

EventId = NewType("EventId", str)
TopologyId = NewType("TopologyId", str)
ScenarioId = NewType("ScenarioId", str)
SimulationId = NewType("SimulationId", str)

# Fault target meaning "every connection"
GLOBAL_TARGET = "global"
