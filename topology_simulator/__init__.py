"""Network topology builder and fault-injection simulator."""

from topology_simulator.config import AnalysisThresholds, RecoveryPolicy, SimulatorConfig
from topology_simulator.core.simulator import SimulationEngine
from topology_simulator.service import TopologySimulator

__all__ = [
    "AnalysisThresholds",
    "RecoveryPolicy",
    "SimulationEngine",
    "SimulatorConfig",
    "TopologySimulator",
]
