"""Exception hierarchy for the topology simulator."""

from __future__ import annotations


class SimulatorError(Exception):
    """Base class for all simulator errors."""


class ConfigurationError(SimulatorError, ValueError):
    """Inputs that prevent a run from starting (bad ids, profiles, scenarios)."""


class UnknownTopologyError(ConfigurationError, LookupError):
    def __init__(self, topology_id: str) -> None:
        super().__init__(f"Topology {topology_id} not found")
        self.topology_id = topology_id


class UnknownScenarioError(ConfigurationError, LookupError):
    def __init__(self, scenario_id: str) -> None:
        super().__init__(f"Scenario {scenario_id} not found")
        self.scenario_id = scenario_id


class ScenarioValidationError(ConfigurationError):
    """A scenario or fault event is malformed."""


class TopologyValidationError(SimulatorError, ValueError):
    """A topology violates a structural invariant."""


class FaultResolutionError(SimulatorError):
    """A fault event could not be applied to the working topology.

    Recorded in the run's failed ledger; never propagated out of a run.
    """
