"""Stock fault scenarios."""

from topology_simulator.scenarios.presets import SCENARIOS, get_scenario

__all__ = ["SCENARIOS", "get_scenario"]
