"""Simulation service: stored topologies and scenarios, run history, and the facade."""

from __future__ import annotations

import threading
from random import Random
from typing import TYPE_CHECKING

import coolname.impl

from topology_simulator.config import SimulatorConfig
from topology_simulator.core.builder import PROFILES, build_topology, get_profile
from topology_simulator.core.events import MetricPolicy, Scenario
from topology_simulator.core.simulator import SimulationEngine
from topology_simulator.core.topology import Topology
from topology_simulator.core.types import ScenarioId, SimulationId, TopologyId
from topology_simulator.errors import (
    ConfigurationError,
    UnknownScenarioError,
    UnknownTopologyError,
)
from topology_simulator.scenarios.presets import SCENARIOS

if TYPE_CHECKING:
    from collections.abc import Container

    from topology_simulator.core.events import FaultEvent
    from topology_simulator.core.regions import Region
    from topology_simulator.core.topology import Connection, Node, TopologyConfiguration
    from topology_simulator.metrics.results import SimulationResult


# coolname draws from one process-wide rng
_coolname_lock = threading.Lock()


def generate_id(rng: Random, prefix: str = "") -> str:
    with _coolname_lock:
        coolname.impl.replace_random(rng)
        words = coolname.impl.generate(3)
    return "-".join([prefix, *words] if prefix else words)


class TopologyRepository:
    def __init__(self) -> None:
        self._items: dict[TopologyId, Topology] = {}
        self._lock = threading.Lock()

    def __contains__(self, topology_id: object) -> bool:
        with self._lock:
            return topology_id in self._items

    def add(self, topology: Topology) -> None:
        with self._lock:
            if topology.id in self._items:
                raise ConfigurationError(f"Topology {topology.id} already exists")
            self._items[topology.id] = topology

    def get(self, topology_id: str) -> Topology:
        with self._lock:
            topology = self._items.get(TopologyId(topology_id))
        if topology is None:
            raise UnknownTopologyError(topology_id)
        return topology

    def list_all(self) -> list[Topology]:
        with self._lock:
            return list(self._items.values())


class ScenarioRepository:
    def __init__(self) -> None:
        self._items: dict[ScenarioId, Scenario] = {}
        self._lock = threading.Lock()

    def __contains__(self, scenario_id: object) -> bool:
        with self._lock:
            return scenario_id in self._items

    def add(self, scenario: Scenario) -> None:
        with self._lock:
            if scenario.id in self._items:
                raise ConfigurationError(f"Scenario {scenario.id} already exists")
            self._items[scenario.id] = scenario

    def get(self, scenario_id: str) -> Scenario:
        with self._lock:
            scenario = self._items.get(ScenarioId(scenario_id))
        if scenario is None:
            raise UnknownScenarioError(scenario_id)
        return scenario

    def list_all(self) -> list[Scenario]:
        with self._lock:
            return list(self._items.values())


class ResultRepository:
    """Finished results in completion order, plus runs still in flight."""

    def __init__(self) -> None:
        self._history: list[SimulationResult] = []
        self._active: dict[SimulationId, SimulationEngine] = {}
        self._lock = threading.Lock()

    def __contains__(self, simulation_id: object) -> bool:
        with self._lock:
            return simulation_id in self._active or any(
                r.id == simulation_id for r in self._history
            )

    def begin(self, engine: SimulationEngine) -> None:
        with self._lock:
            self._active[engine.simulation_id] = engine

    def finish(self, engine: SimulationEngine) -> None:
        with self._lock:
            self._active.pop(engine.simulation_id, None)
            if engine.result is not None and engine.result.frozen:
                self._history.append(engine.result)

    def history(self) -> list[SimulationResult]:
        with self._lock:
            return list(self._history)

    def active(self) -> list[SimulationEngine]:
        with self._lock:
            return list(self._active.values())

    def get(self, simulation_id: str) -> SimulationResult | None:
        with self._lock:
            engine = self._active.get(SimulationId(simulation_id))
            if engine is not None:
                return engine.result
            for result in self._history:
                if result.id == simulation_id:
                    return result
        return None


class TopologySimulator:
    """Entry point for building topologies and running scenarios against them.

    Repositories are injected so each caller (or test) can hold an isolated
    instance. Runs against the same topology may proceed concurrently from
    different threads; each run works on its own copy.
    """

    def __init__(
        self,
        topologies: TopologyRepository | None = None,
        scenarios: ScenarioRepository | None = None,
        results: ResultRepository | None = None,
        config: SimulatorConfig | None = None,
        rng: Random | None = None,
    ) -> None:
        self.topologies = topologies or TopologyRepository()
        self.scenarios = scenarios or ScenarioRepository()
        self.results = results or ResultRepository()
        self.config = config or SimulatorConfig()
        self._rng = rng or Random(self.config.seed)
        self._id_lock = threading.Lock()

    @classmethod
    def with_defaults(cls, config: SimulatorConfig | None = None) -> TopologySimulator:
        """A simulator preloaded with the stock topology profiles and scenarios."""
        simulator = cls(config=config)
        for name in PROFILES:
            simulator.build_topology(name)
        for scenario in SCENARIOS.values():
            simulator.scenarios.add(scenario)
        return simulator

    def _new_id(self, prefix: str, taken: Container[str]) -> str:
        with self._id_lock:
            while True:
                candidate = generate_id(self._rng, prefix)
                if candidate not in taken:
                    return candidate

    def build_topology(
        self,
        profile: str,
        regions: list[str | Region] | None = None,
        seed: int | None = None,
        topology_id: str | None = None,
    ) -> Topology:
        rng = Random(seed if seed is not None else self._rng.randrange(2**32))
        topology = build_topology(get_profile(profile), regions, rng, topology_id)
        self.topologies.add(topology)
        return topology

    def get_topologies(self) -> list[Topology]:
        return self.topologies.list_all()

    def get_topology(self, topology_id: str) -> Topology:
        return self.topologies.get(topology_id)

    def get_scenarios(self) -> list[Scenario]:
        return self.scenarios.list_all()

    def get_scenario(self, scenario_id: str) -> Scenario:
        return self.scenarios.get(scenario_id)

    def create_custom_topology(
        self,
        name: str,
        nodes: list[Node],
        connections: list[Connection],
        description: str = "",
        configuration: TopologyConfiguration | None = None,
    ) -> Topology:
        topology = Topology.from_parts(
            topology_id=TopologyId(self._new_id("custom", self.topologies)),
            name=name,
            nodes=nodes,
            connections=connections,
            description=description,
            configuration=configuration,
        )
        self.topologies.add(topology)
        return topology

    def create_custom_scenario(
        self,
        name: str,
        duration: float,
        events: list[FaultEvent],
        metrics: MetricPolicy | None = None,
        description: str = "",
    ) -> Scenario:
        scenario = Scenario(
            id=ScenarioId(self._new_id("custom", self.scenarios)),
            name=name,
            description=description,
            duration=duration,
            events=tuple(events),
            metrics=metrics or MetricPolicy(),
        )
        self.scenarios.add(scenario)
        return scenario

    def run_simulation(
        self,
        topology: Topology | str,
        scenario: Scenario | str,
        seed: int | None = None,
        pace: float | None = None,
    ) -> SimulationResult:
        """Run a scenario to completion and record it in the history.

        References are resolved before anything runs: an unknown topology or
        scenario id raises immediately. With `pace`, the run sleeps that many
        wall-clock seconds between steps.
        """
        if isinstance(topology, str):
            topology = self.topologies.get(topology)
        if isinstance(scenario, str):
            scenario = self.scenarios.get(scenario)

        engine = SimulationEngine(
            topology,
            scenario,
            config=self.config,
            seed=seed,
            simulation_id=SimulationId(self._new_id("sim", self.results)),
        )
        engine.start()

        self.results.begin(engine)
        try:
            return engine.run() if pace is None else engine.run_paced(pace)
        finally:
            self.results.finish(engine)

    def get_simulation_history(self) -> list[SimulationResult]:
        return self.results.history()

    def get_active_simulations(self) -> list[SimulationEngine]:
        return self.results.active()

    def get_simulation(self, simulation_id: str) -> SimulationResult | None:
        return self.results.get(simulation_id)

    def cancel_simulation(self, simulation_id: str) -> bool:
        for engine in self.results.active():
            if engine.simulation_id == simulation_id:
                engine.cancel()
                return True
        return False
