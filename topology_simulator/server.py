"""FastAPI backend for the topology dashboard."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from topology_simulator.core.events import FaultEvent, MetricPolicy
from topology_simulator.core.topology import Connection, Node, TopologyConfiguration
from topology_simulator.errors import (
    ConfigurationError,
    TopologyValidationError,
    UnknownScenarioError,
    UnknownTopologyError,
)

if TYPE_CHECKING:
    from topology_simulator.core.simulator import SimulationEngine
    from topology_simulator.metrics.results import SimulationResult
    from topology_simulator.service import TopologySimulator


class RunRequest(BaseModel):
    topology_id: str
    scenario_id: str
    seed: int | None = None
    pace: float | None = Field(default=None, ge=0)  # Seconds slept between steps


class TopologyRequest(BaseModel):
    name: str
    description: str = ""
    nodes: list[dict[str, Any]]
    connections: list[dict[str, Any]] = Field(default_factory=list)
    configuration: dict[str, Any] = Field(default_factory=dict)


class FaultEventRequest(BaseModel):
    id: str
    type: str
    offset: float = 0.0
    target: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    duration: float | None = None


class MetricPolicyRequest(BaseModel):
    collect_interval: float = 10.0
    targets: list[str] = Field(default_factory=list)


class ScenarioRequest(BaseModel):
    name: str
    description: str = ""
    duration: float
    events: list[FaultEventRequest] = Field(default_factory=list)
    metrics: MetricPolicyRequest = Field(default_factory=MetricPolicyRequest)


class SimulationSummary(BaseModel):
    id: str
    scenario_id: str
    topology_id: str
    status: str
    elapsed: float
    resilience_score: float | None = None


def _summary(result: SimulationResult) -> SimulationSummary:
    return SimulationSummary(
        id=result.id,
        scenario_id=result.scenario_id,
        topology_id=result.topology_id,
        status=result.status.value,
        elapsed=result.elapsed,
        resilience_score=result.analysis.resilience_score if result.frozen else None,
    )


def _active_summary(engine: SimulationEngine) -> SimulationSummary:
    # In-flight runs expose status only; their ledgers are still changing
    return SimulationSummary(
        id=engine.simulation_id,
        scenario_id=engine.scenario.id,
        topology_id=engine.topology.id,
        status=engine.status.value,
        elapsed=engine.result.elapsed if engine.result else 0.0,
    )


def create_app(simulator: TopologySimulator) -> FastAPI:
    app = FastAPI(title="Topology Simulator API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UnknownTopologyError)
    @app.exception_handler(UnknownScenarioError)
    async def not_found(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ConfigurationError)
    @app.exception_handler(TopologyValidationError)
    async def bad_request(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/api/topologies")
    async def get_topologies() -> list[dict[str, Any]]:
        return [t.to_dict() for t in simulator.get_topologies()]

    @app.get("/api/topologies/{topology_id}")
    async def get_topology(topology_id: str) -> dict[str, Any]:
        return simulator.get_topology(topology_id).to_dict()

    @app.post("/api/topologies", status_code=201)
    async def create_topology(request: TopologyRequest) -> dict[str, Any]:
        topology = simulator.create_custom_topology(
            name=request.name,
            description=request.description,
            nodes=[Node.from_dict(n) for n in request.nodes],
            connections=[Connection.from_dict(c) for c in request.connections],
            configuration=TopologyConfiguration.from_dict(request.configuration),
        )
        return topology.to_dict()

    @app.get("/api/scenarios")
    async def get_scenarios() -> list[dict[str, Any]]:
        return [s.to_dict() for s in simulator.get_scenarios()]

    @app.get("/api/scenarios/{scenario_id}")
    async def get_scenario(scenario_id: str) -> dict[str, Any]:
        return simulator.get_scenario(scenario_id).to_dict()

    @app.post("/api/scenarios", status_code=201)
    async def create_scenario(request: ScenarioRequest) -> dict[str, Any]:
        scenario = simulator.create_custom_scenario(
            name=request.name,
            description=request.description,
            duration=request.duration,
            events=[FaultEvent.from_dict(e.model_dump()) for e in request.events],
            metrics=MetricPolicy(
                collect_interval=request.metrics.collect_interval,
                targets=tuple(request.metrics.targets),
            ),
        )
        return scenario.to_dict()

    @app.get("/api/simulations")
    async def get_history() -> list[SimulationSummary]:
        return [_summary(r) for r in simulator.get_simulation_history()]

    @app.get("/api/simulations/active")
    async def get_active() -> list[SimulationSummary]:
        return [_active_summary(e) for e in simulator.get_active_simulations()]

    @app.get("/api/simulations/{simulation_id}")
    async def get_simulation(simulation_id: str) -> dict[str, Any]:
        result = simulator.get_simulation(simulation_id)
        if result is None:
            raise HTTPException(status_code=404, detail=f"Simulation {simulation_id} not found")
        if not result.frozen:
            return _summary(result).model_dump()
        return result.to_dict()

    # Sync handler: runs in the threadpool so long runs don't block the loop
    @app.post("/api/simulations", status_code=201)
    def run_simulation(request: RunRequest) -> dict[str, Any]:
        result = simulator.run_simulation(
            request.topology_id, request.scenario_id, seed=request.seed, pace=request.pace
        )
        return result.to_dict()

    @app.post("/api/simulations/{simulation_id}/cancel")
    async def cancel_simulation(simulation_id: str) -> dict[str, Any]:
        if not simulator.cancel_simulation(simulation_id):
            raise HTTPException(status_code=404, detail=f"No active simulation {simulation_id}")
        return {"id": simulation_id, "cancelled": True}

    return app


def run_server(simulator: TopologySimulator, host: str = "0.0.0.0", port: int = 8000) -> None:
    import uvicorn

    app = create_app(simulator)
    print(f"Starting topology simulator server at http://{host}:{port}")
    print(
        f"Serving {len(simulator.get_topologies())} topologies, "
        f"{len(simulator.get_scenarios())} scenarios"
    )
    uvicorn.run(app, host=host, port=port)
