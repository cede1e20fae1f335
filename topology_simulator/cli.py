from __future__ import annotations

import json
import signal
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from topology_simulator.config import SimulatorConfig
from topology_simulator.core.events import Scenario
from topology_simulator.core.topology import Topology
from topology_simulator.errors import SimulatorError
from topology_simulator.service import TopologySimulator

if TYPE_CHECKING:
    from pathlib import Path

    from topology_simulator.metrics.results import SimulationResult


def append_summary(path: Path, summary: dict[str, object]) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(summary) + "\n")


def load_json(path: Path) -> dict[str, object]:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def run_summary(result: SimulationResult, wall_clock: float) -> dict[str, object]:
    return {
        "run_id": result.id,
        "seed": result.seed,
        "scenario": result.scenario_id,
        "topology": result.topology_id,
        "status": result.status.value,
        "resilience_score": round(result.analysis.resilience_score, 2),
        "bottlenecks": list(result.analysis.bottlenecks),
        "failure_points": list(result.analysis.failure_points),
        "summary": result.summary.to_dict(),
        "wall_clock_seconds": round(wall_clock, 2),
        "simulated_seconds": result.elapsed,
        "timestamp_start": result.start_time.isoformat(),
        "timestamp_end": (result.end_time or datetime.now(UTC)).isoformat(),
    }


def list_catalog(simulator: TopologySimulator) -> None:
    print("Topologies:")
    for topology in simulator.get_topologies():
        props = topology.properties
        print(
            f"  {topology.id:<20} nodes={props.total_nodes:<4} "
            f"connections={props.total_connections:<5} "
            f"regions={len(topology.regions)} "
            f"decentralization={props.decentralization:.2f}"
        )
    print("Scenarios:")
    for scenario in simulator.get_scenarios():
        print(
            f"  {scenario.id:<28} duration={scenario.duration:<5g} "
            f"events={len(scenario.events)} interval={scenario.metrics.collect_interval:g}"
        )


def run_once(
    simulator: TopologySimulator,
    topology: str,
    scenario: str,
    seed: int | None,
    pace: float | None,
    output: Path | None,
    history: Path | None,
) -> SimulationResult:
    def _cancel_active(signum: int, frame: object) -> None:
        for engine in simulator.get_active_simulations():
            engine.cancel()

    previous = signal.signal(signal.SIGINT, _cancel_active)
    wall_start = time.monotonic()
    try:
        result = simulator.run_simulation(topology, scenario, seed=seed, pace=pace)
    finally:
        signal.signal(signal.SIGINT, previous)
    wall_clock = time.monotonic() - wall_start

    analysis = result.analysis
    markers = analysis.bottlenecks + analysis.failure_points
    status_display = "OK" if not markers else f"ATTENTION({len(markers)})"
    print(
        f"[{result.id}] {result.scenario_id} on {result.topology_id} seed={result.seed} "
        f"... {result.status.value} score={analysis.resilience_score:.1f} "
        f"{status_display} ({wall_clock:.1f}s)"
    )
    print(
        f"  events: triggered={len(result.events.triggered)} "
        f"completed={len(result.events.completed)} failed={len(result.events.failed)} "
        f"samples={len(result.timeline)}"
    )
    for recommendation in analysis.recommendations:
        print(f"  - {recommendation}")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        print(f"  result written to {output}")
    if history is not None:
        history.parent.mkdir(parents=True, exist_ok=True)
        append_summary(history, run_summary(result, wall_clock))

    return result


def main(argv: list[str] | None = None) -> int:
    import argparse
    from pathlib import Path

    parser = argparse.ArgumentParser(description="Network topology fault-injection simulator")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to TOML configuration file",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List stock topologies and scenarios")

    run_parser = subparsers.add_parser("run", help="Run a scenario against a topology")
    run_parser.add_argument("topology", help="Topology id, or a JSON file with --topology-file")
    run_parser.add_argument("scenario", help="Scenario id, or a JSON file with --scenario-file")
    run_parser.add_argument(
        "--topology-file",
        action="store_true",
        help="Treat TOPOLOGY as a path to a topology JSON record",
    )
    run_parser.add_argument(
        "--scenario-file",
        action="store_true",
        help="Treat SCENARIO as a path to a scenario JSON record",
    )
    run_parser.add_argument(
        "--seed",
        type=int,
        help="Seed for reproducible runs",
    )
    run_parser.add_argument(
        "--pace",
        type=float,
        metavar="SECONDS",
        help="Wall-clock delay between simulation steps (default: run at full speed)",
    )
    run_parser.add_argument(
        "--output",
        type=Path,
        help="Write the full result as JSON to this file",
    )
    run_parser.add_argument(
        "--history",
        type=Path,
        help="Append a one-line run summary to this NDJSON file",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API server")
    serve_parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Bind address (default: 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the API server (default: 8000)",
    )

    args = parser.parse_args(argv)

    try:
        config = SimulatorConfig.from_toml(args.config) if args.config else SimulatorConfig()
        simulator = TopologySimulator.with_defaults(config)

        if args.command == "list":
            list_catalog(simulator)
        elif args.command == "serve":
            from topology_simulator.server import run_server

            run_server(simulator, host=args.host, port=args.port)
        else:
            topology = args.topology
            if args.topology_file:
                loaded = Topology.from_dict(load_json(Path(args.topology)))
                simulator.topologies.add(loaded)
                topology = loaded.id
            scenario = args.scenario
            if args.scenario_file:
                loaded_scenario = Scenario.from_dict(load_json(Path(args.scenario)))
                simulator.scenarios.add(loaded_scenario)
                scenario = loaded_scenario.id

            run_once(
                simulator,
                topology,
                scenario,
                seed=args.seed,
                pace=args.pace,
                output=args.output,
                history=args.history,
            )
    except (SimulatorError, OSError, ValueError) as e:
        print(f"error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
