"""Simulator configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from topology_simulator.errors import ConfigurationError

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class RecoveryPolicy:
    """How a recovered node rejoins the network."""

    same_region_probability: float = 0.8
    cross_region_probability: float = 0.3
    uptime_floor: float = 99.9  # Resampled uptime lands in [floor, 100)


@dataclass(frozen=True)
class AnalysisThresholds:
    max_average_latency: float = 100.0  # ms
    min_availability: float = 99.0  # percent
    max_consensus_time: float = 250.0  # ms
    slow_recovery_time: float = 60.0  # seconds
    recovery_penalty_per_minute: float = 10.0  # score points


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration for simulation runs."""

    # Longest simulated step; shortened per run so it divides the collect interval
    time_step: float = 1.0

    # None means unseeded (non-reproducible) randomness
    seed: int | None = None

    recovery: RecoveryPolicy = field(default_factory=RecoveryPolicy)
    thresholds: AnalysisThresholds = field(default_factory=AnalysisThresholds)

    def __post_init__(self) -> None:
        if self.time_step <= 0:
            raise ConfigurationError(f"time_step ({self.time_step}) <= 0")

    @classmethod
    def from_toml(cls, path: Path) -> SimulatorConfig:
        import tomllib

        with path.open("rb") as f:
            data = tomllib.load(f)

        engine = data.get("engine", {})
        try:
            recovery = RecoveryPolicy(**data.get("recovery", {}))
            thresholds = AnalysisThresholds(**data.get("thresholds", {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

        return cls(
            time_step=float(engine.get("time_step", 1.0)),
            seed=engine.get("seed"),
            recovery=recovery,
            thresholds=thresholds,
        )
