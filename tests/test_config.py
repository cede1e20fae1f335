"""Tests for simulator configuration loading."""

from pathlib import Path

import pytest

from topology_simulator.config import AnalysisThresholds, RecoveryPolicy, SimulatorConfig
from topology_simulator.errors import ConfigurationError


class TestSimulatorConfig:
    def test_defaults(self) -> None:
        config = SimulatorConfig()

        assert config.time_step == 1.0
        assert config.seed is None
        assert config.recovery == RecoveryPolicy()
        assert config.thresholds.max_average_latency == 100.0

    @pytest.mark.parametrize("time_step", [0.0, -1.0])
    def test_rejects_non_positive_time_step(self, time_step: float) -> None:
        with pytest.raises(ConfigurationError, match="time_step"):
            SimulatorConfig(time_step=time_step)

    def test_from_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "sim.toml"
        path.write_text(
            "[engine]\n"
            "time_step = 0.5\n"
            "seed = 1234\n"
            "\n"
            "[recovery]\n"
            "same_region_probability = 1.0\n"
            "\n"
            "[thresholds]\n"
            "max_average_latency = 80.0\n"
        )

        config = SimulatorConfig.from_toml(path)

        assert config.time_step == 0.5
        assert config.seed == 1234
        assert config.recovery.same_region_probability == 1.0
        assert config.recovery.cross_region_probability == 0.3
        assert config.thresholds == AnalysisThresholds(max_average_latency=80.0)

    def test_from_toml_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.toml"
        path.write_text("")

        assert SimulatorConfig.from_toml(path) == SimulatorConfig()

    def test_from_toml_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[recovery]\nteleport = true\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            SimulatorConfig.from_toml(path)

    def test_from_toml_invalid_time_step(self, tmp_path: Path) -> None:
        path = tmp_path / "zero.toml"
        path.write_text("[engine]\ntime_step = 0\n")

        with pytest.raises(ConfigurationError):
            SimulatorConfig.from_toml(path)
