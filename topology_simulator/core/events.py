"""Scenario model: scripted fault events and metric collection policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from topology_simulator.core.types import EventId, ScenarioId
from topology_simulator.errors import ConfigurationError, ScenarioValidationError


class FaultType(Enum):
    NODE_FAILURE = "node-failure"
    NETWORK_PARTITION = "network-partition"
    LATENCY_SPIKE = "latency-spike"
    BANDWIDTH_THROTTLE = "bandwidth-throttle"
    DDOS_ATTACK = "ddos-attack"
    SOFTWARE_UPDATE = "software-update"


@dataclass(frozen=True)
class FaultEvent:
    """A scripted perturbation scheduled `offset` seconds into a scenario.

    An event without a duration is triggered but never reverted during the run.
    """

    id: EventId
    type: FaultType
    offset: float
    target: str  # Node id, region id or "global"
    parameters: dict[str, Any] = field(default_factory=dict)
    duration: float | None = None

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ScenarioValidationError(f"Event {self.id} has negative offset {self.offset}")
        if self.duration is not None and self.duration <= 0:
            raise ScenarioValidationError(
                f"Event {self.id} has non-positive duration {self.duration}"
            )

    @property
    def end(self) -> float | None:
        return None if self.duration is None else self.offset + self.duration

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "offset": self.offset,
            "target": self.target,
            "parameters": dict(self.parameters),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FaultEvent:
        try:
            duration = data.get("duration")
            return cls(
                id=EventId(data["id"]),
                type=FaultType(data["type"]),
                offset=float(data.get("offset", data.get("timestamp", 0))),
                target=str(data["target"]),
                parameters=dict(data.get("parameters", {})),
                duration=None if duration is None else float(duration),
            )
        except ConfigurationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed fault event: {e}") from e


@dataclass(frozen=True)
class MetricPolicy:
    """How often to sample and which optional metrics to include."""

    collect_interval: float = 10.0
    targets: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"collect_interval": self.collect_interval, "targets": list(self.targets)}


@dataclass(frozen=True)
class Scenario:
    """An ordered, named bundle of fault events."""

    id: ScenarioId
    name: str
    duration: float
    events: tuple[FaultEvent, ...]
    metrics: MetricPolicy = field(default_factory=MetricPolicy)
    description: str = ""

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.duration <= 0:
            errors.append(f"duration ({self.duration}) <= 0")
        if self.metrics.collect_interval <= 0:
            errors.append(f"collect_interval ({self.metrics.collect_interval}) <= 0")
        seen: set[EventId] = set()
        for event in self.events:
            if event.id in seen:
                errors.append(f"duplicate event id {event.id}")
            seen.add(event.id)
        if errors:
            raise ScenarioValidationError(f"Invalid scenario {self.id}: " + "; ".join(errors))

        # Keep a stable schedule order regardless of input order
        ordered = tuple(sorted(self.events, key=lambda e: e.offset))
        object.__setattr__(self, "events", ordered)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "duration": self.duration,
            "events": [event.to_dict() for event in self.events],
            "metrics": self.metrics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scenario:
        try:
            metrics = data.get("metrics", {})
            return cls(
                id=ScenarioId(data["id"]),
                name=data["name"],
                description=data.get("description", ""),
                duration=float(data["duration"]),
                events=tuple(FaultEvent.from_dict(e) for e in data.get("events", [])),
                metrics=MetricPolicy(
                    collect_interval=float(metrics.get("collect_interval", 10.0)),
                    targets=tuple(metrics.get("targets", ())),
                ),
            )
        except ConfigurationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed scenario: {e}") from e
