"""Region catalog and great-circle latency model loaded from JSON data."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path

from topology_simulator.core.types import RegionId
from topology_simulator.errors import ConfigurationError

EARTH_RADIUS_KM = 6371.0

# Light in fiber covers roughly 200 km per millisecond
FIBER_KM_PER_MS = 200.0
ROUTING_OVERHEAD = 1.5
PROCESSING_MS = 5.0


@dataclass(frozen=True)
class Region:
    """A geographic region hosting one datacenter."""

    id: RegionId
    datacenter: str
    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "datacenter": self.datacenter,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class RegionCatalog:
    """Region lookup loaded from JSON.

    The JSON format is:
    {
        "region_id": {"datacenter": "...", "lat": 0.0, "lng": 0.0},
        ...
    }
    """

    def __init__(self, data: dict[str, dict[str, object]]) -> None:
        self._regions: dict[RegionId, Region] = {}
        for region_id, entry in data.items():
            self._regions[RegionId(region_id)] = Region(
                id=RegionId(region_id),
                datacenter=str(entry["datacenter"]),
                latitude=float(entry["lat"]),  # type: ignore[arg-type]
                longitude=float(entry["lng"]),  # type: ignore[arg-type]
            )

    @classmethod
    def load(cls, path: Path | None = None) -> RegionCatalog:
        if path is None:
            path = Path(__file__).parent.parent / "regions.json"
        with path.open() as f:
            data = json.load(f)
        return cls(data)

    def get(self, region_id: str) -> Region:
        region = self._regions.get(RegionId(region_id))
        if region is None:
            raise ConfigurationError(f"Unknown region: {region_id}")
        return region

    def resolve(self, regions: list[str | Region]) -> list[Region]:
        """Accept region ids or ready-made regions, in order."""
        return [r if isinstance(r, Region) else self.get(r) for r in regions]

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._regions

    @property
    def ids(self) -> list[RegionId]:
        return list(self._regions.keys())


def haversine_km(a: Region, b: Region) -> float:
    """Great-circle distance between two regions in kilometres."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def link_latency_ms(a: Region, b: Region) -> float:
    """One-way latency for a link between two regions."""
    return PROCESSING_MS + haversine_km(a, b) / FIBER_KM_PER_MS * ROUTING_OVERHEAD


# Module-level singleton loaded once
REGION_CATALOG = RegionCatalog.load()
