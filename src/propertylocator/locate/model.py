from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Coordinate:
    # Decimal degrees, WGS84. Range is not checked here.
    lat: float
    lon: float

    def as_dict(self) -> dict[str, float]:
        return {"lat": float(self.lat), "lon": float(self.lon)}


@dataclass(frozen=True)
class FacilityObservation:
    coordinate: Coordinate | None
    walking_distance_m: float
    enabled: bool = True
    name: str | None = None

    @property
    def qualifies(self) -> bool:
        return bool(self.enabled) and self.coordinate is not None


@dataclass(frozen=True)
class GeocodeResult:
    coordinate: Coordinate
    display_name: str
