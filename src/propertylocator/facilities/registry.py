"""
Facility registry: the one place that owns the mutable facility list.

The map page edits facilities (add, remove, toggle, rename, change distance,
paste a location) and asks for a fresh estimate after every change. All of
that state lives here and commands are addressed by a stable facility id, never
by list position. Estimation itself is delegated to the pure functions in
`propertylocator.locate`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, Protocol

import pandas as pd

from propertylocator.geocoding.nominatim import GeocodingError
from propertylocator.locate.estimate import estimate_position
from propertylocator.locate.explain import explain_estimate
from propertylocator.locate.extract import match_coordinates
from propertylocator.locate.model import Coordinate, FacilityObservation, GeocodeResult

DEFAULT_DISTANCE_M = 500.0

STATUS_PENDING = "pending"
STATUS_FOUND = "found"
STATUS_NOT_FOUND = "not_found"
STATUS_MANUAL = "manual"
STATUS_ERROR = "error"

SOURCE_GEOCODED = "geocoded"
SOURCE_MANUAL = "manual"


class Geocoder(Protocol):
    def geocode(self, name: str) -> GeocodeResult | None: ...


@dataclass(frozen=True)
class Facility:
    id: str
    name: str
    distance_m: float
    enabled: bool = True
    coordinate: Coordinate | None = None
    display_name: str | None = None
    source: str | None = None
    status: str = STATUS_PENDING

    def to_observation(self) -> FacilityObservation:
        return FacilityObservation(
            coordinate=self.coordinate,
            walking_distance_m=float(self.distance_m),
            enabled=bool(self.enabled),
            name=self.name or None,
        )


def _coerce_distance(value: Any) -> float:
    # The distance box accepts anything; garbage becomes 0 rather than an error.
    try:
        distance = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(distance) or distance < 0:
        return 0.0
    return distance


def _cell(row: dict[str, Any], key: str) -> Any:
    value = row.get(key)
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


class FacilityRegistry:
    def __init__(self, facilities: Iterable[Facility] = (), *, logger: logging.Logger | None = None) -> None:
        self._facilities: dict[str, Facility] = {}
        self._next_seq = 1
        self._logger = logger or logging.getLogger("propertylocator")
        for f in facilities:
            if f.id in self._facilities:
                raise ValueError(f"Duplicate facility id: {f.id}")
            self._facilities[f.id] = f
            self._bump_seq(f.id)

    def _bump_seq(self, facility_id: str) -> None:
        # Keep generated ids ahead of any "F012"-style id loaded from disk.
        if facility_id.startswith("F") and facility_id[1:].isdigit():
            self._next_seq = max(self._next_seq, int(facility_id[1:]) + 1)

    def _new_id(self) -> str:
        facility_id = f"F{self._next_seq:03d}"
        self._next_seq += 1
        return facility_id

    def __len__(self) -> int:
        return len(self._facilities)

    def __iter__(self) -> Iterator[Facility]:
        return iter(list(self._facilities.values()))

    def __contains__(self, facility_id: object) -> bool:
        return facility_id in self._facilities

    def get(self, facility_id: str) -> Facility:
        try:
            return self._facilities[facility_id]
        except KeyError:
            raise KeyError(f"Unknown facility id: {facility_id}") from None

    def _put(self, facility: Facility) -> Facility:
        self._facilities[facility.id] = facility
        return facility

    # Commands

    def add(self, name: str = "", distance_m: float = DEFAULT_DISTANCE_M, *, enabled: bool = True) -> Facility:
        distance = float(distance_m)
        if not math.isfinite(distance) or distance < 0:
            raise ValueError(f"distance_m must be a non-negative number, got {distance_m!r}")
        facility = Facility(id=self._new_id(), name=str(name).strip(), distance_m=distance, enabled=bool(enabled))
        return self._put(facility)

    def remove(self, facility_id: str) -> Facility:
        facility = self.get(facility_id)
        del self._facilities[facility_id]
        return facility

    def set_enabled(self, facility_id: str, enabled: bool) -> Facility:
        return self._put(replace(self.get(facility_id), enabled=bool(enabled)))

    def rename(self, facility_id: str, name: str) -> Facility:
        facility = self.get(facility_id)
        name = str(name).strip()
        if name == facility.name:
            return facility
        if facility.source == SOURCE_GEOCODED:
            # The old geocode belonged to the old name.
            return self._put(
                replace(facility, name=name, coordinate=None, display_name=None, source=None, status=STATUS_PENDING)
            )
        if facility.coordinate is None:
            # A not_found/error result was for the old name; the new one has not been looked up.
            return self._put(replace(facility, name=name, status=STATUS_PENDING))
        return self._put(replace(facility, name=name))

    def set_distance(self, facility_id: str, distance_m: Any) -> Facility:
        return self._put(replace(self.get(facility_id), distance_m=_coerce_distance(distance_m)))

    def set_location(self, facility_id: str, coordinate: Coordinate, *, display_name: str | None = None) -> Facility:
        return self._put(
            replace(
                self.get(facility_id),
                coordinate=coordinate,
                display_name=display_name,
                source=SOURCE_MANUAL,
                status=STATUS_MANUAL,
            )
        )

    def set_location_text(self, facility_id: str, text: str) -> bool:
        """Locate a facility from a pasted map URL or "lat, lon"; False when nothing was recognised."""
        self.get(facility_id)
        if not text or not text.strip():
            return False
        found = match_coordinates(text)
        if found is None:
            self._logger.info("No coordinates recognised for %s", facility_id)
            return False
        matcher, coordinate = found
        self._logger.info("Located %s from %s pattern", facility_id, matcher)
        self.set_location(facility_id, coordinate)
        return True

    def clear_location(self, facility_id: str) -> Facility:
        return self._put(
            replace(self.get(facility_id), coordinate=None, display_name=None, source=None, status=STATUS_PENDING)
        )

    def mark(self, facility_id: str, status: str) -> Facility:
        return self._put(replace(self.get(facility_id), status=status))

    def apply_geocode(self, facility_id: str, result: GeocodeResult | None) -> Facility:
        facility = self.get(facility_id)
        if result is None:
            return self._put(replace(facility, status=STATUS_NOT_FOUND))
        return self._put(
            replace(
                facility,
                coordinate=result.coordinate,
                display_name=result.display_name or None,
                source=SOURCE_GEOCODED,
                status=STATUS_FOUND,
            )
        )

    def pending_geocode(self) -> list[Facility]:
        # Manually placed facilities are never overwritten by a lookup.
        return [f for f in self if f.enabled and f.name and f.coordinate is None]

    def resolve(self, geocoder: Geocoder) -> dict[str, str]:
        """
        Geocode every enabled, named, unlocated facility one after another.

        The geocoder is responsible for pacing its own requests. A failed lookup
        marks that facility `error` and the loop moves on. Returns
        {facility_id: status}.
        """
        statuses: dict[str, str] = {}
        for facility in self.pending_geocode():
            try:
                result = geocoder.geocode(facility.name)
            except GeocodingError as e:
                self._logger.warning("Geocoding failed for %s (%s): %s", facility.id, facility.name, e)
                statuses[facility.id] = self.mark(facility.id, STATUS_ERROR).status
                continue
            statuses[facility.id] = self.apply_geocode(facility.id, result).status
        return statuses

    # Queries

    def observations(self) -> list[FacilityObservation]:
        return [f.to_observation() for f in self]

    def estimate(self, ratio: float) -> Coordinate | None:
        return estimate_position(self.observations(), ratio)

    def explain(self, ratio: float) -> dict[str, Any]:
        return explain_estimate(self.observations(), ratio)

    # Persistence

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for f in self:
            rows.append(
                {
                    "id": f.id,
                    "name": f.name,
                    "distance_m": float(f.distance_m),
                    "enabled": bool(f.enabled),
                    "lat": float(f.coordinate.lat) if f.coordinate is not None else None,
                    "lon": float(f.coordinate.lon) if f.coordinate is not None else None,
                    "display_name": f.display_name,
                    "source": f.source,
                    "status": f.status,
                }
            )
        columns = ["id", "name", "distance_m", "enabled", "lat", "lon", "display_name", "source", "status"]
        df = pd.DataFrame(rows, columns=columns)
        df["enabled"] = df["enabled"].astype(object)
        return df

    @classmethod
    def from_frame(cls, df: pd.DataFrame, *, logger: logging.Logger | None = None) -> "FacilityRegistry":
        registry = cls(logger=logger)
        records = df.to_dict(orient="records")
        # Rows added by hand have no id; their generated ids must skip every saved one.
        for row in records:
            raw_id = _cell(row, "id")
            if raw_id is not None:
                registry._bump_seq(str(raw_id).strip())
        for row in records:
            lat = _cell(row, "lat")
            lon = _cell(row, "lon")
            coordinate = Coordinate(lat=float(lat), lon=float(lon)) if lat is not None and lon is not None else None
            source = _cell(row, "source")
            status = STATUS_PENDING
            if coordinate is not None:
                status = STATUS_MANUAL if source == SOURCE_MANUAL else STATUS_FOUND
            raw_id = _cell(row, "id")
            facility_id = str(raw_id).strip() if raw_id is not None and str(raw_id).strip() else registry._new_id()
            if facility_id in registry:
                raise ValueError(f"Duplicate facility id: {facility_id}")
            enabled = _cell(row, "enabled")
            facility = Facility(
                id=facility_id,
                name=str(_cell(row, "name") or "").strip(),
                distance_m=_coerce_distance(_cell(row, "distance_m")),
                enabled=True if enabled is None else bool(enabled),
                coordinate=coordinate,
                display_name=_cell(row, "display_name"),
                source=source,
                status=status,
            )
            registry._put(facility)
            registry._bump_seq(facility_id)
        return registry
