import pandas as pd
import pytest

from propertylocator.facilities.registry import (
    STATUS_ERROR,
    STATUS_FOUND,
    STATUS_MANUAL,
    STATUS_NOT_FOUND,
    STATUS_PENDING,
    FacilityRegistry,
)
from propertylocator.geocoding.nominatim import GeocodingError
from propertylocator.locate.model import Coordinate, GeocodeResult


class _FakeGeocoder:
    def __init__(self, results: dict[str, GeocodeResult | None], failing: set[str] | None = None) -> None:
        self._results = results
        self._failing = failing or set()
        self.calls: list[str] = []

    def geocode(self, name: str) -> GeocodeResult | None:
        self.calls.append(name)
        if name in self._failing:
            raise GeocodingError("boom")
        return self._results.get(name)


def test_ids_are_stable_across_removal() -> None:
    registry = FacilityRegistry()
    a = registry.add("school", 660)
    b = registry.add("station", 380)
    registry.remove(a.id)
    c = registry.add("park", 1190)

    assert [f.id for f in registry] == [b.id, c.id]
    assert (a.id, b.id, c.id) == ("F001", "F002", "F003")
    with pytest.raises(KeyError):
        registry.get(a.id)


def test_add_rejects_negative_distance() -> None:
    with pytest.raises(ValueError):
        FacilityRegistry().add("school", -1)


def test_set_distance_coerces_bad_input_to_zero() -> None:
    registry = FacilityRegistry()
    f = registry.add("school", 660)
    assert registry.set_distance(f.id, "720").distance_m == 720.0
    assert registry.set_distance(f.id, "abc").distance_m == 0.0
    assert registry.set_distance(f.id, -50).distance_m == 0.0


def test_set_location_text() -> None:
    registry = FacilityRegistry()
    f = registry.add("school", 660)

    assert registry.set_location_text(f.id, "https://maps.example.com/@35.70,139.90,17z")
    located = registry.get(f.id)
    assert located.coordinate == Coordinate(35.70, 139.90)
    assert located.status == STATUS_MANUAL

    assert not registry.set_location_text(f.id, "somewhere near the river")
    assert not registry.set_location_text(f.id, "   ")
    assert registry.get(f.id).coordinate == Coordinate(35.70, 139.90)


def test_rename_clears_only_geocoded_locations() -> None:
    registry = FacilityRegistry()
    geocoded = registry.add("school", 660)
    manual = registry.add("station", 380)
    registry.apply_geocode(geocoded.id, GeocodeResult(Coordinate(35.7, 139.9), "School, Edogawa"))
    registry.set_location(manual.id, Coordinate(35.71, 139.91))

    renamed = registry.rename(geocoded.id, "another school")
    assert renamed.coordinate is None
    assert renamed.status == STATUS_PENDING
    assert registry.rename(manual.id, "main station").coordinate == Coordinate(35.71, 139.91)


def test_resolve_geocodes_only_pending_enabled_facilities() -> None:
    registry = FacilityRegistry()
    school = registry.add("school", 660)
    station = registry.add("station", 380)
    closed = registry.add("closed shop", 100, enabled=False)
    manual = registry.add("park", 1190)
    unnamed = registry.add("", 200)
    broken = registry.add("hospital", 270)
    registry.set_location(manual.id, Coordinate(35.69, 139.89))

    geocoder = _FakeGeocoder(
        {"school": GeocodeResult(Coordinate(35.70, 139.90), "School")},
        failing={"hospital"},
    )
    statuses = registry.resolve(geocoder)

    assert geocoder.calls == ["school", "station", "hospital"]
    assert statuses == {school.id: STATUS_FOUND, station.id: STATUS_NOT_FOUND, broken.id: STATUS_ERROR}
    assert registry.get(school.id).display_name == "School"
    assert registry.get(closed.id).status == STATUS_PENDING
    assert registry.get(unnamed.id).status == STATUS_PENDING
    assert registry.get(manual.id).coordinate == Coordinate(35.69, 139.89)


def test_estimate_uses_enabled_located_facilities() -> None:
    registry = FacilityRegistry()
    a = registry.add("a", 400)
    b = registry.add("b", 400)
    c = registry.add("c", 10)
    registry.set_location(a.id, Coordinate(35.0, 139.0))
    assert registry.estimate(0.75) is None

    registry.set_location(b.id, Coordinate(35.2, 139.4))
    registry.set_location(c.id, Coordinate(40.0, 140.0))
    registry.set_enabled(c.id, False)
    est = registry.estimate(0.75)
    assert est is not None
    assert est.lat == pytest.approx(35.1)
    assert est.lon == pytest.approx(139.2)
    assert registry.explain(0.75)["observations_used"] == 2


def test_rename_resets_failed_lookup_status() -> None:
    registry = FacilityRegistry()
    missing = registry.add("shcool", 660)
    broken = registry.add("hospital", 270)
    registry.apply_geocode(missing.id, None)
    registry.mark(broken.id, STATUS_ERROR)

    assert registry.rename(missing.id, "school").status == STATUS_PENDING
    assert registry.rename(broken.id, "city hospital").status == STATUS_PENDING
    assert [f.id for f in registry.pending_geocode()] == [missing.id, broken.id]


def test_from_frame_generated_ids_skip_saved_ids() -> None:
    df = pd.DataFrame(
        {
            "id": [None, "F001", "F002"],
            "name": ["new shop", "school", "station"],
            "distance_m": [300.0, 660.0, 380.0],
            "enabled": [True, True, True],
        }
    )

    registry = FacilityRegistry.from_frame(df)

    assert [f.id for f in registry] == ["F003", "F001", "F002"]
    assert registry.get("F003").name == "new shop"
    assert registry.add("park", 1190).id == "F004"
