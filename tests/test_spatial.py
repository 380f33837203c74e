import numpy as np
import pytest

from propertylocator.locate.model import Coordinate, FacilityObservation
from propertylocator.spatial.buffers import PALETTE, circle_polygon_lonlat, facility_layers_geojson, map_view
from propertylocator.spatial.crs import equirect_distance_m, latlon_to_xy_m, xy_to_latlon


def test_projection_roundtrip() -> None:
    lat = np.array([35.6762, 35.68])
    lon = np.array([139.8547, 139.86])
    x, y = latlon_to_xy_m(lat, lon, reference_lat_deg=35.68)
    back_lat, back_lon = xy_to_latlon(x, y, reference_lat_deg=35.68)
    assert np.allclose(back_lat, lat)
    assert np.allclose(back_lon, lon)


def test_circle_vertices_sit_on_the_radius() -> None:
    ring = circle_polygon_lonlat(center_lat=35.68, center_lon=139.85, radius_m=300.0, reference_lat_deg=35.68)
    assert len(ring) == 65
    assert ring[0] == ring[-1]
    for lon, lat in ring[:-1]:
        assert equirect_distance_m(35.68, 139.85, lat, lon) == pytest.approx(300.0, rel=0.01)


def test_circle_rejects_non_positive_radius() -> None:
    with pytest.raises(ValueError):
        circle_polygon_lonlat(center_lat=35.0, center_lon=139.0, radius_m=0.0, reference_lat_deg=35.0)


def test_facility_layers() -> None:
    observations = [
        FacilityObservation(Coordinate(35.680, 139.850), 400, name="school"),
        FacilityObservation(Coordinate(35.682, 139.852), 0, name="post office"),
        FacilityObservation(None, 300, name="not found"),
        FacilityObservation(Coordinate(35.0, 139.0), 100, enabled=False, name="disabled"),
    ]
    layers = facility_layers_geojson(observations, ratio=0.75, estimate=Coordinate(35.681, 139.851))

    kinds = [f["properties"]["kind"] for f in layers["features"]]
    # The zero-distance facility gets a marker but no circle.
    assert kinds == ["facility", "radius", "facility", "estimate"]
    school, circle = layers["features"][0], layers["features"][1]
    assert school["geometry"]["coordinates"] == [139.850, 35.680]
    assert school["properties"]["radius_m"] == pytest.approx(300.0)
    assert school["properties"]["color"] == PALETTE[0]
    assert circle["geometry"]["type"] == "Polygon"
    assert layers["features"][2]["properties"]["color"] == PALETTE[1]


def test_facility_layers_without_estimate() -> None:
    observations = [FacilityObservation(Coordinate(35.68, 139.85), 400)]
    layers = facility_layers_geojson(observations, ratio=0.75, estimate=None)
    assert all(f["properties"]["kind"] != "estimate" for f in layers["features"])

    empty = facility_layers_geojson([], ratio=0.75, estimate=None)
    assert empty["type"] == "FeatureCollection"
    assert empty["features"] == []


def test_view_zooms_to_the_estimate_and_bounds_cover_circles() -> None:
    observations = [
        FacilityObservation(Coordinate(35.680, 139.850), 400, name="school"),
        FacilityObservation(Coordinate(35.690, 139.860), 400, name="station"),
    ]
    estimate = Coordinate(35.685, 139.855)
    layers = facility_layers_geojson(observations, ratio=0.75, estimate=estimate, map_settings={"estimate_zoom": 17})

    view = layers["view"]
    assert view["center"] == [35.685, 139.855]
    assert view["zoom"] == 17
    min_lon, min_lat, max_lon, max_lat = view["bbox"]
    for feature in layers["features"]:
        if feature["geometry"]["type"] != "Polygon":
            continue
        for lon, lat in feature["geometry"]["coordinates"][0]:
            assert min_lon < lon < max_lon
            assert min_lat < lat < max_lat


def test_view_without_estimate_fits_bounds() -> None:
    observations = [FacilityObservation(Coordinate(35.68, 139.85), 0), FacilityObservation(Coordinate(35.70, 139.87), 0)]
    view = facility_layers_geojson(observations, ratio=0.75, estimate=None)["view"]

    assert view["zoom"] is None
    assert view["bbox"] == pytest.approx([139.848, 35.678, 139.872, 35.702])
    assert view["center"] == pytest.approx([35.69, 139.86])


def test_view_falls_back_to_configured_start() -> None:
    view = facility_layers_geojson([], ratio=0.75, estimate=None, map_settings={"center_lat": 35.0, "center_lon": 139.0, "zoom": 12})["view"]
    assert view == {"center": [35.0, 139.0], "zoom": 12, "bbox": None}

    assert map_view([], estimate=None) == {"center": [35.6762, 139.8547], "zoom": 15, "bbox": None}
