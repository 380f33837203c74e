"""
GeoJSON layers for the map view.

The web map draws, for every located facility, a marker and a circle whose
radius is the assumed straight-line distance, plus a distinct marker for the
estimated property position. These helpers produce that as one
FeatureCollection so the rendering side only has to style features by `kind`.
A foreign `view` member carries the centre, zoom and padded bounds to show.

Circles are approximated as polygons in the same local projection used for
distances (`propertylocator.spatial.crs`); they are for display only.
"""

from __future__ import annotations

import math
from typing import Any, Iterable

import numpy as np

from propertylocator.locate.model import Coordinate, FacilityObservation
from propertylocator.spatial.crs import choose_reference_lat_deg, latlon_to_xy_m, xy_to_latlon

# Ten distinct colours, cycled over facilities in list order.
PALETTE = (
    "#e41a1c",
    "#377eb8",
    "#4daf4a",
    "#984ea3",
    "#ff7f00",
    "#ffff33",
    "#a65628",
    "#f781bf",
    "#999999",
    "#66c2a5",
)

# Fallback view when nothing has been drawn (overridden by the `map` config section).
DEFAULT_CENTER_LAT = 35.6762
DEFAULT_CENTER_LON = 139.8547
DEFAULT_ZOOM = 15
DEFAULT_ESTIMATE_ZOOM = 16
# Bounds grow by this fraction of their span on every side.
BOUNDS_PAD_RATIO = 0.1


def circle_polygon_lonlat(
    *,
    center_lat: float,
    center_lon: float,
    radius_m: float,
    reference_lat_deg: float,
    num_points: int = 64,
) -> list[list[float]]:
    """
    Approximate a circle as a closed lon/lat ring (GeoJSON order: [[lon, lat], ...]).
    """
    if radius_m <= 0:
        raise ValueError("radius_m must be > 0")
    if num_points < 3:
        raise ValueError("num_points must be >= 3")

    x0, y0 = latlon_to_xy_m(
        np.array([center_lat], dtype=float),
        np.array([center_lon], dtype=float),
        reference_lat_deg=reference_lat_deg,
    )
    angles = np.linspace(0.0, 2.0 * math.pi, num_points, endpoint=False)
    xs = float(x0[0]) + radius_m * np.cos(angles)
    ys = float(y0[0]) + radius_m * np.sin(angles)
    out_lat, out_lon = xy_to_latlon(xs, ys, reference_lat_deg=reference_lat_deg)

    coords = [[float(lon_i), float(lat_i)] for lat_i, lon_i in zip(out_lat, out_lon)]
    # GeoJSON rings repeat the first vertex.
    coords.append(coords[0])
    return coords


def _point(coord: Coordinate, properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [float(coord.lon), float(coord.lat)]},
        "properties": properties,
    }


def _feature_lonlats(features: list[dict[str, Any]]) -> np.ndarray:
    points: list[list[float]] = []
    for feature in features:
        geometry = feature["geometry"]
        if geometry["type"] == "Point":
            points.append(geometry["coordinates"])
        elif geometry["type"] == "Polygon":
            for ring in geometry["coordinates"]:
                points.extend(ring)
    return np.array(points, dtype=float).reshape(-1, 2)


def map_view(
    features: list[dict[str, Any]],
    *,
    estimate: Coordinate | None,
    map_settings: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Where the map should look after drawing `features`.

    `bbox` ([min_lon, min_lat, max_lon, max_lat], padded) covers every marker
    and circle; a renderer should fit to it when present. `center`/`zoom` is the
    fallback: the estimate at `estimate_zoom`, else the bbox centre with no zoom
    (fit instead), else the configured start view.
    """
    cfg = map_settings or {}
    lonlats = _feature_lonlats(features)
    bbox: list[float] | None = None
    if len(lonlats):
        min_lon, min_lat = lonlats.min(axis=0)
        max_lon, max_lat = lonlats.max(axis=0)
        pad_lon = (max_lon - min_lon) * BOUNDS_PAD_RATIO
        pad_lat = (max_lat - min_lat) * BOUNDS_PAD_RATIO
        bbox = [
            float(min_lon - pad_lon),
            float(min_lat - pad_lat),
            float(max_lon + pad_lon),
            float(max_lat + pad_lat),
        ]

    if estimate is not None:
        center = [float(estimate.lat), float(estimate.lon)]
        zoom: int | None = int(cfg.get("estimate_zoom", DEFAULT_ESTIMATE_ZOOM))
    elif bbox is not None:
        center = [(bbox[1] + bbox[3]) / 2.0, (bbox[0] + bbox[2]) / 2.0]
        zoom = None
    else:
        center = [
            float(cfg.get("center_lat", DEFAULT_CENTER_LAT)),
            float(cfg.get("center_lon", DEFAULT_CENTER_LON)),
        ]
        zoom = int(cfg.get("zoom", DEFAULT_ZOOM))
    return {"center": center, "zoom": zoom, "bbox": bbox}


def facility_layers_geojson(
    observations: Iterable[FacilityObservation],
    *,
    ratio: float,
    estimate: Coordinate | None,
    num_points: int = 64,
    map_settings: dict[str, Any] | None = None,
) -> dict[str, Any]:
    located = [o for o in observations if o.qualifies]
    features: list[dict[str, Any]] = []
    if not located and estimate is None:
        return {
            "type": "FeatureCollection",
            "features": features,
            "view": map_view(features, estimate=None, map_settings=map_settings),
        }

    lats = [o.coordinate.lat for o in located]  # type: ignore[union-attr]
    if estimate is not None:
        lats.append(estimate.lat)
    reference_lat = choose_reference_lat_deg(np.array(lats, dtype=float))

    for i, obs in enumerate(located):
        coord = obs.coordinate
        if coord is None:
            continue
        color = PALETTE[i % len(PALETTE)]
        radius_m = float(obs.walking_distance_m) * float(ratio)
        props = {
            "kind": "facility",
            "name": obs.name,
            "color": color,
            "walking_distance_m": float(obs.walking_distance_m),
            "radius_m": radius_m,
        }
        features.append(_point(coord, props))
        if radius_m > 0 and math.isfinite(radius_m):
            ring = circle_polygon_lonlat(
                center_lat=coord.lat,
                center_lon=coord.lon,
                radius_m=radius_m,
                reference_lat_deg=reference_lat,
                num_points=num_points,
            )
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Polygon", "coordinates": [ring]},
                    "properties": {**props, "kind": "radius"},
                }
            )

    # "No estimate" means the map keeps its current view: add nothing.
    if estimate is not None:
        features.append(_point(estimate, {"kind": "estimate", "name": "estimated property"}))

    return {
        "type": "FeatureCollection",
        "features": features,
        "view": map_view(features, estimate=estimate, map_settings=map_settings),
    }
