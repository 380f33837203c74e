"""
Local planar approximation of WGS84 coordinates.

Facility radii are a few hundred metres, so an equirectangular projection
around a reference latitude is accurate enough for drawing radius circles and
for reporting how far each facility is from the estimate. The estimator itself
works directly in degrees.
"""

from __future__ import annotations

import math

import numpy as np

# Spherical Earth radius in metres.
EARTH_RADIUS_M = 6_371_000.0


def choose_reference_lat_deg(latitudes_deg: np.ndarray) -> float:
    latitudes = np.asarray(latitudes_deg, dtype=float)
    latitudes = latitudes[np.isfinite(latitudes)]
    if latitudes.size == 0:
        raise ValueError("Cannot choose reference latitude from empty array")
    return float(np.mean(latitudes))


def latlon_to_xy_m(
    lat_deg: np.ndarray,
    lon_deg: np.ndarray,
    *,
    reference_lat_deg: float,
) -> tuple[np.ndarray, np.ndarray]:
    lat_rad = np.deg2rad(np.asarray(lat_deg, dtype=float))
    lon_rad = np.deg2rad(np.asarray(lon_deg, dtype=float))
    ref_lat_rad = math.radians(float(reference_lat_deg))
    # Meridians converge toward the poles, so x shrinks with cos(reference latitude).
    x = EARTH_RADIUS_M * lon_rad * math.cos(ref_lat_rad)
    y = EARTH_RADIUS_M * lat_rad
    return x, y


def xy_to_latlon(
    x_m: np.ndarray,
    y_m: np.ndarray,
    *,
    reference_lat_deg: float,
) -> tuple[np.ndarray, np.ndarray]:
    ref_lat_rad = math.radians(float(reference_lat_deg))
    lat_rad = np.asarray(y_m, dtype=float) / EARTH_RADIUS_M
    # Undefined at the poles (cos -> 0); property searches never go there.
    lon_rad = np.asarray(x_m, dtype=float) / (EARTH_RADIUS_M * math.cos(ref_lat_rad))
    return np.rad2deg(lat_rad), np.rad2deg(lon_rad)


def equirect_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Straight-line distance in metres, projected around the mean latitude of both points."""
    rad = math.pi / 180.0
    x = (lon2 - lon1) * rad * math.cos(((lat1 + lat2) / 2.0) * rad)
    y = (lat2 - lat1) * rad
    return float(math.sqrt(x * x + y * y) * EARTH_RADIUS_M)
