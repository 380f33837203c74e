"""
Inverse-square weighted centroid of facility locations.

Each facility says "the property is about `walking_distance * ratio` metres from
here". We do not solve for the intersection of those circles; we average the
facility coordinates, weighting each by 1 / radius^2 so that a short, tight
distance pulls the estimate much harder than a long, vague one.

Known limitation: the result always lies inside the convex hull of the
facilities. If every facility sits on one side of the property, the estimate is
biased toward that side. Latitude and longitude are averaged as if they were
planar, which only holds over a few kilometres.

Zero radius: a facility with radius <= 0 (or a non-finite radius) would get an
infinite weight. Such facilities are left out of the sums instead. When none
remain, there is no estimate.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from propertylocator.locate.model import Coordinate, FacilityObservation

MIN_OBSERVATIONS = 2


def qualifying_observations(observations: Iterable[FacilityObservation]) -> list[FacilityObservation]:
    # Disabled facilities and facilities without a location never take part.
    return [o for o in observations if o.qualifies]


def observation_weights(radii_m: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Return (weights, usable_mask) for an array of radii.

    Unusable radii get weight 0 so callers can keep arrays aligned with their inputs.
    """
    radii = np.asarray(radii_m, dtype=float)
    usable = np.isfinite(radii) & (radii > 0)
    weights = np.zeros_like(radii)
    weights[usable] = 1.0 / np.square(radii[usable])
    # Tiny radii can still overflow 1/r^2.
    usable &= np.isfinite(weights)
    weights[~usable] = 0.0
    return weights, usable


def estimate_position(observations: Iterable[FacilityObservation], ratio: float) -> Coordinate | None:
    rows = qualifying_observations(observations)
    if len(rows) < MIN_OBSERVATIONS:
        return None

    lat = np.array([o.coordinate.lat for o in rows], dtype=float)  # type: ignore[union-attr]
    lon = np.array([o.coordinate.lon for o in rows], dtype=float)  # type: ignore[union-attr]
    radii = np.array([o.walking_distance_m for o in rows], dtype=float) * float(ratio)

    weights, usable = observation_weights(radii)
    weights = weights[usable]
    total_weight = float(weights.sum())
    if not np.isfinite(total_weight) or total_weight <= 0:
        return None

    est_lat = float(np.dot(lat[usable], weights) / total_weight)
    est_lon = float(np.dot(lon[usable], weights) / total_weight)
    if not (np.isfinite(est_lat) and np.isfinite(est_lon)):
        return None
    return Coordinate(lat=est_lat, lon=est_lon)
