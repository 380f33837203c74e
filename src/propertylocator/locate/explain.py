from __future__ import annotations

from typing import Any, Iterable

import numpy as np

from propertylocator.locate.estimate import (
    MIN_OBSERVATIONS,
    estimate_position,
    observation_weights,
    qualifying_observations,
)
from propertylocator.locate.model import FacilityObservation
from propertylocator.spatial.crs import equirect_distance_m


def explain_estimate(observations: Iterable[FacilityObservation], ratio: float) -> dict[str, Any]:
    """
    Break an estimate down per facility: radius, share of the total weight and
    distance from the estimated point. The payload is JSON-serializable.
    """
    observations = list(observations)
    rows = qualifying_observations(observations)
    estimate = estimate_position(observations, ratio)

    radii = np.array([o.walking_distance_m for o in rows], dtype=float) * float(ratio)
    weights, usable = observation_weights(radii)
    total = float(weights.sum())

    components: list[dict[str, Any]] = []
    for obs, radius, weight, ok in zip(rows, radii, weights, usable):
        coord = obs.coordinate
        if coord is None:
            continue
        distance_m = None
        if estimate is not None:
            distance_m = equirect_distance_m(estimate.lat, estimate.lon, coord.lat, coord.lon)
        components.append(
            {
                "name": obs.name,
                "lat": float(coord.lat),
                "lon": float(coord.lon),
                "walking_distance_m": float(obs.walking_distance_m),
                "radius_m": float(radius) if np.isfinite(radius) else None,
                "weight_share": float(weight / total) if (ok and total > 0) else 0.0,
                "distance_to_estimate_m": distance_m,
                "excluded_reason": None if ok else "non_positive_radius",
            }
        )

    return {
        "method": "inverse_square_weighted_centroid",
        "straight_line_ratio": float(ratio),
        "min_observations": MIN_OBSERVATIONS,
        "estimate": estimate.as_dict() if estimate is not None else None,
        "observations_total": len(observations),
        "observations_qualifying": len(rows),
        "observations_used": int(np.count_nonzero(usable)),
        "components": components,
    }


def build_explain_text(payload: dict[str, Any]) -> str:
    est = payload.get("estimate")
    if est is None:
        return (
            f"No estimate: {payload.get('observations_qualifying', 0)} usable facilities "
            f"(need at least {payload.get('min_observations', MIN_OBSERVATIONS)} with a location and a distance)."
        )
    parts = [f"Estimate {est['lat']:.6f}, {est['lon']:.6f} from {payload.get('observations_used', 0)} facilities."]
    comps = [c for c in payload.get("components", []) if c.get("excluded_reason") is None]
    top = sorted(comps, key=lambda c: float(c.get("weight_share", 0.0)), reverse=True)[:3]
    if top:
        drivers = [f"{c.get('name') or '?'} {100.0 * float(c['weight_share']):.0f}% (r={c['radius_m']:.0f}m)" for c in top]
        parts.append("Top weights: " + "; ".join(drivers) + ".")
    return " ".join(parts)
