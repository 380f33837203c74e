from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from fastapi import FastAPI

from propertylocator.api.schemas import (
    CoordinateOut,
    EstimateRequest,
    EstimateResponse,
    ExtractRequest,
    ExtractResponse,
    FacilityIn,
)
from propertylocator.locate.estimate import estimate_position
from propertylocator.locate.explain import build_explain_text, explain_estimate
from propertylocator.locate.extract import extract_coordinates, match_coordinates
from propertylocator.locate.model import Coordinate, FacilityObservation
from propertylocator.run_meta import utc_now_iso
from propertylocator.settings import load_settings, straight_line_ratio
from propertylocator.spatial.buffers import facility_layers_geojson

app = FastAPI(title="PropertyLocator API", version="0.1.0")

CONFIG_PATH = Path(os.getenv("PROPERTYLOCATOR_CONFIG", "config/default.yaml")).resolve()
DEFAULT_AREA = os.getenv("PROPERTYLOCATOR_AREA") or None


@lru_cache(maxsize=4)
def _settings_for_area(area: str | None) -> dict[str, Any]:
    return load_settings(CONFIG_PATH, area=area)


def _ratio(requested: float | None) -> float:
    # Only touch the config (and its log/cache dirs) when the caller left the ratio out.
    if requested is not None:
        return float(requested)
    return straight_line_ratio(_settings_for_area(DEFAULT_AREA))


def _to_observation(f: FacilityIn) -> FacilityObservation:
    coord: Coordinate | None = None
    if f.lat is not None and f.lon is not None:
        coord = Coordinate(lat=float(f.lat), lon=float(f.lon))
    elif f.location_text:
        coord = extract_coordinates(f.location_text)
    return FacilityObservation(coordinate=coord, walking_distance_m=float(f.distance_m), enabled=f.enabled, name=f.name)


def _coord_out(coord: Coordinate | None) -> CoordinateOut | None:
    return CoordinateOut(lat=coord.lat, lon=coord.lon) if coord is not None else None


@app.get("/health")
def health() -> dict[str, Any]:
    return {"ok": True, "generated_at": utc_now_iso(), "config_path": str(CONFIG_PATH)}


@app.post("/extract", response_model=ExtractResponse)
def extract(payload: ExtractRequest) -> ExtractResponse:
    found = match_coordinates(payload.text)
    if found is None:
        return ExtractResponse(found=False)
    matcher, coord = found
    return ExtractResponse(found=True, matcher=matcher, coordinate=_coord_out(coord))


@app.post("/estimate", response_model=EstimateResponse)
def estimate(payload: EstimateRequest) -> EstimateResponse:
    ratio = _ratio(payload.straight_line_ratio)
    observations = [_to_observation(f) for f in payload.facilities]
    explain = explain_estimate(observations, ratio)
    return EstimateResponse(
        estimate=_coord_out(estimate_position(observations, ratio)),
        straight_line_ratio=ratio,
        explain=explain,
        explain_text=build_explain_text(explain),
    )


@app.post("/map-layers")
def map_layers(payload: EstimateRequest) -> dict[str, Any]:
    ratio = _ratio(payload.straight_line_ratio)
    observations = [_to_observation(f) for f in payload.facilities]
    return facility_layers_geojson(observations, ratio=ratio, estimate=estimate_position(observations, ratio))
