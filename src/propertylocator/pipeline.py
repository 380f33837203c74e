from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from propertylocator.cache import DiskCache
from propertylocator.facilities.load import (
    facilities_catalog_path,
    load_facilities_catalog,
    write_facilities_catalog,
)
from propertylocator.facilities.registry import FacilityRegistry, Geocoder
from propertylocator.facilities.validators import FacilityValidationResult, validate_facilities_catalog
from propertylocator.geocoding.nominatim import NominatimClient
from propertylocator.locate.explain import build_explain_text
from propertylocator.locate.model import Coordinate
from propertylocator.run_meta import build_run_meta, file_meta, new_run_id, utc_now_iso, write_json
from propertylocator.settings import straight_line_ratio
from propertylocator.spatial.buffers import facility_layers_geojson

logger = logging.getLogger("propertylocator")


@dataclass(frozen=True)
class EstimationOutputs:
    facilities: pd.DataFrame
    estimate: Coordinate | None
    explain: dict[str, Any]
    layers: dict[str, Any]
    validation: FacilityValidationResult
    geocode_statuses: dict[str, str]
    ratio: float


def build_geocoder(settings: dict[str, Any]) -> NominatimClient:
    cache = DiskCache(Path(settings["paths"]["cache_dir"]) / "geocoding")
    return NominatimClient.from_settings(settings=settings, cache=cache)


def load_registry(settings: dict[str, Any]) -> tuple[FacilityRegistry, FacilityValidationResult]:
    df = load_facilities_catalog(settings)
    validation = validate_facilities_catalog(df)
    for w in validation.warnings:
        logger.warning("%s", w)
    if not validation.ok:
        raise ValueError("Facility catalog failed validation: " + "; ".join(validation.errors))
    return FacilityRegistry.from_frame(df, logger=logger), validation


def compute_estimation(
    settings: dict[str, Any],
    *,
    geocoder: Geocoder | None = None,
    geocode: bool = True,
    ratio: float | None = None,
) -> tuple[FacilityRegistry, EstimationOutputs]:
    registry, validation = load_registry(settings)
    ratio = straight_line_ratio(settings) if ratio is None else float(ratio)

    statuses: dict[str, str] = {}
    if geocode and registry.pending_geocode():
        statuses = registry.resolve(geocoder or build_geocoder(settings))
        summary = Counter(statuses.values())
        logger.info("Geocoding finished: %s", dict(summary))

    estimate = registry.estimate(ratio)
    explain = registry.explain(ratio)
    if estimate is None:
        logger.warning("No estimate: %s", build_explain_text(explain))
    else:
        logger.info("%s", build_explain_text(explain))

    map_points = int((settings.get("map", {}) or {}).get("circle_points", 64))
    layers = facility_layers_geojson(
        registry.observations(),
        ratio=ratio,
        estimate=estimate,
        num_points=map_points,
        map_settings=settings.get("map"),
    )

    outputs = EstimationOutputs(
        facilities=registry.to_frame(),
        estimate=estimate,
        explain=explain,
        layers=layers,
        validation=validation,
        geocode_statuses=statuses,
        ratio=ratio,
    )
    return registry, outputs


def run_estimation(
    settings: dict[str, Any],
    *,
    geocoder: Geocoder | None = None,
    geocode: bool = True,
    write_back: bool = False,
    ratio: float | None = None,
) -> EstimationOutputs:
    processed_dir = Path(settings["paths"]["processed_dir"])
    processed_dir.mkdir(parents=True, exist_ok=True)

    run_id = new_run_id()
    generated_at = utc_now_iso()

    registry, outputs = compute_estimation(settings, geocoder=geocoder, geocode=geocode, ratio=ratio)

    outputs.facilities.to_csv(processed_dir / "facilities_resolved.csv", index=False)
    write_json(
        processed_dir / "estimate.json",
        {
            "run_id": run_id,
            "generated_at": generated_at,
            "estimate": outputs.estimate.as_dict() if outputs.estimate is not None else None,
            "explain": outputs.explain,
            "explain_text": build_explain_text(outputs.explain),
        },
    )
    write_json(processed_dir / "map_layers.geojson", outputs.layers)

    catalog_path = facilities_catalog_path(settings)
    if write_back:
        # The status column is run-scoped; only persistent fields go back to the catalog.
        write_facilities_catalog(settings, outputs.facilities.drop(columns=["status"]))
        logger.info("Wrote resolved facilities back to %s", catalog_path)

    meta = settings.get("_meta", {}) or {}
    run_meta = build_run_meta(
        run_id=run_id,
        generated_at=generated_at,
        settings=settings,
        ratio=outputs.ratio,
        input_sources=[
            file_meta(catalog_path),
            file_meta(Path(str(meta.get("config_path") or "config/default.yaml"))),
        ],
        outputs=[
            file_meta(processed_dir / "facilities_resolved.csv"),
            file_meta(processed_dir / "estimate.json"),
            file_meta(processed_dir / "map_layers.geojson"),
        ],
        counts={
            "facilities": len(registry),
            "used": int(outputs.explain.get("observations_used", 0)),
            "geocoded": sum(1 for s in outputs.geocode_statuses.values() if s == "found"),
            "not_found": sum(1 for s in outputs.geocode_statuses.values() if s == "not_found"),
            "errors": sum(1 for s in outputs.geocode_statuses.values() if s == "error"),
        },
    )
    write_json(processed_dir / "run_meta.json", run_meta)
    return outputs
