"""
Facility list checks.

Like the rest of the loading code we do not raise on the first problem; we
collect `errors` (the list cannot be used as-is) and `warnings` (the estimate
will run but may be poor) so the CLI can print one readable report.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from propertylocator.locate.estimate import MIN_OBSERVATIONS


@dataclass(frozen=True)
class FacilityValidationResult:
    errors: list[str]
    warnings: list[str]
    stats: dict[str, Any]

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    def as_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "errors": list(self.errors), "warnings": list(self.warnings), "stats": dict(self.stats)}


def _validate_distances(df: pd.DataFrame) -> list[str]:
    errors: list[str] = []
    distance = pd.to_numeric(df["distance_m"], errors="coerce")
    if distance.isna().any():
        rows = [int(i) + 1 for i in distance.index[distance.isna()]][:5]
        errors.append(f"facilities: 'distance_m' missing or non-numeric (rows {rows})")
    if (distance < 0).any():
        errors.append("facilities: 'distance_m' must be >= 0")
    return errors


def _validate_lat_lon(df: pd.DataFrame) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    if "lat" not in df.columns and "lon" not in df.columns:
        return errors, warnings
    if "lat" not in df.columns or "lon" not in df.columns:
        errors.append("facilities: 'lat' and 'lon' must both be present")
        return errors, warnings

    lat = pd.to_numeric(df["lat"], errors="coerce")
    lon = pd.to_numeric(df["lon"], errors="coerce")
    # A location is all or nothing; half a coordinate cannot be estimated from.
    if (lat.isna() != lon.isna()).any():
        errors.append("facilities: rows with only one of lat/lon set")
    if (lat < -90).any() or (lat > 90).any() or (lon < -180).any() or (lon > 180).any():
        errors.append("facilities: lat/lon out of valid world bounds")
    return errors, warnings


def validate_facilities_catalog(facilities: pd.DataFrame) -> FacilityValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    missing = [c for c in ["name", "distance_m"] if c not in facilities.columns]
    errors.extend(f"Missing required column: {c}" for c in missing)
    if errors:
        return FacilityValidationResult(errors=errors, warnings=warnings, stats={})

    errors.extend(_validate_distances(facilities))
    e, w = _validate_lat_lon(facilities)
    errors.extend(e)
    warnings.extend(w)

    enabled = facilities["enabled"] if "enabled" in facilities.columns else pd.Series(True, index=facilities.index)
    bad_enabled = sorted({str(v) for v in enabled if not isinstance(v, (bool, np.bool_))})
    if bad_enabled:
        errors.append(f"facilities: 'enabled' must be true/false, got {bad_enabled[:5]}")
    is_enabled = enabled.map(lambda v: isinstance(v, (bool, np.bool_)) and bool(v)).astype(bool)

    names = facilities["name"].astype("string").str.strip()
    unnamed = names.isna() | (names == "")
    has_coord = (
        pd.to_numeric(facilities["lat"], errors="coerce").notna() & pd.to_numeric(facilities["lon"], errors="coerce").notna()
        if {"lat", "lon"} <= set(facilities.columns)
        else pd.Series(False, index=facilities.index)
    )
    # Unnamed rows are fine if they carry a coordinate; otherwise there is nothing to geocode.
    if (unnamed & ~has_coord & is_enabled).any():
        warnings.append("facilities: enabled rows without a name or location will be skipped")

    dup = names[~unnamed][names[~unnamed].duplicated(keep=False)]
    if not dup.empty:
        examples = ", ".join(sorted(set(dup.tolist()))[:5])
        warnings.append(f"facilities: duplicate names (e.g., {examples})")

    usable = int((is_enabled & (~unnamed | has_coord)).sum())
    if usable < MIN_OBSERVATIONS:
        warnings.append(f"facilities: {usable} enabled facilities; at least {MIN_OBSERVATIONS} are needed for an estimate")

    stats = {
        "rows": int(len(facilities)),
        "enabled": int(is_enabled.sum()),
        "located": int(has_coord.sum()),
        "located_enabled": int((has_coord & is_enabled).sum()),
    }
    return FacilityValidationResult(errors=errors, warnings=warnings, stats=stats)


def _markdown_report(report: dict[str, Any]) -> str:
    lines = ["# Facility validation", "", f"Status: {'OK' if report.get('ok') else 'FAILED'}", ""]
    for title, key in (("Errors", "errors"), ("Warnings", "warnings")):
        messages = list(report.get(key, []))
        if messages:
            lines.append(f"## {title}")
            lines.extend(f"- {m}" for m in messages)
            lines.append("")
    lines.append("## Stats")
    lines.append("```json")
    lines.append(json.dumps(report.get("stats", {}) or {}, ensure_ascii=False, indent=2))
    lines.append("```")
    lines.append("")
    return "\n".join(lines)


def write_validation_report(settings: dict[str, Any], result: FacilityValidationResult) -> Path:
    """Write `facility_validation.json` (and a Markdown twin) to `reports_dir`; returns the JSON path."""
    reports_dir = Path(settings["paths"]["reports_dir"])
    reports_dir.mkdir(parents=True, exist_ok=True)
    report = result.as_dict()
    json_path = reports_dir / "facility_validation.json"
    json_path.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")
    (reports_dir / "facility_validation.md").write_text(_markdown_report(report), encoding="utf-8")
    return json_path
