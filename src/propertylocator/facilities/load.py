"""
Facility list persistence.

The facility list is a plain CSV (`<catalogs_dir>/facilities.csv`) so it can be
edited in a spreadsheet and shared between runs. Loading only normalizes column
names and types; rule checks live in `propertylocator.facilities.validators`.

Columns: `name`, `distance_m`, `enabled`, `lat`, `lon`, plus optional `id`,
`display_name` and `source`. `lat`/`lon` are empty until the facility has been
geocoded or located by hand.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

CATALOG_FILENAME = "facilities.csv"
CATALOG_COLUMNS = ["id", "name", "distance_m", "enabled", "lat", "lon", "display_name", "source"]

_TRUE = {"true", "1", "yes", "y", "on", "t"}
_FALSE = {"false", "0", "no", "n", "off", "f"}


def facilities_catalog_path(settings: dict[str, Any]) -> Path:
    return Path(settings["paths"]["catalogs_dir"]) / CATALOG_FILENAME


def _rename_common_columns(df: pd.DataFrame) -> pd.DataFrame:
    rename: dict[str, str] = {}
    if "lat" not in df.columns and "latitude" in df.columns:
        rename["latitude"] = "lat"
    if "lon" not in df.columns:
        # The web map speaks `lng`; spreadsheets often say `longitude`.
        for alias in ("lng", "longitude"):
            if alias in df.columns:
                rename[alias] = "lon"
                break
    if "distance_m" not in df.columns and "distance" in df.columns:
        rename["distance"] = "distance_m"
    return df.rename(columns=rename) if rename else df


def _coerce_enabled(value: Any) -> Any:
    # Missing means enabled: a new row in the spreadsheet should take part by default.
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return True
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    s = str(value).strip().lower()
    if s == "":
        return True
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    # Unknown spellings are left for the validator to report.
    return value


def normalize_facilities(df: pd.DataFrame) -> pd.DataFrame:
    df = _rename_common_columns(df.copy())
    for c in ["id", "name", "display_name", "source"]:
        if c in df.columns:
            df[c] = df[c].astype("string").str.strip()
    for c in ["distance_m", "lat", "lon"]:
        if c in df.columns:
            df[c] = pd.to_numeric(df[c], errors="coerce")
    if "enabled" in df.columns:
        df["enabled"] = df["enabled"].map(_coerce_enabled).astype(object)
    else:
        df["enabled"] = True
    return df


def load_facilities_catalog(settings: dict[str, Any], path: Path | None = None) -> pd.DataFrame:
    path = Path(path) if path is not None else facilities_catalog_path(settings)
    # Read everything as text first so "true"/"false" and empty cells survive intact.
    df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])
    return normalize_facilities(df)


def write_facilities_catalog(settings: dict[str, Any], df: pd.DataFrame, path: Path | None = None) -> Path:
    path = Path(path) if path is not None else facilities_catalog_path(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    cols = [c for c in CATALOG_COLUMNS if c in df.columns] + [c for c in df.columns if c not in CATALOG_COLUMNS]
    out = df[cols].copy()
    if "enabled" in out.columns:
        out["enabled"] = out["enabled"].map(lambda v: ("true" if v else "false") if isinstance(v, (bool, np.bool_)) else v)
    # No float_format: pandas writes shortest round-trip floats, so coordinates reload unchanged.
    out.to_csv(path, index=False)
    return path
