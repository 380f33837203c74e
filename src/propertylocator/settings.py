"""
Settings bootstrap for PropertyLocator.

Every CLI command, pipeline run and API request reads configuration through
`load_settings()`: the base YAML file is merged with an optional *area* file
(`config/areas/<area>.yaml`) that pins the geocoding search region and the
initial map view for one neighbourhood.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

# PyYAML parses the human-edited config files.
import yaml

from propertylocator.log import configure_logging

DEFAULT_STRAIGHT_LINE_RATIO = 0.75


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    # Never mutate the caller's mapping; area files only carry the keys they change.
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    # A missing area file simply means "no overrides".
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML must be a mapping: {path}")
    return data


def _load_dotenv_if_present(dotenv_path: Path) -> None:
    if not dotenv_path.exists():
        return
    for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        # Values already exported in the shell win over `.env`.
        os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


def _resolve_project_root(config_path: Path) -> Path:
    config_dir = config_path.resolve().parent
    # config/default.yaml -> the repo root is one level up.
    if config_dir.name == "config":
        return config_dir.parent
    return config_dir


def straight_line_ratio(settings: dict[str, Any]) -> float:
    """Run-scoped walking-to-straight-line factor from `estimation.straight_line_ratio`."""
    raw = (settings.get("estimation", {}) or {}).get("straight_line_ratio", DEFAULT_STRAIGHT_LINE_RATIO)
    try:
        return float(raw)
    except (TypeError, ValueError):
        return DEFAULT_STRAIGHT_LINE_RATIO


def load_settings(config_path: Path, area: str | None = None) -> dict[str, Any]:
    """
    Load the base config and merge `config/areas/<area>.yaml` when present.
    Also creates runtime directories and configures logging.
    """
    config_path = config_path.resolve()
    root = _resolve_project_root(config_path)

    # Credentials and the Nominatim contact address may live in `.env`.
    _load_dotenv_if_present(root / ".env")

    base = _load_yaml(config_path)
    area_name = area or str((base.get("project", {}) or {}).get("default_area", "") or "")
    area_path = root / "config" / "areas" / f"{area_name}.yaml"
    override = _load_yaml(area_path) if area_name else {}
    settings = _deep_merge(base, override)

    project = settings.setdefault("project", {})
    paths = {
        "root": root,
        # The facility list is user-owned and lives with the catalogs.
        "catalogs_dir": root / project.get("catalogs_dir", "data/catalogs"),
        # Estimates and map layers are safe to regenerate.
        "processed_dir": root / project.get("processed_dir", "data/processed"),
        # Geocoding responses are cached here; deleting the folder only costs API calls.
        "cache_dir": root / project.get("cache_dir", "cache"),
        "logs_dir": root / project.get("logs_dir", "logs"),
        "reports_dir": root / project.get("reports_dir", "reports"),
    }
    for p in paths.values():
        p.mkdir(parents=True, exist_ok=True)

    logger = configure_logging(paths["logs_dir"], level=project.get("log_level", "INFO"))

    settings["_meta"] = {
        "config_path": str(config_path),
        "area": area_name or None,
        "area_path": str(area_path) if area_name else None,
    }
    settings["paths"] = {k: str(v) for k, v in paths.items()}
    logger.info("Loaded settings: config=%s area=%s", config_path, area_name or "-")
    return settings
