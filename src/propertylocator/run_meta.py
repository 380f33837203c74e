from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class FileMeta:
    path: str
    exists: bool
    size_bytes: int | None
    mtime: float | None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def new_run_id() -> str:
    return uuid4().hex


def file_meta(path: Path) -> FileMeta:
    p = Path(path)
    if not p.exists():
        return FileMeta(path=str(p), exists=False, size_bytes=None, mtime=None)
    st = p.stat()
    return FileMeta(path=str(p), exists=True, size_bytes=int(st.st_size), mtime=float(st.st_mtime))


def json_hash(data: Any) -> str:
    raw = json.dumps(data, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def config_fingerprint(settings: dict[str, Any], *, ratio: float) -> dict[str, Any]:
    """
    The knobs that change an estimate. Paths and credentials are left out so the
    hash is shareable.
    """
    meta = settings.get("_meta", {}) or {}
    geo = dict(settings.get("geocoding", {}) or {})
    return {
        "area": meta.get("area"),
        "straight_line_ratio": float(ratio),
        "geocoding": {k: geo.get(k) for k in ("base_url", "query_suffix", "country_codes")},
    }


def build_run_meta(
    *,
    run_id: str,
    generated_at: str,
    settings: dict[str, Any],
    ratio: float,
    input_sources: list[FileMeta],
    outputs: list[FileMeta],
    counts: dict[str, int],
) -> dict[str, Any]:
    fingerprint = config_fingerprint(settings, ratio=ratio)
    return {
        "run_id": run_id,
        "generated_at": generated_at,
        "area": fingerprint.get("area"),
        "config_hash": json_hash(fingerprint),
        "config_fingerprint": fingerprint,
        "counts": dict(counts),
        "input_sources": [fm.__dict__ for fm in input_sources],
        "outputs": [fm.__dict__ for fm in outputs],
    }


def write_json(path: Path, data: Any) -> None:
    Path(path).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
