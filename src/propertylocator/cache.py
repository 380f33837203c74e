from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any


def _key_digest(key: str) -> str:
    # Facility names are free text (often CJK); hash them into safe file names.
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class DiskCache:
    """JSON-on-disk cache for geocoding lookups, one file per (namespace, key)."""

    base_dir: Path
    default_ttl_s: int = 30 * 24 * 60 * 60

    def path_for(self, namespace: str, key: str) -> Path:
        return Path(self.base_dir) / namespace / f"{_key_digest(key)}.json"

    def get_json(self, namespace: str, key: str, ttl_s: int | None = None) -> Any | None:
        path = self.path_for(namespace, key)
        if not path.exists():
            return None
        ttl = self.default_ttl_s if ttl_s is None else ttl_s
        # ttl < 0 means "never expires".
        if ttl >= 0 and time.time() - path.stat().st_mtime > ttl:
            return None
        record = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(record, dict) or "value" not in record:
            return None
        return record["value"]

    def set_json(self, namespace: str, key: str, value: Any) -> Path:
        path = self.path_for(namespace, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Keep the readable key next to the value so cache files can be inspected by hand.
        record = {"key": key, "value": value}
        path.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")
        return path
