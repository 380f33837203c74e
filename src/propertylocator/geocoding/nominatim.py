"""
Nominatim geocoding client.

Facility names typed by the user ("江戸川篠崎郵便局", "Olympic 下篠崎店") are turned
into coordinates with the OpenStreetMap Nominatim search API. Nominatim's usage
policy allows at most one request per second and asks clients to cache, so:

- requests are strictly serialized with a minimum interval between them
  (`min_request_interval_s`, 1.1 s by default),
- 429/5xx responses are retried with exponential backoff (`Retry-After` wins),
- every successful response, including "no match", is stored in a `DiskCache`.

The client is not thread-safe; one client is one serialized queue.
"""

from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

from propertylocator.cache import DiskCache
from propertylocator.locate.model import Coordinate, GeocodeResult

_TRANSIENT_STATUS = {429, 502, 503, 504}


class GeocodingError(RuntimeError):
    pass


def _safe_response_text(resp: requests.Response, *, limit: int = 300) -> str:
    try:
        text = resp.text
    except Exception:
        return "<unreadable response body>"
    return text.strip()[:limit]


def parse_search_results(payload: Any) -> GeocodeResult | None:
    """Take the first hit of a Nominatim `/search?format=json` response."""
    if not isinstance(payload, list) or not payload:
        return None
    first = payload[0]
    if not isinstance(first, dict):
        return None
    try:
        coord = Coordinate(lat=float(first["lat"]), lon=float(first["lon"]))
    except (KeyError, TypeError, ValueError):
        return None
    return GeocodeResult(coordinate=coord, display_name=str(first.get("display_name") or ""))


@dataclass
class NominatimClient:
    base_url: str
    cache: DiskCache
    user_agent: str = "PropertyLocator/1.0"
    search_path: str = "/search"
    # Appended to every facility name to keep matches inside the search area.
    query_suffix: str = ""
    # Comma-separated ISO 3166-1 alpha-2 codes, empty for no restriction.
    country_codes: str = ""
    request_timeout_s: int = 30
    min_request_interval_s: float = 1.1
    max_retries: int = 3
    retry_backoff_initial_s: float = 2.0
    retry_backoff_max_s: float = 30.0
    cache_ttl_s: int | None = None
    sleep_fn: Callable[[float], None] | None = None
    logger: logging.Logger | None = None
    session: requests.Session | None = None
    _last_call_monotonic_s: float | None = None

    def _log(self) -> logging.Logger:
        return self.logger or logging.getLogger("propertylocator")

    def _http(self) -> requests.Session:
        if self.session is None:
            self.session = requests.Session()
        return self.session

    def _sleep(self, seconds: float) -> None:
        (self.sleep_fn or time.sleep)(max(0.0, float(seconds)))

    def _throttle(self) -> None:
        min_dt = float(self.min_request_interval_s)
        if min_dt <= 0:
            return
        if self._last_call_monotonic_s is not None:
            dt = time.monotonic() - self._last_call_monotonic_s
            if dt < min_dt:
                self._sleep(min_dt - dt)
        self._last_call_monotonic_s = time.monotonic()

    @classmethod
    def from_settings(cls, *, settings: dict[str, Any], cache: DiskCache) -> "NominatimClient":
        geo = settings.get("geocoding", {}) or {}
        cache_ttl = geo.get("cache_ttl_s")
        return cls(
            base_url=str(geo.get("base_url", "https://nominatim.openstreetmap.org")).rstrip("/"),
            cache=cache,
            # An operator-provided contact address takes precedence over the config default.
            user_agent=os.getenv("PROPERTYLOCATOR_USER_AGENT") or str(geo.get("user_agent", "PropertyLocator/1.0")),
            search_path=str(geo.get("search_path", "/search")),
            query_suffix=str(geo.get("query_suffix") or ""),
            country_codes=str(geo.get("country_codes") or ""),
            request_timeout_s=int(geo.get("request_timeout_s", 30)),
            min_request_interval_s=float(geo.get("min_request_interval_s", 1.1)),
            max_retries=int(geo.get("max_retries", 3)),
            retry_backoff_initial_s=float(geo.get("retry_backoff_initial_s", 2.0)),
            retry_backoff_max_s=float(geo.get("retry_backoff_max_s", 30.0)),
            cache_ttl_s=int(cache_ttl) if cache_ttl is not None else None,
            logger=logging.getLogger("propertylocator"),
        )

    def build_query(self, name: str) -> str:
        name = name.strip()
        return f"{name} {self.query_suffix}".strip() if self.query_suffix else name

    def _search_params(self, query: str) -> dict[str, Any]:
        params: dict[str, Any] = {"q": query, "format": "json", "limit": 1}
        if self.country_codes:
            params["countrycodes"] = self.country_codes
        return params

    def search(self, query: str) -> Any:
        """Raw `/search` JSON for `query`, served from cache when fresh."""
        url = f"{self.base_url}{self.search_path}"
        params = self._search_params(query)
        cache_key = f"GET {url} {sorted(params.items())}"
        cached = self.cache.get_json("nominatim", cache_key, ttl_s=self.cache_ttl_s)
        if cached is not None:
            return cached

        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        resp: requests.Response | None = None
        for attempt in range(int(self.max_retries) + 1):
            self._throttle()
            try:
                resp = self._http().get(url, params=params, headers=headers, timeout=self.request_timeout_s)
            except requests.RequestException as e:
                raise GeocodingError(f"Nominatim request failed for {query!r}: {e}") from e

            if resp.status_code in _TRANSIENT_STATUS and attempt < int(self.max_retries):
                retry_after = resp.headers.get("Retry-After") if hasattr(resp, "headers") else None
                sleep_s = None
                if retry_after:
                    try:
                        sleep_s = float(retry_after)
                    except ValueError:
                        sleep_s = None
                if sleep_s is None:
                    base = float(self.retry_backoff_initial_s) * (2**attempt)
                    sleep_s = min(float(self.retry_backoff_max_s), base) + random.uniform(0, 0.25)
                self._log().warning(
                    "Nominatim transient error %s, retrying in %.2fs (attempt %s/%s)",
                    resp.status_code,
                    sleep_s,
                    attempt + 1,
                    self.max_retries,
                )
                self._sleep(sleep_s)
                continue
            break

        if resp is None:
            raise GeocodingError(f"Nominatim request failed for {query!r}: no response")
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise GeocodingError(
                f"Nominatim search failed: status={resp.status_code} body={_safe_response_text(resp)}"
            ) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GeocodingError(f"Nominatim returned non-JSON body: {_safe_response_text(resp)}") from e
        self.cache.set_json("nominatim", cache_key, data)
        return data

    def geocode(self, name: str) -> GeocodeResult | None:
        if not name or not name.strip():
            return None
        query = self.build_query(name)
        result = parse_search_results(self.search(query))
        if result is None:
            self._log().info("Geocode miss: %s", query)
        else:
            self._log().info("Geocode hit: %s -> %.6f,%.6f", query, result.coordinate.lat, result.coordinate.lon)
        return result
