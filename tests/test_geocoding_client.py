"""
Offline tests for the Nominatim client: fake sessions, a temporary DiskCache
and a recording sleep function instead of real waits.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

from propertylocator.cache import DiskCache
from propertylocator.geocoding.nominatim import GeocodingError, NominatimClient, parse_search_results
from propertylocator.locate.model import Coordinate

HIT = [{"lat": "35.7063", "lon": "139.9021", "display_name": "江戸川篠崎郵便局, 江戸川区, 東京都, 日本"}]


class _FakeResponse:
    def __init__(self, *, status_code: int, payload: object | None = None, headers: dict[str, str] | None = None) -> None:
        self.status_code = int(status_code)
        self._payload = payload
        self.headers = dict(headers or {})
        self.text = json.dumps(payload, ensure_ascii=False)

    def json(self) -> object:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class _FakeSession:
    def __init__(self, responses: list[_FakeResponse | Exception]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, object]] = []

    def get(self, url: str, params: dict[str, object], headers: dict[str, str], timeout: int) -> _FakeResponse:
        self.calls.append({"url": url, "params": dict(params), "headers": dict(headers), "timeout": int(timeout)})
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def _client(tmp_path: Path, session: _FakeSession, sleeps: list[float], **kwargs: object) -> NominatimClient:
    return NominatimClient(
        base_url="https://nominatim.example.com",
        cache=DiskCache(tmp_path / "cache"),
        query_suffix="東京都江戸川区",
        country_codes="jp",
        session=session,  # type: ignore[arg-type]
        sleep_fn=sleeps.append,
        **kwargs,  # type: ignore[arg-type]
    )


def test_parse_search_results() -> None:
    result = parse_search_results(HIT)
    assert result is not None
    assert result.coordinate == Coordinate(35.7063, 139.9021)
    assert parse_search_results([]) is None
    assert parse_search_results([{"lat": "north", "lon": "1"}]) is None
    assert parse_search_results({"error": "x"}) is None


def test_geocode_sends_area_query_and_user_agent(tmp_path: Path) -> None:
    session = _FakeSession([_FakeResponse(status_code=200, payload=HIT)])
    client = _client(tmp_path, session, [])

    result = client.geocode("江戸川篠崎郵便局")

    assert result is not None
    assert result.display_name.startswith("江戸川篠崎郵便局")
    call = session.calls[0]
    assert call["url"] == "https://nominatim.example.com/search"
    assert call["params"] == {"q": "江戸川篠崎郵便局 東京都江戸川区", "format": "json", "limit": 1, "countrycodes": "jp"}
    assert call["headers"]["User-Agent"] == "PropertyLocator/1.0"


def test_geocode_caches_hits_and_misses(tmp_path: Path) -> None:
    session = _FakeSession([_FakeResponse(status_code=200, payload=HIT), _FakeResponse(status_code=200, payload=[])])
    client = _client(tmp_path, session, [])

    first = client.geocode("post office")
    second = client.geocode("post office")
    assert first == second
    assert client.geocode("nowhere") is None
    assert client.geocode("nowhere") is None
    assert len(session.calls) == 2


def test_requests_are_spaced_by_min_interval(tmp_path: Path) -> None:
    sleeps: list[float] = []
    session = _FakeSession([_FakeResponse(status_code=200, payload=HIT), _FakeResponse(status_code=200, payload=HIT)])
    client = _client(tmp_path, session, sleeps, min_request_interval_s=1.1)

    client.geocode("school")
    client.geocode("station")

    assert len(sleeps) == 1
    assert 1.0 < sleeps[0] <= 1.1


def test_transient_errors_are_retried(tmp_path: Path) -> None:
    sleeps: list[float] = []
    session = _FakeSession(
        [
            _FakeResponse(status_code=429, payload={"error": "slow down"}, headers={"Retry-After": "2"}),
            _FakeResponse(status_code=200, payload=HIT),
        ]
    )
    client = _client(tmp_path, session, sleeps, min_request_interval_s=0.0)

    assert client.geocode("school") is not None
    assert sleeps == [2.0]
    assert len(session.calls) == 2


def test_http_and_transport_failures_raise(tmp_path: Path) -> None:
    session = _FakeSession(
        [
            _FakeResponse(status_code=403, payload={"error": "blocked"}),
            requests.ConnectionError("offline"),
        ]
    )
    client = _client(tmp_path, session, [], min_request_interval_s=0.0)

    with pytest.raises(GeocodingError, match="status=403"):
        client.geocode("school")
    with pytest.raises(GeocodingError, match="offline"):
        client.geocode("station")


def test_blank_name_makes_no_request(tmp_path: Path) -> None:
    session = _FakeSession([])
    assert _client(tmp_path, session, []).geocode("  ") is None
    assert session.calls == []
