from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CoordinateOut(BaseModel):
    lat: float
    lon: float


class ExtractRequest(BaseModel):
    text: str


class ExtractResponse(BaseModel):
    found: bool
    matcher: str | None = None
    coordinate: CoordinateOut | None = None


class FacilityIn(BaseModel):
    name: str | None = None
    distance_m: float = Field(ge=0.0)
    enabled: bool = True
    lat: float | None = None
    lon: float | None = None
    # Optional free text (map URL or "lat, lon"); used when lat/lon are not given.
    location_text: str | None = None


class EstimateRequest(BaseModel):
    facilities: list[FacilityIn] = Field(default_factory=list)
    straight_line_ratio: float | None = None


class EstimateResponse(BaseModel):
    estimate: CoordinateOut | None = None
    straight_line_ratio: float
    explain: dict[str, Any] = Field(default_factory=dict)
    explain_text: str
