"""Pydantic request/response models for the OpsLens REST API.

All models use Pydantic v2 syntax. Field descriptions are also used
by FastAPI to generate the OpenAPI schema.
"""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

_RFC3339_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$")


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp. A timezone designator is mandatory."""
    match = _RFC3339_RE.match(value)
    if not match:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")
    text = value.upper()
    fraction = match.group(1)
    # datetime carries microseconds at most
    if fraction and len(fraction) > 7:
        text = text.replace(fraction, fraction[:7], 1)
    return datetime.fromisoformat(text)


def _parse_time_field(value: object, field_label: str) -> datetime:
    if isinstance(value, str):
        try:
            return parse_rfc3339(value)
        except ValueError:
            pass
    raise ValueError(f"Invalid {field_label} format")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class AnalyzeRequest(BaseModel):
    """Request body for ``POST /api/v1/analyze``."""

    question: str = Field(
        ...,
        description="Natural-language question about operational health.",
        examples=["Why did p99 latency spike after the last deploy?"],
    )
    start_time: datetime = Field(
        ...,
        description="Start of the analysed range, RFC 3339.",
        examples=["2026-02-18T11:00:00Z"],
    )
    end_time: datetime = Field(
        ...,
        description="End of the analysed range, RFC 3339.",
        examples=["2026-02-18T12:00:00Z"],
    )
    metrics: list[str] | None = Field(
        default=None,
        description="Signal names to analyse, in priority order. Empty or omitted analyses every available signal.",
        examples=[["http_requests_total", "process_resident_memory_bytes"]],
    )

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, value: object) -> datetime:
        return _parse_time_field(value, "start time")

    @field_validator("end_time", mode="before")
    @classmethod
    def validate_end_time(cls, value: object) -> datetime:
        return _parse_time_field(value, "end time")

    @model_validator(mode="after")
    def validate_range(self) -> AnalyzeRequest:
        if self.start_time > self.end_time:
            raise ValueError("start_time must not be after end_time")
        return self


def validation_message(exc: ValidationError) -> str:
    """Reduce a pydantic ValidationError to one plain-text line for the client."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    ctx = first.get("ctx") or {}
    if first.get("type") == "value_error" and "error" in ctx:
        return str(ctx["error"])
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid request: {location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AnalysisResultSchema(BaseModel):
    """Serialised AnalysisResult returned by ``POST /api/v1/analyze``."""

    analysis: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    suggestions: list[str] = Field(default_factory=list)
    relevant_metrics: list[str] = Field(default_factory=list)


class MetricsListResponse(BaseModel):
    """Response body for ``GET /api/v1/metrics``."""

    metrics: list[str]


class HealthStatus(BaseModel):
    """Response body for ``GET /api/v1/health``."""

    status: str = Field(..., description="Always ``ok`` while the process is running.", examples=["ok"])
    version: str = Field(..., description="OpsLens version string.", examples=["0.1.0"])
    llm_available: bool = Field(..., description="Whether the inference provider was reachable last time it was used.")
    cache_entries: int = Field(..., description="Number of results held by the result cache.")
