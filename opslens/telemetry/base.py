"""Telemetry source protocol shared by the context assembler and collectors."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from opslens.observability.metrics import telemetry_fetch_failures_total


class TelemetryError(Exception):
    """Raised when a telemetry source cannot list or fetch signals."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


# Raised while rendering a payload whose shape differs from the documented API
MALFORMED_PAYLOAD_ERRORS: tuple[type[Exception], ...] = (
    AttributeError,
    IndexError,
    KeyError,
    OSError,
    OverflowError,
    TypeError,
    ValueError,
)


@runtime_checkable
class TelemetrySource(Protocol):
    """A read-only catalog of named signals.

    ``fetch_data`` returns a formatted text block for one signal over
    ``[start, end]``; an empty string means the signal had no data.
    """

    async def list_names(self) -> list[str]: ...

    async def fetch_data(self, name: str, start: datetime, end: datetime) -> str: ...


def format_timestamp(seconds: float) -> str:
    """Format a Unix timestamp as RFC 3339 UTC with second precision."""
    return datetime.fromtimestamp(seconds, tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_labels(labels: dict[str, str], exclude: frozenset[str] = frozenset({"__name__"})) -> str:
    """Render a label set as ``{k=v, ...}`` sorted by key, or "" when empty."""
    pairs = [f"{k}={v}" for k, v in sorted(labels.items()) if k not in exclude]
    if not pairs:
        return ""
    return "{" + ", ".join(pairs) + "}"


async def get_json(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    params: dict[str, str | int | float] | list[tuple[str, str | int | float]] | None = None,
) -> Any:
    """GET *url* and decode the JSON body, mapping every failure to TelemetryError."""
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        telemetry_fetch_failures_total.labels(source=source).inc()
        raise TelemetryError(source, f"HTTP {exc.response.status_code} from {url}") from exc
    except httpx.HTTPError as exc:
        telemetry_fetch_failures_total.labels(source=source).inc()
        raise TelemetryError(source, f"request to {url} failed: {exc}") from exc

    try:
        return response.json()
    except ValueError as exc:
        telemetry_fetch_failures_total.labels(source=source).inc()
        raise TelemetryError(source, f"response from {url} is not JSON: {exc}") from exc
