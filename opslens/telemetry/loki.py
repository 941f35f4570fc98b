"""Loki log source.

Each value of a configurable stream label (``job`` by default) is one signal;
fetching a signal runs ``{job="<name>"}`` over the requested range and renders
one ``<timestamp> {labels} <line>`` row per log entry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from opslens.observability.logging import get_logger
from opslens.observability.metrics import telemetry_fetch_failures_total
from opslens.telemetry.base import (
    MALFORMED_PAYLOAD_ERRORS,
    TelemetryError,
    format_labels,
    format_timestamp,
    get_json,
)

_SOURCE = "loki"
_NS_PER_SECOND: int = 1_000_000_000


def _logql_selector(label: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'{{{label}="{escaped}"}}'


class LokiSource:
    """Telemetry source backed by the Loki HTTP API.

    Args:
        url: Loki base URL, e.g. ``http://loki:3100``.
        label: Stream label whose values are exposed as signal names.
        limit: Maximum number of log lines fetched per signal.
    """

    def __init__(
        self,
        url: str,
        label: str = "job",
        limit: int = 100,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._label = label
        self._limit = limit
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._log = get_logger("telemetry.loki")

    async def list_names(self) -> list[str]:
        body = await get_json(self._client, _SOURCE, f"{self._url}/loki/api/v1/label/{self._label}/values")
        data = _check_status(body)
        if not isinstance(data, list):
            raise TelemetryError(_SOURCE, "label values response is not a list")
        return [str(v) for v in data]

    async def fetch_data(self, name: str, start: datetime, end: datetime) -> str:
        body = await get_json(
            self._client,
            _SOURCE,
            f"{self._url}/loki/api/v1/query_range",
            params={
                "query": _logql_selector(self._label, name),
                "start": int(start.timestamp() * _NS_PER_SECOND),
                "end": int(end.timestamp() * _NS_PER_SECOND),
                "limit": self._limit,
                "direction": "forward",
            },
        )
        data = _check_status(body)
        if not isinstance(data, dict):
            raise TelemetryError(_SOURCE, f"unexpected query response for {name!r}")

        try:
            lines = self._render(data)
        except MALFORMED_PAYLOAD_ERRORS as exc:
            telemetry_fetch_failures_total.labels(source=_SOURCE).inc()
            raise TelemetryError(_SOURCE, f"malformed streams for {name!r}: {exc!r}") from exc

        if not lines:
            self._log.debug("loki_empty_result", stream=name)
            return ""
        return "\n".join(lines) + "\n"

    def _render(self, data: dict[str, Any]) -> list[str]:
        lines: list[str] = []
        for stream in data.get("result") or []:
            if not isinstance(stream, dict):
                continue
            labels = format_labels(stream.get("stream") or {})
            for ts_ns, line in stream.get("values") or []:
                ts = format_timestamp(int(ts_ns) / _NS_PER_SECOND)
                lines.append(f"{ts} {labels} {line}" if labels else f"{ts} {line}")
        return lines

    async def aclose(self) -> None:
        await self._client.aclose()


def _check_status(body: Any) -> Any:
    if not isinstance(body, dict) or body.get("status") != "success":
        telemetry_fetch_failures_total.labels(source=_SOURCE).inc()
        raise TelemetryError(_SOURCE, "query did not succeed")
    return body.get("data")
