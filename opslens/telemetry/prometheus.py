"""Prometheus HTTP API source.

Lists metric names from the ``__name__`` label and renders range queries as
plain text, one block per series::

    http_requests_total{code=200, job=api}:
      2026-02-18T12:00:00Z: 41
      2026-02-18T12:01:00Z: 44
"""

from __future__ import annotations

import math
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

_SOURCE = "prometheus"
# Aim for roughly this many points per series so long ranges stay compact
_TARGET_POINTS: int = 60
_MIN_STEP_SECONDS: int = 1


def _step_seconds(start: datetime, end: datetime) -> int:
    span = (end - start).total_seconds()
    return max(_MIN_STEP_SECONDS, math.ceil(span / _TARGET_POINTS))


def _format_matrix(name: str, result: list[Any]) -> str:
    lines: list[str] = []
    for series in result:
        if not isinstance(series, dict):
            continue
        labels = series.get("metric") or {}
        lines.append(f"{name}{format_labels(labels)}:")
        for point in series.get("values") or []:
            ts, value = point[0], point[1]
            lines.append(f"  {format_timestamp(float(ts))}: {value}")
    return "\n".join(lines) + "\n" if lines else ""


def _format_vector(name: str, result: list[Any]) -> str:
    lines: list[str] = []
    for sample in result:
        if not isinstance(sample, dict):
            continue
        labels = sample.get("metric") or {}
        value = (sample.get("value") or [None, ""])[1]
        lines.append(f"{name}{format_labels(labels)}: {value}")
    return "\n".join(lines) + "\n" if lines else ""


class PrometheusSource:
    """Telemetry source backed by the Prometheus ``/api/v1`` HTTP API.

    Args:
        url: Prometheus base URL, e.g. ``http://prometheus:9090``.
        timeout: Per-request timeout in seconds.
        client: Optional pre-built ``httpx.AsyncClient`` (used by tests).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._log = get_logger("telemetry.prometheus")

    async def list_names(self) -> list[str]:
        body = await get_json(self._client, _SOURCE, f"{self._url}/api/v1/label/__name__/values")
        data = self._check_status(body)
        if not isinstance(data, list):
            raise TelemetryError(_SOURCE, "label values response is not a list")
        names = [str(name) for name in data]
        self._log.info("prometheus_metrics_listed", count=len(names))
        return names

    async def fetch_data(self, name: str, start: datetime, end: datetime) -> str:
        # Dots are not valid in PromQL metric names
        query = name.replace(".", "_")
        if start == end:
            body = await get_json(
                self._client,
                _SOURCE,
                f"{self._url}/api/v1/query",
                params={"query": query, "time": end.timestamp()},
            )
        else:
            body = await get_json(
                self._client,
                _SOURCE,
                f"{self._url}/api/v1/query_range",
                params={
                    "query": query,
                    "start": start.timestamp(),
                    "end": end.timestamp(),
                    "step": _step_seconds(start, end),
                },
            )
        data = self._check_status(body)
        if not isinstance(data, dict):
            raise TelemetryError(_SOURCE, f"unexpected query response for {name!r}")

        result_type = data.get("resultType")
        result = data.get("result") or []
        try:
            if result_type == "matrix":
                text = _format_matrix(name, result)
            elif result_type == "vector":
                text = _format_vector(name, result)
            else:
                self._log.warning("prometheus_unexpected_result_type", metric=name, result_type=result_type)
                text = ""
        except MALFORMED_PAYLOAD_ERRORS as exc:
            telemetry_fetch_failures_total.labels(source=_SOURCE).inc()
            raise TelemetryError(_SOURCE, f"malformed series for {name!r}: {exc!r}") from exc

        if not text:
            self._log.debug("prometheus_empty_result", metric=name)
        return text

    def _check_status(self, body: Any) -> Any:
        if not isinstance(body, dict) or body.get("status") != "success":
            error = body.get("error", "unknown error") if isinstance(body, dict) else "malformed response"
            telemetry_fetch_failures_total.labels(source=_SOURCE).inc()
            raise TelemetryError(_SOURCE, str(error))
        warnings = body.get("warnings")
        if warnings:
            self._log.warning("prometheus_query_warnings", warnings=warnings)
        return body.get("data")

    async def aclose(self) -> None:
        await self._client.aclose()
