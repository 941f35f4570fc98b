"""Jaeger trace source.

Each traced service is one signal. Fetching a service lists its traces in the
requested range and renders one line per span.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx

from opslens.observability.logging import get_logger
from opslens.observability.metrics import telemetry_fetch_failures_total
from opslens.telemetry.base import MALFORMED_PAYLOAD_ERRORS, TelemetryError, get_json

_SOURCE = "jaeger"
_US_PER_SECOND: int = 1_000_000


def _format_span(service: str, span: dict[str, Any]) -> str:
    start_us = int(span.get("startTime", 0))
    started = datetime.fromtimestamp(start_us / _US_PER_SECOND, tz=UTC).isoformat(timespec="milliseconds")
    return (
        f"Trace: [ServiceName={service};"
        f"TraceID={span.get('traceID', '')};"
        f"SpanID={span.get('spanID', '')};"
        f"Duration={int(span.get('duration', 0))}us;"
        f"StartTime={started};"
        f"ProcessID={span.get('processID', '')};"
        f"OperationName={span.get('operationName', '')}]"
    )


class JaegerSource:
    """Telemetry source backed by the Jaeger query service HTTP API.

    Args:
        url: Jaeger query base URL, e.g. ``http://jaeger-query:16686``.
        limit: Maximum number of traces fetched per service.
    """

    def __init__(
        self,
        url: str,
        limit: int = 20,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._limit = limit
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._log = get_logger("telemetry.jaeger")

    async def list_names(self) -> list[str]:
        body = await get_json(self._client, _SOURCE, f"{self._url}/api/services")
        services = body.get("data") if isinstance(body, dict) else None
        if services is None:
            return []
        if not isinstance(services, list):
            raise TelemetryError(_SOURCE, "services response is not a list")
        return [str(s) for s in services]

    async def fetch_data(self, name: str, start: datetime, end: datetime) -> str:
        body = await get_json(
            self._client,
            _SOURCE,
            f"{self._url}/api/traces",
            params={
                "service": name,
                "start": int(start.timestamp() * _US_PER_SECOND),
                "end": int(end.timestamp() * _US_PER_SECOND),
                "limit": self._limit,
            },
        )
        traces = body.get("data") if isinstance(body, dict) else None
        if traces is None:
            errors = body.get("errors") if isinstance(body, dict) else None
            if errors:
                raise TelemetryError(_SOURCE, f"trace query for {name!r} failed: {errors}")
            return ""

        lines: list[str] = []
        try:
            for trace in traces:
                if not isinstance(trace, dict):
                    continue
                for span in trace.get("spans") or []:
                    if isinstance(span, dict):
                        lines.append(_format_span(name, span))
        except MALFORMED_PAYLOAD_ERRORS as exc:
            telemetry_fetch_failures_total.labels(source=_SOURCE).inc()
            raise TelemetryError(_SOURCE, f"malformed traces for {name!r}: {exc!r}") from exc

        if not lines:
            self._log.debug("jaeger_empty_result", service=name)
            return ""
        return "\n".join(lines) + "\n"

    async def aclose(self) -> None:
        await self._client.aclose()
