"""FastAPI route handlers for the OpsLens REST API.

All routes are registered on a single APIRouter that ``app.py`` mounts
under the ``/api/v1`` prefix.

Error conventions (plain-text bodies):
    400  malformed JSON, missing/invalid field, bad RFC 3339 timestamp,
         start_time after end_time
    500  "Analysis failed: <message>" for any pipeline failure
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from opslens.api.schemas import (
    AnalysisResultSchema,
    AnalyzeRequest,
    HealthStatus,
    MetricsListResponse,
    validation_message,
)

_log = structlog.get_logger(component="api.routes")

router = APIRouter()

# Placeholder catalog served by GET /metrics; the analyzer resolves the real one.
EXAMPLE_METRICS: tuple[str, ...] = (
    "process_cpu_seconds_total",
    "process_resident_memory_bytes",
    "http_requests_total",
)


@router.post(
    "/analyze",
    response_model=AnalysisResultSchema,
    summary="Analyze operational health",
    description=(
        "Assembles telemetry for the requested range, asks the inference "
        "provider the question and returns the structured answer. Results "
        "are cached per (question, range, metrics)."
    ),
    responses={
        400: {"content": {"text/plain": {}}, "description": "Invalid request"},
        500: {"content": {"text/plain": {}}, "description": "Analysis failed"},
    },
)
async def post_analyze(request: Request) -> AnalysisResultSchema:
    """``POST /api/v1/analyze``"""
    try:
        payload = await request.json()
    except ValueError as exc:
        _log.warning("analyze_request_malformed", error=str(exc))
        return PlainTextResponse("Invalid request", status_code=400)  # type: ignore[return-value]

    try:
        body = AnalyzeRequest.model_validate(payload)
    except ValidationError as exc:
        message = validation_message(exc)
        _log.warning("analyze_request_invalid", error=message)
        return PlainTextResponse(message, status_code=400)  # type: ignore[return-value]

    analyzer = request.app.state.analyzer
    timeout = request.app.state.request_timeout_seconds
    try:
        result = await asyncio.wait_for(
            analyzer.analyze(
                question=body.question,
                start=body.start_time,
                end=body.end_time,
                signal_names=body.metrics or [],
            ),
            timeout=timeout,
        )
    except TimeoutError:
        _log.error("analyze_timeout", timeout_s=timeout)
        return PlainTextResponse(f"Analysis failed: timed out after {timeout}s", status_code=500)  # type: ignore[return-value]
    except Exception as exc:
        _log.error("analyze_failed", error=str(exc))
        return PlainTextResponse(f"Analysis failed: {exc}", status_code=500)  # type: ignore[return-value]

    return AnalysisResultSchema(**result.to_dict())


@router.get(
    "/metrics",
    response_model=MetricsListResponse,
    summary="List example signal names",
)
async def get_metrics() -> MetricsListResponse:
    """``GET /api/v1/metrics``"""
    return MetricsListResponse(metrics=list(EXAMPLE_METRICS))


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check",
    description="Lightweight liveness probe. Always returns 200 if the process is up.",
)
async def get_health(request: Request) -> HealthStatus:
    """``GET /api/v1/health``"""
    from opslens import __version__

    analyzer = request.app.state.analyzer
    return HealthStatus(
        status="ok",
        version=__version__,
        llm_available=bool(analyzer.client.available),
        cache_entries=len(analyzer.cache),
    )
