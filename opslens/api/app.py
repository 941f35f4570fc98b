"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from opslens.analyst.analyzer import Analyzer
from opslens.api.routes import router

_DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 120.0


def create_app(
    analyzer: Analyzer,
    request_timeout_seconds: float = _DEFAULT_REQUEST_TIMEOUT_SECONDS,
) -> FastAPI:
    """Build the REST application around an already-wired analyzer.

    Routes are served under ``/api/v1``; Prometheus metrics under ``/metrics``.
    """
    from opslens import __version__

    app = FastAPI(
        title="OpsLens",
        version=__version__,
        description="Natural-language operational health analysis.",
    )
    app.state.analyzer = analyzer
    app.state.request_timeout_seconds = request_timeout_seconds
    app.include_router(router, prefix="/api/v1")
    app.mount("/metrics", make_asgi_app())
    return app
