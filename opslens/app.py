"""Application bootstrap for OpsLens.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → telemetry → LLM client → change history
              → result cache → analyzer → cache sweeper → REST

Shutdown is fully graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that
a single component failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from opslens.config import load_config
from opslens.models.config import OpsLensConfig
from opslens.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from opslens.analyst.analyzer import Analyzer
    from opslens.cache.result_cache import ResultCache
    from opslens.history.change_history import ChangeHistory
    from opslens.llm.client import InferenceClient
    from opslens.telemetry.composite import CompositeSource

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class OpsLensApp:
    """Application root. Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self, config: OpsLensConfig | None = None) -> None:
        self.config: OpsLensConfig | None = config

        # Component handles, populated by start() in dependency order
        self._telemetry: CompositeSource | None = None
        self._llm_client: InferenceClient | None = None
        self._history: ChangeHistory | None = None
        self._cache: ResultCache | None = None
        self._analyzer: Analyzer | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: FilteringBoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self, serve: bool = True) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        With ``serve=False`` the REST server is not started (used by tests).
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            try:
                self.config = load_config()
            except ValueError as exc:
                raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("opslens starting", version=_opslens_version())

        # --- 3. Telemetry sources ---------------------------------------
        await self._start_telemetry()

        # --- 4. Inference client ----------------------------------------
        await self._start_llm()

        # --- 5. Change history (optional) -------------------------------
        await self._start_change_history()

        # --- 6. Result cache ---------------------------------------------
        await self._start_cache()

        # --- 7. Analyzer -------------------------------------------------
        await self._start_analyzer()

        # --- 8. Cache sweeper --------------------------------------------
        await self._start_cache_sweeper()

        # --- 9. REST API -------------------------------------------------
        if serve:
            await self._start_rest()

        self._running = True
        self._log.info("opslens started", port=self.config.api.port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_telemetry(self) -> None:
        """Build the Prometheus source plus optional Loki and Jaeger sources."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting telemetry sources")
        try:
            from opslens.telemetry import CompositeSource, JaegerSource, LokiSource, PrometheusSource

            cfg = self.config.telemetry
            secondary: dict[str, LokiSource | JaegerSource] = {}
            if cfg.loki_url:
                secondary["logs"] = LokiSource(cfg.loki_url)
            if cfg.jaeger_url:
                secondary["traces"] = JaegerSource(cfg.jaeger_url)

            self._telemetry = CompositeSource(PrometheusSource(cfg.prometheus_url), secondary)  # type: ignore[arg-type]
            self._log.info(
                "telemetry sources started",
                prometheus=cfg.prometheus_url,
                loki=bool(cfg.loki_url),
                jaeger=bool(cfg.jaeger_url),
            )
        except Exception as exc:
            raise _ComponentError("telemetry", exc) from exc

    async def _start_llm(self) -> None:
        """Create the inference client and probe the provider once."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting inference client")
        try:
            from opslens.llm.client import InferenceClient

            client = InferenceClient(config=self.config.llm)
        except Exception as exc:
            raise _ComponentError("llm", exc) from exc

        # Reachability is informational; requests fail individually if it stays down
        healthy = await client.health_check()
        self._llm_client = client
        self._log.info("inference client started", model=self.config.llm.model, healthy=healthy)

    async def _start_change_history(self) -> None:
        """Load the recent change excerpt. Non-fatal: prompts omit it on failure."""
        assert self._log is not None
        assert self.config is not None
        cfg = self.config.change_history
        if not cfg.enabled:
            self._log.info("change history disabled")
            return

        from opslens.history.change_history import ChangeHistoryError, load_change_history

        try:
            self._history = await load_change_history(cfg.repo_path, cfg.max_chars, cfg.paths)
        except ChangeHistoryError as exc:
            self._log.warning("change history unavailable; prompts will omit recent changes", error=str(exc))
            self._history = None

    async def _start_cache(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from opslens.cache import ResultCache

            self._cache = ResultCache(ttl_seconds=self.config.cache.ttl_seconds)
            self._log.info("result cache started", ttl_s=self.config.cache.ttl_seconds)
        except Exception as exc:
            raise _ComponentError("cache", exc) from exc

    async def _start_analyzer(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._telemetry is not None
        assert self._llm_client is not None
        assert self._cache is not None
        try:
            from opslens.analyst import Analyzer
            from opslens.context import ContextAssembler, ContextBudget

            cfg = self.config.context
            assembler = ContextAssembler(
                source=self._telemetry,
                budget=ContextBudget(max_tokens=cfg.max_tokens, baseline_tokens=cfg.baseline_tokens),
                important_signals=cfg.important_signals,
            )
            self._analyzer = Analyzer(
                assembler=assembler,
                client=self._llm_client,
                cache=self._cache,
                config=self.config.llm,
                history=self._history,
            )
            self._log.info("analyzer started", max_context_tokens=cfg.max_tokens)
        except Exception as exc:
            raise _ComponentError("analyzer", exc) from exc

    async def _start_cache_sweeper(self) -> None:
        """Launch a periodic task that removes expired cache entries."""
        assert self._log is not None
        assert self.config is not None
        cache = self._cache
        interval = self.config.cache.cleanup_interval_seconds

        async def _sweeper() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    removed = cache.cleanup() if cache is not None else 0
                except Exception as exc:
                    if self._log:
                        self._log.warning("cache_sweep_error", error=str(exc))
                    continue
                if removed and self._log:
                    self._log.debug("cache_swept", removed=removed)

        task = asyncio.create_task(_sweeper(), name="cache-sweeper")
        self._background_tasks.append(task)
        self._log.info("cache sweeper started", interval_s=interval)

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self._analyzer is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from opslens.api import create_app

            fastapi_app = create_app(
                analyzer=self._analyzer,
                request_timeout_seconds=self.config.api.request_timeout_seconds,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host=self.config.api.host,
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("opslens shutting down")
        self._running = False

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        self._rest_server = None
        self._analyzer = None
        if self._cache is not None:
            self._cache.clear()
        await self._close_component("llm", self._llm_client)
        await self._close_component("telemetry", self._telemetry)

        log.info("opslens stopped")

    async def _close_component(self, name: str, component: object | None) -> None:
        """Call aclose() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        close_fn = getattr(component, "aclose", None)
        if close_fn is None:
            return
        try:
            await asyncio.wait_for(close_fn(), timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component close timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component close raised an error", component=name, error=str(exc))


def _opslens_version() -> str:
    from opslens import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = OpsLensApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
