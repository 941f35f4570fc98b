"""Analyzer — end-to-end analysis pipeline.

Flow for one request::

    cache lookup ──hit──> return cached result
        │ miss
        ▼
    join identical in-flight analysis, if any
        │ none
        ▼
    assemble context → build prompt → dispatch (single attempt)
        → parse (never fails) → cache store → return

Only dispatch failures and catalog failures abort a request; both are raised
as :class:`AnalysisError` and nothing is cached. Individual signal fetch
failures and unstructured model output are logged and absorbed.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime

from opslens.cache.result_cache import ResultCache
from opslens.context.assembler import ContextAssembler
from opslens.history.change_history import ChangeHistory
from opslens.llm.client import DispatchError, InferenceClient
from opslens.llm.parser import parse_response
from opslens.llm.prompts import build_messages
from opslens.models.analysis import AnalysisQuery, AnalysisResult, cache_key
from opslens.models.config import LLMConfig
from opslens.observability.logging import get_logger
from opslens.observability.metrics import (
    analysis_duration_seconds,
    analysis_inflight_joins_total,
    analysis_requests_total,
    llm_unstructured_responses_total,
)
from opslens.telemetry.base import TelemetryError

_logger = get_logger("analyst.analyzer")


class AnalysisError(Exception):
    """Raised when the pipeline cannot produce a result for a request."""


class Analyzer:
    """Composes the cache, context assembler, inference client and parser.

    Holds no per-request state; the only shared mutable state is the result
    cache and the registry of in-flight analyses, keyed by cache key, that lets
    concurrent identical cache misses share a single dispatch.
    """

    def __init__(
        self,
        assembler: ContextAssembler,
        client: InferenceClient,
        cache: ResultCache,
        config: LLMConfig,
        history: ChangeHistory | None = None,
    ) -> None:
        self._assembler = assembler
        self._client = client
        self._cache = cache
        self._config = config
        self._history = history
        self._inflight: dict[str, asyncio.Future[AnalysisResult]] = {}

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def client(self) -> InferenceClient:
        return self._client

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def analyze(
        self,
        question: str,
        start: datetime,
        end: datetime,
        signal_names: list[str] | tuple[str, ...] = (),
    ) -> AnalysisResult:
        """Answer *question* about ``[start, end]`` using the named signals.

        An empty *signal_names* analyses the full signal catalog.

        Raises ValueError when start is after end, and AnalysisError when the
        signal catalog cannot be listed or the inference provider call fails.
        """
        started = time.monotonic()
        query = AnalysisQuery(question=question, start=start, end=end, signal_names=tuple(signal_names))

        cached = self._cache.get(query)
        if cached is not None:
            _logger.info("analysis_cache_hit", signals=len(query.signal_names))
            self._record("cache_hit", started)
            return cached

        key = cache_key(query)
        pending = self._inflight.get(key)
        if pending is not None:
            analysis_inflight_joins_total.inc()
            _logger.debug("analysis_joined_inflight")
            return await asyncio.shield(pending)

        future: asyncio.Future[AnalysisResult] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._run(query)
        except asyncio.CancelledError:
            future.set_exception(AnalysisError("analysis cancelled by the originating request"))
            self._record("cancelled", started)
            raise
        except Exception as exc:
            future.set_exception(exc)
            self._record("error", started)
            raise
        else:
            future.set_result(result)
            self._record("success", started)
            return result
        finally:
            del self._inflight[key]
            if not future.done():
                future.set_exception(AnalysisError("analysis aborted"))
            # Retrieve the outcome so a failure nobody joined is not reported as unhandled
            future.exception()

    async def _run(self, query: AnalysisQuery) -> AnalysisResult:
        try:
            context = await self._assembler.assemble(query.start, query.end, query.signal_names)
        except TelemetryError as exc:
            _logger.error("signal_catalog_failed", error=str(exc))
            raise AnalysisError(f"failed to collect telemetry: {exc}") from exc

        if context.failed:
            _logger.warning("signals_skipped_after_fetch_failure", signals=list(context.failed))

        messages = build_messages(query.question, context, self._history)
        try:
            raw = await self._client.complete(
                model=self._config.model,
                messages=messages,
                max_tokens=self._config.max_tokens,
            )
        except DispatchError as exc:
            _logger.error("llm_dispatch_failed", model=self._config.model, error=str(exc))
            raise AnalysisError(f"failed to get chat completion: {exc}") from exc

        result, parse_error = parse_response(raw)
        if parse_error:
            llm_unstructured_responses_total.inc()
            _logger.warning("llm_response_unstructured", error=parse_error, chars=len(raw))

        self._cache.set(query, result)
        _logger.info(
            "analysis_complete",
            signals=len(context.admitted),
            estimated_tokens=context.total_tokens,
            confidence=result.confidence,
        )
        return result

    def _record(self, outcome: str, started: float) -> None:
        analysis_requests_total.labels(outcome=outcome).inc()
        analysis_duration_seconds.labels(outcome=outcome).observe(time.monotonic() - started)
