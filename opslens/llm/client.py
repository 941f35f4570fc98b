"""Inference client — OpenAI-compatible chat completions over httpx.

Dispatch is a single attempt. Every transport or provider failure is raised as
:class:`DispatchError` so the caller can abort the analysis; nothing is retried.
"""

from __future__ import annotations

import time

import httpx

from opslens.models.config import LLMConfig
from opslens.observability.logging import get_logger
from opslens.observability.metrics import llm_available, llm_request_duration_seconds, llm_requests_total

_logger = get_logger("llm.client")


class DispatchError(Exception):
    """Raised when the inference provider call fails for any reason."""


class InferenceClient:
    """Wraps an OpenAI-compatible ``/chat/completions`` endpoint.

    Uses a persistent httpx.AsyncClient connection pool. The caller is
    responsible for calling aclose() during shutdown.
    """

    def __init__(self, config: LLMConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(float(config.timeout_seconds)),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        self._available: bool = False

    @property
    def available(self) -> bool:
        """Whether the last health check or dispatch reached the provider."""
        return self._available

    async def health_check(self) -> bool:
        """GET /models to verify the provider is reachable.

        Updates the internal _available flag and the prometheus gauge.
        Returns True on success, False on any failure.
        """
        try:
            response = await self._client.get(f"{self._config.endpoint}/models", headers=self._headers, timeout=5.0)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self._set_available(False)
            _logger.warning("llm_health_check_failed", error=str(exc))
            return False
        self._set_available(True)
        return True

    async def complete(self, model: str, messages: list[dict[str, str]], max_tokens: int) -> str:
        """POST a chat completion request and return the first choice's text.

        Raises DispatchError on connection failure, timeout, non-2xx status,
        a non-JSON body, or an unexpected response structure.
        """
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": self._config.temperature,
            "stream": False,
        }
        started = time.monotonic()
        try:
            content = await self._post(payload)
        except DispatchError:
            llm_requests_total.labels(success="false").inc()
            raise
        finally:
            llm_request_duration_seconds.observe(time.monotonic() - started)

        llm_requests_total.labels(success="true").inc()
        _logger.debug("llm_completion_received", model=model, chars=len(content))
        return content

    async def _post(self, payload: dict[str, object]) -> str:
        url = f"{self._config.endpoint}/chat/completions"
        try:
            response = await self._client.post(url, json=payload, headers=self._headers)
        except httpx.ConnectError as exc:
            self._set_available(False)
            raise DispatchError(f"inference provider unreachable: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise DispatchError(f"inference provider timed out after {self._config.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise DispatchError(f"inference request failed: {exc}") from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DispatchError(
                f"inference provider returned HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc

        self._set_available(True)

        try:
            body = response.json()
        except ValueError as exc:
            raise DispatchError(f"response body not JSON: {exc}") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise DispatchError(f"unexpected response structure: {exc!r}") from exc

        if not isinstance(content, str):
            raise DispatchError("response content is not a string")
        return content

    def _set_available(self, available: bool) -> None:
        self._available = available
        llm_available.set(1.0 if available else 0.0)

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release connections."""
        await self._client.aclose()
