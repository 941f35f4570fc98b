"""Environment variable configuration loader.

Every setting is read from an ``OPSLENS_*`` environment variable. Integer
settings are clamped to their documented bounds; settings with a closed set
of valid values raise ``ValueError`` when the value is outside that set.
"""

from __future__ import annotations

import os
from pathlib import Path

from opslens.models.config import (
    DEFAULT_IMPORTANT_SIGNALS,
    APIConfig,
    CacheConfig,
    ChangeHistoryConfig,
    ContextConfig,
    LLMConfig,
    LogConfig,
    OpsLensConfig,
    TelemetryConfig,
)

_PREFIX = "OPSLENS_"
_VALID_LOG_LEVELS: frozenset[str] = frozenset({"debug", "info", "warning", "error"})
_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})
_FALSY: frozenset[str] = frozenset({"0", "false", "no", "off"})


def _env(name: str) -> str | None:
    value = os.environ.get(_PREFIX + name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_str(name: str, default: str) -> str:
    value = _env(name)
    return default if value is None else value


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer and clamp it to [minimum, maximum]."""
    value = _env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"{_PREFIX}{name} must be an integer, got: {value!r}") from exc
    return max(minimum, min(maximum, parsed))


def _env_float(name: str, default: float, minimum: float, maximum: float) -> float:
    """Read a float; values outside [minimum, maximum] are rejected."""
    value = _env(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{_PREFIX}{name} must be a number, got: {value!r}") from exc
    if not minimum <= parsed <= maximum:
        raise ValueError(f"{_PREFIX}{name} must be between {minimum} and {maximum}, got: {parsed}")
    return parsed


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"{_PREFIX}{name} must be a boolean, got: {value!r}")


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = _env(name)
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _load_api_key() -> str:
    """Read the API key from OPSLENS_LLM_API_KEY, falling back to a key file."""
    key = _env("LLM_API_KEY")
    if key is not None:
        return key
    key_file = _env("LLM_API_KEY_FILE")
    if key_file is None:
        return ""
    try:
        return Path(key_file).read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ValueError(f"{_PREFIX}LLM_API_KEY_FILE could not be read: {exc}") from exc


def load_config() -> OpsLensConfig:
    """Build an :class:`OpsLensConfig` from the current environment."""
    log_level = _env_str("LOG_LEVEL", "info").lower()
    if log_level not in _VALID_LOG_LEVELS:
        raise ValueError(f"{_PREFIX}LOG_LEVEL must be one of {sorted(_VALID_LOG_LEVELS)}, got: {log_level!r}")

    return OpsLensConfig(
        api=APIConfig(
            host=_env_str("API_HOST", "0.0.0.0"),
            port=_env_int("API_PORT", 8080, 1, 65535),
            request_timeout_seconds=_env_int("API_REQUEST_TIMEOUT", 120, 1, 600),
        ),
        log=LogConfig(level=log_level),
        llm=LLMConfig(
            endpoint=_env_str("LLM_ENDPOINT", "https://api.openai.com/v1").rstrip("/"),
            model=_env_str("LLM_MODEL", "gpt-4o-mini"),
            api_key=_load_api_key(),
            max_tokens=_env_int("LLM_MAX_TOKENS", 2000, 1, 32_000),
            temperature=_env_float("LLM_TEMPERATURE", 0.7, 0.0, 2.0),
            timeout_seconds=_env_int("LLM_TIMEOUT", 60, 1, 600),
        ),
        telemetry=TelemetryConfig(
            prometheus_url=_env_str("PROMETHEUS_URL", "http://localhost:9090").rstrip("/"),
            loki_url=_env_str("LOKI_URL", "").rstrip("/"),
            jaeger_url=_env_str("JAEGER_URL", "").rstrip("/"),
        ),
        cache=CacheConfig(
            ttl_seconds=_env_int("CACHE_TTL", 1800, 1, 86_400),
            cleanup_interval_seconds=_env_int("CACHE_CLEANUP_INTERVAL", 300, 10, 3600),
        ),
        context=ContextConfig(
            max_tokens=_env_int("CONTEXT_MAX_TOKENS", 20_000, 100, 1_000_000),
            baseline_tokens=_env_int("CONTEXT_BASELINE_TOKENS", 100, 0, 10_000),
            important_signals=_env_list("CONTEXT_IMPORTANT_SIGNALS", DEFAULT_IMPORTANT_SIGNALS),
        ),
        change_history=ChangeHistoryConfig(
            enabled=_env_bool("CHANGE_HISTORY_ENABLED", True),
            repo_path=_env_str("CHANGE_HISTORY_REPO", "."),
            max_chars=_env_int("CHANGE_HISTORY_MAX_CHARS", 2000, 0, 100_000),
        ),
    )
