"""Tests for opslens.config — environment variable loading and validation.

Covers:
  - Default values when no OPSLENS_* env vars are set
  - Each config field read from its corresponding OPSLENS_* env var
  - Numeric clamping (min/max bounds for int fields)
  - Invalid values raise ValueError for validated fields
  - Boolean parsing for various truthy/falsy strings
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from opslens.config import load_config
from opslens.models.config import DEFAULT_IMPORTANT_SIGNALS, OpsLensConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("OPSLENS_"):
            monkeypatch.delenv(name)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestConfigDefaults:
    def test_returns_opslens_config_type(self) -> None:
        assert isinstance(load_config(), OpsLensConfig)

    def test_api_defaults(self) -> None:
        config = load_config()
        assert config.api.host == "0.0.0.0"
        assert config.api.port == 8080
        assert config.api.request_timeout_seconds == 120

    def test_log_default_level(self) -> None:
        assert load_config().log.level == "info"

    def test_llm_defaults(self) -> None:
        config = load_config()
        assert config.llm.endpoint == "https://api.openai.com/v1"
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.api_key == ""
        assert config.llm.max_tokens == 2000
        assert config.llm.temperature == 0.7

    def test_telemetry_defaults(self) -> None:
        config = load_config()
        assert config.telemetry.prometheus_url == "http://localhost:9090"
        assert config.telemetry.loki_url == ""
        assert config.telemetry.jaeger_url == ""

    def test_cache_ttl_defaults_to_thirty_minutes(self) -> None:
        assert load_config().cache.ttl_seconds == 1800

    def test_context_defaults(self) -> None:
        config = load_config()
        assert config.context.max_tokens == 20_000
        assert config.context.baseline_tokens == 100
        assert config.context.important_signals == DEFAULT_IMPORTANT_SIGNALS

    def test_change_history_enabled_by_default(self) -> None:
        config = load_config()
        assert config.change_history.enabled is True
        assert config.change_history.max_chars == 2000

    def test_api_key_not_in_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_LLM_API_KEY", "sk-secret")
        assert "sk-secret" not in repr(load_config())


# ---------------------------------------------------------------------------
# Custom env var values
# ---------------------------------------------------------------------------


class TestConfigCustomValues:
    def test_urls_have_trailing_slash_removed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_LLM_ENDPOINT", "http://llm.internal/v1/")
        monkeypatch.setenv("OPSLENS_PROMETHEUS_URL", "http://prom:9090/")
        monkeypatch.setenv("OPSLENS_LOKI_URL", "http://loki:3100/")
        config = load_config()
        assert config.llm.endpoint == "http://llm.internal/v1"
        assert config.telemetry.prometheus_url == "http://prom:9090"
        assert config.telemetry.loki_url == "http://loki:3100"

    def test_log_level_is_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_LOG_LEVEL", "DEBUG")
        assert load_config().log.level == "debug"

    def test_important_signals_comma_separated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_CONTEXT_IMPORTANT_SIGNALS", "up, node_load1,,")
        assert load_config().context.important_signals == ("up", "node_load1")

    def test_api_key_read_from_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        key_file = tmp_path / "key"
        key_file.write_text("sk-from-file\n", encoding="utf-8")
        monkeypatch.setenv("OPSLENS_LLM_API_KEY_FILE", str(key_file))
        assert load_config().llm.api_key == "sk-from-file"

    def test_api_key_env_wins_over_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        key_file = tmp_path / "key"
        key_file.write_text("sk-from-file", encoding="utf-8")
        monkeypatch.setenv("OPSLENS_LLM_API_KEY_FILE", str(key_file))
        monkeypatch.setenv("OPSLENS_LLM_API_KEY", "sk-env")
        assert load_config().llm.api_key == "sk-env"

    def test_blank_value_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_API_PORT", "   ")
        assert load_config().api.port == 8080

    @pytest.mark.parametrize("raw", ["true", "1", "yes", "on", "TRUE"])
    def test_bool_truthy(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        monkeypatch.setenv("OPSLENS_CHANGE_HISTORY_ENABLED", raw)
        assert load_config().change_history.enabled is True

    @pytest.mark.parametrize("raw", ["false", "0", "no", "off"])
    def test_bool_falsy(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        monkeypatch.setenv("OPSLENS_CHANGE_HISTORY_ENABLED", raw)
        assert load_config().change_history.enabled is False


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------


class TestConfigClamping:
    def test_port_clamped_high(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_API_PORT", "99999")
        assert load_config().api.port == 65535

    def test_port_clamped_low(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_API_PORT", "0")
        assert load_config().api.port == 1

    def test_cache_ttl_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_CACHE_TTL", "0")
        assert load_config().cache.ttl_seconds == 1

    def test_cleanup_interval_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_CACHE_CLEANUP_INTERVAL", "1")
        assert load_config().cache.cleanup_interval_seconds == 10

    def test_context_max_tokens_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_CONTEXT_MAX_TOKENS", "5")
        assert load_config().context.max_tokens == 100

    def test_llm_max_tokens_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_LLM_MAX_TOKENS", "100000")
        assert load_config().llm.max_tokens == 32_000


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class TestConfigValidation:
    def test_invalid_log_level_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            load_config()

    def test_non_integer_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_API_PORT", "eighty")
        with pytest.raises(ValueError, match="OPSLENS_API_PORT"):
            load_config()

    def test_temperature_out_of_range_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_LLM_TEMPERATURE", "3.5")
        with pytest.raises(ValueError, match="LLM_TEMPERATURE"):
            load_config()

    def test_invalid_bool_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPSLENS_CHANGE_HISTORY_ENABLED", "maybe")
        with pytest.raises(ValueError, match="CHANGE_HISTORY_ENABLED"):
            load_config()

    def test_missing_key_file_raises(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OPSLENS_LLM_API_KEY_FILE", str(tmp_path / "absent"))
        with pytest.raises(ValueError, match="LLM_API_KEY_FILE"):
            load_config()
