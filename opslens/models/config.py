"""Configuration data structures populated by :func:`opslens.config.load_config`."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_IMPORTANT_SIGNALS: tuple[str, ...] = (
    "machine_cpu_cores",
    "machine_cpu_physical_cores",
    "machine_memory_bytes",
    "grpc_server_handled_total",
)

DEFAULT_HISTORY_PATHS: tuple[str, ...] = ("*.go", "*.py", "*.yaml", "*.json", "*.md")


@dataclass
class APIConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    request_timeout_seconds: int = 120


@dataclass
class LogConfig:
    level: str = "info"


@dataclass
class LLMConfig:
    """OpenAI-compatible inference provider settings."""

    endpoint: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    api_key: str = field(default="", repr=False)
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout_seconds: int = 60


@dataclass
class TelemetryConfig:
    """Telemetry source endpoints. Empty Loki/Jaeger URLs disable those sources."""

    prometheus_url: str = "http://localhost:9090"
    loki_url: str = ""
    jaeger_url: str = ""


@dataclass
class CacheConfig:
    ttl_seconds: int = 1800
    cleanup_interval_seconds: int = 300


@dataclass
class ContextConfig:
    max_tokens: int = 20_000
    baseline_tokens: int = 100
    important_signals: tuple[str, ...] = DEFAULT_IMPORTANT_SIGNALS


@dataclass
class ChangeHistoryConfig:
    enabled: bool = True
    repo_path: str = "."
    max_chars: int = 2000
    paths: tuple[str, ...] = DEFAULT_HISTORY_PATHS


@dataclass
class OpsLensConfig:
    """Root configuration object."""

    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    change_history: ChangeHistoryConfig = field(default_factory=ChangeHistoryConfig)
