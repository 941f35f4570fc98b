"""Prometheus metrics for OpsLens."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Analysis metrics
analysis_requests_total = Counter(
    "opslens_analysis_requests_total",
    "Total analysis requests",
    ["outcome"],
)

analysis_duration_seconds = Histogram(
    "opslens_analysis_duration_seconds",
    "End-to-end analysis duration in seconds",
    ["outcome"],
    buckets=(0.01, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

analysis_inflight_joins_total = Counter(
    "opslens_analysis_inflight_joins_total",
    "Total analysis requests that joined an identical in-flight analysis",
)

# Result cache metrics
cache_hits_total = Counter(
    "opslens_cache_hits_total",
    "Total result cache hits",
)

cache_misses_total = Counter(
    "opslens_cache_misses_total",
    "Total result cache misses",
)

cache_evictions_total = Counter(
    "opslens_cache_evictions_total",
    "Total result cache evictions",
    ["reason"],
)

cache_entries = Gauge(
    "opslens_cache_entries",
    "Number of entries currently held by the result cache",
)

# Context assembly metrics
context_tokens = Histogram(
    "opslens_context_tokens",
    "Estimated token cost of assembled telemetry context",
    buckets=(100, 500, 1_000, 2_500, 5_000, 10_000, 20_000, 50_000),
)

context_signals_total = Counter(
    "opslens_context_signals_total",
    "Signals considered during context assembly by decision",
    ["decision"],
)

# Telemetry metrics
telemetry_fetch_failures_total = Counter(
    "opslens_telemetry_fetch_failures_total",
    "Total telemetry fetch failures",
    ["source"],
)

# LLM metrics
llm_requests_total = Counter(
    "opslens_llm_requests_total",
    "Total inference provider requests",
    ["success"],
)

llm_request_duration_seconds = Histogram(
    "opslens_llm_request_duration_seconds",
    "Inference provider request duration in seconds",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

llm_available = Gauge(
    "opslens_llm_available",
    "Whether the inference provider is reachable (0 or 1)",
)

llm_unstructured_responses_total = Counter(
    "opslens_llm_unstructured_responses_total",
    "Total inference responses that required fallback parsing",
)
