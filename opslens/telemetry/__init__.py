"""Telemetry sources: Prometheus metrics, Loki logs and Jaeger traces."""

from opslens.telemetry.base import TelemetryError, TelemetrySource
from opslens.telemetry.composite import CompositeSource
from opslens.telemetry.jaeger import JaegerSource
from opslens.telemetry.loki import LokiSource
from opslens.telemetry.prometheus import PrometheusSource

__all__ = [
    "CompositeSource",
    "JaegerSource",
    "LokiSource",
    "PrometheusSource",
    "TelemetryError",
    "TelemetrySource",
]
