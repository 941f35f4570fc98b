"""Merge several telemetry sources into one signal namespace."""

from __future__ import annotations

from datetime import datetime

from opslens.observability.logging import get_logger
from opslens.telemetry.base import TelemetryError, TelemetrySource

_SEPARATOR = ":"


class CompositeSource:
    """Expose a primary source plus prefixed secondary sources as one catalog.

    Signals of the primary source keep their names; signals of a secondary
    source registered under ``prefix`` are exposed as ``"<prefix>:<name>"``.

    Example::

        source = CompositeSource(
            PrometheusSource(prom_url),
            {"logs": LokiSource(loki_url), "traces": JaegerSource(jaeger_url)},
        )
        await source.fetch_data("traces:checkout", start, end)
    """

    def __init__(
        self,
        primary: TelemetrySource,
        secondary: dict[str, TelemetrySource] | None = None,
    ) -> None:
        self._primary = primary
        self._secondary = dict(secondary or {})
        for prefix in self._secondary:
            if not prefix or _SEPARATOR in prefix:
                raise ValueError(f"invalid source prefix: {prefix!r}")
        self._log = get_logger("telemetry.composite")

    @property
    def sources(self) -> list[TelemetrySource]:
        return [self._primary, *self._secondary.values()]

    async def list_names(self) -> list[str]:
        """List the primary catalog, then each secondary catalog with its prefix.

        A primary failure is raised; a secondary failure only drops that
        source's signals from the catalog.
        """
        names = list(await self._primary.list_names())
        for prefix, source in self._secondary.items():
            try:
                secondary_names = await source.list_names()
            except TelemetryError as exc:
                self._log.warning("secondary_catalog_failed", prefix=prefix, error=str(exc))
                continue
            names.extend(f"{prefix}{_SEPARATOR}{name}" for name in secondary_names)
        return names

    async def fetch_data(self, name: str, start: datetime, end: datetime) -> str:
        prefix, sep, rest = name.partition(_SEPARATOR)
        if sep and prefix in self._secondary:
            return await self._secondary[prefix].fetch_data(rest, start, end)
        return await self._primary.fetch_data(name, start, end)

    async def aclose(self) -> None:
        for source in self.sources:
            close = getattr(source, "aclose", None)
            if close is not None:
                await close()
