"""Token-budgeted assembly of telemetry context for the LLM prompt.

Signals are fetched one at a time in catalog (or request) order. Each non-empty
signal becomes a ``"Metric: <data>"`` block whose cost is estimated with
:func:`estimate_tokens`. Admission policy:

  1. Once the running total reaches the budget, only important signals are
     still admitted.
  2. A normal signal whose block would push the total over the budget is
     skipped; later, smaller signals may still fit.
  3. Important signals are always admitted and placed at the front, most
     recently processed first. Normal signals follow in discovery order.

Every admitted block counts against the budget, important or not.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime

from opslens.models.config import DEFAULT_IMPORTANT_SIGNALS
from opslens.observability.logging import get_logger
from opslens.observability.metrics import context_signals_total, context_tokens
from opslens.telemetry.base import TelemetryError, TelemetrySource

_BLOCK_PREFIX = "Metric: "


@dataclass(frozen=True)
class ContextBudget:
    """Token ceiling for assembled context plus a fixed per-block baseline."""

    max_tokens: int = 20_000
    baseline_tokens: int = 100

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text, self.baseline_tokens)


def estimate_tokens(text: str, baseline_tokens: int = 100) -> int:
    """Crude, deterministic token estimate: a fixed baseline plus one token per 3 chars.

    Not a tokenizer. Identical text always yields the identical estimate.
    """
    return baseline_tokens + len(text) // 3


@dataclass(frozen=True)
class AssembledContext:
    """Result of one assembly run.

    ``blocks`` and ``admitted`` are parallel: ``admitted[i]`` is the signal name
    that produced ``blocks[i]``.
    """

    blocks: tuple[str, ...]
    admitted: tuple[str, ...]
    skipped: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    total_tokens: int = 0

    @property
    def text(self) -> str:
        return "".join(self.blocks)

    @property
    def empty(self) -> bool:
        return not self.blocks


class ContextAssembler:
    """Select and order telemetry blocks under a token budget.

    Args:
        source: Telemetry source used to resolve the catalog and fetch signals.
        budget: Token ceiling and baseline reserve.
        important_signals: Names that are never dropped for budget reasons.
    """

    def __init__(
        self,
        source: TelemetrySource,
        budget: ContextBudget | None = None,
        important_signals: frozenset[str] | set[str] | tuple[str, ...] = DEFAULT_IMPORTANT_SIGNALS,
    ) -> None:
        self._source = source
        self._budget = budget or ContextBudget()
        self._important = frozenset(important_signals)
        self._log = get_logger("context.assembler")

    @property
    def budget(self) -> ContextBudget:
        return self._budget

    @property
    def important_signals(self) -> frozenset[str]:
        return self._important

    async def resolve_signals(self, signal_names: list[str] | tuple[str, ...]) -> list[str]:
        """Return *signal_names*, or the full source catalog when it is empty.

        Raises TelemetryError when the catalog cannot be listed.
        """
        if signal_names:
            return list(signal_names)
        names = await self._source.list_names()
        self._log.debug("signal_catalog_resolved", count=len(names))
        return names

    async def assemble(
        self,
        start: datetime,
        end: datetime,
        signal_names: list[str] | tuple[str, ...] = (),
    ) -> AssembledContext:
        """Fetch signals over ``[start, end]`` and admit them under the budget.

        A failed fetch for one signal is logged and skipped; only a failure to
        resolve the catalog is raised.
        """
        names = await self.resolve_signals(signal_names)
        max_tokens = self._budget.max_tokens

        # (name, block) pairs; important ones are pushed on the left
        admitted: deque[tuple[str, str]] = deque()
        skipped: list[str] = []
        failed: list[str] = []
        total = 0

        for name in names:
            important = name in self._important
            if total >= max_tokens and not important:
                skipped.append(name)
                context_signals_total.labels(decision="over_budget").inc()
                continue

            try:
                data = await self._source.fetch_data(name, start, end)
            except TelemetryError as exc:
                self._log.warning("signal_fetch_failed", signal=name, error=str(exc))
                failed.append(name)
                context_signals_total.labels(decision="failed").inc()
                continue
            if not data:
                context_signals_total.labels(decision="empty").inc()
                continue

            block = f"{_BLOCK_PREFIX}{data}\n"
            cost = self._budget.estimate_tokens(block)

            if total + cost > max_tokens and not important:
                skipped.append(name)
                context_signals_total.labels(decision="over_budget").inc()
                continue

            if important:
                admitted.appendleft((name, block))
                context_signals_total.labels(decision="important").inc()
            else:
                admitted.append((name, block))
                context_signals_total.labels(decision="admitted").inc()
            total += cost

        context_tokens.observe(total)
        self._log.debug(
            "context_assembled",
            signals=len(names),
            admitted=len(admitted),
            skipped=len(skipped),
            failed=len(failed),
            estimated_tokens=total,
        )
        return AssembledContext(
            blocks=tuple(block for _, block in admitted),
            admitted=tuple(name for name, _ in admitted),
            skipped=tuple(skipped),
            failed=tuple(failed),
            total_tokens=total,
        )
