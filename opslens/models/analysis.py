"""Analysis query and result data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class AnalysisQuery:
    """A question about a time range, optionally restricted to named signals.

    An empty ``signal_names`` means the full signal catalog is resolved at
    request time.
    """

    question: str
    start: datetime
    end: datetime
    signal_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"start ({self.start.isoformat()}) must not be after end ({self.end.isoformat()})")
        # Accept any iterable of names but store an immutable tuple
        if not isinstance(self.signal_names, tuple):
            object.__setattr__(self, "signal_names", tuple(self.signal_names))


def cache_key(query: AnalysisQuery) -> str:
    """Derive the canonical cache key for *query*.

    The key concatenates the question, both timestamps and every signal name in
    the order given. Signal order is significant: ``["a", "b"]`` and
    ``["b", "a"]`` produce different keys.
    """
    parts = [query.question, query.start.isoformat(), query.end.isoformat()]
    parts.extend(query.signal_names)
    return "".join(parts)


@dataclass(frozen=True)
class AnalysisResult:
    """Structured answer produced from inference provider output.

    Instances are shared between cache readers, so every field is immutable.
    """

    analysis: str
    confidence: float
    suggestions: tuple[str, ...] = field(default_factory=tuple)
    relevant_metrics: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        """Serialise using the JSON field names of the HTTP API."""
        return {
            "analysis": self.analysis,
            "confidence": self.confidence,
            "suggestions": list(self.suggestions),
            "relevant_metrics": list(self.relevant_metrics),
        }
