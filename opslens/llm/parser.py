"""Tolerant parsing of inference provider output into an AnalysisResult.

:func:`parse_response` never raises. Structured JSON output is decoded
strictly; anything else degrades to a fallback result built from the raw text
with opportunistic ``confidence:``, ``suggestion:`` and ``metric:`` extraction.
"""

from __future__ import annotations

import json
import math
import re

from opslens.models.analysis import AnalysisResult

DEFAULT_CONFIDENCE: float = 0.8

_CONFIDENCE_RE = re.compile(r"confidence\"?\s*:\s*([0-9]+(?:\.[0-9]+)?|\.[0-9]+)", re.IGNORECASE)
_SUGGESTION_RE = re.compile(r"\bsuggestion\s*:[ \t]*([^\n]+)", re.IGNORECASE)
_METRIC_RE = re.compile(r"\bmetric\s*:[ \t]*([^\n]+)", re.IGNORECASE)


def _clamp_confidence(value: float) -> float:
    if math.isnan(value):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, value))


def _to_float(value: int | float) -> float:
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def _strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence the model may add despite instructions."""
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.split("\n")
        inner = lines[1:-1] if lines[-1].strip().startswith("```") else lines[1:]
        stripped = "\n".join(inner)
    return stripped


def _string_list(value: object, key: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError(f"{key} must be a list of strings")
    return tuple(value)


def decode_structured(raw: str) -> tuple[AnalysisResult | None, str]:
    """Strictly decode a JSON object response.

    Returns (result, error_message). On success, error_message is "". On
    failure, result is None.
    """
    try:
        parsed = json.loads(_strip_code_fence(raw))
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, oversized integer literals and runaway nesting
        return None, str(exc) or type(exc).__name__

    if not isinstance(parsed, dict):
        return None, f"Expected JSON object, got {type(parsed).__name__}"
    if "analysis" not in parsed:
        return None, "Missing required key: analysis"

    analysis = parsed["analysis"]
    if not isinstance(analysis, str):
        return None, "analysis must be a string"

    confidence = parsed.get("confidence", DEFAULT_CONFIDENCE)
    if isinstance(confidence, bool) or not isinstance(confidence, int | float):
        return None, "confidence must be a number"

    try:
        suggestions = _string_list(parsed.get("suggestions", []), "suggestions")
        relevant_metrics = _string_list(parsed.get("relevant_metrics", []), "relevant_metrics")
    except TypeError as exc:
        return None, str(exc)

    return (
        AnalysisResult(
            analysis=analysis,
            confidence=_clamp_confidence(_to_float(confidence)),
            suggestions=suggestions,
            relevant_metrics=relevant_metrics,
        ),
        "",
    )


def fallback_result(raw: str) -> AnalysisResult:
    """Build a best-effort result from unstructured text."""
    confidence = DEFAULT_CONFIDENCE
    match = _CONFIDENCE_RE.search(raw)
    if match:
        confidence = _clamp_confidence(float(match.group(1)))

    suggestions = tuple(s.strip() for s in _SUGGESTION_RE.findall(raw) if s.strip())
    metrics = tuple(m.strip() for m in _METRIC_RE.findall(raw) if m.strip())

    return AnalysisResult(
        analysis=raw,
        confidence=confidence,
        suggestions=suggestions,
        relevant_metrics=metrics,
    )


def parse_response(raw: str) -> tuple[AnalysisResult, str]:
    """Convert raw provider text into an AnalysisResult. Never raises.

    Returns (result, decode_error). decode_error is "" when the text was a
    well-formed structured response, otherwise it describes why the fallback
    path was taken.
    """
    result, error = decode_structured(raw)
    if result is not None:
        return result, ""
    return fallback_result(raw), error
