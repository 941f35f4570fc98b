"""Tests for opslens.models.analysis."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta

import pytest

from opslens.models.analysis import AnalysisQuery, AnalysisResult, cache_key

_START = datetime(2026, 2, 18, 11, 0, tzinfo=UTC)
_END = _START + timedelta(hours=1)


class TestAnalysisQuery:
    def test_start_after_end_raises(self) -> None:
        with pytest.raises(ValueError, match="must not be after"):
            AnalysisQuery(question="q", start=_END, end=_START)

    def test_start_equal_end_is_allowed(self) -> None:
        query = AnalysisQuery(question="q", start=_START, end=_START)
        assert query.start == query.end

    def test_signal_names_stored_as_tuple(self) -> None:
        query = AnalysisQuery(question="q", start=_START, end=_END, signal_names=["a", "b"])  # type: ignore[arg-type]
        assert query.signal_names == ("a", "b")

    def test_is_frozen(self) -> None:
        query = AnalysisQuery(question="q", start=_START, end=_END)
        with pytest.raises(dataclasses.FrozenInstanceError):
            query.question = "other"  # type: ignore[misc]


class TestCacheKey:
    def test_identical_queries_share_key(self) -> None:
        a = AnalysisQuery(question="q", start=_START, end=_END, signal_names=("cpu",))
        b = AnalysisQuery(question="q", start=_START, end=_END, signal_names=("cpu",))
        assert cache_key(a) == cache_key(b)

    def test_signal_order_changes_key(self) -> None:
        a = AnalysisQuery(question="q", start=_START, end=_END, signal_names=("a", "b"))
        b = AnalysisQuery(question="q", start=_START, end=_END, signal_names=("b", "a"))
        assert cache_key(a) != cache_key(b)

    def test_range_changes_key(self) -> None:
        a = AnalysisQuery(question="q", start=_START, end=_END)
        b = AnalysisQuery(question="q", start=_START, end=_END + timedelta(seconds=1))
        assert cache_key(a) != cache_key(b)

    def test_key_is_plain_concatenation(self) -> None:
        query = AnalysisQuery(question="why", start=_START, end=_END, signal_names=("x", "y"))
        assert cache_key(query) == "why" + _START.isoformat() + _END.isoformat() + "xy"


class TestAnalysisResult:
    def test_to_dict_uses_api_field_names(self) -> None:
        result = AnalysisResult(
            analysis="ok",
            confidence=0.5,
            suggestions=("s1",),
            relevant_metrics=("m1",),
        )
        assert result.to_dict() == {
            "analysis": "ok",
            "confidence": 0.5,
            "suggestions": ["s1"],
            "relevant_metrics": ["m1"],
        }

    def test_to_dict_lists_are_copies(self) -> None:
        result = AnalysisResult(analysis="ok", confidence=0.5, suggestions=("s1",))
        payload = result.to_dict()
        payload["suggestions"].append("mutated")  # type: ignore[attr-defined]
        assert result.suggestions == ("s1",)
