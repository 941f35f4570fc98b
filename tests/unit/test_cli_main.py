"""Unit tests for opslens.cli.main."""

from __future__ import annotations

import json
from datetime import timedelta
from unittest.mock import patch

import click
import httpx
import pytest
from click.testing import CliRunner

from opslens import __version__
from opslens.cli.main import _confidence_color, _error_from_response, _parse_duration, _resolve_range, cli

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _analysis_response() -> dict[str, object]:
    return {
        "analysis": "Memory grows linearly after the 11:20 deploy.",
        "confidence": 0.92,
        "suggestions": ["Roll back the deploy", "Profile the heap"],
        "relevant_metrics": ["process_resident_memory_bytes"],
    }


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


class TestVersionCommand:
    def test_prints_version(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output
        assert "opslens" in result.output


# ---------------------------------------------------------------------------
# metrics
# ---------------------------------------------------------------------------


class TestMetricsCommand:
    def test_lists_names_one_per_line(self) -> None:
        runner = CliRunner()
        response = {"metrics": ["process_cpu_seconds_total", "http_requests_total"]}
        with patch("opslens.cli.main._get", return_value=response) as mock_get:
            result = runner.invoke(cli, ["metrics"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["process_cpu_seconds_total", "http_requests_total"]
        assert mock_get.call_args[0][1] == "/api/v1/metrics"

    def test_json_output(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._get", return_value={"metrics": ["a"]}):
            result = runner.invoke(cli, ["metrics", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"metrics": ["a"]}


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


class TestAnalyzeCommand:
    def test_analyze_pretty_output(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._post", return_value=_analysis_response()):
            result = runner.invoke(cli, ["analyze", "Why is memory growing?"])
        assert result.exit_code == 0
        assert "Memory grows linearly" in result.output
        assert "92%" in result.output
        assert "Roll back the deploy" in result.output
        assert "process_resident_memory_bytes" in result.output

    def test_analyze_json_output(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._post", return_value=_analysis_response()):
            result = runner.invoke(cli, ["analyze", "q", "--json"])
        assert result.exit_code == 0
        parsed = json.loads(result.output)
        assert parsed["confidence"] == 0.92

    def test_explicit_range_and_metrics_are_sent(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._post", return_value=_analysis_response()) as mock_post:
            result = runner.invoke(
                cli,
                [
                    "analyze",
                    "q",
                    "--start",
                    "2026-02-18T11:00:00Z",
                    "--end",
                    "2026-02-18T12:00:00Z",
                    "-m",
                    "b_metric",
                    "-m",
                    "a_metric",
                ],
            )
        assert result.exit_code == 0
        body = mock_post.call_args[0][2]
        assert body == {
            "question": "q",
            "start_time": "2026-02-18T11:00:00Z",
            "end_time": "2026-02-18T12:00:00Z",
            "metrics": ["b_metric", "a_metric"],
        }

    def test_last_window_produces_range(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._post", return_value=_analysis_response()) as mock_post:
            result = runner.invoke(cli, ["analyze", "q", "--last", "30m"])
        assert result.exit_code == 0
        body = mock_post.call_args[0][2]
        assert body["start_time"] < body["end_time"]
        assert body["metrics"] == []

    def test_start_without_end_is_usage_error(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", "q", "--start", "2026-02-18T11:00:00Z"])
        assert result.exit_code != 0
        assert "--start and --end" in result.output

    def test_empty_question_is_usage_error(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", "  "])
        assert result.exit_code != 0

    def test_api_url_option(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._post", return_value=_analysis_response()) as mock_post:
            result = runner.invoke(cli, ["--api-url", "http://opslens.internal:9000", "analyze", "q"])
        assert result.exit_code == 0
        assert mock_post.call_args[0][0] == "http://opslens.internal:9000"

    def test_server_error_exits_nonzero(self) -> None:
        runner = CliRunner()
        with patch("opslens.cli.main._post", side_effect=click.ClickException("HTTP 500: Analysis failed: boom")):
            result = runner.invoke(cli, ["analyze", "q"])
        assert result.exit_code != 0
        assert "Analysis failed: boom" in result.output


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_parse_duration(self) -> None:
        assert _parse_duration("90s") == timedelta(seconds=90)
        assert _parse_duration("2h") == timedelta(hours=2)
        assert _parse_duration("1d") == timedelta(days=1)

    def test_parse_duration_rejects_garbage(self) -> None:
        with pytest.raises(click.BadParameter):
            _parse_duration("soon")

    def test_resolve_range_rejects_mixed_options(self) -> None:
        with pytest.raises(click.UsageError):
            _resolve_range("2026-02-18T11:00:00Z", "2026-02-18T12:00:00Z", "1h")

    def test_confidence_color(self) -> None:
        assert _confidence_color(0.9) == "green"
        assert _confidence_color(0.6) == "yellow"
        assert _confidence_color(0.1) == "red"

    def test_error_from_plain_text_response(self) -> None:
        response = httpx.Response(400, text="Invalid start time format")
        exc = _error_from_response(response)
        assert exc.message == "HTTP 400: Invalid start time format"
