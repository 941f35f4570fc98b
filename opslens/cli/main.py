"""OpsLens command-line interface.

Commands:
    opslens analyze QUESTION [--last 1h | --start T --end T] [--metric NAME ...]
    opslens metrics                          List example signal names.
    opslens version                          Print version and exit.
    opslens serve                            Run the OpsLens server.

Client commands call the REST API at http://localhost:8080 (configurable via
``--api-url``).  Output is colourised for readability.
"""

from __future__ import annotations

import asyncio
import json
import re
from datetime import UTC, datetime, timedelta

import click
import httpx

from opslens import __version__

_DEFAULT_API_URL = "http://localhost:8080"

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS: dict[str, str] = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}

# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

_CONFIDENCE_THRESHOLDS: list[tuple[float, str]] = [
    (0.75, "green"),
    (0.5, "yellow"),
    (0.0, "red"),
]


def _confidence_color(confidence: float) -> str:
    for threshold, color in _CONFIDENCE_THRESHOLDS:
        if confidence >= threshold:
            return color
    return "red"


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def _parse_duration(value: str) -> timedelta:
    """Parse a look-back window such as ``30m``, ``2h`` or ``1d``."""
    match = _DURATION_RE.match(value.strip())
    if not match:
        raise click.BadParameter(f"expected a duration like 30m, 2h or 1d, got {value!r}", param_hint="--last")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_range(start: str | None, end: str | None, last: str | None) -> tuple[str, str]:
    """Return (start_time, end_time) strings for the request body.

    Explicit ``--start``/``--end`` are passed through untouched so the server
    reports malformed timestamps; ``--last`` counts back from now.
    """
    if start and end:
        if last:
            raise click.UsageError("--last cannot be combined with --start/--end")
        return start, end
    if start or end:
        raise click.UsageError("--start and --end must be given together")
    now = datetime.now(UTC)
    return _rfc3339(now - _parse_duration(last or "1h")), _rfc3339(now)


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _get(api_url: str, path: str) -> dict[str, object]:
    """Perform a GET request and return the parsed JSON body.

    Raises click.ClickException on connection errors or non-2xx responses.
    """
    url = api_url.rstrip("/") + path
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.get(url)
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]
    except httpx.ConnectError as err:
        raise click.ClickException(f"Cannot connect to OpsLens API at {api_url}. Is the server running?") from err
    except httpx.HTTPStatusError as exc:
        raise _error_from_response(exc.response) from exc


def _post(api_url: str, path: str, body: dict[str, object], timeout: float) -> dict[str, object]:
    """Perform a POST request and return the parsed JSON body.

    Raises click.ClickException on connection errors or non-2xx responses.
    """
    url = api_url.rstrip("/") + path
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, json=body)
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]
    except httpx.ConnectError as err:
        raise click.ClickException(f"Cannot connect to OpsLens API at {api_url}. Is the server running?") from err
    except httpx.TimeoutException as err:
        raise click.ClickException(f"Timed out waiting for OpsLens API after {timeout:.0f}s") from err
    except httpx.HTTPStatusError as exc:
        raise _error_from_response(exc.response) from exc


def _error_from_response(response: httpx.Response) -> click.ClickException:
    """Error bodies are plain text; show them verbatim with the status code."""
    text = response.text.strip()[:500] or response.reason_phrase
    return click.ClickException(f"HTTP {response.status_code}: {text}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--api-url",
    default=_DEFAULT_API_URL,
    envvar="OPSLENS_API_URL",
    show_default=True,
    help="OpsLens REST API base URL.",
)
@click.pass_context
def cli(ctx: click.Context, api_url: str) -> None:
    """OpsLens: ask questions about your telemetry."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url


# ---------------------------------------------------------------------------
# opslens version
# ---------------------------------------------------------------------------


@cli.command("version")
def cmd_version() -> None:
    """Print the OpsLens version and exit."""
    click.echo(f"opslens {__version__}")


# ---------------------------------------------------------------------------
# opslens metrics
# ---------------------------------------------------------------------------


@cli.command("metrics")
@click.option("--json", "output_json", is_flag=True, default=False, help="Print raw JSON response.")
@click.pass_context
def cmd_metrics(ctx: click.Context, output_json: bool) -> None:
    """List the example signal names advertised by the server."""
    data = _get(ctx.obj["api_url"], "/api/v1/metrics")
    if output_json:
        click.echo(json.dumps(data, indent=2))
        return
    names: list[str] = data.get("metrics", [])  # type: ignore[assignment]
    for name in names:
        click.echo(name)


# ---------------------------------------------------------------------------
# opslens analyze
# ---------------------------------------------------------------------------


@cli.command("analyze")
@click.argument("question")
@click.option("--start", default=None, metavar="RFC3339", help="Start of the range, e.g. 2026-02-18T11:00:00Z.")
@click.option("--end", default=None, metavar="RFC3339", help="End of the range.")
@click.option(
    "--last",
    default=None,
    metavar="WINDOW",
    help="Look-back window ending now, e.g. '30m', '2h', '1d'.  Defaults to 1h.",
)
@click.option(
    "--metric",
    "-m",
    "metrics",
    multiple=True,
    metavar="NAME",
    help="Signal to analyse, in priority order.  Repeatable.  Omit for all signals.",
)
@click.option("--timeout", default=180.0, show_default=True, help="Client-side timeout in seconds.")
@click.option("--json", "output_json", is_flag=True, default=False, help="Print raw JSON response.")
@click.pass_context
def cmd_analyze(
    ctx: click.Context,
    question: str,
    start: str | None,
    end: str | None,
    last: str | None,
    metrics: tuple[str, ...],
    timeout: float,
    output_json: bool,
) -> None:
    """Ask QUESTION about the telemetry in a time range.

    Example:

        opslens analyze "Why is memory growing?" --last 2h -m process_resident_memory_bytes
    """
    if not question.strip():
        raise click.UsageError("QUESTION must not be empty")
    start_time, end_time = _resolve_range(start, end, last)

    body: dict[str, object] = {
        "question": question,
        "start_time": start_time,
        "end_time": end_time,
        "metrics": list(metrics),
    }

    if not output_json:
        click.echo(click.style("Analyzing", bold=True) + f" {start_time} .. {end_time} ...")

    data = _post(ctx.obj["api_url"], "/api/v1/analyze", body, timeout=timeout)

    if output_json:
        click.echo(json.dumps(data, indent=2))
        return

    _print_analysis(data)


def _print_analysis(data: dict[str, object]) -> None:
    """Pretty-print an AnalysisResult dict."""
    raw_confidence = data.get("confidence", 0.0)
    confidence = float(raw_confidence) if isinstance(raw_confidence, int | float | str) else 0.0
    conf_str = click.style(f"{confidence * 100:.0f}%", fg=_confidence_color(confidence), bold=True)

    click.echo("")
    click.echo(click.style("Analysis", bold=True, underline=True))
    click.echo("")
    click.echo(str(data.get("analysis", "")))
    click.echo("")
    click.echo(f"  {click.style('Confidence:', bold=True)} {conf_str}")

    suggestions: list[str] = data.get("suggestions", [])  # type: ignore[assignment]
    if suggestions:
        click.echo("")
        click.echo(click.style(f"Suggestions ({len(suggestions)}):", bold=True))
        for item in suggestions:
            click.echo(f"  - {item}")

    relevant: list[str] = data.get("relevant_metrics", [])  # type: ignore[assignment]
    if relevant:
        click.echo("")
        click.echo(click.style("Relevant metrics:", bold=True))
        for name in relevant:
            click.echo(f"  {click.style(name, fg='cyan')}")

    click.echo("")


# ---------------------------------------------------------------------------
# opslens serve
# ---------------------------------------------------------------------------


@cli.command("serve")
def cmd_serve() -> None:
    """Run the OpsLens server (configured from OPSLENS_* environment variables)."""
    from opslens.app import main

    asyncio.run(main())


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
