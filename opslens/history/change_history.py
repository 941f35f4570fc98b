"""Recent change excerpt from the local git repository.

The last commit's one-line summary and a bounded diff are appended to the
prompt so the model can relate metric shifts to recent code changes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from opslens.models.config import DEFAULT_HISTORY_PATHS
from opslens.observability.logging import get_logger

_log = get_logger("history.git")

DEFAULT_MAX_DIFF_CHARS: int = 2000
TRUNCATION_MARKER: str = "\n... (truncated)"
_GIT_TIMEOUT_SECONDS: float = 10.0


class ChangeHistoryError(Exception):
    """Raised when git information cannot be collected."""


@dataclass(frozen=True)
class ChangeHistory:
    """Single-line change identifier plus a (possibly truncated) diff."""

    commit: str = ""
    diff: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.commit and not self.diff


def truncate_diff(diff: str, max_chars: int = DEFAULT_MAX_DIFF_CHARS) -> str:
    """Cut *diff* to *max_chars* and append a marker when anything was dropped."""
    if len(diff) <= max_chars:
        return diff
    return diff[:max_chars] + TRUNCATION_MARKER


async def _run_git(repo_path: str, *args: str) -> str:
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=repo_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ChangeHistoryError(f"could not run git: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=_GIT_TIMEOUT_SECONDS)
    except TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise ChangeHistoryError(f"git {args[0]} timed out") from exc

    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise ChangeHistoryError(f"git {args[0]} exited with {proc.returncode}: {message}")
    return stdout.decode("utf-8", errors="replace")


async def load_change_history(
    repo_path: str = ".",
    max_chars: int = DEFAULT_MAX_DIFF_CHARS,
    paths: tuple[str, ...] = DEFAULT_HISTORY_PATHS,
) -> ChangeHistory:
    """Collect the last commit summary and its diff restricted to *paths*.

    Raises ChangeHistoryError when *repo_path* is not a git work tree or has
    fewer than two commits.
    """
    commit = (await _run_git(repo_path, "log", "-1", "--pretty=format:%H %s")).strip()
    diff = await _run_git(repo_path, "diff", "HEAD~1", "--", *paths)
    history = ChangeHistory(commit=commit, diff=truncate_diff(diff, max_chars))
    _log.info("change_history_loaded", commit=commit[:12], diff_chars=len(history.diff))
    return history
