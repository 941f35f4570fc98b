"""Tests for opslens.history.change_history."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from opslens.history import ChangeHistory, ChangeHistoryError, load_change_history, truncate_diff
from opslens.history.change_history import TRUNCATION_MARKER


class TestTruncateDiff:
    def test_short_diff_untouched(self) -> None:
        assert truncate_diff("abc", max_chars=10) == "abc"

    def test_exact_length_untouched(self) -> None:
        assert truncate_diff("x" * 2000) == "x" * 2000

    def test_long_diff_cut_with_marker(self) -> None:
        result = truncate_diff("x" * 2500)
        assert result == "x" * 2000 + TRUNCATION_MARKER
        assert result.endswith("\n... (truncated)")


class TestChangeHistory:
    def test_is_empty(self) -> None:
        assert ChangeHistory().is_empty is True
        assert ChangeHistory(commit="abc").is_empty is False


class TestLoadChangeHistory:
    @pytest.mark.asyncio
    async def test_runs_log_then_diff(self) -> None:
        run_git = AsyncMock(side_effect=["abc123 fix leak\n", "diff --git a/x b/x\n"])
        with patch("opslens.history.change_history._run_git", run_git):
            history = await load_change_history("/repo", max_chars=2000, paths=("*.py",))

        assert history == ChangeHistory(commit="abc123 fix leak", diff="diff --git a/x b/x\n")
        first, second = run_git.call_args_list
        assert first.args == ("/repo", "log", "-1", "--pretty=format:%H %s")
        assert second.args == ("/repo", "diff", "HEAD~1", "--", "*.py")

    @pytest.mark.asyncio
    async def test_diff_truncated(self) -> None:
        run_git = AsyncMock(side_effect=["abc fix", "y" * 50])
        with patch("opslens.history.change_history._run_git", run_git):
            history = await load_change_history(max_chars=10)
        assert history.diff == "y" * 10 + TRUNCATION_MARKER

    @pytest.mark.asyncio
    async def test_git_failure_propagates(self) -> None:
        run_git = AsyncMock(side_effect=ChangeHistoryError("not a git repository"))
        with patch("opslens.history.change_history._run_git", run_git), pytest.raises(ChangeHistoryError):
            await load_change_history("/nowhere")

    @pytest.mark.asyncio
    async def test_missing_directory_raises_change_history_error(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(ChangeHistoryError):
            await load_change_history(str(tmp_path / "absent"))
