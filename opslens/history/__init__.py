"""Recent code change context for prompts."""

from opslens.history.change_history import (
    ChangeHistory,
    ChangeHistoryError,
    load_change_history,
    truncate_diff,
)

__all__ = ["ChangeHistory", "ChangeHistoryError", "load_change_history", "truncate_diff"]
