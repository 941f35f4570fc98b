"""Prompt templates and message assembly for the inference provider."""

from __future__ import annotations

from opslens.context.assembler import AssembledContext
from opslens.history.change_history import ChangeHistory

SYSTEM_PROMPT = """\
You are a system metrics analyzer. Analyze the provided metrics and provide insights. \
Be concise and focus on key findings. Consider recent code changes when analyzing the metrics.

Respond with a single JSON object and nothing else:
{
  "analysis": "<your findings, plain text>",
  "confidence": <number between 0 and 1>,
  "suggestions": ["<actionable suggestion>", ...],
  "relevant_metrics": ["<metric name that supports the findings>", ...]
}"""

_NO_DATA = "(no telemetry data available for the requested range)"


def build_user_prompt(
    question: str,
    context: AssembledContext,
    history: ChangeHistory | None = None,
) -> str:
    """Embed the question, the assembled telemetry and any recent change excerpt."""
    sections = [
        f"Question: {question}",
        "",
        "Metrics data:",
        context.text if not context.empty else _NO_DATA,
    ]
    if history is not None and not history.is_empty:
        sections.extend(["", "Recent changes:", history.commit, history.diff])
    return "\n".join(sections)


def build_messages(
    question: str,
    context: AssembledContext,
    history: ChangeHistory | None = None,
) -> list[dict[str, str]]:
    """Build the two-message exchange: system persona, then the user request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(question, context, history)},
    ]
