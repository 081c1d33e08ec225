"""Render parsed tofu JSON output as a GitHub-flavoured Markdown summary."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, Union

from tf_report.jsonlines import (
    ApplyCompleteEvent,
    ChangeSummaryEvent,
    DiagnosticEvent,
    ParsedLog,
    PlannedChangeEvent,
    ResourceDriftEvent,
)

# Space held back for the change summary, which may arrive last in the stream.
SUMMARY_RESERVE_CHARS = 1000

ACTION_EMOJI = {
    "create": ":heavy_plus_sign:",
    "update": "🔄",
    "delete": ":heavy_minus_sign:",
    "remove": ":heavy_minus_sign:",
    "replace": "±",
    "read": "📖",
    "move": "🚚",
    "noop": "⚪",
}

SEVERITY_ICON = {
    "error": "❌",
    "warning": "⚠️",
}

ResourceEvent = Union[PlannedChangeEvent, ResourceDriftEvent, ApplyCompleteEvent]


def get_action_emoji(action: str) -> str:
    return ACTION_EMOJI.get(action, "⚪")


def format_change_summary(summary: ChangeSummaryEvent) -> str:
    counts = summary.changes
    operation = counts.operation[:1].upper() + counts.operation[1:]
    parts: List[str] = []
    if counts.add > 0:
        parts.append(f"**{counts.add}** to add :heavy_plus_sign:")
    if counts.change > 0:
        parts.append(f"**{counts.change}** to change 🔄")
    if counts.remove > 0:
        parts.append(f"**{counts.remove}** to remove :heavy_minus_sign:")
    if counts.import_ > 0:
        parts.append(f"**{counts.import_}** to import 📥")
    if not parts:
        return f"**{operation}:** No changes."
    return f"**{operation}:** {', '.join(parts)}"


def format_diagnostic(event: DiagnosticEvent) -> str:
    diag = event.diagnostic
    icon = SEVERITY_ICON.get(diag.severity, "ℹ️")
    text = f"{icon} **{diag.summary}**"
    if diag.detail:
        text += f"\n\n{diag.detail}"
    if diag.range is not None and diag.range.filename and diag.range.line:
        text += f"\n\n📄 `{diag.range.filename}:{diag.range.line}`"
    if diag.code:
        text += "\n\n```hcl\n" + diag.code + "\n```"
    return text


def format_resource_change(event: ResourceEvent) -> str:
    return f"{get_action_emoji(event.action)} **{event.resource.addr}** ({event.action})"


def _section(
    current: str,
    header: str,
    entries: Sequence[str],
    noun: str,
    max_size: Optional[int],
    *,
    separator: str,
    footer_gap: str,
) -> str:
    """Build a ``<details>`` block, dropping trailing entries that would overflow *max_size*.

    Returns an empty string when even the truncated block does not fit.
    """

    def overflow_note(shown: int) -> str:
        note = f"{footer_gap}... (showing {shown} of {len(entries)} {noun})\n"
        return note if footer_gap else note + "\n"

    closing = f"{footer_gap}</details>\n\n"
    # Room for the closing tag and the widest possible overflow note.
    reserve = len(closing) + len(overflow_note(len(entries)))

    section = f"<details>\n<summary>{header}</summary>\n\n"
    shown = 0
    for entry in entries:
        candidate = entry + separator
        if max_size is not None and len(current) + len(section) + len(candidate) + reserve > max_size:
            break
        section += candidate
        shown += 1

    if shown < len(entries):
        section += overflow_note(shown)
    section += closing

    if max_size is not None and len(current) + len(section) > max_size:
        return ""
    return section


def _changes_to_show(parsed: ParsedLog) -> Tuple[str, Sequence[ResourceEvent]]:
    summary = parsed.change_summary
    if summary is not None and not summary.changes.has_changes:
        return "", ()

    operation = summary.changes.operation if summary is not None else None
    if operation == "apply":
        return "✅ Applied Changes", parsed.apply_completes
    if operation == "destroy" and parsed.apply_completes:
        return "✅ Applied Changes", parsed.apply_completes
    return "📋 Planned Changes", parsed.planned_changes


def render(parsed: ParsedLog, max_size: Optional[int] = None) -> str:
    """Render *parsed* into Markdown.

    Sections appear in a fixed order: change summary (never collapsed),
    errors, warnings, planned or applied changes, then drift. Each section is
    omitted when it has nothing to show, and an empty string is returned when
    nothing was recognised at all. When *max_size* is given the output is
    kept under it, less a reserve for the summary line.
    """

    limit = max_size - SUMMARY_RESERVE_CHARS if max_size is not None else None
    result = ""

    if parsed.change_summary is not None:
        result += format_change_summary(parsed.change_summary) + "\n\n"

    for header, diagnostics, noun in (
        ("❌ Errors", parsed.errors, "errors"),
        ("⚠️ Warnings", parsed.warnings, "warnings"),
    ):
        if not diagnostics or (limit is not None and len(result) >= limit):
            continue
        result += _section(
            result,
            header,
            [format_diagnostic(d) for d in diagnostics],
            noun,
            limit,
            separator="\n\n",
            footer_gap="",
        )

    header, changes = _changes_to_show(parsed)
    if changes and (limit is None or len(result) < limit):
        result += _section(
            result,
            header,
            [format_resource_change(c) for c in changes],
            "changes",
            limit,
            separator="\n",
            footer_gap="\n",
        )

    if parsed.resource_drifts and (limit is None or len(result) < limit):
        result += _section(
            result,
            "🔀 Resource Drift",
            [format_resource_change(d) for d in parsed.resource_drifts],
            "drifts",
            limit,
            separator="\n",
            footer_gap="\n",
        )

    return result.strip()
