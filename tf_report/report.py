"""Compose the comment / status issue body for a workflow run."""
from __future__ import annotations

import re
from typing import List, Optional

from tf_report.config import ReportConfig
from tf_report.output import format_output
from tf_report.steps import AnalysisResult

MARKER_PREFIX = "<!-- tf-report-action:"
COMMENT_TRUNCATED = "\n\n... [comment truncated] ...\n"

_COMMENT_CLOSE = re.compile(r"--([!>])")


def escape_workspace(workspace: str) -> str:
    """Escape *workspace* so it cannot close the marker comment or break a quoted search.

    Order matters: backslashes, then quotes, then ``-->``/``--!>``.
    """

    escaped = workspace.replace("\\", "\\\\")
    escaped = escaped.replace('"', '\\"')
    return _COMMENT_CLOSE.sub(lambda m: f"--\\{m.group(1)}", escaped)


def get_workspace_marker(workspace: str) -> str:
    return f'{MARKER_PREFIX}"{escape_workspace(workspace)}" -->'


def generate_title(workspace: str, analysis: AnalysisResult) -> str:
    target = analysis.target_step_result
    if target is not None:
        failed = not target.found or not analysis.success
        icon, text = ("❌", "Failed") if failed else ("✅", "Succeeded")
        return f"{icon} `{workspace}` `{target.name}` {text}"
    icon, text = ("✅", "Succeeded") if analysis.success else ("❌", "Failed")
    return f"{icon} `{workspace}` {text}"


def generate_status_issue_title(workspace: str) -> str:
    return f":bar_chart: `{workspace}` Status"


def _note(text: str) -> str:
    return f"> [!NOTE]\n> {text}\n\n"


def _output_section(stdout: Optional[str], stderr: Optional[str], config: ReportConfig, empty_notice: str) -> str:
    formatted = format_output(stdout, stderr, config)
    if not formatted.content:
        return _note(empty_notice)
    if formatted.is_json_lines:
        return formatted.content + "\n\n"
    return formatted.content


def _status_lines(conclusion: Optional[str], exit_code: Optional[str]) -> str:
    text = f"**Status:** {conclusion}\n"
    if exit_code:
        text += f"**Exit Code:** {exit_code}\n"
    return text + "\n"


def _target_body(analysis: AnalysisResult, config: ReportConfig) -> str:
    target = analysis.target_step_result
    assert target is not None

    if not target.found:
        if analysis.failed_steps:
            lines: List[str] = [f"{len(analysis.failed_steps)} of {analysis.total_steps} step(s) failed:\n\n"]
            lines.extend(f"- ❌ `{step.name}` ({step.conclusion})\n" for step in analysis.failed_steps)
            return "".join(lines)
        return f"### Did Not Run\n\n`{target.name}` was not found in the workflow steps.\n\n"

    if target.conclusion == "success":
        return _output_section(target.stdout, target.stderr, config, "Completed successfully with no output.")

    body = _status_lines(target.conclusion, target.exit_code)
    return body + _output_section(target.stdout, target.stderr, config, "Failed with no output.")


def _all_steps_body(analysis: AnalysisResult, config: ReportConfig) -> str:
    if analysis.success:
        return f"All {analysis.total_steps} step(s) completed successfully.\n"

    body = f"{len(analysis.failed_steps)} of {analysis.total_steps} step(s) failed:\n\n"
    for step in analysis.failed_steps:
        body += f"#### ❌ Step: `{step.name}`\n\n"
        body += _status_lines(step.conclusion, step.exit_code)
        body += _output_section(step.stdout, step.stderr, config, "Failed with no output.")
    return body


def cap_body(body: str, config: ReportConfig) -> str:
    if len(body) <= config.max_comment_size:
        return body
    reserve = max(config.comment_truncation_buffer, len(COMMENT_TRUNCATED))
    available = max(config.max_comment_size - reserve, 0)
    return body[:available] + COMMENT_TRUNCATED


def generate_comment_body(
    workspace: str,
    analysis: AnalysisResult,
    config: Optional[ReportConfig] = None,
) -> str:
    """Build the full Markdown report: marker, title, per-step detail.

    The result never exceeds ``config.max_comment_size`` characters.
    """

    config = config or ReportConfig()
    body = f"{get_workspace_marker(workspace)}\n\n## {generate_title(workspace, analysis)}\n\n"

    if analysis.target_step_result is not None:
        body += _target_body(analysis, config)
    else:
        body += _all_steps_body(analysis, config)

    if config.include_log_link and config.log_url:
        body += f"\n---\n\n**Run Logs:** {config.log_url}\n"

    return cap_body(body, config)
