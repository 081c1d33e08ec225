"""Format a step's captured stdout/stderr for a report."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tf_report.config import ReportConfig
from tf_report.jsonlines import is_json_lines, parse_json_lines
from tf_report.render import render

TRUNCATION_MESSAGE = "\n\n... [output truncated] ...\n\n"


@dataclass(frozen=True)
class FormattedOutput:
    content: str
    is_json_lines: bool = False


def truncate_output(text: str, max_length: int, log_url: Optional[str] = None) -> str:
    """Keep the head and tail of *text*, splicing a marker into the middle.

    Build tools print context first and errors last, so both ends are kept.
    """

    if len(text) <= max_length:
        return text

    if log_url:
        message = f"\n\n... [output truncated - [view full logs]({log_url})] ...\n\n"
    else:
        message = TRUNCATION_MESSAGE
    available = max_length - len(message)
    if available <= 0:
        return text[:max_length]

    half = available // 2
    if half == 0:
        return message
    return text[:half] + message + text[-half:]


def _details(summary: str, text: str) -> str:
    return f"<details>\n<summary>{summary}</summary>\n\n```\n{text}\n```\n</details>\n\n"


def format_output(
    stdout: Optional[str],
    stderr: Optional[str],
    config: Optional[ReportConfig] = None,
) -> FormattedOutput:
    """Render tofu JSON stdout when detected, otherwise collapsible raw output.

    An empty ``content`` means there was nothing to show.
    """

    config = config or ReportConfig()
    has_stdout = bool(stdout and stdout.strip())
    has_stderr = bool(stderr and stderr.strip())

    if has_stdout and is_json_lines(stdout):
        formatted = render(parse_json_lines(stdout), max_size=config.max_output_per_step)
        if formatted.strip():
            return FormattedOutput(formatted, is_json_lines=True)

    if not has_stdout and not has_stderr:
        return FormattedOutput("")

    log_url = config.log_url if config.include_log_link else None
    content = ""
    if has_stdout:
        content += _details("📄 Output", truncate_output(stdout, config.max_output_per_step, log_url))
    if has_stderr:
        content += _details("⚠️ Errors", truncate_output(stderr, config.max_output_per_step, log_url))
    return FormattedOutput(content)
