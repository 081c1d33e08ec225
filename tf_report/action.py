#!/usr/bin/env python3
"""GitHub Action entry point: analyse ``steps`` and publish the report.

Pull request runs get a comment on the PR (older reports for the same
workspace are deleted first). Every other event updates a per-workspace
status issue, created on first use, which also links to the run logs.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from tf_report.config import (
    ActionContext,
    ReportConfig,
    default_workspace,
    get_context,
    get_input,
    get_job_logs_url,
)
from tf_report.github import GitHubClient, publish_comment, publish_status_issue
from tf_report.report import (
    generate_comment_body,
    generate_status_issue_title,
    get_workspace_marker,
)
from tf_report.steps import analyze_steps

FILE_OUTPUT_KEYS = {"stdout": "stdout_file", "stderr": "stderr_file"}


def info(msg: str) -> None:
    print(msg)


def set_failed(msg: str) -> int:
    print(f"::error::{msg}", file=sys.stderr)
    return 1


def load_steps(raw: str) -> Dict[str, dict]:
    try:
        steps = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse steps input as JSON: {exc}") from exc
    if not isinstance(steps, dict):
        raise ValueError("steps input must be a JSON object keyed by step id")
    return steps


def _read_output_file(path: str) -> Optional[str]:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        info(f"Could not read output file {path}: {exc}")
        return None


def resolve_output_files(steps: Mapping[str, object]) -> Dict[str, object]:
    """Inline ``stdout_file``/``stderr_file`` contents where the text itself is absent."""

    resolved: Dict[str, object] = {}
    for name, step in steps.items():
        if not isinstance(step, dict) or not isinstance(step.get("outputs"), dict):
            resolved[name] = step
            continue
        outputs = dict(step["outputs"])
        for key, file_key in FILE_OUTPUT_KEYS.items():
            path = outputs.get(file_key)
            if outputs.get(key) or not isinstance(path, str) or not path:
                continue
            text = _read_output_file(path)
            if text is not None:
                outputs[key] = text
        resolved[name] = {**step, "outputs": outputs}
    return resolved


def _pull_request_number(context: ActionContext) -> Optional[int]:
    if not context.is_pull_request or not context.event_path:
        return None
    try:
        event = json.loads(Path(context.event_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        info(f"Failed to read GitHub event file: {exc}")
        return None
    pull_request = event.get("pull_request") if isinstance(event, dict) else None
    number = pull_request.get("number") if isinstance(pull_request, dict) else None
    return int(number) if number else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report workflow step results to a PR comment or status issue")
    parser.add_argument("--steps", default=get_input("steps"), help="JSON of the steps context (toJSON(steps))")
    parser.add_argument("--workspace", default=get_input("workspace"), help="Label used to deduplicate reports")
    parser.add_argument("--target-step", default=get_input("target-step"), help="Report only on this step id")
    parser.add_argument("--github-token", default=get_input("github-token"), help="Token used for the REST API")
    parser.add_argument("--dry-run", action="store_true", help="Print the report instead of publishing it")
    return parser


def run(args: argparse.Namespace, context: ActionContext) -> int:
    if not args.steps:
        return set_failed("steps input is required")

    workspace = args.workspace
    if not workspace:
        workspace = default_workspace(context)
        info(f"No workspace provided, using: `{workspace}`")

    steps = resolve_output_files(load_steps(args.steps))
    target = args.target_step or None
    suffix = f" (target: `{target}`)" if target else ""
    info(f"Analyzing {len(steps)} steps for workspace: `{workspace}`{suffix}")

    analysis = analyze_steps(steps, target)
    verdict = "Success" if analysis.success else f"Failed ({len(analysis.failed_steps)} failures)"
    info(f"Analysis complete: {verdict}")

    if args.dry_run:
        print(generate_comment_body(workspace, analysis, ReportConfig()))
        return 0

    if not context.repository:
        info("GITHUB_REPOSITORY not set, skipping comment/issue")
        return 0
    owner_repo = context.owner_repo
    if owner_repo is None:
        info(f"Invalid GITHUB_REPOSITORY format: {context.repository}, skipping comment/issue")
        return 0

    if not args.github_token:
        return set_failed(
            "github-token input is required to post comments/issues. Use: github-token: ${{ github.token }}"
        )

    owner, repo = owner_repo
    client = GitHubClient(args.github_token, owner, repo)
    marker = get_workspace_marker(workspace)

    issue_number = _pull_request_number(context)
    if issue_number:
        info("Running in PR context - posting as comment")
        body = generate_comment_body(workspace, analysis, ReportConfig())
        info(f"Comment body length: {len(body)} characters")
        publish_comment(client, issue_number, marker, body)
        info("Comment posted successfully")
        return 0

    info("Not in PR context - using status issue")
    job_id = client.get_current_job_id(context.run_id, context.job) if context.run_id and context.job else None
    config = ReportConfig(log_url=get_job_logs_url(context, job_id) or None, include_log_link=True)
    body = generate_comment_body(workspace, analysis, config)
    title = generate_status_issue_title(workspace)
    info(f'Status issue title: "{title}"')
    info(f"Status issue body length: {len(body)} characters")
    number = publish_status_issue(client, marker, title, body)
    info(f"Status issue #{number} is up to date")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return run(args, get_context())
    except Exception as exc:  # surfaced as a workflow error annotation
        return set_failed(str(exc) or exc.__class__.__name__)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main(sys.argv[1:]))
