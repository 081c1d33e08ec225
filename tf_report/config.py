"""Report limits and GitHub Actions environment context."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

# GitHub rejects comment bodies over 65536 characters; stay well under it.
MAX_COMMENT_SIZE = 60000
MAX_OUTPUT_PER_STEP = 20000
COMMENT_TRUNCATION_BUFFER = 1000

PULL_REQUEST_EVENTS = ("pull_request", "pull_request_target")


@dataclass(frozen=True)
class ReportConfig:
    max_comment_size: int = MAX_COMMENT_SIZE
    max_output_per_step: int = MAX_OUTPUT_PER_STEP
    comment_truncation_buffer: int = COMMENT_TRUNCATION_BUFFER
    log_url: Optional[str] = None
    include_log_link: bool = False


@dataclass(frozen=True)
class ActionContext:
    repository: str
    event_name: str
    event_path: Optional[str]
    run_id: str
    run_attempt: str
    job: str
    workflow: str
    server_url: str

    @property
    def owner_repo(self) -> Optional[Tuple[str, str]]:
        parts = self.repository.split("/")
        if len(parts) != 2 or not all(parts):
            return None
        return parts[0], parts[1]

    @property
    def is_pull_request(self) -> bool:
        return self.event_name in PULL_REQUEST_EVENTS


def get_input(name: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Read an action input the way the runner exposes it (``INPUT_<NAME>``).

    Spaces become underscores; hyphens are kept, matching the runner.
    """

    source = os.environ if env is None else env
    value = source.get(f"INPUT_{name.replace(' ', '_').upper()}") or ""
    return value.strip()


def get_context(env: Optional[Mapping[str, str]] = None) -> ActionContext:
    source = os.environ if env is None else env
    return ActionContext(
        repository=source.get("GITHUB_REPOSITORY") or "",
        event_name=source.get("GITHUB_EVENT_NAME") or "",
        event_path=source.get("GITHUB_EVENT_PATH") or None,
        run_id=source.get("GITHUB_RUN_ID") or "",
        run_attempt=source.get("GITHUB_RUN_ATTEMPT") or "1",
        job=source.get("GITHUB_JOB") or "",
        workflow=source.get("GITHUB_WORKFLOW") or "",
        server_url=(source.get("GITHUB_SERVER_URL") or "https://github.com").rstrip("/"),
    )


def get_job_logs_url(context: ActionContext, job_id: Optional[str] = None) -> str:
    """Link to the job logs, or to the run attempt when the job id is unknown."""

    if not context.repository or not context.run_id:
        return ""
    base = f"{context.server_url}/{context.repository}/actions/runs/{context.run_id}"
    if job_id:
        return f"{base}/job/{job_id}"
    return f"{base}/attempts/{context.run_attempt}"


def default_workspace(context: ActionContext) -> str:
    return f"{context.workflow or 'Workflow'}/{context.job or 'Job'}"
