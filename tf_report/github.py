"""Minimal GitHub REST client for posting reports."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import requests

API_URL = "https://api.github.com"
USER_AGENT = "tf-report-action"
TIMEOUT = 60


def debug(msg: str) -> None:
    print(msg)


class GitHubError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class GitHubClient:
    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        session: Optional[requests.Session] = None,
        api_url: str = API_URL,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github+json",
        }

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _request(
        self,
        method: str,
        path_or_url: str,
        payload: Optional[dict] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        url = path_or_url if path_or_url.startswith("http") else f"{self.api_url}{path_or_url}"
        response = self.session.request(
            method,
            url,
            headers=self.headers,
            json=payload,
            params=params,
            timeout=TIMEOUT,
        )
        if not 200 <= response.status_code < 300:
            raise GitHubError(
                f"HTTP {response.status_code}: {response.text}",
                status=response.status_code,
                body=response.text,
            )
        return response

    def _json(self, response: requests.Response, what: str) -> object:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubError(f"Failed to parse {what} response: {exc}") from exc

    def _paginate(self, path: str) -> Iterable[dict]:
        next_url: Optional[str] = path
        params: Optional[Dict[str, str]] = {"per_page": "100"}
        while next_url:
            response = self._request("GET", next_url, params=params)
            items = self._json(response, "list")
            if not isinstance(items, list):
                items = []
            for item in items:
                if isinstance(item, dict):
                    yield item
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            params = None

    def list_comments(self, issue_number: int) -> List[dict]:
        return list(self._paginate(f"{self.repo_path}/issues/{issue_number}/comments"))

    def delete_comment(self, comment_id: int) -> None:
        self._request("DELETE", f"{self.repo_path}/issues/comments/{comment_id}")

    def create_comment(self, issue_number: int, body: str) -> None:
        self._request("POST", f"{self.repo_path}/issues/{issue_number}/comments", payload={"body": body})

    def search_issues(self, query: str) -> List[dict]:
        response = self._request("GET", "/search/issues", params={"q": query})
        result = self._json(response, "search issues")
        if not isinstance(result, dict):
            raise GitHubError("Failed to parse search issues response: expected an object")
        items = result.get("items") or []
        return [item for item in items if isinstance(item, dict)]

    def create_issue(self, title: str, body: str) -> int:
        response = self._request("POST", f"{self.repo_path}/issues", payload={"title": title, "body": body})
        issue = self._json(response, "create issue")
        number = issue.get("number") if isinstance(issue, dict) else None
        if not number:
            raise GitHubError("Failed to parse create issue response: API response missing issue number")
        return int(number)

    def update_issue(self, issue_number: int, title: str, body: str) -> None:
        self._request("PATCH", f"{self.repo_path}/issues/{issue_number}", payload={"title": title, "body": body})

    def get_current_job_id(self, run_id: str, job_name: str) -> Optional[str]:
        """Return the id of the running job named *job_name*, or ``None``.

        Failures are reported and swallowed; callers fall back to the run URL.
        """

        try:
            response = self._request("GET", f"{self.repo_path}/actions/runs/{run_id}/jobs")
            result = self._json(response, "jobs")
        except (GitHubError, requests.RequestException) as exc:
            debug(f"Failed to get job ID: {exc}")
            return None

        jobs = result.get("jobs") if isinstance(result, dict) else None
        for job in jobs or []:
            if not isinstance(job, dict):
                continue
            if job.get("name") == job_name and job.get("status") in ("in_progress", "completed") and job.get("id"):
                return str(job["id"])
        return None


def publish_comment(client: GitHubClient, issue_number: int, marker: str, body: str) -> None:
    """Replace any previous report carrying *marker* with a fresh comment."""

    for comment in client.list_comments(issue_number):
        if marker in (comment.get("body") or ""):
            debug(f"Deleting previous comment {comment.get('id')}")
            client.delete_comment(comment["id"])
    debug("Posting new comment")
    client.create_comment(issue_number, body)


def publish_status_issue(client: GitHubClient, marker: str, title: str, body: str) -> int:
    """Update the status issue carrying *marker*, creating it on first use."""

    query = f'repo:{client.owner}/{client.repo} is:issue in:body "{marker}"'
    for issue in client.search_issues(query):
        if marker in (issue.get("body") or ""):
            number = int(issue["number"])
            debug(f"Updating status issue #{number}")
            client.update_issue(number, title, body)
            return number

    number = client.create_issue(title, body)
    debug(f"Status issue #{number} created")
    return number
