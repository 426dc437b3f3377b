"""GitHub publishing adapter for curated finds.

Implements the core IssuePublisherPort: one issue per find, or one pull
request that adds every find in the batch to ``community-finds.md``.
Every failure, including a response without the expected fields, surfaces
as PublishError.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Optional, Sequence
from urllib.parse import quote

import httpx

from adapters.http import HttpClient
from adapters.rendering import finds_markdown, issue_body, issue_labels, issue_title, pr_body, pr_title
from core.config import GitHubTarget
from core.errors import FetchError, PublishError
from core.models import CommunityFind

LOGGER = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
FINDS_FILE = "community-finds.md"
BRANCH_PREFIX = "curator/community-finds-"


def _field(data: Any, *keys: str, step: str) -> Any:
    value = data
    for key in keys:
        if not isinstance(value, dict) or value.get(key) is None:
            raise PublishError(f"{step} response has no {'.'.join(keys)}")
        value = value[key]
    return value


class GitHubPublisher:
    """Creates issues and PRs on the configured target repository."""

    def __init__(self, http: HttpClient, target: GitHubTarget, api_url: str = GITHUB_API) -> None:
        self._http = http
        self._target = target
        self._repo_url = f"{api_url.rstrip('/')}/repos/{target.owner}/{target.repo}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._target.token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def _call(self, method: str, path: str, payload: Any = None, step: str = "") -> Any:
        try:
            return self._http.request_json(method, f"{self._repo_url}{path}", payload, headers=self._headers())
        except FetchError as e:
            raise PublishError(f"{step or path} failed: {e}") from e

    def create_issue(self, find: CommunityFind) -> str:
        data = self._call(
            "POST",
            "/issues",
            {"title": issue_title(find), "body": issue_body(find), "labels": issue_labels(find)},
            step="Create issue",
        )
        return _field(data, "html_url", step="Create issue")

    def _existing_file_sha(self, branch: str) -> Optional[str]:
        path = f"/contents/{FINDS_FILE}?ref={quote(branch, safe='')}"
        try:
            response = self._http.request("GET", f"{self._repo_url}{path}", headers=self._headers())
        except httpx.HTTPError as e:
            raise PublishError(f"Look up {FINDS_FILE} failed: {e}") from e
        if response.status == 404:
            return None
        if not response.ok:
            raise PublishError(f"Look up {FINDS_FILE} returned {response.status}")
        try:
            data = response.json()
        except ValueError as e:
            raise PublishError(f"Look up {FINDS_FILE} returned invalid JSON") from e
        return data.get("sha") if isinstance(data, dict) else None

    def create_pr(self, finds: Sequence[CommunityFind]) -> str:
        """Branch from the default branch, write the finds file, open the PR."""

        repo = self._call("GET", "", step="Get repository info")
        base_branch = _field(repo, "default_branch", step="Get repository info")
        ref = self._call("GET", f"/git/refs/heads/{base_branch}", step="Get branch ref")
        base_sha = _field(ref, "object", "sha", step="Get branch ref")

        branch = f"{BRANCH_PREFIX}{int(time.time() * 1000)}"
        self._call("POST", "/git/refs", {"ref": f"refs/heads/{branch}", "sha": base_sha}, step="Create branch")

        content = base64.b64encode(finds_markdown(finds).encode("utf-8")).decode("ascii")
        update: dict[str, Any] = {
            "message": f"chore: update community finds ({len(finds)} new)",
            "content": content,
            "branch": branch,
        }
        file_sha = self._existing_file_sha(branch)
        if file_sha:
            update["sha"] = file_sha
        self._call("PUT", f"/contents/{FINDS_FILE}", update, step="Update finds file")

        pr = self._call(
            "POST",
            "/pulls",
            {"title": pr_title(finds), "body": pr_body(finds), "head": branch, "base": base_branch},
            step="Create PR",
        )
        url = _field(pr, "html_url", step="Create PR")
        LOGGER.info("Opened PR #%s on %s/%s", pr.get("number"), self._target.owner, self._target.repo)
        return url
