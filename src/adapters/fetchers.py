"""Source fetchers for GitHub, the npm registry and the Matrix chat room.

Every fetch is fail-soft at this boundary: a network error or non-2xx
response is logged and turned into an empty list, which the core treats the
same as "nothing new this run".
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote, urlencode

from adapters.http import HttpClient
from core.config import MatrixRoomConfig
from core.errors import FetchError
from core.models import ChatMessage, Discussion, GitHubRelease, NpmVersion, parse_iso
from core.source_keys import build_repo_key, npm_registry_url

LOGGER = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

DISCUSSIONS_QUERY = """
query($owner: String!, $repo: String!, $limit: Int!) {
  repository(owner: $owner, name: $repo) {
    discussions(first: $limit, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        id
        number
        title
        body
        url
        createdAt
        author { login }
        comments { totalCount }
        reactions { totalCount }
        category { name }
      }
    }
  }
}
"""

# Registry `time` keys that are not versions.
NPM_TIME_META_KEYS = {"created", "modified"}

MATRIX_PAGE_SIZE = 100

# Raised when a 2xx body does not have the expected shape.
PAYLOAD_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


class GitHubFetcher:
    """GitHub REST (releases) and GraphQL (discussions) reader."""

    def __init__(self, http: HttpClient, token: Optional[str] = None, api_url: str = GITHUB_API) -> None:
        self._http = http
        self._token = token
        self._api_url = api_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def fetch_releases(self, owner: str, repo: str, limit: int = 10) -> list[GitHubRelease]:
        url = f"{self._api_url}/repos/{owner}/{repo}/releases?per_page={limit}"
        try:
            data = self._http.get_json(url, headers=self._headers())
            return [_release_from_item(item) for item in data or []]
        except FetchError:
            LOGGER.exception("Failed to fetch releases for %s", build_repo_key(owner, repo))
        except PAYLOAD_ERRORS:
            LOGGER.exception("Unexpected releases payload for %s", build_repo_key(owner, repo))
        return []

    def fetch_discussions(self, owner: str, repo: str, since: datetime, limit: int = 20) -> list[Discussion]:
        """Discussions created at or after ``since``, newest-first."""

        if not self._token:
            # GraphQL rejects anonymous calls outright.
            LOGGER.error("GITHUB_TOKEN is required to fetch discussions for %s", build_repo_key(owner, repo))
            return []
        payload = {"query": DISCUSSIONS_QUERY, "variables": {"owner": owner, "repo": repo, "limit": limit}}
        try:
            data = self._http.request_json("POST", f"{self._api_url}/graphql", payload, headers=self._headers())
            if data.get("errors"):
                LOGGER.error("GraphQL errors for %s: %s", build_repo_key(owner, repo), data["errors"])
                return []
            nodes = ((data.get("data") or {}).get("repository") or {}).get("discussions", {}).get("nodes", [])
            discussions = [_discussion_from_node(node) for node in nodes]
            return [item for item in discussions if parse_iso(item.created_at) >= since]
        except FetchError:
            LOGGER.exception("Failed to fetch discussions for %s", build_repo_key(owner, repo))
        except PAYLOAD_ERRORS:
            LOGGER.exception("Unexpected discussions payload for %s", build_repo_key(owner, repo))
        return []


def _release_from_item(item: dict[str, Any]) -> GitHubRelease:
    return GitHubRelease(
        id=item.get("id"),
        tag_name=item["tag_name"],
        name=item.get("name"),
        body=item.get("body"),
        published_at=item.get("published_at") or "",
        html_url=item.get("html_url", ""),
        prerelease=bool(item.get("prerelease", False)),
        draft=bool(item.get("draft", False)),
    )


def _discussion_from_node(node: dict[str, Any]) -> Discussion:
    return Discussion(
        id=node["id"],
        number=int(node.get("number", 0)),
        title=node.get("title", ""),
        body=node.get("body") or "",
        url=node.get("url", ""),
        created_at=node["createdAt"],
        author=(node.get("author") or {}).get("login", "ghost"),
        comments=int((node.get("comments") or {}).get("totalCount", 0)),
        reactions=int((node.get("reactions") or {}).get("totalCount", 0)),
        category=(node.get("category") or {}).get("name", ""),
    )


class NpmFetcher:
    """npm registry reader."""

    def __init__(self, http: HttpClient, registry: str = "https://registry.npmjs.org") -> None:
        self._http = http
        self._registry = registry

    def fetch_npm_versions(self, package_name: str, limit: int = 10) -> list[NpmVersion]:
        try:
            data = self._http.get_json(npm_registry_url(package_name, self._registry))
            versions = _versions_from_document(data)
            versions.sort(key=lambda item: parse_iso(item.date), reverse=True)
        except FetchError:
            LOGGER.exception("Failed to fetch npm versions for %s", package_name)
            return []
        except PAYLOAD_ERRORS:
            LOGGER.exception("Unexpected registry document for %s", package_name)
            return []
        return versions[:limit]


def _versions_from_document(data: dict[str, Any]) -> list[NpmVersion]:
    published = data.get("time") or {}
    manifests = data.get("versions") or {}
    versions = [
        NpmVersion(
            version=version,
            date=date,
            description=(manifests.get(version) or {}).get("description"),
        )
        for version, date in published.items()
        if version not in NPM_TIME_META_KEYS
    ]
    return versions


class SourceFetcher:
    """Combines the GitHub and npm fetchers behind the SourceFetcherPort contract."""

    def __init__(self, github: GitHubFetcher, npm: NpmFetcher) -> None:
        self._github = github
        self._npm = npm

    def fetch_releases(self, owner: str, repo: str, limit: int = 10) -> list[GitHubRelease]:
        return self._github.fetch_releases(owner, repo, limit)

    def fetch_npm_versions(self, package_name: str, limit: int = 10) -> list[NpmVersion]:
        return self._npm.fetch_npm_versions(package_name, limit)


class MatrixFetcher:
    """Reads text messages from one Matrix room, paging backwards in time."""

    def __init__(self, http: HttpClient, config: MatrixRoomConfig) -> None:
        self._http = http
        self._config = config

    def _messages_url(self, from_token: Optional[str]) -> str:
        room = quote(self._config.room_id, safe="")
        query: dict[str, object] = {"dir": "b", "limit": MATRIX_PAGE_SIZE}
        if from_token:
            query["from"] = from_token
        base = self._config.homeserver_url.rstrip("/")
        return f"{base}/_matrix/client/v3/rooms/{room}/messages?{urlencode(query)}"

    def _to_message(self, event: dict[str, Any]) -> ChatMessage:
        content = event.get("content") or {}
        return ChatMessage(
            event_id=event["event_id"],
            sender=event.get("sender", ""),
            timestamp=int(event.get("origin_server_ts", 0)),
            body=content.get("body") or "",
            room_id=self._config.room_id,
            msgtype=content.get("msgtype", "m.text"),
            formatted_body=content.get("formatted_body"),
        )

    def fetch_messages(self, since: Optional[str], limit: int = 200) -> list[ChatMessage]:
        """Text messages strictly newer than ``since``, oldest-first, at most ``limit``.

        The room API pages by token rather than time, so we walk backwards and
        stop once a page reaches past ``since`` or the room runs out.
        """

        since_ts = int(parse_iso(since).timestamp() * 1000) if since else 0
        headers = {"Authorization": f"Bearer {self._config.access_token}"}
        collected: list[ChatMessage] = []
        from_token: Optional[str] = None

        while len(collected) < limit:
            try:
                data = self._http.get_json(self._messages_url(from_token), headers=headers)
                chunk = data.get("chunk") or []
                for event in chunk:
                    content = event.get("content") or {}
                    if event.get("type") != "m.room.message" or content.get("msgtype") != "m.text":
                        continue
                    if int(event.get("origin_server_ts", 0)) <= since_ts:
                        continue
                    collected.append(self._to_message(event))
                oldest = min((int(event.get("origin_server_ts", 0)) for event in chunk), default=0)
            except FetchError:
                LOGGER.exception("Failed to fetch messages from %s", self._config.room_id)
                return []
            except PAYLOAD_ERRORS:
                LOGGER.exception("Unexpected messages payload from %s", self._config.room_id)
                return []

            if not chunk or oldest <= since_ts or not data.get("end") or len(chunk) < MATRIX_PAGE_SIZE:
                break
            from_token = data["end"]

        # Pages arrive newest-first; keep the newest `limit` and return them oldest-first.
        return list(reversed(collected[:limit]))
