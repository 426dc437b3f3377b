from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from adapters.fetchers import GitHubFetcher, MatrixFetcher, NpmFetcher
from adapters.http import HttpClient, HttpResponse
from core.config import MatrixRoomConfig


class FakeHttp(HttpClient):
    """Serves canned responses by URL prefix and records every call."""

    def __init__(self, routes: dict[str, Any]) -> None:
        super().__init__()
        self.routes = routes
        self.calls: list[tuple[str, str, Any]] = []

    def request(self, method: str, url: str, payload: Any = None, headers=None, timeout: Optional[float] = None):
        self.calls.append((method, url, payload))
        for prefix, response in self.routes.items():
            if url.startswith(prefix):
                if callable(response):
                    response = response(url)
                if isinstance(response, Exception):
                    raise response
                if isinstance(response, HttpResponse):
                    return response
                return HttpResponse(status=200, body=json.dumps(response))
        return HttpResponse(status=404, body="not found")


def test_releases_are_mapped_newest_first() -> None:
    http = FakeHttp(
        {
            "https://api.github.com/repos/beeper/bridge-manager/releases": [
                {"tag_name": "v2", "published_at": "2024-02-01T00:00:00Z", "html_url": "u2", "prerelease": True},
                {"tag_name": "v1", "published_at": None, "html_url": "u1"},
            ]
        }
    )
    releases = GitHubFetcher(http, token="t").fetch_releases("beeper", "bridge-manager", limit=5)

    assert [release.tag_name for release in releases] == ["v2", "v1"]
    assert releases[0].prerelease
    assert releases[1].published_at == ""
    assert http.calls[0][1].endswith("per_page=5")


def test_failed_fetch_yields_empty_list() -> None:
    http = FakeHttp({"https://api.github.com": HttpResponse(status=502, body="bad gateway")})
    assert GitHubFetcher(http).fetch_releases("beeper", "bridge-manager") == []


def test_redirect_loop_yields_empty_list() -> None:
    http = FakeHttp({"https://api.github.com": httpx.TooManyRedirects("Exceeded maximum allowed redirects.")})
    assert GitHubFetcher(http).fetch_releases("beeper", "bridge-manager") == []


def test_release_without_tag_yields_empty_list() -> None:
    http = FakeHttp({"https://api.github.com": [{"tag_name": "v2"}, {"name": "untagged"}]})
    assert GitHubFetcher(http).fetch_releases("beeper", "bridge-manager") == []


def test_null_registry_document_yields_empty_list() -> None:
    http = FakeHttp({"https://registry.npmjs.org": HttpResponse(status=200, body="null")})
    assert NpmFetcher(http).fetch_npm_versions("@beeper/desktop-api") == []


def test_null_graphql_body_yields_empty_list() -> None:
    http = FakeHttp({"https://api.github.com/graphql": HttpResponse(status=200, body="null")})
    since = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert GitHubFetcher(http, token="t").fetch_discussions("beeper", "community", since) == []


def test_npm_versions_skip_meta_keys_and_sort_by_date() -> None:
    http = FakeHttp(
        {
            "https://registry.npmjs.org/@beeper%2Fdesktop-api": {
                "time": {
                    "created": "2023-01-01T00:00:00Z",
                    "modified": "2024-06-01T00:00:00Z",
                    "1.0.0": "2023-01-02T00:00:00Z",
                    "1.2.0": "2024-03-01T00:00:00Z",
                    "1.1.0": "2023-09-01T00:00:00Z",
                },
                "versions": {"1.2.0": {"description": "SDK"}},
            }
        }
    )
    versions = NpmFetcher(http).fetch_npm_versions("@beeper/desktop-api", limit=2)

    assert [version.version for version in versions] == ["1.2.0", "1.1.0"]
    assert versions[0].description == "SDK"
    assert versions[1].description is None


def test_discussions_require_token() -> None:
    http = FakeHttp({})
    since = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert GitHubFetcher(http).fetch_discussions("o", "r", since) == []
    assert http.calls == []


def test_discussions_are_filtered_by_creation_date() -> None:
    nodes = [
        {"id": "D2", "title": "new", "createdAt": "2024-05-05T00:00:00Z", "comments": {"totalCount": 3}},
        {"id": "D1", "title": "old", "createdAt": "2024-04-01T00:00:00Z"},
    ]
    http = FakeHttp({"https://api.github.com/graphql": {"data": {"repository": {"discussions": {"nodes": nodes}}}}})
    since = datetime(2024, 5, 1, tzinfo=timezone.utc)

    discussions = GitHubFetcher(http, token="t").fetch_discussions("o", "r", since)

    assert [item.id for item in discussions] == ["D2"]
    assert discussions[0].comments == 3
    assert http.calls[0][0] == "POST"


def _event(event_id: str, ts: int, body: str = "hi", msgtype: str = "m.text", kind: str = "m.room.message") -> dict:
    return {
        "event_id": event_id,
        "type": kind,
        "sender": "@a:beeper.com",
        "origin_server_ts": ts,
        "content": {"msgtype": msgtype, "body": body},
    }


def test_matrix_pages_backwards_until_since() -> None:
    first_page = [_event(f"$p1-{i}", 10_000 - i) for i in range(100)]
    second_page = [_event("$old-1", 5_000), _event("$older", 1_000)]

    def messages(url: str) -> dict:
        query = parse_qs(urlparse(url).query)
        assert query["dir"] == ["b"]
        if "from" not in query:
            return {"chunk": first_page, "end": "tok1"}
        return {"chunk": second_page, "end": "tok2"}

    http = FakeHttp({"https://matrix.test/_matrix/client/v3/rooms/": messages})
    fetcher = MatrixFetcher(http, MatrixRoomConfig("https://matrix.test", "secret", "!room:beeper.com"))

    since = "1970-01-01T00:00:02.000Z"
    collected = fetcher.fetch_messages(since, limit=500)

    assert len(http.calls) == 2
    assert [message.event_id for message in collected][:2] == ["$old-1", "$p1-99"]
    assert collected[-1].event_id == "$p1-0"
    assert all(message.timestamp > 2_000 for message in collected)


def test_matrix_keeps_only_text_messages_and_newest_limit() -> None:
    chunk = [
        _event("$4", 4_000),
        _event("$3", 3_000, msgtype="m.image"),
        _event("$2", 2_000, kind="m.reaction"),
        _event("$1", 1_000),
        _event("$0", 500),
    ]
    http = FakeHttp({"https://matrix.test": {"chunk": chunk}})
    fetcher = MatrixFetcher(http, MatrixRoomConfig("https://matrix.test", "secret", "!room"))

    collected = fetcher.fetch_messages(None, limit=2)

    assert [message.event_id for message in collected] == ["$1", "$4"]


def test_matrix_failure_on_a_later_page_yields_no_messages() -> None:
    first_page = [_event(f"$p1-{i}", 10_000 - i) for i in range(100)]

    def messages(url: str) -> Any:
        if "from" not in parse_qs(urlparse(url).query):
            return {"chunk": first_page, "end": "tok1"}
        return httpx.ReadError("connection reset")

    http = FakeHttp({"https://matrix.test": messages})
    fetcher = MatrixFetcher(http, MatrixRoomConfig("https://matrix.test", "secret", "!room"))

    assert fetcher.fetch_messages("1970-01-01T00:00:02.000Z", limit=500) == []
    assert len(http.calls) == 2
