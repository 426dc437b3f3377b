from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import pytest

import pipeline
import settings
from adapters.http import HttpClient, HttpResponse
from core.errors import ConfigurationError


class FakeHttp(HttpClient):
    def __init__(self, routes: dict[str, Any]) -> None:
        super().__init__()
        self.routes = routes

    def request(self, method: str, url: str, payload: Any = None, headers=None, timeout: Optional[float] = None):
        for prefix, data in self.routes.items():
            if url.startswith(prefix):
                if isinstance(data, HttpResponse):
                    return data
                return HttpResponse(status=200, body=json.dumps(data))
        return HttpResponse(status=404, body="")


@pytest.fixture
def pulse_settings(tmp_path, monkeypatch) -> settings.Settings:
    monkeypatch.setattr(settings, "load_dotenv", lambda: None)
    for name in ("GITHUB_TOKEN", "MATRIX_HOMESERVER_URL", "DISCORD_WEBHOOK_URL", "SLACK_WEBHOOK_URL", "WEBHOOK_URL"):
        monkeypatch.delenv(name, raising=False)
    changelog = tmp_path / "CHANGELOG.md"
    changelog.write_text("# Changelog\n\n<!-- CHANGELOG_INSERT -->\n", encoding="utf-8")
    config = {
        "repos": [{"repo": "a/b", "limit": 5}],
        "npm": [],
        "changelogs": [{"path": str(changelog), "source": "a/b"}],
        "feed": {"output_dir": str(tmp_path / "feeds")},
        "status": {
            "endpoints": [
                {"id": "up", "url": "https://up.test"},
                {"id": "down", "url": "https://down.test"},
            ]
        },
        "data": {
            "snapshot": str(tmp_path / "data" / "snapshot.json"),
            "curator_state": str(tmp_path / "data" / "curator-state.json"),
            "finds": str(tmp_path / "data" / "community-finds.json"),
            "status": str(tmp_path / "data" / "status-snapshot.json"),
        },
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return settings.load_settings(str(path))


def _releases(*tags: str) -> list[dict]:
    return [
        {"tag_name": tag, "published_at": f"2024-0{index + 1}-01T00:00:00Z", "html_url": f"https://gh.test/{tag}"}
        for index, tag in enumerate(reversed(tags))
    ][::-1]


def test_updates_first_run_then_new_release(pulse_settings, tmp_path) -> None:
    url = "https://api.github.com/repos/a/b/releases"

    first = asyncio.run(pipeline.run_official_updates(pulse_settings, FakeHttp({url: _releases("v2", "v1")})))
    assert [item.tag_name for item in first.new_releases["a/b"]] == ["v2"]

    second = asyncio.run(pipeline.run_official_updates(pulse_settings, FakeHttp({url: _releases("v3", "v2", "v1")})))
    assert [item.tag_name for item in second.new_releases["a/b"]] == ["v3"]

    snapshot = json.loads((tmp_path / "data" / "snapshot.json").read_text(encoding="utf-8"))
    assert snapshot["releases"] == {"a/b": "v3"}

    changelog = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
    assert changelog.index("## v3") < changelog.index("## v2")
    assert (tmp_path / "feeds" / "releases.xml").exists()


def test_status_check_persists_snapshot(pulse_settings, tmp_path) -> None:
    http = FakeHttp({"https://up.test": {}, "https://down.test": HttpResponse(status=500, body="")})

    snapshot = asyncio.run(pipeline.run_status_check(pulse_settings, http))

    assert snapshot.overall == "degraded"
    saved = json.loads((tmp_path / "data" / "status-snapshot.json").read_text(encoding="utf-8"))
    assert saved["services"]["up"]["status"] == "operational"
    assert saved["services"]["down"]["statusCode"] == 500
    assert len(saved["history"]["down"]["checks"]) == 1


def test_notify_releases_without_changes_sends_nothing(pulse_settings, tmp_path) -> None:
    data = tmp_path / "data"
    data.mkdir(exist_ok=True)
    record = {"lastUpdated": "2024-01-01T00:00:00.000Z", "releases": {"a/b": "v1"}, "npm": {}}
    (data / "snapshot.json").write_text(json.dumps(record), encoding="utf-8")
    (data / "previous.json").write_text(json.dumps(record), encoding="utf-8")

    results = asyncio.run(pipeline.notify_releases(pulse_settings, FakeHttp({}), str(data / "previous.json")))
    assert results == []


def test_curator_publish_needs_token(pulse_settings) -> None:
    with pytest.raises(ConfigurationError):
        pipeline.curator_publish(pulse_settings, FakeHttp({}))
