from __future__ import annotations

import json
import xml.etree.ElementTree as ET

from adapters.feeds import FeedWriter, collect_items
from core.config import FeedConfig
from core.models import GitHubRelease, NpmVersion


def _inputs() -> tuple[dict, dict]:
    releases = {
        "beeper/bridge-manager": [
            GitHubRelease(
                tag_name="v0.13.0",
                published_at="2024-03-01T10:00:00Z",
                html_url="https://github.com/beeper/bridge-manager/releases/tag/v0.13.0",
                body="Fixes",
            ),
            GitHubRelease(
                tag_name="v0.12.0",
                published_at="2024-01-01T10:00:00Z",
                html_url="https://github.com/beeper/bridge-manager/releases/tag/v0.12.0",
            ),
        ]
    }
    npm = {"@beeper/desktop-api": [NpmVersion(version="1.2.0", date="2024-02-01T10:00:00Z")]}
    return releases, npm


def test_items_are_merged_newest_first_and_capped() -> None:
    releases, npm = _inputs()
    items = collect_items(releases, npm, max_items=2)

    assert [item.title for item in items] == [
        "beeper/bridge-manager v0.13.0",
        "@beeper/desktop-api v1.2.0",
    ]
    assert items[1].link == "https://www.npmjs.com/package/@beeper/desktop-api/v/1.2.0"


def test_writer_emits_rss_and_json_feed(tmp_path) -> None:
    releases, npm = _inputs()
    writer = FeedWriter(FeedConfig(output_dir=str(tmp_path / "feeds")))
    writer.write(releases, npm)

    rss = ET.parse(writer.rss_path).getroot()
    titles = [node.text for node in rss.iter("title")]
    assert titles[0] == "Awesome Beeper Updates"
    assert len(list(rss.iter("item"))) == 3

    feed = json.loads(open(writer.json_path, encoding="utf-8").read())
    assert feed["version"] == "https://jsonfeed.org/version/1.1"
    assert feed["items"][0]["date_published"] == "2024-03-01T10:00:00.000Z"
    assert feed["items"][0]["content_text"] == "Fixes"
    assert feed["items"][-1]["content_text"] == "New release: v0.12.0"


def test_empty_collections_still_produce_feeds(tmp_path) -> None:
    writer = FeedWriter(FeedConfig(output_dir=str(tmp_path)))
    writer.write({}, {})
    assert json.loads(open(writer.json_path, encoding="utf-8").read())["items"] == []
