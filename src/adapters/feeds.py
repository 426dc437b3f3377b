"""Feed writer: RSS 2.0 and JSON Feed 1.1 from the full fetched collections.

Feeds are a derived view of current upstream state, rebuilt on every run.
"""

from __future__ import annotations

import json
import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Mapping, Sequence

from core.config import FeedConfig
from core.models import GitHubRelease, NpmVersion, parse_iso, to_iso, utc_now
from core.source_keys import npm_version_url

LOGGER = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class FeedItem:
    title: str
    link: str
    date: datetime
    description: str
    author: str


def _parse_date(value: str) -> datetime:
    return parse_iso(value) if value else EPOCH


def release_items(repo_key: str, releases: Sequence[GitHubRelease]) -> list[FeedItem]:
    return [
        FeedItem(
            title=f"{repo_key} {release.tag_name}",
            link=release.html_url,
            date=_parse_date(release.published_at),
            description=release.body or f"New release: {release.tag_name}",
            author=repo_key,
        )
        for release in releases
    ]


def npm_items(package_name: str, versions: Sequence[NpmVersion]) -> list[FeedItem]:
    return [
        FeedItem(
            title=f"{package_name} v{version.version}",
            link=npm_version_url(package_name, version.version),
            date=_parse_date(version.date),
            description=version.description or f"New version: {version.version}",
            author=package_name,
        )
        for version in versions
    ]


def collect_items(
    releases: Mapping[str, Sequence[GitHubRelease]],
    npm_versions: Mapping[str, Sequence[NpmVersion]],
    max_items: int,
) -> list[FeedItem]:
    """All items, newest first, capped to ``max_items``."""

    items: list[FeedItem] = []
    for repo_key, repo_releases in releases.items():
        items.extend(release_items(repo_key, repo_releases))
    for package_name, versions in npm_versions.items():
        items.extend(npm_items(package_name, versions))
    items.sort(key=lambda item: item.date, reverse=True)
    return items[:max_items]


class FeedWriter:
    """FeedWriterPort implementation writing ``releases.xml`` and ``releases.json``."""

    def __init__(self, config: FeedConfig) -> None:
        self._config = config

    @property
    def rss_path(self) -> str:
        return os.path.join(self._config.output_dir, self._config.rss_filename)

    @property
    def json_path(self) -> str:
        return os.path.join(self._config.output_dir, self._config.json_filename)

    def render_rss(self, items: Sequence[FeedItem], updated: datetime) -> str:
        rss = ET.Element("rss", {"version": "2.0"})
        channel = ET.SubElement(rss, "channel")
        ET.SubElement(channel, "title").text = self._config.title
        ET.SubElement(channel, "link").text = self._config.link
        ET.SubElement(channel, "description").text = self._config.description
        ET.SubElement(channel, "language").text = "en"
        ET.SubElement(channel, "lastBuildDate").text = format_datetime(updated)
        ET.SubElement(channel, "generator").text = "beeper-pulse"
        for item in items:
            node = ET.SubElement(channel, "item")
            ET.SubElement(node, "title").text = item.title
            ET.SubElement(node, "link").text = item.link
            ET.SubElement(node, "guid").text = item.link
            ET.SubElement(node, "pubDate").text = format_datetime(item.date)
            ET.SubElement(node, "description").text = item.description
            ET.SubElement(node, "author").text = item.author
        return '<?xml version="1.0" encoding="utf-8"?>\n' + ET.tostring(rss, encoding="unicode") + "\n"

    def render_json(self, items: Sequence[FeedItem]) -> str:
        feed = {
            "version": "https://jsonfeed.org/version/1.1",
            "title": self._config.title,
            "home_page_url": self._config.link,
            "description": self._config.description,
            "language": "en",
            "items": [
                {
                    "id": item.link,
                    "url": item.link,
                    "title": item.title,
                    "content_text": item.description,
                    "date_published": to_iso(item.date),
                    "authors": [{"name": item.author or "Unknown"}],
                }
                for item in items
            ],
        }
        return json.dumps(feed, ensure_ascii=False, indent=2) + "\n"

    def write(
        self,
        releases: Mapping[str, Sequence[GitHubRelease]],
        npm_versions: Mapping[str, Sequence[NpmVersion]],
    ) -> None:
        items = collect_items(releases, npm_versions, self._config.max_items)
        os.makedirs(self._config.output_dir, exist_ok=True)
        with open(self.rss_path, "w", encoding="utf-8") as handle:
            handle.write(self.render_rss(items, utc_now()))
        with open(self.json_path, "w", encoding="utf-8") as handle:
            handle.write(self.render_json(items))
        LOGGER.info("Feeds generated: %s, %s (%s items)", self.rss_path, self.json_path, len(items))
