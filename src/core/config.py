"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.models import Endpoint
from core.source_keys import build_repo_key


@dataclass(frozen=True)
class TrackedRepo:
    """A GitHub repository whose releases are tracked."""

    owner: str
    repo: str
    limit: int = 10

    @property
    def key(self) -> str:
        return build_repo_key(self.owner, self.repo)


@dataclass(frozen=True)
class TrackedPackage:
    """An npm package whose published versions are tracked."""

    name: str
    limit: int = 10


@dataclass(frozen=True)
class ChangelogTarget:
    """A Markdown file that receives one entry per new item of one source."""

    path: str
    source: str
    kind: str = "releases"
    marker: str = "<!-- CHANGELOG_INSERT -->"


@dataclass(frozen=True)
class FeedConfig:
    """Feed identity and output location."""

    output_dir: str
    title: str = "Awesome Beeper Updates"
    description: str = "Latest updates from the Beeper ecosystem"
    link: str = "https://github.com/robertogogoni/awesome-beeper"
    max_items: int = 50
    rss_filename: str = "releases.xml"
    json_filename: str = "releases.json"


@dataclass(frozen=True)
class DigestConfig:
    owner: str = "robertogogoni"
    repo: str = "awesome-beeper"
    lookback_days: int = 7
    fetch_limit: int = 50
    min_reactions: int = 2
    min_comments: int = 2
    output_path: Optional[str] = None


@dataclass(frozen=True)
class CuratorConfig:
    fetch_limit: int = 200
    publish_mode: str = "pr"
    initial_lookback_hours: int = 24


@dataclass(frozen=True)
class StatusConfig:
    endpoints: tuple[Endpoint, ...] = ()
    # Roughly 30 days of checks at one check every five minutes.
    history_limit: int = 8640
    page_url: Optional[str] = None


@dataclass(frozen=True)
class GitHubTarget:
    """Repository that receives curated finds as issues or a PR."""

    token: str
    owner: str
    repo: str


@dataclass(frozen=True)
class MatrixRoomConfig:
    homeserver_url: str
    access_token: str
    room_id: str


@dataclass(frozen=True)
class DiscordConfig:
    webhook_url: str
    username: str = "Beeper Pulse"
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class SlackConfig:
    webhook_url: str
    channel: Optional[str] = None
    username: str = "Beeper Pulse"


@dataclass(frozen=True)
class WebhookConfig:
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EmailConfig:
    api_key: str
    sender: str
    recipients: tuple[str, ...]
    provider: str = "resend"


@dataclass(frozen=True)
class ChannelsConfig:
    """Per-channel settings; a channel left as None is not configured."""

    matrix: Optional[MatrixRoomConfig] = None
    discord: Optional[DiscordConfig] = None
    slack: Optional[SlackConfig] = None
    webhook: Optional[WebhookConfig] = None
    email: Optional[EmailConfig] = None
