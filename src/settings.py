"""Configuration for beeper-pulse.

All user-editable settings (tracked sources, changelogs, feeds, status
endpoints, digest, curator, logging) live in a single JSON file for quick
edits without touching Python. Credentials come from the environment (a
local ``.env`` is honoured via python-dotenv) so they never land in the
config file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from core.config import (
    ChangelogTarget,
    ChannelsConfig,
    CuratorConfig,
    DigestConfig,
    DiscordConfig,
    EmailConfig,
    FeedConfig,
    GitHubTarget,
    MatrixRoomConfig,
    SlackConfig,
    StatusConfig,
    TrackedPackage,
    TrackedRepo,
    WebhookConfig,
)
from core.dispatcher import PUBLISH_MODES
from core.errors import ConfigurationError
from core.models import Endpoint
from core.source_keys import split_repo_key

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Used when neither --config nor PULSE_CONFIG points elsewhere.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

DEFAULT_REPOS = [
    {"repo": "beeper/bridge-manager", "limit": 10},
    {"repo": "beeper/desktop-api-js", "limit": 10},
]
DEFAULT_NPM = [{"name": "@beeper/desktop-api", "limit": 10}]
DEFAULT_ENDPOINTS = [
    {"id": "beeper-website", "name": "Beeper Website", "url": "https://beeper.com"},
    {"id": "beeper-help", "name": "Beeper Help Center", "url": "https://help.beeper.com"},
    {"id": "npm-sdk", "name": "npm SDK Package", "url": "https://registry.npmjs.org/@beeper/desktop-api"},
    {
        "id": "github-desktop-api",
        "name": "GitHub: desktop-api-js",
        "url": "https://api.github.com/repos/beeper/desktop-api-js",
        "type": "api",
    },
    {
        "id": "github-bridge-manager",
        "name": "GitHub: bridge-manager",
        "url": "https://api.github.com/repos/beeper/bridge-manager",
        "type": "api",
    },
]


@dataclass(frozen=True)
class DataPaths:
    snapshot: str
    curator_state: str
    finds: str
    status: str


@dataclass(frozen=True)
class Settings:
    """Everything one run needs, resolved once at startup."""

    config_path: str
    repos: tuple[TrackedRepo, ...]
    packages: tuple[TrackedPackage, ...]
    changelogs: tuple[ChangelogTarget, ...]
    feed: FeedConfig
    status: StatusConfig
    digest: DigestConfig
    curator: CuratorConfig
    data: DataPaths
    channels: ChannelsConfig
    logging: dict[str, Any] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    github_token: Optional[str] = None
    curator_owner: Optional[str] = None
    curator_repo: Optional[str] = None

    def github_target(self) -> GitHubTarget:
        """Target repository for curated finds; needs GITHUB_TOKEN."""

        if not self.github_token:
            raise ConfigurationError("GITHUB_TOKEN is required to publish finds")
        return GitHubTarget(
            token=self.github_token,
            owner=self.curator_owner or "beeper-community",
            repo=self.curator_repo or "awesome-beeper",
        )

    def matrix_room(self) -> MatrixRoomConfig:
        """Matrix room the curator reads; all three Matrix variables are required."""

        if self.channels.matrix is None:
            raise ConfigurationError(
                "MATRIX_HOMESERVER_URL, MATRIX_ACCESS_TOKEN and MATRIX_ROOM_ID are required for the curator"
            )
        return self.channels.matrix


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must hold a JSON object")
    return data


def _resolve(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def _normalize_repos(raw_repos: list[dict]) -> tuple[tuple[TrackedRepo, ...], dict[str, str]]:
    """Normalize repo entries and build a label map keyed by repo key."""

    repos: list[TrackedRepo] = []
    labels: dict[str, str] = {}
    for entry in raw_repos:
        repo_key = entry.get("repo")
        if not repo_key:
            continue
        if not entry.get("enabled", True):
            continue
        try:
            owner, repo = split_repo_key(repo_key)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        tracked = TrackedRepo(owner=owner, repo=repo, limit=int(entry.get("limit", 10)))
        repos.append(tracked)
        if entry.get("label"):
            labels[tracked.key] = entry["label"]
    return tuple(repos), labels


def _normalize_packages(raw_packages: list[dict]) -> tuple[tuple[TrackedPackage, ...], dict[str, str]]:
    packages: list[TrackedPackage] = []
    labels: dict[str, str] = {}
    for entry in raw_packages:
        name = entry.get("name")
        if not name or not entry.get("enabled", True):
            continue
        packages.append(TrackedPackage(name=name, limit=int(entry.get("limit", 10))))
        if entry.get("label"):
            labels[name] = entry["label"]
    return tuple(packages), labels


def _normalize_changelogs(raw_targets: list[dict]) -> tuple[ChangelogTarget, ...]:
    targets: list[ChangelogTarget] = []
    for entry in raw_targets:
        if not entry.get("path") or not entry.get("source"):
            raise ConfigurationError("Every changelog entry needs 'path' and 'source'")
        kind = entry.get("kind", "releases")
        if kind not in ("releases", "npm"):
            raise ConfigurationError(f"Unsupported changelog kind: {kind}")
        targets.append(
            ChangelogTarget(
                path=_resolve(entry["path"]),
                source=entry["source"],
                kind=kind,
                marker=entry.get("marker", "<!-- CHANGELOG_INSERT -->"),
            )
        )
    return tuple(targets)


def _build_feed(raw: dict) -> FeedConfig:
    defaults = FeedConfig(output_dir="feeds")
    return FeedConfig(
        output_dir=_resolve(raw.get("output_dir", defaults.output_dir)),
        title=raw.get("title", defaults.title),
        description=raw.get("description", defaults.description),
        link=raw.get("link", defaults.link),
        max_items=int(raw.get("max_items", defaults.max_items)),
        rss_filename=raw.get("rss_filename", defaults.rss_filename),
        json_filename=raw.get("json_filename", defaults.json_filename),
    )


def _build_endpoint(entry: dict) -> Endpoint:
    if not entry.get("id") or not entry.get("url"):
        raise ConfigurationError("Every status endpoint needs 'id' and 'url'")
    return Endpoint(
        id=entry["id"],
        name=entry.get("name", entry["id"]),
        url=entry["url"],
        type=entry.get("type", "https"),
        expected_status=int(entry.get("expected_status", 200)),
        timeout=float(entry.get("timeout", 10)),
    )


def _build_status(raw: dict) -> StatusConfig:
    endpoints = tuple(_build_endpoint(entry) for entry in raw.get("endpoints", DEFAULT_ENDPOINTS))
    if len({endpoint.id for endpoint in endpoints}) != len(endpoints):
        raise ConfigurationError("Status endpoint ids must be unique")
    return StatusConfig(
        endpoints=endpoints,
        history_limit=int(raw.get("history_limit", StatusConfig.history_limit)),
        page_url=raw.get("page_url"),
    )


def _build_digest(raw: dict) -> DigestConfig:
    defaults = DigestConfig()
    try:
        owner, repo = split_repo_key(raw.get("repo", f"{defaults.owner}/{defaults.repo}"))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    output_path = raw.get("output_path")
    return DigestConfig(
        owner=owner,
        repo=repo,
        lookback_days=int(raw.get("lookback_days", defaults.lookback_days)),
        fetch_limit=int(raw.get("fetch_limit", defaults.fetch_limit)),
        min_reactions=int(raw.get("min_reactions", defaults.min_reactions)),
        min_comments=int(raw.get("min_comments", defaults.min_comments)),
        output_path=_resolve(output_path) if output_path else None,
    )


def _build_curator(raw: dict) -> CuratorConfig:
    defaults = CuratorConfig()
    mode = raw.get("publish_mode", defaults.publish_mode)
    if mode not in PUBLISH_MODES:
        raise ConfigurationError(f"curator.publish_mode must be one of {', '.join(PUBLISH_MODES)}")
    return CuratorConfig(
        fetch_limit=int(raw.get("fetch_limit", defaults.fetch_limit)),
        publish_mode=mode,
        initial_lookback_hours=int(raw.get("initial_lookback_hours", defaults.initial_lookback_hours)),
    )


def _build_data_paths(raw: dict) -> DataPaths:
    return DataPaths(
        snapshot=_resolve(raw.get("snapshot", "data/snapshot.json")),
        curator_state=_resolve(raw.get("curator_state", "data/curator-state.json")),
        finds=_resolve(raw.get("finds", "data/community-finds.json")),
        status=_resolve(raw.get("status", "data/status-snapshot.json")),
    )


def _parse_headers(raw: Optional[str]) -> dict[str, str]:
    if not raw:
        return {}
    try:
        headers = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"WEBHOOK_HEADERS must be a JSON object: {e}") from e
    if not isinstance(headers, dict):
        raise ConfigurationError("WEBHOOK_HEADERS must be a JSON object")
    return {str(key): str(value) for key, value in headers.items()}


def build_channels(env: Optional[dict[str, str]] = None) -> ChannelsConfig:
    """Build channel settings from environment variables.

    A channel is configured only when all of its required variables are set.
    """

    env = dict(os.environ) if env is None else env

    matrix = None
    if env.get("MATRIX_HOMESERVER_URL") and env.get("MATRIX_ACCESS_TOKEN") and env.get("MATRIX_ROOM_ID"):
        matrix = MatrixRoomConfig(
            homeserver_url=env["MATRIX_HOMESERVER_URL"],
            access_token=env["MATRIX_ACCESS_TOKEN"],
            room_id=env["MATRIX_ROOM_ID"],
        )

    discord = DiscordConfig(webhook_url=env["DISCORD_WEBHOOK_URL"]) if env.get("DISCORD_WEBHOOK_URL") else None
    slack = None
    if env.get("SLACK_WEBHOOK_URL"):
        slack = SlackConfig(webhook_url=env["SLACK_WEBHOOK_URL"], channel=env.get("SLACK_CHANNEL") or None)

    webhook = None
    if env.get("WEBHOOK_URL"):
        webhook = WebhookConfig(
            url=env["WEBHOOK_URL"],
            method=env.get("WEBHOOK_METHOD", "POST").upper(),
            headers=_parse_headers(env.get("WEBHOOK_HEADERS")),
        )

    email = None
    if env.get("EMAIL_API_KEY") and env.get("EMAIL_FROM") and env.get("EMAIL_TO"):
        recipients = tuple(address.strip() for address in env["EMAIL_TO"].split(",") if address.strip())
        email = EmailConfig(
            api_key=env["EMAIL_API_KEY"],
            sender=env["EMAIL_FROM"],
            recipients=recipients,
            provider=env.get("EMAIL_PROVIDER", "resend").lower(),
        )

    return ChannelsConfig(matrix=matrix, discord=discord, slack=slack, webhook=webhook, email=email)


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Resolve settings from config.json plus the environment."""

    load_dotenv()
    path = config_path or os.getenv("PULSE_CONFIG") or CONFIG_PATH
    config = _load_json_config(path)

    repos, repo_labels = _normalize_repos(config.get("repos", DEFAULT_REPOS))
    packages, package_labels = _normalize_packages(config.get("npm", DEFAULT_NPM))

    return Settings(
        config_path=path,
        repos=repos,
        packages=packages,
        changelogs=_normalize_changelogs(config.get("changelogs", [])),
        feed=_build_feed(config.get("feed", {})),
        status=_build_status(config.get("status", {})),
        digest=_build_digest(config.get("digest", {})),
        curator=_build_curator(config.get("curator", {})),
        data=_build_data_paths(config.get("data", {})),
        channels=build_channels(),
        logging=config.get("logging", {}),
        labels={**repo_labels, **package_labels},
        github_token=os.getenv("GITHUB_TOKEN") or None,
        curator_owner=os.getenv("CURATOR_GITHUB_OWNER") or None,
        curator_repo=os.getenv("CURATOR_GITHUB_REPO") or None,
    )
