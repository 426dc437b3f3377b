"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for fetching, storage, rendering and
delivery so the core can be reused with different backends and tested with
plain fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Protocol, Sequence, TypeVar

from core.models import (
    ChatMessage,
    CheckResult,
    CommunityFind,
    Discussion,
    Endpoint,
    GitHubRelease,
    NotificationPayload,
    NotificationResult,
    NpmVersion,
)

RecordT = TypeVar("RecordT")


class RecordStorePort(Protocol[RecordT]):
    """Load/save one durable JSON record (whole-file overwrite)."""

    def load(self) -> RecordT:
        ...

    def save(self, record: RecordT) -> None:
        ...


class SourceFetcherPort(Protocol):
    """Upstream data, newest-first. Failures come back as empty lists."""

    def fetch_releases(self, owner: str, repo: str, limit: int = 10) -> list[GitHubRelease]:
        ...

    def fetch_npm_versions(self, package_name: str, limit: int = 10) -> list[NpmVersion]:
        ...


class DiscussionFetcherPort(Protocol):
    def fetch_discussions(self, owner: str, repo: str, since: datetime, limit: int = 20) -> list[Discussion]:
        ...


class MessageFetcherPort(Protocol):
    def fetch_messages(self, since: Optional[str], limit: int = 100) -> list[ChatMessage]:
        ...


class ChannelSender(Protocol):
    """One notification channel. Never raises; failures are in the result."""

    name: str

    def send(self, payload: NotificationPayload) -> NotificationResult:
        ...


class IssuePublisherPort(Protocol):
    """Creates issues or a collective PR for finds; raises PublishError on failure."""

    def create_issue(self, find: CommunityFind) -> str:
        ...

    def create_pr(self, finds: Sequence[CommunityFind]) -> str:
        ...


class FeedWriterPort(Protocol):
    def write(
        self,
        releases: Mapping[str, Sequence[GitHubRelease]],
        npm_versions: Mapping[str, Sequence[NpmVersion]],
    ) -> None:
        ...


class ChangelogPort(Protocol):
    def insert_entries(self, path: str, marker: str, entries: Sequence[str]) -> bool:
        ...


class ProberPort(Protocol):
    async def check(self, endpoint: Endpoint) -> CheckResult:
        ...


class RendererPort(Protocol):
    """Pure formatting of delta items into changelog text and notifications."""

    def release_entry(self, release: GitHubRelease) -> str:
        ...

    def npm_entry(self, package_name: str, version: NpmVersion) -> str:
        ...

    def release_payload(self, repo_key: str, release: GitHubRelease) -> NotificationPayload:
        ...

    def npm_payload(self, package_name: str, version: NpmVersion) -> NotificationPayload:
        ...
