"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any API-specific payloads. Every persisted record knows how to
read and write its own JSON shape (camelCase keys, ISO-8601 UTC timestamps).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Protocol

FindType = Literal["link", "tip", "workaround", "discussion", "resource"]
FindStatus = Literal["pending", "approved", "rejected", "published"]
Sentiment = Literal["positive", "neutral", "negative", "question"]
ServiceStatus = Literal["operational", "degraded", "outage", "unknown"]
PayloadType = Literal["release", "digest", "status", "alert"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the trailing Z used by most APIs."""

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Versioned(Protocol):
    """Anything the delta engine can diff: it only needs a stable identity."""

    @property
    def identity(self) -> str:
        ...


# --- upstream items ---------------------------------------------------------


@dataclass(frozen=True)
class GitHubRelease:
    """One release as returned by the GitHub REST API (newest-first)."""

    tag_name: str
    published_at: str
    html_url: str
    body: Optional[str] = None
    name: Optional[str] = None
    prerelease: bool = False
    draft: bool = False
    id: Optional[int] = None

    @property
    def identity(self) -> str:
        return self.tag_name


@dataclass(frozen=True)
class NpmVersion:
    """One published npm version (newest-first)."""

    version: str
    date: str
    description: Optional[str] = None

    @property
    def identity(self) -> str:
        return self.version


@dataclass(frozen=True)
class Discussion:
    """A GitHub Discussion with the engagement counters used by the digest."""

    id: str
    number: int
    title: str
    body: str
    url: str
    created_at: str
    author: str
    comments: int
    reactions: int
    category: str

    @property
    def engagement(self) -> int:
        return self.reactions + self.comments


@dataclass(frozen=True)
class ChatMessage:
    """A text message from the community chat room."""

    event_id: str
    sender: str
    timestamp: int
    body: str
    room_id: str
    msgtype: str = "m.text"
    formatted_body: Optional[str] = None

    @property
    def sent_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)


# --- release tracking snapshot ----------------------------------------------


@dataclass
class Snapshot:
    """Per-source high-water marks for releases and npm versions.

    Each key maps to exactly one identifier; older history is not kept here.
    """

    last_updated: str
    releases: dict[str, str] = field(default_factory=dict)
    npm: dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls(last_updated=to_iso(utc_now()))

    def marks(self, kind: str) -> dict[str, str]:
        if kind == "releases":
            return self.releases
        if kind == "npm":
            return self.npm
        raise ValueError(f"Unsupported snapshot source kind: {kind}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdated": self.last_updated,
            "releases": dict(self.releases),
            "npm": dict(self.npm),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        return cls(
            last_updated=data.get("lastUpdated") or to_iso(utc_now()),
            releases={str(k): str(v) for k, v in (data.get("releases") or {}).items()},
            npm={str(k): str(v) for k, v in (data.get("npm") or {}).items()},
        )


# --- curator ----------------------------------------------------------------


@dataclass
class CuratorState:
    """Progress marker for the chat curator.

    last_processed_timestamp only ever moves forward.
    """

    last_processed_timestamp: str
    last_processed_event_id: Optional[str]
    processed_count: int
    last_run: str

    def advance(self, messages: list[ChatMessage]) -> None:
        """Move the marker to the newest message seen, never backwards."""

        if messages:
            newest = max(messages, key=lambda message: message.timestamp)
            newest_at = newest.sent_at
            if newest_at >= parse_iso(self.last_processed_timestamp):
                self.last_processed_timestamp = to_iso(newest_at)
                self.last_processed_event_id = newest.event_id
            self.processed_count += len(messages)
        self.last_run = to_iso(utc_now())

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastProcessedTimestamp": self.last_processed_timestamp,
            "lastProcessedEventId": self.last_processed_event_id,
            "processedCount": self.processed_count,
            "lastRun": self.last_run,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CuratorState":
        return cls(
            last_processed_timestamp=data["lastProcessedTimestamp"],
            last_processed_event_id=data.get("lastProcessedEventId"),
            processed_count=int(data.get("processedCount", 0)),
            last_run=data.get("lastRun") or to_iso(utc_now()),
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Signals pulled out of a single chat message by the classifier."""

    urls: tuple[str, ...]
    is_tip: bool
    is_workaround: bool
    keywords: tuple[str, ...]
    sentiment: Sentiment


@dataclass(frozen=True)
class FindSource:
    """Where a find was discovered."""

    message_id: str
    author: str
    timestamp: str
    room_id: str
    author_display_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "messageId": self.message_id,
            "author": self.author,
            "timestamp": self.timestamp,
            "roomId": self.room_id,
        }
        if self.author_display_name:
            data["authorDisplayName"] = self.author_display_name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FindSource":
        return cls(
            message_id=data["messageId"],
            author=data["author"],
            timestamp=data["timestamp"],
            room_id=data["roomId"],
            author_display_name=data.get("authorDisplayName"),
        )


@dataclass
class CommunityFind:
    """A curated item extracted from the chat, waiting to be published."""

    id: str
    type: FindType
    title: str
    description: str
    source: FindSource
    discovered_at: str
    url: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    status: FindStatus = "pending"
    published_at: Optional[str] = None
    github_url: Optional[str] = None

    def mark_published(self, github_url: str, published_at: str) -> None:
        if self.status == "published":
            return
        self.status = "published"
        self.published_at = published_at
        self.github_url = github_url

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "source": self.source.to_dict(),
            "tags": list(self.tags),
            "status": self.status,
            "discoveredAt": self.discovered_at,
        }
        optional = {
            "url": self.url,
            "category": self.category,
            "publishedAt": self.published_at,
            "githubUrl": self.github_url,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommunityFind":
        return cls(
            id=data["id"],
            type=data["type"],
            title=data["title"],
            description=data.get("description", ""),
            source=FindSource.from_dict(data["source"]),
            discovered_at=data["discoveredAt"],
            url=data.get("url"),
            category=data.get("category"),
            tags=list(data.get("tags", [])),
            status=data.get("status", "pending"),
            published_at=data.get("publishedAt"),
            github_url=data.get("githubUrl"),
        )


@dataclass(frozen=True)
class FindsStats:
    total: int
    pending: int
    approved: int
    published: int
    by_type: dict[str, int]
    by_category: dict[str, int]

    @classmethod
    def from_finds(cls, finds: list[CommunityFind]) -> "FindsStats":
        by_type: dict[str, int] = {}
        by_category: dict[str, int] = {}
        for find in finds:
            by_type[find.type] = by_type.get(find.type, 0) + 1
            if find.category:
                by_category[find.category] = by_category.get(find.category, 0) + 1
        return cls(
            total=len(finds),
            pending=sum(1 for find in finds if find.status == "pending"),
            approved=sum(1 for find in finds if find.status == "approved"),
            published=sum(1 for find in finds if find.status == "published"),
            by_type=by_type,
            by_category=by_category,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "approved": self.approved,
            "published": self.published,
            "byType": dict(self.by_type),
            "byCategory": dict(self.by_category),
        }


@dataclass
class CommunityFindsSnapshot:
    """All finds discovered so far. Stats are always derived, never stored."""

    last_updated: str
    finds: list[CommunityFind] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "CommunityFindsSnapshot":
        return cls(last_updated=to_iso(utc_now()))

    @property
    def stats(self) -> FindsStats:
        return FindsStats.from_finds(self.finds)

    def pending(self) -> list[CommunityFind]:
        return [find for find in self.finds if find.status == "pending"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdated": self.last_updated,
            "finds": [find.to_dict() for find in self.finds],
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommunityFindsSnapshot":
        # Persisted stats are ignored and recomputed from finds.
        return cls(
            last_updated=data.get("lastUpdated") or to_iso(utc_now()),
            finds=[CommunityFind.from_dict(item) for item in data.get("finds", [])],
        )


# --- notifications ----------------------------------------------------------


@dataclass(frozen=True)
class NotificationPayload:
    """Uniform message handed to every channel sender."""

    title: str
    message: str
    type: PayloadType
    url: Optional[str] = None
    status: Optional[ServiceStatus] = None
    fields: tuple[tuple[str, str], ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    provider: str
    error: Optional[str] = None
    message_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)


# --- status -----------------------------------------------------------------


@dataclass(frozen=True)
class Endpoint:
    """A fixed URL probed by the status checker."""

    id: str
    name: str
    url: str
    type: str = "https"
    expected_status: int = 200
    timeout: float = 10.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type,
            "expectedStatus": self.expected_status,
            # Persisted in milliseconds like the rest of the status record.
            "timeout": int(self.timeout * 1000),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Endpoint":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            url=data["url"],
            type=data.get("type", "https"),
            expected_status=int(data.get("expectedStatus", 200)),
            timeout=float(data.get("timeout", 10000)) / 1000,
        )


@dataclass(frozen=True)
class CheckResult:
    endpoint: Endpoint
    status: ServiceStatus
    response_time: int
    timestamp: datetime
    status_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "endpoint": self.endpoint.to_dict(),
            "status": self.status,
            "responseTime": self.response_time,
            "timestamp": to_iso(self.timestamp),
        }
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CheckResult":
        return cls(
            endpoint=Endpoint.from_dict(data["endpoint"]),
            status=data["status"],
            response_time=int(data.get("responseTime", 0)),
            timestamp=parse_iso(data["timestamp"]),
            status_code=data.get("statusCode"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class HistoryCheck:
    status: ServiceStatus
    response_time: int
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "responseTime": self.response_time, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryCheck":
        return cls(
            status=data["status"],
            response_time=int(data.get("responseTime", 0)),
            timestamp=data["timestamp"],
        )


@dataclass(frozen=True)
class Uptime:
    last24h: int = 100
    last7d: int = 100
    last30d: int = 100

    def to_dict(self) -> dict[str, int]:
        return {"last24h": self.last24h, "last7d": self.last7d, "last30d": self.last30d}


@dataclass
class StatusHistory:
    """Bounded, append-only check history for one endpoint."""

    endpoint: str
    checks: list[HistoryCheck] = field(default_factory=list)
    uptime: Uptime = field(default_factory=Uptime)

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "checks": [check.to_dict() for check in self.checks],
            "uptime": self.uptime.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusHistory":
        uptime = data.get("uptime") or {}
        return cls(
            endpoint=data["endpoint"],
            checks=[HistoryCheck.from_dict(item) for item in data.get("checks", [])],
            uptime=Uptime(
                last24h=int(uptime.get("last24h", 100)),
                last7d=int(uptime.get("last7d", 100)),
                last30d=int(uptime.get("last30d", 100)),
            ),
        )


@dataclass
class StatusSnapshot:
    last_updated: str
    overall: ServiceStatus = "unknown"
    services: dict[str, CheckResult] = field(default_factory=dict)
    history: dict[str, StatusHistory] = field(default_factory=dict)
    incidents: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "StatusSnapshot":
        return cls(last_updated=to_iso(utc_now()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdated": self.last_updated,
            "overall": self.overall,
            "services": {key: result.to_dict() for key, result in self.services.items()},
            "history": {key: history.to_dict() for key, history in self.history.items()},
            "incidents": list(self.incidents),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusSnapshot":
        return cls(
            last_updated=data.get("lastUpdated") or to_iso(utc_now()),
            overall=data.get("overall", "unknown"),
            services={
                key: CheckResult.from_dict(value) for key, value in (data.get("services") or {}).items()
            },
            history={
                key: StatusHistory.from_dict(value) for key, value in (data.get("history") or {}).items()
            },
            incidents=list(data.get("incidents") or []),
        )
