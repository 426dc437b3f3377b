"""Fan-out dispatcher.

This module is integration-agnostic. It decides which side effects a delta
requires (feed regeneration, changelog insertion, notifications, issue/PR
creation) and records outcomes so repeated runs do not fire twice for the
same item. It only relies on ports for IO.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from core.classifier import process_messages
from core.config import ChangelogTarget
from core.dedup import merge_new_finds
from core.delta import advance_all, compute_deltas, count_items, has_any_changes
from core.errors import PublishError
from core.models import (
    ChatMessage,
    CommunityFind,
    CommunityFindsSnapshot,
    CuratorState,
    GitHubRelease,
    NotificationPayload,
    NotificationResult,
    NpmVersion,
    Snapshot,
    to_iso,
    utc_now,
)
from core.ports import ChangelogPort, ChannelSender, FeedWriterPort, IssuePublisherPort, RecordStorePort, RendererPort

LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED = "Not configured"
PUBLISH_MODES = ("issues", "pr")


class NotificationDispatcher:
    """Sends one payload to every channel in parallel, one result per channel.

    Channels fail independently and nothing is retried within a run.
    """

    def __init__(self, senders: Iterable[ChannelSender]) -> None:
        self._senders = list(senders)

    async def dispatch(self, payload: NotificationPayload) -> list[NotificationResult]:
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(sender.send, payload) for sender in self._senders),
            return_exceptions=True,
        )
        results: list[NotificationResult] = []
        for sender, outcome in zip(self._senders, outcomes):
            if isinstance(outcome, Exception):
                provider = getattr(sender, "name", type(sender).__name__)
                error = f"{type(outcome).__name__}: {outcome}"
                outcome = NotificationResult(success=False, provider=provider, error=error)
            elif isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)

        for result in results:
            if result.success:
                LOGGER.info("Notification sent via %s: %s", result.provider, payload.title)
            elif result.error == NOT_CONFIGURED:
                LOGGER.debug("Notification skipped for %s (not configured)", result.provider)
            else:
                LOGGER.error("Notification failed via %s: %s", result.provider, result.error)
        return results


@dataclass
class FanOutReport:
    new_releases: dict[str, list[GitHubRelease]] = field(default_factory=dict)
    new_npm_versions: dict[str, list[NpmVersion]] = field(default_factory=dict)
    changelogs_updated: list[str] = field(default_factory=list)
    changelogs_skipped: list[str] = field(default_factory=list)
    notifications: list[NotificationResult] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return has_any_changes(self.new_releases, self.new_npm_versions)

    @property
    def new_item_count(self) -> int:
        return count_items([self.new_releases, self.new_npm_versions])


class UpdatesDispatcher:
    """Orchestrates diffing and fan-out for tracked releases and npm versions."""

    def __init__(
        self,
        store: RecordStorePort[Snapshot],
        feed_writer: FeedWriterPort,
        changelog: ChangelogPort,
        renderer: RendererPort,
        changelog_targets: Iterable[ChangelogTarget] = (),
        notifier: Optional[NotificationDispatcher] = None,
    ) -> None:
        self._store = store
        self._feed_writer = feed_writer
        self._changelog = changelog
        self._renderer = renderer
        self._targets = list(changelog_targets)
        self._notifier = notifier

    async def run(
        self,
        releases: Mapping[str, Sequence[GitHubRelease]],
        npm_versions: Mapping[str, Sequence[NpmVersion]],
    ) -> FanOutReport:
        """Diff the full fetched collections against the snapshot and fan out.

        The snapshot is written once at the end, even when deliveries failed.
        """

        snapshot = self._store.load()
        LOGGER.info("Loaded snapshot from %s", snapshot.last_updated)

        report = FanOutReport(
            new_releases=compute_deltas(releases, snapshot, "releases"),
            new_npm_versions=compute_deltas(npm_versions, snapshot, "npm"),
        )
        for key, items in {**report.new_releases, **report.new_npm_versions}.items():
            if items:
                LOGGER.info("%s: %s new item(s)", key, len(items))
            else:
                LOGGER.info("%s: up to date", key)

        # Marks follow the source even when nothing was new.
        advance_all(snapshot, releases, "releases")
        advance_all(snapshot, npm_versions, "npm")

        # Feeds are a view of current state, so they are rebuilt every run.
        self._feed_writer.write(releases, npm_versions)
        LOGGER.info("Feeds regenerated")

        self._patch_changelogs(report)

        if report.has_changes and self._notifier is not None:
            report.notifications = await self._notify(self._notifier, report)
        elif not report.has_changes:
            LOGGER.info("No new updates; skipping notifications")

        self._store.save(snapshot)
        LOGGER.info("Snapshot saved")
        return report

    def _entries_for(self, target: ChangelogTarget, report: FanOutReport) -> list[str]:
        # Oldest of the new batch first, so each insertion at the marker pushes
        # older entries down and the file reads newest-first afterwards.
        if target.kind == "releases":
            releases = report.new_releases.get(target.source, [])
            return [self._renderer.release_entry(release) for release in reversed(releases)]
        if target.kind == "npm":
            versions = report.new_npm_versions.get(target.source, [])
            return [self._renderer.npm_entry(target.source, version) for version in reversed(versions)]
        raise ValueError(f"Unsupported changelog kind: {target.kind}")

    def _patch_changelogs(self, report: FanOutReport) -> None:
        for target in self._targets:
            entries = self._entries_for(target, report)
            if not entries:
                continue
            if self._changelog.insert_entries(target.path, target.marker, entries):
                LOGGER.info("Changelog %s: inserted %s entr(ies)", target.path, len(entries))
                report.changelogs_updated.append(target.path)
            else:
                LOGGER.warning("Changelog %s: marker %r not found, skipped", target.path, target.marker)
                report.changelogs_skipped.append(target.path)

    async def _notify(self, notifier: NotificationDispatcher, report: FanOutReport) -> list[NotificationResult]:
        payloads: list[NotificationPayload] = []
        for repo_key, releases in report.new_releases.items():
            payloads.extend(self._renderer.release_payload(repo_key, release) for release in releases)
        for package_name, versions in report.new_npm_versions.items():
            payloads.extend(self._renderer.npm_payload(package_name, version) for version in versions)

        results: list[NotificationResult] = []
        for payload in payloads:
            results.extend(await notifier.dispatch(payload))
        return results


@dataclass
class PublishReport:
    mode: str
    published: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.published) and not self.failed


class FindsPublisher:
    """Publishes pending finds as individual issues or as one collective PR.

    ``issues``: one issue per find; a failure only affects that find.
    ``pr``: one PR for the whole batch; a failure leaves every find pending.
    After any success the finds snapshot is saved before returning.
    """

    def __init__(
        self,
        store: RecordStorePort[CommunityFindsSnapshot],
        publisher: IssuePublisherPort,
    ) -> None:
        self._store = store
        self._publisher = publisher

    def publish_pending(self, mode: str = "pr") -> PublishReport:
        snapshot = self._store.load()
        pending = snapshot.pending()
        if not pending:
            LOGGER.info("No pending finds to publish")
            return PublishReport(mode=mode)
        LOGGER.info("Publishing %s pending find(s) (mode: %s)", len(pending), mode)
        return self.publish(snapshot, pending, mode)

    def publish(
        self,
        snapshot: CommunityFindsSnapshot,
        batch: Sequence[CommunityFind],
        mode: str,
    ) -> PublishReport:
        if mode not in PUBLISH_MODES:
            raise ValueError(f"Unsupported publish mode: {mode}")

        batch = [find for find in batch if find.status == "pending"]
        report = PublishReport(mode=mode)
        if not batch:
            return report

        try:
            if mode == "issues":
                self._publish_issues(batch, report)
            else:
                self._publish_pr(batch, report)
        finally:
            if report.published:
                self._store.save(snapshot)
        return report

    def _publish_issues(self, batch: Sequence[CommunityFind], report: PublishReport) -> None:
        for find in batch:
            try:
                url = self._publisher.create_issue(find)
            except PublishError as exc:
                LOGGER.error("Issue for find %s (%s) failed: %s", find.id, find.title, exc)
                report.failed.append(find.id)
                continue
            find.mark_published(url, to_iso(utc_now()))
            report.published.append(find.id)
            report.urls.append(url)
            LOGGER.info("Issue for find %s created: %s", find.id, url)

    def _publish_pr(self, batch: Sequence[CommunityFind], report: PublishReport) -> None:
        try:
            url = self._publisher.create_pr(batch)
        except PublishError as exc:
            LOGGER.error(
                "PR for %s find(s) failed, all left pending (%s): %s",
                len(batch),
                ", ".join(find.id for find in batch),
                exc,
            )
            report.failed.extend(find.id for find in batch)
            return

        published_at = to_iso(utc_now())
        for find in batch:
            find.mark_published(url, published_at)
            report.published.append(find.id)
        report.urls.append(url)
        LOGGER.info("PR with %s find(s) created: %s", len(batch), url)


@dataclass
class CollectReport:
    messages: int
    finds: list[CommunityFind]


class FindsCollector:
    """Classifies newly fetched chat messages and records the finds.

    The finds snapshot is written before the curator state advances, so a
    crash in between re-fetches messages whose finds are then deduplicated.
    """

    def __init__(
        self,
        state_store: RecordStorePort[CuratorState],
        finds_store: RecordStorePort[CommunityFindsSnapshot],
    ) -> None:
        self._state_store = state_store
        self._finds_store = finds_store

    def collect(self, messages: Sequence[ChatMessage]) -> CollectReport:
        if not messages:
            LOGGER.info("No new messages to process")
            state = self._state_store.load()
            state.advance([])
            self._state_store.save(state)
            return CollectReport(messages=0, finds=[])

        finds = process_messages(messages)
        snapshot = self._finds_store.load()
        added = merge_new_finds(snapshot, finds)
        for find in added:
            LOGGER.info("Find [%s] %s%s", find.type, find.title, f" ({find.url})" if find.url else "")
        self._finds_store.save(snapshot)

        state = self._state_store.load()
        state.advance(list(messages))
        self._state_store.save(state)

        LOGGER.info(
            "Processed %s message(s): %s new find(s), %s total",
            len(messages),
            len(added),
            len(snapshot.finds),
        )
        return CollectReport(messages=len(messages), finds=added)
