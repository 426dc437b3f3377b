"""Batch jobs for beeper-pulse.

Each job wires the core engine to its adapters and runs once:

1) official updates: fetch releases and npm versions, diff against the
   snapshot, regenerate feeds, patch changelogs, notify on news
2) status check: probe endpoints, fold results into the status snapshot
3) digest: summarize engaged community discussions
4) notify: re-send status or release changes on demand
5) curator: fetch chat messages, classify finds, publish them

Configuration flows in through ``Settings``; nothing here reads globals.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from adapters.changelog import MarkdownChangelog
from adapters.channels import build_senders
from adapters.feeds import FeedWriter
from adapters.fetchers import GitHubFetcher, MatrixFetcher, NpmFetcher, SourceFetcher
from adapters.github_publisher import GitHubPublisher
from adapters.http import HttpClient
from adapters.json_store import CuratorStateStore, FindsStore, SnapshotStore, StatusStore
from adapters.prober import HttpProber
from adapters.rendering import (
    Renderer,
    generate_digest,
    npm_payload,
    release_payload,
    status_payload,
    status_table,
)
from core.delta import changed_marks
from core.digest import select_notable
from core.dispatcher import (
    CollectReport,
    FanOutReport,
    FindsCollector,
    FindsPublisher,
    NotificationDispatcher,
    PublishReport,
    UpdatesDispatcher,
)
from core.models import (
    CommunityFindsSnapshot,
    CuratorState,
    GitHubRelease,
    NotificationResult,
    NpmVersion,
    StatusSnapshot,
    utc_now,
)
from core.ports import DiscussionFetcherPort, MessageFetcherPort, SourceFetcherPort
from core.source_keys import release_tag_url
from core.status import apply_results, probe_all
from settings import Settings

LOGGER = logging.getLogger(__name__)


def _notifier(settings: Settings, http: HttpClient) -> NotificationDispatcher:
    return NotificationDispatcher(build_senders(http, settings.channels))


async def fetch_all(
    settings: Settings,
    fetcher: SourceFetcherPort,
) -> tuple[dict[str, list[GitHubRelease]], dict[str, list[NpmVersion]]]:
    """Fetch every tracked repo and package concurrently, newest-first each."""

    release_jobs = [
        asyncio.to_thread(fetcher.fetch_releases, repo.owner, repo.repo, repo.limit) for repo in settings.repos
    ]
    npm_jobs = [asyncio.to_thread(fetcher.fetch_npm_versions, pkg.name, pkg.limit) for pkg in settings.packages]
    results = await asyncio.gather(*release_jobs, *npm_jobs)

    releases = {repo.key: results[index] for index, repo in enumerate(settings.repos)}
    offset = len(settings.repos)
    npm_versions = {pkg.name: results[offset + index] for index, pkg in enumerate(settings.packages)}
    return releases, npm_versions


def _source_fetcher(settings: Settings, http: HttpClient) -> SourceFetcher:
    return SourceFetcher(GitHubFetcher(http, token=settings.github_token), NpmFetcher(http))


async def run_official_updates(settings: Settings, http: HttpClient) -> FanOutReport:
    releases, npm_versions = await fetch_all(settings, _source_fetcher(settings, http))

    dispatcher = UpdatesDispatcher(
        store=SnapshotStore(settings.data.snapshot),
        feed_writer=FeedWriter(settings.feed),
        changelog=MarkdownChangelog(),
        renderer=Renderer(),
        changelog_targets=settings.changelogs,
        notifier=_notifier(settings, http),
    )
    report = await dispatcher.run(releases, npm_versions)
    LOGGER.info(
        "Official updates complete: %s new item(s), %s changelog(s) updated",
        report.new_item_count,
        len(report.changelogs_updated),
    )
    return report


async def build_status_table(settings: Settings, http: HttpClient) -> str:
    releases, npm_versions = await fetch_all(settings, _source_fetcher(settings, http))
    return status_table(releases, npm_versions, settings.labels)


async def run_status_check(settings: Settings, http: HttpClient) -> StatusSnapshot:
    store = StatusStore(settings.data.status)
    snapshot = store.load()

    results = await probe_all(HttpProber(http), settings.status.endpoints)
    apply_results(snapshot, results, limit=settings.status.history_limit)
    store.save(snapshot)

    LOGGER.info("Status check complete: overall %s", snapshot.overall)
    return snapshot


async def run_digest(settings: Settings, http: HttpClient) -> str:
    digest = settings.digest
    since = utc_now() - timedelta(days=digest.lookback_days)
    fetcher: DiscussionFetcherPort = GitHubFetcher(http, token=settings.github_token)
    discussions = await asyncio.to_thread(
        fetcher.fetch_discussions, digest.owner, digest.repo, since, digest.fetch_limit
    )
    notable = select_notable(discussions, digest.min_reactions, digest.min_comments)
    LOGGER.info("Digest: %s of %s discussion(s) are notable", len(notable), len(discussions))

    text = generate_digest(notable)
    if digest.output_path:
        directory = os.path.dirname(digest.output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(digest.output_path, "w", encoding="utf-8") as handle:
            handle.write(text)
        LOGGER.info("Digest written to %s", digest.output_path)
    return text


async def notify_status(settings: Settings, http: HttpClient) -> list[NotificationResult]:
    snapshot = StatusStore(settings.data.status).load()
    if not snapshot.services:
        LOGGER.warning("Status snapshot %s has no services yet; run a status check first", settings.data.status)
        return []
    payload = status_payload(snapshot, settings.status.page_url)
    return await _notifier(settings, http).dispatch(payload)


async def notify_releases(
    settings: Settings,
    http: HttpClient,
    previous_path: str,
) -> list[NotificationResult]:
    """Notify every key whose mark moved between ``previous_path`` and the current snapshot."""

    current = SnapshotStore(settings.data.snapshot).load()
    previous = SnapshotStore(previous_path).load()

    payloads = [
        release_payload(repo_key, GitHubRelease(tag_name=tag, published_at="", html_url=release_tag_url(repo_key, tag)))
        for repo_key, tag in changed_marks(previous, current, "releases").items()
    ]
    payloads.extend(
        npm_payload(package_name, NpmVersion(version=version, date=""))
        for package_name, version in changed_marks(previous, current, "npm").items()
    )
    if not payloads:
        LOGGER.info("No release changes between %s and %s", previous_path, settings.data.snapshot)
        return []

    notifier = _notifier(settings, http)
    results: list[NotificationResult] = []
    for payload in payloads:
        results.extend(await notifier.dispatch(payload))
    return results


# --- curator ----------------------------------------------------------------


def _state_store(settings: Settings) -> CuratorStateStore:
    return CuratorStateStore(settings.data.curator_state, settings.curator.initial_lookback_hours)


async def curator_fetch(settings: Settings, http: HttpClient) -> CollectReport:
    state_store = _state_store(settings)
    state = state_store.load()
    LOGGER.info("Fetching messages since %s", state.last_processed_timestamp)

    fetcher: MessageFetcherPort = MatrixFetcher(http, settings.matrix_room())
    messages = await asyncio.to_thread(
        fetcher.fetch_messages, state.last_processed_timestamp, settings.curator.fetch_limit
    )
    LOGGER.info("Fetched %s new message(s)", len(messages))

    collector = FindsCollector(state_store, FindsStore(settings.data.finds))
    return collector.collect(messages)


def curator_pending(settings: Settings) -> CommunityFindsSnapshot:
    return FindsStore(settings.data.finds).load()


def curator_publish(settings: Settings, http: HttpClient, mode: Optional[str] = None) -> PublishReport:
    publisher = FindsPublisher(FindsStore(settings.data.finds), GitHubPublisher(http, settings.github_target()))
    return publisher.publish_pending(mode or settings.curator.publish_mode)


async def curator_run(settings: Settings, http: HttpClient) -> tuple[CollectReport, Optional[PublishReport]]:
    """Fetch, then publish as one PR when anything is pending."""

    collected = await curator_fetch(settings, http)
    if not curator_pending(settings).pending():
        LOGGER.info("Nothing pending after fetch; skipping publish")
        return collected, None
    report = await asyncio.to_thread(curator_publish, settings, http, "pr")
    return collected, report


@dataclass
class CuratorStats:
    state: CuratorState
    finds: CommunityFindsSnapshot


def curator_stats(settings: Settings) -> CuratorStats:
    return CuratorStats(state=_state_store(settings).load(), finds=FindsStore(settings.data.finds).load())
