"""Application entry point for beeper-pulse."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

import pipeline
from client import build_client
from core.dispatcher import PUBLISH_MODES
from core.errors import ConfigurationError, SnapshotError
from core.models import NotificationResult
from settings import PROJECT_ROOT, Settings, load_settings

NAME = "PULSE"
FONT = "tarty-1"

# Secrets masked in every log line unless the logging block names its own.
DEFAULT_REDACT_PATTERNS = [
    "GITHUB_TOKEN",
    "MATRIX_ACCESS_TOKEN",
    "DISCORD_WEBHOOK_URL",
    "SLACK_WEBHOOK_URL",
    "WEBHOOK_URL",
    "EMAIL_API_KEY",
]

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks known secret values (tokens, webhook URLs) in formatted records."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text


def _secret_values(config: dict) -> list[str]:
    redact = config.get("redact", {})
    if not redact.get("enabled", True):
        return []
    names = redact.get("patterns", DEFAULT_REDACT_PATTERNS)
    return [os.environ[name] for name in names if os.getenv(name)]


def _rotating_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/pulse.log")
    if not os.path.isabs(path):
        path = os.path.join(PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging(config: dict) -> None:
    """Console and optional rotating file logging, both through the redacting formatter."""

    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(
        _secret_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_rotating_handler(file_cfg))
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)


def _log_results(results: list[NotificationResult]) -> None:
    sent = sum(1 for result in results if result.success)
    LOGGER.info("Notifications: %s sent, %s not sent", sent, len(results) - sent)


def _print_pending(settings: Settings, console: Console) -> None:
    snapshot = pipeline.curator_pending(settings)
    pending = snapshot.pending()
    if not pending:
        console.print("No pending finds.")
        return

    table = Table(title=f"Pending finds ({len(pending)})")
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Tags")
    table.add_column("URL", overflow="fold")
    for find in pending:
        table.add_row(find.type, find.title, find.category or "-", ", ".join(find.tags) or "-", find.url or "-")
    console.print(table)


def _print_stats(settings: Settings, console: Console) -> None:
    stats = pipeline.curator_stats(settings)

    state_table = Table(title="Curator state")
    state_table.add_column("Field", style="cyan", no_wrap=True)
    state_table.add_column("Value")
    state_table.add_row("Last processed", stats.state.last_processed_timestamp)
    state_table.add_row("Last event", stats.state.last_processed_event_id or "-")
    state_table.add_row("Messages processed", str(stats.state.processed_count))
    state_table.add_row("Last run", stats.state.last_run)
    console.print(state_table)

    finds = stats.finds.stats
    finds_table = Table(title="Community finds")
    finds_table.add_column("Group", style="cyan", no_wrap=True)
    finds_table.add_column("Count", justify="right")
    finds_table.add_row("Total", str(finds.total))
    finds_table.add_row("Pending", str(finds.pending))
    finds_table.add_row("Approved", str(finds.approved))
    finds_table.add_row("Published", str(finds.published))
    for find_type, count in sorted(finds.by_type.items()):
        finds_table.add_row(f"type: {find_type}", str(count))
    for category, count in sorted(finds.by_category.items()):
        finds_table.add_row(f"category: {category}", str(count))
    console.print(finds_table)


def _run_curator(settings: Settings, args: argparse.Namespace, console: Console) -> None:
    if args.action == "process":
        _print_pending(settings, console)
        return
    if args.action == "stats":
        _print_stats(settings, console)
        return

    http = build_client()
    if args.action == "fetch":
        report = asyncio.run(pipeline.curator_fetch(settings, http))
        console.print(f"Processed {report.messages} message(s), {len(report.finds)} new find(s).")
    elif args.action == "publish":
        report = pipeline.curator_publish(settings, http, args.mode)
        console.print(f"Published {len(report.published)} find(s), {len(report.failed)} failed.")
        for url in report.urls:
            console.print(url)
    elif args.action == "run":
        collected, published = asyncio.run(pipeline.curator_run(settings, http))
        console.print(f"Processed {collected.messages} message(s), {len(collected.finds)} new find(s).")
        if published is not None:
            console.print(f"Published {len(published.published)} find(s), {len(published.failed)} failed.")
            for url in published.urls:
                console.print(url)


def _dispatch(settings: Settings, args: argparse.Namespace) -> None:
    console = Console()

    if args.command == "curator":
        _run_curator(settings, args, console)
        return

    http = build_client()
    if args.command == "updates":
        report = asyncio.run(pipeline.run_official_updates(settings, http))
        _log_results(report.notifications)
    elif args.command == "status":
        snapshot = asyncio.run(pipeline.run_status_check(settings, http))
        table = Table(title=f"Status: {snapshot.overall}")
        table.add_column("Service", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Response", justify="right")
        table.add_column("24h", justify="right")
        for service_id, result in snapshot.services.items():
            uptime = snapshot.history[service_id].uptime if service_id in snapshot.history else None
            table.add_row(
                result.endpoint.name,
                result.status,
                f"{result.response_time}ms",
                f"{uptime.last24h}%" if uptime else "-",
            )
        console.print(table)
    elif args.command == "table":
        print(asyncio.run(pipeline.build_status_table(settings, http)), end="")
    elif args.command == "digest":
        print(asyncio.run(pipeline.run_digest(settings, http)))
    elif args.command == "notify":
        if args.target == "status":
            results = asyncio.run(pipeline.notify_status(settings, http))
        else:
            results = asyncio.run(pipeline.notify_releases(settings, http, args.previous))
        _log_results(results)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pulse")
    parser.add_argument("--config", help="Path to config.json (default: PULSE_CONFIG or ./config.json)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("updates", help="Track releases and npm versions, refresh feeds and changelogs")
    subparsers.add_parser("status", help="Probe service endpoints and update the status snapshot")
    subparsers.add_parser("table", help="Print a Markdown table of the latest tracked versions")
    subparsers.add_parser("digest", help="Print the weekly community discussion digest")

    notify = subparsers.add_parser("notify", help="Send status or release notifications on demand")
    notify_targets = notify.add_subparsers(dest="target", required=True)
    notify_targets.add_parser("status", help="Send the persisted status snapshot")
    releases = notify_targets.add_parser("releases", help="Notify keys that changed since a previous snapshot")
    releases.add_argument("--previous", required=True, help="Path to the previous snapshot JSON")

    curator = subparsers.add_parser("curator", help="Collect and publish community finds from chat")
    actions = curator.add_subparsers(dest="action", required=True)
    actions.add_parser("fetch", help="Fetch new messages and record finds")
    actions.add_parser("process", help="List pending finds")
    publish = actions.add_parser("publish", help="Publish pending finds")
    publish.add_argument("mode", nargs="?", choices=PUBLISH_MODES, help="issues or pr (default from config)")
    actions.add_parser("run", help="Fetch, then publish pending finds as one PR")
    actions.add_parser("stats", help="Show curator state and finds statistics")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    _print_banner()
    try:
        settings = load_settings(args.config)
        _configure_logging(settings.logging)
        _dispatch(settings, args)
    except (ConfigurationError, SnapshotError) as e:
        if not logging.getLogger().handlers:
            logging.basicConfig(level=logging.INFO)
        LOGGER.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
