"""Status aggregation: overall health and rolling uptime windows."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from core.models import (
    CheckResult,
    Endpoint,
    HistoryCheck,
    StatusHistory,
    StatusSnapshot,
    Uptime,
    parse_iso,
    to_iso,
    utc_now,
)
from core.ports import ProberPort

LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 8640

WINDOW_24H = timedelta(hours=24)
WINDOW_7D = timedelta(days=7)
WINDOW_30D = timedelta(days=30)


def overall_status(results: Iterable[CheckResult]) -> str:
    """Worst result wins: outage > degraded > operational."""

    statuses = {result.status for result in results}
    if "outage" in statuses:
        return "outage"
    if "degraded" in statuses:
        return "degraded"
    return "operational"


def calculate_uptime(
    checks: Sequence[HistoryCheck],
    window: timedelta,
    now: Optional[datetime] = None,
) -> int:
    """Percentage of operational checks inside ``window``, rounded.

    A window without any check reports 100.
    """

    since = (now or utc_now()) - window
    relevant = [check for check in checks if parse_iso(check.timestamp) >= since]
    if not relevant:
        return 100
    operational = sum(1 for check in relevant if check.status == "operational")
    # Round half up, matching how uptime figures are usually displayed.
    return int(operational * 100 / len(relevant) + 0.5)


def update_history(
    history: dict[str, StatusHistory],
    results: Iterable[CheckResult],
    limit: int = DEFAULT_HISTORY_LIMIT,
    now: Optional[datetime] = None,
) -> None:
    """Append each result to its endpoint history, evict the oldest, recompute uptime."""

    for result in results:
        endpoint_id = result.endpoint.id
        entry = history.get(endpoint_id)
        if entry is None:
            entry = StatusHistory(endpoint=endpoint_id)
            history[endpoint_id] = entry

        entry.checks.append(
            HistoryCheck(
                status=result.status,
                response_time=result.response_time,
                timestamp=to_iso(result.timestamp),
            )
        )
        if len(entry.checks) > limit:
            del entry.checks[: len(entry.checks) - limit]

        reference = now or utc_now()
        entry.uptime = Uptime(
            last24h=calculate_uptime(entry.checks, WINDOW_24H, reference),
            last7d=calculate_uptime(entry.checks, WINDOW_7D, reference),
            last30d=calculate_uptime(entry.checks, WINDOW_30D, reference),
        )


def apply_results(
    snapshot: StatusSnapshot,
    results: Sequence[CheckResult],
    limit: int = DEFAULT_HISTORY_LIMIT,
    now: Optional[datetime] = None,
) -> StatusSnapshot:
    """Fold one round of probe results into the status snapshot in place."""

    snapshot.overall = overall_status(results)
    for result in results:
        snapshot.services[result.endpoint.id] = result
    update_history(snapshot.history, results, limit=limit, now=now)
    return snapshot


async def probe_all(prober: ProberPort, endpoints: Iterable[Endpoint]) -> list[CheckResult]:
    """Probe every endpoint concurrently; results keep the endpoint order."""

    results = await asyncio.gather(*(prober.check(endpoint) for endpoint in endpoints))
    for result in results:
        LOGGER.info(
            "Probe %s: %s (%sms)%s",
            result.endpoint.id,
            result.status,
            result.response_time,
            f" {result.error}" if result.error else "",
        )
    return list(results)
