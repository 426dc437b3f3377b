"""HTTP health prober for the status checker."""

from __future__ import annotations

import asyncio
import time

import httpx

from adapters.http import HttpClient
from core.models import CheckResult, Endpoint, utc_now

PROBE_HEADERS = {
    "User-Agent": "beeper-pulse/1.0 (status-checker)",
    "Accept": "application/json",
}


class HttpProber:
    """ProberPort implementation: one GET per endpoint, bounded by its timeout.

    - expected status code: operational
    - any other status code: degraded
    - timeout: degraded
    - any other transport or protocol failure: outage
    """

    def __init__(self, http: HttpClient) -> None:
        self._http = http

    async def check(self, endpoint: Endpoint) -> CheckResult:
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return round((time.perf_counter() - started) * 1000)

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self._http.request,
                    "GET",
                    endpoint.url,
                    headers=PROBE_HEADERS,
                    timeout=endpoint.timeout,
                ),
                timeout=endpoint.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return CheckResult(endpoint, "degraded", elapsed_ms(), utc_now(), error="Timeout")
        except httpx.HTTPError as e:
            return CheckResult(endpoint, "outage", elapsed_ms(), utc_now(), error=str(e))

        status = "operational" if response.status == endpoint.expected_status else "degraded"
        return CheckResult(endpoint, status, elapsed_ms(), utc_now(), status_code=response.status)
