"""Small JSON-over-HTTP helper shared by fetchers, senders and the publisher.

Built on httpx so every adapter speaks to third-party APIs the same way.
Calls are blocking; async callers push them to a worker thread.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from core.errors import FetchError

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "beeper-pulse/1.0"


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpClient:
    """Thin httpx wrapper with default headers and a per-call timeout."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._timeout = timeout
        self._headers = {"User-Agent": user_agent}
        self._headers.update(default_headers or {})

    def request(
        self,
        method: str,
        url: str,
        payload: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """Send a request and return the response, whatever its status code.

        Transport failures (DNS, refused connection, timeout, redirect loops)
        propagate as ``httpx.HTTPError`` so callers can tell them apart from
        non-2xx responses.
        """

        merged = dict(self._headers)
        merged.update(headers or {})
        response = httpx.request(
            method,
            url,
            json=payload,
            headers=merged,
            timeout=timeout or self._timeout,
            follow_redirects=True,
        )
        return HttpResponse(status=response.status_code, body=response.text)

    def request_json(
        self,
        method: str,
        url: str,
        payload: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body; raise FetchError otherwise."""

        try:
            response = self.request(method, url, payload=payload, headers=headers)
        except httpx.HTTPError as e:
            raise FetchError(f"{method} {url} failed: {e}") from e
        if not response.ok:
            raise FetchError(f"{method} {url} returned {response.status}: {response.body[:500]}")
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"{method} {url} returned invalid JSON") from e

    def get_json(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Any:
        return self.request_json("GET", url, headers=headers)
