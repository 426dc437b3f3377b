"""HTTP client factory for beeper-pulse.

One client is built per run and handed to every adapter explicitly, so there
is no process-wide API client singleton.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from adapters.http import DEFAULT_USER_AGENT, HttpClient


def build_client(timeout: float = 10.0) -> HttpClient:
    """Create the shared HTTP client from environment variables.

    We read optional overrides via python-dotenv to keep local setups simple.
    PULSE_USER_AGENT overrides the default User-Agent header.
    """

    load_dotenv()

    user_agent = os.getenv("PULSE_USER_AGENT", DEFAULT_USER_AGENT)
    logging.getLogger(__name__).info("Initializing HTTP client (%s)", user_agent)

    return HttpClient(user_agent=user_agent, timeout=timeout)
