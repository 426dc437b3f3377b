"""Error types shared by the core and adapters."""

from __future__ import annotations


class PulseError(Exception):
    """Base class for every error raised on purpose by beeper-pulse."""


class ConfigurationError(PulseError):
    """A required credential, identifier, or config file is missing."""


class SnapshotError(PulseError):
    """A persisted record exists but cannot be parsed.

    Never downgraded to an empty record: that would drop real history.
    """


class FetchError(PulseError):
    """A third-party API call failed (network error or non-2xx response)."""


class PublishError(PulseError):
    """Creating an issue or pull request failed."""


class DeliveryError(PulseError):
    """A notification channel rejected or failed to receive a payload."""
