"""Notification channel senders.

Every sender satisfies the core ChannelSender contract: ``send(payload)``
returns a NotificationResult and never raises, so one failing channel can
not affect delivery to the others.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import quote

import httpx

from adapters.http import HttpClient
from adapters.rendering import format_payload
from core.config import ChannelsConfig, DiscordConfig, EmailConfig, MatrixRoomConfig, SlackConfig, WebhookConfig
from core.dispatcher import NOT_CONFIGURED
from core.errors import DeliveryError
from core.models import NotificationPayload, NotificationResult

LOGGER = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class _HttpSender(ABC):
    """Shared send/convert logic; subclasses build the request."""

    name = "http"

    def __init__(self, http: HttpClient) -> None:
        self._http = http

    @abstractmethod
    def _deliver(self, payload: NotificationPayload) -> Optional[str]:
        """Send ``payload``; return the provider message id if any, raise DeliveryError on failure."""

    def _post(self, method: str, url: str, body: Any, headers: Optional[dict[str, str]] = None) -> Any:
        try:
            response = self._http.request(method, url, payload=body, headers=headers)
        except httpx.HTTPError as e:
            raise DeliveryError(str(e)) from e
        if not response.ok:
            raise DeliveryError(f"{self.name} returned {response.status}: {response.body[:300]}")
        return response

    def send(self, payload: NotificationPayload) -> NotificationResult:
        try:
            message_id = self._deliver(payload)
        except DeliveryError as e:
            return NotificationResult(success=False, provider=self.name, error=str(e))
        return NotificationResult(success=True, provider=self.name, message_id=message_id)


class MatrixSender(_HttpSender):
    """Posts an HTML-formatted text message into a Matrix room."""

    name = "matrix"

    def __init__(self, http: HttpClient, config: MatrixRoomConfig) -> None:
        super().__init__(http)
        self._config = config

    def _endpoint(self) -> str:
        # A unique transaction id makes the PUT idempotent on the homeserver side.
        txn_id = f"beeper-pulse-{uuid.uuid4().hex}"
        room = quote(self._config.room_id, safe="")
        base = self._config.homeserver_url.rstrip("/")
        return f"{base}/_matrix/client/v3/rooms/{room}/send/m.room.message/{txn_id}"

    def _deliver(self, payload: NotificationPayload) -> Optional[str]:
        response = self._post(
            "PUT",
            self._endpoint(),
            format_payload(payload, "matrix"),
            headers={"Authorization": f"Bearer {self._config.access_token}"},
        )
        try:
            return (response.json() or {}).get("event_id")
        except ValueError:
            return None


class DiscordSender(_HttpSender):
    name = "discord"

    def __init__(self, http: HttpClient, config: DiscordConfig) -> None:
        super().__init__(http)
        self._config = config

    def _deliver(self, payload: NotificationPayload) -> Optional[str]:
        body = format_payload(payload, "discord", username=self._config.username, avatar_url=self._config.avatar_url)
        self._post("POST", self._config.webhook_url, body)
        return None


class SlackSender(_HttpSender):
    name = "slack"

    def __init__(self, http: HttpClient, config: SlackConfig) -> None:
        super().__init__(http)
        self._config = config

    def _deliver(self, payload: NotificationPayload) -> Optional[str]:
        body = format_payload(payload, "slack", username=self._config.username, channel=self._config.channel)
        self._post("POST", self._config.webhook_url, body)
        return None


class WebhookSender(_HttpSender):
    name = "webhook"

    def __init__(self, http: HttpClient, config: WebhookConfig) -> None:
        super().__init__(http)
        self._config = config

    def _deliver(self, payload: NotificationPayload) -> Optional[str]:
        self._post(self._config.method, self._config.url, format_payload(payload, "webhook"), dict(self._config.headers))
        return None


class EmailSender(_HttpSender):
    """Email through Resend or SendGrid, chosen by ``EmailConfig.provider``."""

    def __init__(self, http: HttpClient, config: EmailConfig) -> None:
        super().__init__(http)
        self._config = config
        self.name = f"email:{config.provider}"

    def _deliver(self, payload: NotificationPayload) -> Optional[str]:
        email = format_payload(payload, "email")
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        if self._config.provider == "resend":
            body: dict[str, Any] = {
                "from": self._config.sender,
                "to": list(self._config.recipients),
                "subject": email["subject"],
                "html": email["html"],
                "text": email["text"],
            }
            self._post("POST", RESEND_URL, body, headers)
        elif self._config.provider == "sendgrid":
            body = {
                "personalizations": [{"to": [{"email": address} for address in self._config.recipients]}],
                "from": {"email": self._config.sender},
                "subject": email["subject"],
                "content": [
                    {"type": "text/plain", "value": email["text"]},
                    {"type": "text/html", "value": email["html"]},
                ],
            }
            self._post("POST", SENDGRID_URL, body, headers)
        else:
            raise DeliveryError(f"Unsupported email provider: {self._config.provider}")
        return None


class UnconfiguredSender:
    """Placeholder for a channel without settings; always reports NOT_CONFIGURED."""

    def __init__(self, name: str) -> None:
        self.name = name

    def send(self, payload: NotificationPayload) -> NotificationResult:
        return NotificationResult(success=False, provider=self.name, error=NOT_CONFIGURED)


def build_senders(http: HttpClient, channels: ChannelsConfig) -> list[Any]:
    """Return one sender per known channel, configured or not."""

    senders: list[Any] = [
        MatrixSender(http, channels.matrix) if channels.matrix else UnconfiguredSender("matrix"),
        DiscordSender(http, channels.discord) if channels.discord else UnconfiguredSender("discord"),
        SlackSender(http, channels.slack) if channels.slack else UnconfiguredSender("slack"),
        WebhookSender(http, channels.webhook) if channels.webhook else UnconfiguredSender("webhook"),
        EmailSender(http, channels.email) if channels.email else UnconfiguredSender("email"),
    ]
    configured = [sender.name for sender in senders if not isinstance(sender, UnconfiguredSender)]
    LOGGER.info("Notification channels configured: %s", ", ".join(configured) or "none")
    return senders
