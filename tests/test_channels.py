from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from adapters.channels import (
    DiscordSender,
    EmailSender,
    MatrixSender,
    UnconfiguredSender,
    WebhookSender,
    build_senders,
)
from adapters.http import HttpClient, HttpResponse
from core.config import ChannelsConfig, DiscordConfig, EmailConfig, MatrixRoomConfig, WebhookConfig
from core.dispatcher import NOT_CONFIGURED
from core.models import NotificationPayload

PAYLOAD = NotificationPayload(title="New Release: a/b", message="v2", type="release", url="https://example.test")


class FakeHttp(HttpClient):
    def __init__(self, response: Optional[HttpResponse] = None, error: Optional[Exception] = None) -> None:
        super().__init__()
        self.response = response or HttpResponse(status=200, body="{}")
        self.error = error
        self.calls: list[tuple[str, str, Any, dict]] = []

    def request(self, method: str, url: str, payload: Any = None, headers=None, timeout: Optional[float] = None):
        self.calls.append((method, url, payload, dict(headers or {})))
        if self.error:
            raise self.error
        return self.response


def test_matrix_uses_put_with_unique_transaction_ids() -> None:
    http = FakeHttp(HttpResponse(status=200, body=json.dumps({"event_id": "$sent"})))
    sender = MatrixSender(http, MatrixRoomConfig("https://matrix.test/", "secret", "!room:beeper.com"))

    first = sender.send(PAYLOAD)
    sender.send(PAYLOAD)

    assert first.success and first.message_id == "$sent"
    (method, url, body, headers), (_, second_url, _, _) = http.calls
    assert method == "PUT"
    assert url.startswith("https://matrix.test/_matrix/client/v3/rooms/%21room%3Abeeper.com/send/m.room.message/")
    assert url != second_url
    assert headers["Authorization"] == "Bearer secret"
    assert body["msgtype"] == "m.text"


def test_http_error_becomes_failed_result() -> None:
    sender = DiscordSender(FakeHttp(HttpResponse(status=429, body="slow down")), DiscordConfig("https://discord.test/hook"))
    result = sender.send(PAYLOAD)
    assert not result.success
    assert result.provider == "discord"
    assert "429" in (result.error or "")


def test_transport_error_becomes_failed_result() -> None:
    sender = WebhookSender(FakeHttp(error=httpx.ConnectError("refused")), WebhookConfig("https://hook.test"))
    result = sender.send(PAYLOAD)
    assert not result.success
    assert "refused" in (result.error or "")


def test_redirect_loop_becomes_failed_result() -> None:
    http = FakeHttp(error=httpx.TooManyRedirects("Exceeded maximum allowed redirects."))
    result = WebhookSender(http, WebhookConfig("https://hook.test")).send(PAYLOAD)
    assert not result.success
    assert result.provider == "webhook"
    assert "redirects" in (result.error or "")


def test_webhook_honours_method_and_headers() -> None:
    http = FakeHttp()
    WebhookSender(http, WebhookConfig("https://hook.test", method="PUT", headers={"X-Key": "k"})).send(PAYLOAD)
    method, _, body, headers = http.calls[0]
    assert method == "PUT"
    assert headers == {"X-Key": "k"}
    assert body["event"] == "beeper-pulse:release"


def test_email_providers() -> None:
    http = FakeHttp()
    resend = EmailSender(http, EmailConfig("key", "bot@example.test", ("a@example.test",), provider="resend"))
    sendgrid = EmailSender(http, EmailConfig("key", "bot@example.test", ("a@example.test",), provider="sendgrid"))

    assert resend.send(PAYLOAD).provider == "email:resend"
    assert sendgrid.send(PAYLOAD).success
    assert http.calls[0][1] == "https://api.resend.com/emails"
    assert http.calls[0][2]["to"] == ["a@example.test"]
    assert http.calls[1][2]["personalizations"] == [{"to": [{"email": "a@example.test"}]}]

    unknown = EmailSender(http, EmailConfig("key", "bot@example.test", ("a@example.test",), provider="smtp"))
    assert not unknown.send(PAYLOAD).success


def test_build_senders_fills_gaps_with_unconfigured() -> None:
    senders = build_senders(FakeHttp(), ChannelsConfig(discord=DiscordConfig("https://discord.test/hook")))

    assert [sender.name for sender in senders] == ["matrix", "discord", "slack", "webhook", "email"]
    assert isinstance(senders[0], UnconfiguredSender)
    result = senders[0].send(PAYLOAD)
    assert not result.success and result.error == NOT_CONFIGURED
