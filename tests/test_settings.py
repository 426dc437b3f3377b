from __future__ import annotations

import json

import pytest

import settings
from core.errors import ConfigurationError

CHANNEL_VARS = (
    "GITHUB_TOKEN",
    "MATRIX_HOMESERVER_URL",
    "MATRIX_ACCESS_TOKEN",
    "MATRIX_ROOM_ID",
    "DISCORD_WEBHOOK_URL",
    "SLACK_WEBHOOK_URL",
    "WEBHOOK_URL",
    "EMAIL_API_KEY",
    "EMAIL_FROM",
    "EMAIL_TO",
    "PULSE_CONFIG",
    "CURATOR_GITHUB_OWNER",
    "CURATOR_GITHUB_REPO",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    monkeypatch.setattr(settings, "load_dotenv", lambda: None)
    for name in CHANNEL_VARS:
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path, data: dict) -> str:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_missing_config_is_a_configuration_error(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        settings.load_settings(str(tmp_path / "missing.json"))


def test_empty_config_falls_back_to_defaults(tmp_path) -> None:
    loaded = settings.load_settings(_write(tmp_path, {}))

    assert [repo.key for repo in loaded.repos] == ["beeper/bridge-manager", "beeper/desktop-api-js"]
    assert [pkg.name for pkg in loaded.packages] == ["@beeper/desktop-api"]
    assert len(loaded.status.endpoints) == 5
    assert loaded.status.endpoints[0].timeout == 10.0
    assert loaded.status.history_limit == 8640
    assert loaded.curator.publish_mode == "pr"
    assert loaded.data.snapshot.endswith("data/snapshot.json")
    assert loaded.channels.matrix is None


def test_disabled_repos_are_skipped(tmp_path) -> None:
    loaded = settings.load_settings(
        _write(tmp_path, {"repos": [{"repo": "a/b", "enabled": False}, {"repo": "c/d", "label": "D"}]})
    )
    assert [repo.key for repo in loaded.repos] == ["c/d"]
    assert loaded.labels == {"c/d": "D"}


def test_invalid_publish_mode_is_rejected(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        settings.load_settings(_write(tmp_path, {"curator": {"publish_mode": "email"}}))


def test_channels_come_from_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MATRIX_HOMESERVER_URL", "https://matrix.test")
    monkeypatch.setenv("MATRIX_ACCESS_TOKEN", "secret")
    monkeypatch.setenv("MATRIX_ROOM_ID", "!room")
    monkeypatch.setenv("EMAIL_API_KEY", "key")
    monkeypatch.setenv("EMAIL_FROM", "bot@example.test")
    monkeypatch.setenv("EMAIL_TO", "a@example.test, b@example.test")

    loaded = settings.load_settings(_write(tmp_path, {}))

    assert loaded.matrix_room().room_id == "!room"
    assert loaded.channels.email is not None
    assert loaded.channels.email.recipients == ("a@example.test", "b@example.test")
    assert loaded.channels.discord is None


def test_github_target_requires_token(tmp_path, monkeypatch) -> None:
    loaded = settings.load_settings(_write(tmp_path, {}))
    with pytest.raises(ConfigurationError):
        loaded.github_target()

    monkeypatch.setenv("GITHUB_TOKEN", "t")
    target = settings.load_settings(_write(tmp_path, {})).github_target()
    assert (target.owner, target.repo) == ("beeper-community", "awesome-beeper")
