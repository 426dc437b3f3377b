from __future__ import annotations

import pytest

from core.source_keys import (
    build_repo_key,
    npm_registry_url,
    npm_version_url,
    release_tag_url,
    split_repo_key,
)


def test_build_and_split_repo_key_roundtrip() -> None:
    key = build_repo_key("beeper", "bridge-manager")
    assert key == "beeper/bridge-manager"
    assert split_repo_key(key) == ("beeper", "bridge-manager")


@pytest.mark.parametrize("bad", ["beeper", "/repo", "owner/", ""])
def test_split_repo_key_rejects_malformed(bad: str) -> None:
    with pytest.raises(ValueError):
        split_repo_key(bad)


def test_scoped_package_urls() -> None:
    assert npm_registry_url("@beeper/desktop-api") == "https://registry.npmjs.org/@beeper%2Fdesktop-api"
    assert npm_version_url("@beeper/desktop-api", "1.0.0") == "https://www.npmjs.com/package/@beeper/desktop-api/v/1.0.0"


def test_release_tag_url() -> None:
    assert release_tag_url("beeper/bridge-manager", "v0.1.0") == (
        "https://github.com/beeper/bridge-manager/releases/tag/v0.1.0"
    )
