"""Helpers for working with tracked source keys.

Releases are keyed by ``owner/repo``; npm packages by their (possibly
scoped) package name, e.g. ``@beeper/desktop-api``.
"""

from __future__ import annotations

from typing import Tuple
from urllib.parse import quote

REPO_SEPARATOR = "/"


def build_repo_key(owner: str, repo: str) -> str:
    """Return the snapshot key for a GitHub repository."""

    return f"{owner}{REPO_SEPARATOR}{repo}"


def split_repo_key(repo_key: str) -> Tuple[str, str]:
    """Split ``owner/repo`` into its parts."""

    owner, sep, repo = repo_key.partition(REPO_SEPARATOR)
    if not sep or not owner or not repo:
        raise ValueError(f"Invalid repository key: {repo_key!r}")
    return owner, repo


def release_tag_url(repo_key: str, tag: str) -> str:
    return f"https://github.com/{repo_key}/releases/tag/{tag}"


def npm_package_url(package_name: str) -> str:
    return f"https://www.npmjs.com/package/{package_name}"


def npm_version_url(package_name: str, version: str) -> str:
    return f"{npm_package_url(package_name)}/v/{version}"


def npm_registry_url(package_name: str, registry: str = "https://registry.npmjs.org") -> str:
    # Scoped names keep the @ but must escape the slash.
    return f"{registry.rstrip('/')}/{quote(package_name, safe='@')}"
