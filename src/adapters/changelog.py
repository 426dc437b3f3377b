"""Changelog patcher: inserts rendered entries right after an anchor marker."""

from __future__ import annotations

import logging
import os
from typing import Sequence

LOGGER = logging.getLogger(__name__)


def insert_after_marker(text: str, marker: str, entries: Sequence[str]) -> str:
    """Insert each entry, in order, immediately after ``marker``.

    Each insertion lands directly below the marker, so the last entry given
    ends up on top. Callers pass the oldest entry first.
    """

    index = text.find(marker)
    if index < 0:
        raise ValueError(f"Marker not found: {marker!r}")
    head_end = index + len(marker)
    head, tail = text[:head_end], text[head_end:]
    for entry in entries:
        tail = "\n\n" + entry.strip("\n") + "\n\n" + tail.lstrip("\n")
    return head + tail


class MarkdownChangelog:
    """ChangelogPort implementation over files on disk."""

    def insert_entries(self, path: str, marker: str, entries: Sequence[str]) -> bool:
        """Return False (file untouched) when the file or the marker is missing."""

        if not os.path.exists(path):
            LOGGER.warning("Changelog %s does not exist; skipping", path)
            return False
        with open(path, "r", encoding="utf-8") as handle:
            text = handle.read()
        if marker not in text:
            return False
        patched = insert_after_marker(text, marker, entries)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(patched)
        return True
