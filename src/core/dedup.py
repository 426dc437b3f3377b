"""Find deduplication (core domain).

A find is identified by the chat message it came from, so re-reading a
message after a partial failure never produces a second find for it.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, List

from core.models import CommunityFind, CommunityFindsSnapshot

LOGGER = logging.getLogger(__name__)


def normalize_room_id(room_id: str) -> str:
    return " ".join(room_id.split()).lower()


def compute_fingerprint(room_id: str, message_id: str) -> str:
    """Return a stable SHA-256 hex digest for one chat message."""

    payload = f"{normalize_room_id(room_id)}\n{message_id.strip()}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def find_fingerprint(find: CommunityFind) -> str:
    return compute_fingerprint(find.source.room_id, find.source.message_id)


def merge_new_finds(snapshot: CommunityFindsSnapshot, finds: Iterable[CommunityFind]) -> List[CommunityFind]:
    """Append finds whose source message is not already in the snapshot.

    Returns the finds that were actually added, in input order.
    """

    known = {find_fingerprint(find) for find in snapshot.finds}
    added: List[CommunityFind] = []
    for find in finds:
        fingerprint = find_fingerprint(find)
        if fingerprint in known:
            LOGGER.info("Dedup skip for message %s (already curated)", find.source.message_id)
            continue
        known.add(fingerprint)
        snapshot.finds.append(find)
        added.append(find)
    return added
