from __future__ import annotations

from core.dedup import compute_fingerprint, merge_new_finds
from core.models import CommunityFind, CommunityFindsSnapshot, FindSource


def _find(find_id: str, message_id: str, room_id: str = "!room:beeper.com") -> CommunityFind:
    return CommunityFind(
        id=find_id,
        type="link",
        title="t",
        description="d",
        source=FindSource(message_id=message_id, author="@a", timestamp="2024-01-01T00:00:00.000Z", room_id=room_id),
        discovered_at="2024-01-01T00:00:00.000Z",
    )


def test_fingerprint_depends_on_room_and_message() -> None:
    assert compute_fingerprint("!room", "$1") == compute_fingerprint("!ROOM ", "$1")
    assert compute_fingerprint("!room", "$1") != compute_fingerprint("!room", "$2")
    assert compute_fingerprint("!room", "$1") != compute_fingerprint("!other", "$1")


def test_merge_skips_messages_already_curated() -> None:
    snapshot = CommunityFindsSnapshot(last_updated="x", finds=[_find("a", "$1")])

    added = merge_new_finds(snapshot, [_find("b", "$1"), _find("c", "$2"), _find("d", "$2")])

    assert [find.id for find in added] == ["c"]
    assert [find.id for find in snapshot.finds] == ["a", "c"]
