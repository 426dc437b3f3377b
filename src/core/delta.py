"""Delta engine: what is new since the last observed high-water mark.

Every tracked source is fetched newest-first. The snapshot remembers a single
identity per source (the newest item seen on the previous run), and the delta
is everything above that identity in the current fetch.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence, TypeVar

from core.models import Snapshot, Versioned

LOGGER = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=Versioned)


def find_new(
    source_key: str,
    current_items: Sequence[ItemT],
    snapshot: Snapshot,
    kind: str = "releases",
) -> list[ItemT]:
    """Return the items of ``current_items`` newer than the recorded mark.

    - No recorded mark: first-time tracking, only the newest item is returned
      so a fresh install does not fan out the whole history.
    - Mark found: everything before it (newest-first), the mark excluded.
    - Mark not found in the fetch window: the whole list is treated as new.
    """

    last_known = snapshot.marks(kind).get(source_key)
    if not last_known:
        return list(current_items[:1])

    new_items: list[ItemT] = []
    for item in current_items:
        if item.identity == last_known:
            return new_items
        new_items.append(item)

    if current_items:
        LOGGER.warning(
            "High-water mark %s for %s not in fetch window; treating %s item(s) as new",
            last_known,
            source_key,
            len(new_items),
        )
    return new_items


def update_high_water_mark(
    snapshot: Snapshot,
    source_key: str,
    current_items: Sequence[Versioned],
    kind: str = "releases",
) -> None:
    """Set the mark to the newest fetched identity, whether or not anything was new.

    An empty fetch (including a failed one) leaves the mark untouched.
    """

    if current_items:
        snapshot.marks(kind)[source_key] = current_items[0].identity


def has_any_changes(*deltas: Mapping[str, Sequence[object]]) -> bool:
    """True iff any tracked key of any source type has a non-empty delta."""

    return any(len(items) > 0 for delta in deltas for items in delta.values())


def compute_deltas(
    fetched: Mapping[str, Sequence[ItemT]],
    snapshot: Snapshot,
    kind: str,
) -> dict[str, list[ItemT]]:
    """Run ``find_new`` for every fetched source of one kind."""

    return {key: find_new(key, items, snapshot, kind) for key, items in fetched.items()}


def advance_all(snapshot: Snapshot, fetched: Mapping[str, Sequence[Versioned]], kind: str) -> None:
    for key, items in fetched.items():
        update_high_water_mark(snapshot, key, items, kind)


def count_items(deltas: Iterable[Mapping[str, Sequence[object]]]) -> int:
    return sum(len(items) for delta in deltas for items in delta.values())


def changed_marks(previous: Snapshot, current: Snapshot, kind: str) -> dict[str, str]:
    """Keys whose mark differs between two snapshots, mapped to the current mark."""

    before = previous.marks(kind)
    return {key: mark for key, mark in current.marks(kind).items() if before.get(key) != mark}
