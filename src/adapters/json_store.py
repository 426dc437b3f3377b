"""JSON file storage adapter.

Implements the core RecordStorePort for the four durable records (release
snapshot, curator state, finds snapshot, status snapshot). Each record is a
single JSON file, loaded once at run start and fully overwritten at run end.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import timedelta
from typing import Any, Callable, Generic, TypeVar

from core.errors import SnapshotError
from core.models import (
    CommunityFindsSnapshot,
    CuratorState,
    Snapshot,
    StatusSnapshot,
    to_iso,
    utc_now,
)

LOGGER = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


def read_json(path: str) -> Any:
    """Read a JSON file; raise SnapshotError if it exists but cannot be parsed."""

    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as e:
        raise SnapshotError(f"Cannot read persisted record {path}: {e}") from e


def write_json_atomic(path: str, obj: Any) -> None:
    """Write JSON to a temp file next to ``path`` and rename it into place."""

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as handle:
        json.dump(obj, handle, ensure_ascii=False, indent=2)
        handle.write("\n")
    os.replace(tmp, path)


class JsonRecordStore(Generic[RecordT]):
    """Thin JSON file wrapper that satisfies the RecordStorePort contract.

    - Missing file: a fresh default record (not an error).
    - Existing but unreadable file: SnapshotError, never a silent reset.
    """

    def __init__(
        self,
        path: str,
        parse: Callable[[dict[str, Any]], RecordT],
        serialize: Callable[[RecordT], dict[str, Any]],
        default: Callable[[], RecordT],
    ) -> None:
        self._path = path
        self._parse = parse
        self._serialize = serialize
        self._default = default

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.exists(self._path)

    def load(self) -> RecordT:
        if not self.exists():
            LOGGER.info("No record at %s; starting fresh", self._path)
            return self._default()
        data = read_json(self._path)
        if not isinstance(data, dict):
            raise SnapshotError(f"Persisted record {self._path} is not a JSON object")
        try:
            return self._parse(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Persisted record {self._path} is malformed: {e}") from e

    def save(self, record: RecordT) -> None:
        # Every record carries a lastUpdated stamp refreshed on save.
        if hasattr(record, "last_updated"):
            record.last_updated = to_iso(utc_now())
        write_json_atomic(self._path, self._serialize(record))


class SnapshotStore(JsonRecordStore[Snapshot]):
    def __init__(self, path: str) -> None:
        super().__init__(path, Snapshot.from_dict, Snapshot.to_dict, Snapshot.empty)


class FindsStore(JsonRecordStore[CommunityFindsSnapshot]):
    def __init__(self, path: str) -> None:
        super().__init__(
            path,
            CommunityFindsSnapshot.from_dict,
            CommunityFindsSnapshot.to_dict,
            CommunityFindsSnapshot.empty,
        )


class StatusStore(JsonRecordStore[StatusSnapshot]):
    def __init__(self, path: str) -> None:
        super().__init__(path, StatusSnapshot.from_dict, StatusSnapshot.to_dict, StatusSnapshot.empty)


class CuratorStateStore(JsonRecordStore[CuratorState]):
    """Curator progress; a first run starts ``initial_lookback_hours`` in the past."""

    def __init__(self, path: str, initial_lookback_hours: int = 24) -> None:
        self._lookback = timedelta(hours=initial_lookback_hours)
        super().__init__(path, CuratorState.from_dict, CuratorState.to_dict, self._initial_state)

    def _initial_state(self) -> CuratorState:
        now = utc_now()
        return CuratorState(
            last_processed_timestamp=to_iso(now - self._lookback),
            last_processed_event_id=None,
            processed_count=0,
            last_run=to_iso(now),
        )
