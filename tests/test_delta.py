from __future__ import annotations

from core.delta import changed_marks, compute_deltas, find_new, has_any_changes, update_high_water_mark
from core.models import GitHubRelease, NpmVersion, Snapshot


def _releases(*tags: str) -> list[GitHubRelease]:
    return [
        GitHubRelease(tag_name=tag, published_at="2024-01-01T00:00:00Z", html_url=f"https://example.test/{tag}")
        for tag in tags
    ]


def test_first_run_returns_only_newest_item() -> None:
    snapshot = Snapshot.empty()
    delta = find_new("a/b", _releases("v3", "v2", "v1"), snapshot)
    assert [item.tag_name for item in delta] == ["v3"]


def test_first_run_with_empty_fetch_is_empty() -> None:
    assert find_new("a/b", [], Snapshot.empty()) == []


def test_delta_stops_at_high_water_mark() -> None:
    snapshot = Snapshot(last_updated="2024-01-01T00:00:00.000Z", releases={"a/b": "v1.0.0"})
    fetched = _releases("v1.2.0", "v1.1.0", "v1.0.0", "v0.9.0")

    delta = find_new("a/b", fetched, snapshot)
    update_high_water_mark(snapshot, "a/b", fetched)

    assert [item.tag_name for item in delta] == ["v1.2.0", "v1.1.0"]
    assert snapshot.releases["a/b"] == "v1.2.0"


def test_second_run_converges_to_empty_delta() -> None:
    snapshot = Snapshot.empty()
    fetched = _releases("v2", "v1")
    update_high_water_mark(snapshot, "a/b", fetched)

    assert find_new("a/b", fetched, snapshot) == []


def test_mark_outside_fetch_window_treats_everything_as_new() -> None:
    snapshot = Snapshot(last_updated="2024-01-01T00:00:00.000Z", releases={"a/b": "v0.1"})
    fetched = _releases("v3", "v2", "v1")

    assert [item.tag_name for item in find_new("a/b", fetched, snapshot)] == ["v3", "v2", "v1"]


def test_empty_fetch_keeps_mark() -> None:
    snapshot = Snapshot(last_updated="2024-01-01T00:00:00.000Z", releases={"a/b": "v1"})
    update_high_water_mark(snapshot, "a/b", [])
    assert snapshot.releases["a/b"] == "v1"


def test_npm_marks_are_kept_apart_from_release_marks() -> None:
    snapshot = Snapshot(last_updated="2024-01-01T00:00:00.000Z", releases={"pkg": "1.0.0"})
    versions = [NpmVersion(version="1.1.0", date="2024-02-01T00:00:00Z"), NpmVersion(version="1.0.0", date="")]

    deltas = compute_deltas({"pkg": versions}, snapshot, "npm")

    # No npm mark yet, so only the newest version counts.
    assert [item.version for item in deltas["pkg"]] == ["1.1.0"]


def test_has_any_changes() -> None:
    assert not has_any_changes({"a/b": []}, {"pkg": []})
    assert not has_any_changes({}, {})
    assert has_any_changes({"a/b": []}, {"pkg": [NpmVersion(version="1.0.0", date="")]})


def test_changed_marks_lists_moved_and_new_keys() -> None:
    previous = Snapshot(last_updated="x", releases={"a/b": "v1", "c/d": "v5"})
    current = Snapshot(last_updated="y", releases={"a/b": "v2", "c/d": "v5", "e/f": "v1"})

    assert changed_marks(previous, current, "releases") == {"a/b": "v2", "e/f": "v1"}
