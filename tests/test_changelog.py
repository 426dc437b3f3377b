from __future__ import annotations

import pytest

from adapters.changelog import MarkdownChangelog, insert_after_marker

MARKER = "<!-- CHANGELOG_INSERT -->"


def test_entries_end_up_newest_first() -> None:
    text = f"# Changelog\n\n{MARKER}\n\n## v1\n"
    patched = insert_after_marker(text, MARKER, ["## v2\n", "## v3\n"])

    assert patched.index("## v3") < patched.index("## v2") < patched.index("## v1")
    assert patched.startswith(f"# Changelog\n\n{MARKER}\n\n## v3")


def test_missing_marker_raises() -> None:
    with pytest.raises(ValueError):
        insert_after_marker("# Changelog\n", MARKER, ["## v1"])


def test_file_without_marker_is_left_untouched(tmp_path) -> None:
    path = tmp_path / "CHANGELOG.md"
    path.write_text("# Changelog\n", encoding="utf-8")

    assert MarkdownChangelog().insert_entries(str(path), MARKER, ["## v1"]) is False
    assert path.read_text(encoding="utf-8") == "# Changelog\n"


def test_missing_file_is_skipped(tmp_path) -> None:
    assert MarkdownChangelog().insert_entries(str(tmp_path / "nope.md"), MARKER, ["## v1"]) is False


def test_file_is_patched_in_place(tmp_path) -> None:
    path = tmp_path / "CHANGELOG.md"
    path.write_text(f"# Changelog\n\n{MARKER}\n", encoding="utf-8")

    assert MarkdownChangelog().insert_entries(str(path), MARKER, ["## v1 - 2024-01-01"]) is True
    assert "## v1 - 2024-01-01" in path.read_text(encoding="utf-8")
