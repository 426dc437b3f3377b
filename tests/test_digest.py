from __future__ import annotations

from core.digest import select_notable
from core.models import Discussion


def _discussion(discussion_id: str, reactions: int, comments: int) -> Discussion:
    return Discussion(
        id=discussion_id,
        number=1,
        title=discussion_id,
        body="",
        url="",
        created_at="2024-05-01T00:00:00Z",
        author="a",
        comments=comments,
        reactions=reactions,
        category="General",
    )


def test_engaged_discussions_sorted_by_engagement() -> None:
    items = [
        _discussion("quiet", 1, 1),
        _discussion("liked", 5, 0),
        _discussion("talked", 0, 2),
        _discussion("hot", 4, 4),
    ]
    assert [item.id for item in select_notable(items)] == ["hot", "liked", "talked"]


def test_thresholds_are_configurable() -> None:
    items = [_discussion("liked", 5, 0), _discussion("talked", 0, 2)]
    assert [item.id for item in select_notable(items, min_reactions=10, min_comments=2)] == ["talked"]
