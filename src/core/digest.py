"""Selection of notable community discussions for the weekly digest."""

from __future__ import annotations

from typing import Iterable, List

from core.models import Discussion


def is_notable(discussion: Discussion, min_reactions: int = 2, min_comments: int = 2) -> bool:
    return discussion.reactions >= min_reactions or discussion.comments >= min_comments


def select_notable(
    discussions: Iterable[Discussion],
    min_reactions: int = 2,
    min_comments: int = 2,
) -> List[Discussion]:
    """Engaged discussions, most engagement first.

    Ties keep their fetched order.
    """

    notable = [item for item in discussions if is_notable(item, min_reactions, min_comments)]
    return sorted(notable, key=lambda item: item.engagement, reverse=True)
