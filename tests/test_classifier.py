from __future__ import annotations

from core.classifier import (
    categorize_url,
    classify,
    extract_urls,
    find_type,
    generate_title,
    is_interesting,
    process_messages,
    to_find,
)
from core.models import ChatMessage


def _message(body: str, event_id: str = "$evt1", timestamp: int = 1_700_000_000_000) -> ChatMessage:
    return ChatMessage(
        event_id=event_id,
        sender="@alice:beeper.com",
        timestamp=timestamp,
        body=body,
        room_id="!room:beeper.com",
    )


def test_tip_with_code_link() -> None:
    message = _message("tip: you can mute a chat by long-pressing it https://github.com/beeper/foo")
    extraction = classify(message)
    find = to_find(message, extraction)

    assert extraction.urls
    assert extraction.is_tip
    assert is_interesting(message, extraction)
    assert find.type == "tip"
    assert find.category == "tools"
    assert find.status == "pending"
    assert find.url == "https://github.com/beeper/foo"
    assert find.source.message_id == "$evt1"


def test_classify_is_pure() -> None:
    message = _message("Workaround: restart the WhatsApp bridge on Linux https://gist.github.com/x")
    assert classify(message) == classify(message)


def test_tip_wins_over_workaround() -> None:
    extraction = classify(_message("tip: the fix is to log out and back in"))
    assert extraction.is_tip and extraction.is_workaround
    assert find_type(extraction) == "tip"


def test_question_sentiment_and_tags() -> None:
    extraction = classify(_message("Does anyone know how to link Signal on Android?"))
    assert extraction.sentiment == "question"
    assert extraction.keywords == ("android", "signal")


def test_ignored_domains_are_dropped() -> None:
    urls = extract_urls("see https://matrix.to/#/!abc and https://tenor.com/x and https://dev.to/post")
    assert urls == ["https://dev.to/post"]


def test_plain_chatter_is_not_interesting() -> None:
    message = _message("good morning everyone")
    assert not is_interesting(message, classify(message))


def test_long_message_with_any_link_is_interesting() -> None:
    body = "I wrote up a long comparison of how different chat apps handle read receipts " * 2
    message = _message(body + " https://example.org/post")
    assert is_interesting(message, classify(message))


def test_categorize_url() -> None:
    assert categorize_url("https://github.com/beeper/foo") == "tools"
    assert categorize_url("https://github.com/beeper/foo/issues/3") == "discussions"
    assert categorize_url("https://www.reddit.com/r/beeper/x") == "community"
    assert categorize_url("https://youtu.be/abc") == "media"
    assert categorize_url("https://docs.example.org/setup") == "documentation"
    assert categorize_url("https://medium.com/@a/b") == "articles"
    assert categorize_url("https://example.org/") == "resources"


def test_title_prefers_text_before_link() -> None:
    message = _message("Great self-hosting guide https://example.org/guide")
    assert generate_title(message, classify(message)) == "Great self-hosting guide"


def test_title_truncates_long_body() -> None:
    message = _message("x" * 80)
    assert generate_title(message, classify(message)) == "x" * 60 + "..."


def test_process_messages_keeps_order_and_skips_chatter() -> None:
    messages = [
        _message("hello", event_id="$1"),
        _message("https://github.com/beeper/one", event_id="$2"),
        _message("fyi: you can pin chats from the sidebar", event_id="$3"),
    ]
    finds = process_messages(messages)

    assert [find.source.message_id for find in finds] == ["$2", "$3"]
    assert [find.type for find in finds] == ["link", "tip"]
    assert finds[0].discovered_at == finds[1].discovered_at
    assert len({find.id for find in finds}) == 2
