"""Finds classifier: turns community chat messages into curated finds (core domain).

The "intelligence" here is a set of literal rule tables: keyword lists for
tips, workarounds and questions, and domain lists for links worth keeping.
Matching is case-insensitive substring containment, and any single trigger
is enough for a message to qualify.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from core.models import ChatMessage, CommunityFind, ExtractionResult, FindSource, to_iso, utc_now

URL_PATTERN = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

# Messages with a link and more than this many characters count as substantial.
SUBSTANTIAL_BODY_CHARS = 100

TITLE_MAX_CHARS = 60
TITLE_PREFIX_MIN_CHARS = 10
TITLE_PREFIX_MAX_CHARS = 80

TIP_PATTERN = re.compile(r"(?:tip|protip|hint|fyi)[:\s]+(.{10,60})", re.IGNORECASE)
WORKAROUND_PATTERN = re.compile(r"(?:workaround|fix|solution)[:\s]+(.{10,60})", re.IGNORECASE)


@dataclass(frozen=True)
class KeywordRule:
    """A named list of lowercase substrings; any hit matches the rule."""

    name: str
    keywords: tuple[str, ...]

    def matches(self, lowered: str) -> bool:
        return any(keyword in lowered for keyword in self.keywords)


TIP_RULE = KeywordRule(
    name="tip",
    keywords=(
        "tip:",
        "protip:",
        "pro tip:",
        "hint:",
        "fyi:",
        "btw,",
        "you can",
        "did you know",
        "i found that",
        "trick:",
        "useful:",
        "helpful:",
        "try this",
        "here's how",
    ),
)

WORKAROUND_RULE = KeywordRule(
    name="workaround",
    keywords=(
        "workaround:",
        "workaround for",
        "fix for",
        "fixed by",
        "solution:",
        "solved by",
        "to fix",
        "the fix is",
        "temporary fix",
        "quick fix",
    ),
)

QUESTION_RULE = KeywordRule(
    name="question",
    keywords=(
        "how do i",
        "how can i",
        "anyone know",
        "does anyone",
        "is there a way",
        "can someone",
        "help with",
        "?",
    ),
)

# Ordered: tags are emitted in this order.
TAG_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("android", ("android",)),
    KeywordRule("ios", ("ios", "iphone")),
    KeywordRule("desktop", ("desktop",)),
    KeywordRule("linux", ("linux",)),
    KeywordRule("macos", ("mac", "macos")),
    KeywordRule("windows", ("windows",)),
    KeywordRule("bridge", ("bridge",)),
    KeywordRule("imessage", ("imessage",)),
    KeywordRule("whatsapp", ("whatsapp",)),
    KeywordRule("telegram", ("telegram",)),
    KeywordRule("signal", ("signal",)),
    KeywordRule("discord", ("discord",)),
    KeywordRule("slack", ("slack",)),
)

INTERESTING_DOMAINS = (
    "github.com",
    "gitlab.com",
    "gist.github.com",
    "reddit.com/r/beeper",
    "docs.google.com",
    "notion.so",
    "medium.com",
    "dev.to",
    "hackernews",
    "youtube.com",
    "youtu.be",
)

IGNORED_DOMAINS = (
    "matrix.to",
    "beeper.com/download",
    "tenor.com",
    "giphy.com",
    # imgur albums are usually memes
    "imgur.com/a/",
)

CODE_HOSTS = ("github.com", "gitlab.com")


def extract_urls(body: str) -> List[str]:
    """Return every URL in ``body`` that is not on the ignore list, in order."""

    urls: List[str] = []
    for url in URL_PATTERN.findall(body):
        lowered = url.lower()
        if any(domain in lowered for domain in IGNORED_DOMAINS):
            continue
        urls.append(url)
    return urls


def classify(message: ChatMessage) -> ExtractionResult:
    """Extract URLs, tip/workaround flags, tags and sentiment from a message.

    Pure: the same message always yields the same result.
    """

    lowered = message.body.lower()
    is_tip = TIP_RULE.matches(lowered)
    is_workaround = WORKAROUND_RULE.matches(lowered)

    if QUESTION_RULE.matches(lowered):
        sentiment = "question"
    elif is_tip or is_workaround:
        sentiment = "positive"
    else:
        sentiment = "neutral"

    return ExtractionResult(
        urls=tuple(extract_urls(message.body)),
        is_tip=is_tip,
        is_workaround=is_workaround,
        keywords=tuple(rule.name for rule in TAG_RULES if rule.matches(lowered)),
        sentiment=sentiment,
    )


def _is_code_host(url: str) -> bool:
    lowered = url.lower()
    return any(host in lowered for host in CODE_HOSTS)


def is_interesting(message: ChatMessage, extraction: ExtractionResult) -> bool:
    """Return True when any single curation trigger fires.

    Triggers: a link to an interesting domain, tip or workaround language,
    a code-hosting link, or a substantial message carrying a link.
    """

    if any(domain in url.lower() for url in extraction.urls for domain in INTERESTING_DOMAINS):
        return True
    if extraction.is_tip or extraction.is_workaround:
        return True
    if any(_is_code_host(url) for url in extraction.urls):
        return True
    return bool(extraction.urls) and len(message.body) > SUBSTANTIAL_BODY_CHARS


def categorize_url(url: str) -> str:
    """Map a URL to a curated-list category."""

    lowered = url.lower()
    if _is_code_host(lowered):
        if "/issues/" in lowered or "/pull/" in lowered:
            return "discussions"
        return "tools"
    if "reddit.com" in lowered:
        return "community"
    if "youtube.com" in lowered or "youtu.be" in lowered:
        return "media"
    if "docs." in lowered or "/docs/" in lowered:
        return "documentation"
    if "blog" in lowered or "medium.com" in lowered or "dev.to" in lowered:
        return "articles"
    return "resources"


def generate_title(message: ChatMessage, extraction: ExtractionResult) -> str:
    """Derive a short human title.

    Priority: the text after a tip/workaround marker, then the text before
    the first link when it has a plausible length, then the truncated body.
    """

    body = message.body

    if extraction.is_tip:
        tip_match = TIP_PATTERN.search(body)
        if tip_match:
            return tip_match.group(1).strip()

    if extraction.is_workaround:
        workaround_match = WORKAROUND_PATTERN.search(body)
        if workaround_match:
            return workaround_match.group(1).strip()

    if extraction.urls:
        before_url = body.split(extraction.urls[0], 1)[0].strip()
        if TITLE_PREFIX_MIN_CHARS < len(before_url) < TITLE_PREFIX_MAX_CHARS:
            return before_url

    if len(body) > TITLE_MAX_CHARS:
        return body[:TITLE_MAX_CHARS] + "..."
    return body


def find_type(extraction: ExtractionResult) -> str:
    # First match wins: tip > workaround > link > resource.
    if extraction.is_tip:
        return "tip"
    if extraction.is_workaround:
        return "workaround"
    if extraction.urls:
        return "link"
    return "resource"


def to_find(
    message: ChatMessage,
    extraction: ExtractionResult,
    discovered_at: Optional[str] = None,
) -> CommunityFind:
    """Build exactly one pending find from a classified message."""

    primary_url = extraction.urls[0] if extraction.urls else None
    return CommunityFind(
        id=str(uuid.uuid4()),
        type=find_type(extraction),
        title=generate_title(message, extraction),
        description=message.body,
        url=primary_url,
        source=FindSource(
            message_id=message.event_id,
            author=message.sender,
            timestamp=to_iso(message.sent_at),
            room_id=message.room_id,
        ),
        category=categorize_url(primary_url) if primary_url else None,
        tags=list(extraction.keywords),
        status="pending",
        discovered_at=discovered_at or to_iso(utc_now()),
    )


def process_messages(messages: Iterable[ChatMessage]) -> List[CommunityFind]:
    """classify -> is_interesting -> to_find over a batch, preserving order.

    No dedup against earlier finds happens here.
    """

    discovered_at = to_iso(utc_now())
    finds: List[CommunityFind] = []
    for message in messages:
        extraction = classify(message)
        if is_interesting(message, extraction):
            finds.append(to_find(message, extraction, discovered_at))
    return finds
