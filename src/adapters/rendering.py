"""Shared rendering helpers.

Keeping formatting here prevents drift between adapters: changelog entries,
the discussion digest, issue/PR bodies and the per-channel notification
bodies are all pure functions of their inputs.
"""

from __future__ import annotations

import html
import re
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from core.models import (
    CommunityFind,
    Discussion,
    GitHubRelease,
    NotificationPayload,
    NpmVersion,
    StatusSnapshot,
    parse_iso,
    to_iso,
    utc_now,
)
from core.source_keys import npm_package_url, npm_version_url, release_tag_url

BRAND = "beeper-pulse"
BRAND_URL = "https://github.com/beeper-community/beeper-pulse"
DIGEST_PREVIEW_CHARS = 200

DISCORD_COLORS = {
    "release": 0x5865F2,
    "digest": 0x57F287,
    "status": 0xFEE75C,
    "alert": 0xED4245,
}

SLACK_EMOJIS = {
    "release": ":rocket:",
    "digest": ":newspaper:",
    "status": ":warning:",
    "alert": ":rotating_light:",
}

EMAIL_SUBJECTS = {
    "release": "🚀 New Beeper Release",
    "digest": "📰 Weekly Beeper Community Digest",
    "status": "⚠️ Beeper Status Update",
    "alert": "🚨 Beeper Alert",
}

STATUS_EMOJIS = {"operational": "✅", "degraded": "⚠️", "outage": "❌"}

_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_TOP_HEADERS = re.compile(r"^#{1,2}\s", re.MULTILINE)


def date_only(value: str) -> str:
    """Return ``yyyy-mm-dd`` for an ISO timestamp, or ``unknown`` when absent."""

    if not value:
        return "unknown"
    return parse_iso(value).strftime("%Y-%m-%d")


def clean_release_body(body: str) -> str:
    """Strip HTML comments and demote top-level headers so entries nest under ``##``."""

    return _TOP_HEADERS.sub("### ", _HTML_COMMENT.sub("", body)).strip()


# --- changelog --------------------------------------------------------------


def release_entry(release: GitHubRelease) -> str:
    badge = "`[prerelease]`" if release.prerelease else "`[official]`"
    parts = [f"## {release.tag_name} - {date_only(release.published_at)}\n\n{badge}\n\n"]
    if release.body:
        parts.append(clean_release_body(release.body) + "\n\n")
    parts.append(f"→ [Release Notes]({release.html_url})\n\n---\n\n")
    return "".join(parts)


def npm_entry(package_name: str, version: NpmVersion) -> str:
    parts = [f"## v{version.version} - {date_only(version.date)}\n\n`[official]`\n\n"]
    if version.description:
        parts.append(f"{version.description}\n\n")
    parts.append(f"→ [npm]({npm_version_url(package_name, version.version)})\n\n---\n\n")
    return "".join(parts)


def status_table(
    releases: Mapping[str, Sequence[GitHubRelease]],
    npm_versions: Mapping[str, Sequence[NpmVersion]],
    labels: Optional[Mapping[str, str]] = None,
) -> str:
    """Markdown table of the latest version of every tracked source."""

    labels = labels or {}
    lines = ["| Component | Latest | Updated | Feed |", "|-----------|--------|---------|------|"]
    for repo_key, items in releases.items():
        if items:
            latest = items[0]
            label = labels.get(repo_key, repo_key)
            lines.append(
                f"| {label} | `{latest.tag_name}` | {date_only(latest.published_at)} | [RSS](feeds/releases.xml) |"
            )
    for package_name, versions in npm_versions.items():
        if versions:
            latest = versions[0]
            label = labels.get(package_name, f"`{package_name}`")
            lines.append(
                f"| {label} | `v{latest.version}` | {date_only(latest.date)} | [JSON](feeds/releases.json) |"
            )
    return "\n".join(lines) + "\n"


# --- digest -----------------------------------------------------------------


def generate_digest(discussions: Sequence[Discussion], today: Optional[datetime] = None) -> str:
    if not discussions:
        return "No notable discussions this week."

    stamp = (today or utc_now()).strftime("%Y-%m-%d")
    parts = [f"# Weekly Community Digest\n\n> {stamp}\n\n## Notable Discussions\n\n"]
    for discussion in discussions:
        parts.append(f"### [{discussion.title}]({discussion.url})\n\n")
        parts.append(f"- **Author:** @{discussion.author}\n")
        parts.append(f"- **Category:** {discussion.category}\n")
        parts.append(
            f"- **Engagement:** {discussion.reactions} reactions, {discussion.comments} comments\n"
        )
        if discussion.body:
            preview = discussion.body[:DIGEST_PREVIEW_CHARS].strip()
            ellipsis = "..." if len(discussion.body) > DIGEST_PREVIEW_CHARS else ""
            parts.append(f"\n> {preview}{ellipsis}\n")
        parts.append("\n---\n\n")
    return "".join(parts)


# --- curator publishing -----------------------------------------------------


def issue_title(find: CommunityFind) -> str:
    return f"[{find.type}] {find.title}"


def issue_labels(find: CommunityFind) -> list[str]:
    labels = ["community-find", find.type]
    if find.category:
        labels.append(f"category:{find.category}")
    return labels


def issue_body(find: CommunityFind) -> str:
    tags = ", ".join(f"`{tag}`" for tag in find.tags) if find.tags else "None"
    link = f"### Link\n\n{find.url}\n" if find.url else ""
    return (
        "## Community Find\n\n"
        f"**Type:** {find.type}\n"
        f"**Category:** {find.category or 'uncategorized'}\n"
        f"**Discovered:** {find.discovered_at}\n\n"
        "### Description\n\n"
        f"{find.description}\n\n"
        f"{link}\n"
        "### Source\n\n"
        f"- **Author:** {find.source.author}\n"
        f"- **Room:** {find.source.room_id}\n"
        f"- **Timestamp:** {find.source.timestamp}\n"
        f"- **Message ID:** {find.source.message_id}\n\n"
        "### Tags\n\n"
        f"{tags}\n\n"
        "---\n"
        f"*This issue was automatically created by {BRAND} curator.*\n"
    )


def finds_markdown(finds: Sequence[CommunityFind], now: Optional[datetime] = None) -> str:
    """Render finds grouped by category, categories in first-seen order."""

    by_category: dict[str, list[CommunityFind]] = {}
    for find in finds:
        by_category.setdefault(find.category or "other", []).append(find)

    parts = [
        "# Community Finds\n\n",
        f"*Last updated: {to_iso(now or utc_now())}*\n\n",
        "These resources were discovered in the Beeper Developer Community and are "
        "pending review for inclusion in awesome-beeper.\n\n",
    ]
    for category, members in by_category.items():
        parts.append(f"## {category[:1].upper()}{category[1:]}\n\n")
        for find in members:
            line = f"- [{find.title}]({find.url})" if find.url else f"- {find.title}"
            if find.tags:
                line += f" - {', '.join(find.tags)}"
            parts.append(line + "\n")
            if find.description != find.title and len(find.description) < 200:
                parts.append(f"  > {find.description.replace(chr(10), ' ')[:150]}...\n")
        parts.append("\n")
    return "".join(parts)


def pr_title(finds: Sequence[CommunityFind]) -> str:
    return f"[Curator] {len(finds)} new community finds"


def pr_body(finds: Sequence[CommunityFind]) -> str:
    types = ", ".join(dict.fromkeys(find.type for find in finds))
    categories = ", ".join(dict.fromkeys(find.category for find in finds if find.category))
    listing = "\n".join(
        f"- [{find.type}] {find.title}" + (f" - {find.url}" if find.url else "") for find in finds
    )
    return (
        "## Community Finds\n\n"
        f"This PR was automatically generated by the {BRAND} curator.\n\n"
        "### Summary\n\n"
        f"- **{len(finds)}** new finds discovered\n"
        f"- **Types:** {types}\n"
        f"- **Categories:** {categories}\n\n"
        "### Finds\n\n"
        f"{listing}\n\n"
        "---\n"
        "*Please review and merge if the finds are appropriate for awesome-beeper.*\n"
    )


# --- notification payloads --------------------------------------------------


def release_payload(repo_key: str, release: GitHubRelease) -> NotificationPayload:
    return NotificationPayload(
        type="release",
        title=f"🚀 New Release: {repo_key}",
        message=f"GitHub repository {repo_key} has a new release {release.tag_name}",
        url=release.html_url or release_tag_url(repo_key, release.tag_name),
        fields=(("Package", repo_key), ("Version", release.tag_name), ("Source", "GitHub")),
        metadata={"source": repo_key, "version": release.tag_name, "prerelease": release.prerelease},
    )


def npm_payload(package_name: str, version: NpmVersion) -> NotificationPayload:
    return NotificationPayload(
        type="release",
        title=f"🚀 New Release: {package_name}",
        message=f"npm package {package_name} has been updated to v{version.version}",
        url=npm_package_url(package_name),
        fields=(("Package", package_name), ("Version", f"v{version.version}"), ("Source", "npm")),
        metadata={"source": package_name, "version": version.version},
    )


def status_payload(snapshot: StatusSnapshot, page_url: Optional[str] = None) -> NotificationPayload:
    updated = date_only(snapshot.last_updated)
    return NotificationPayload(
        type="status",
        title=f"Beeper Status: {snapshot.overall.upper()}",
        message=f"Status check completed at {snapshot.last_updated} ({updated})",
        url=page_url,
        status=snapshot.overall,
        fields=tuple(
            (result.endpoint.name, f"{result.status} ({result.response_time}ms)")
            for result in snapshot.services.values()
        ),
    )


class Renderer:
    """RendererPort implementation backed by the module-level helpers."""

    def release_entry(self, release: GitHubRelease) -> str:
        return release_entry(release)

    def npm_entry(self, package_name: str, version: NpmVersion) -> str:
        return npm_entry(package_name, version)

    def release_payload(self, repo_key: str, release: GitHubRelease) -> NotificationPayload:
        return release_payload(repo_key, release)

    def npm_payload(self, package_name: str, version: NpmVersion) -> NotificationPayload:
        return npm_payload(package_name, version)


# --- per-channel bodies -----------------------------------------------------


def _payload_emoji(payload: NotificationPayload) -> str:
    if payload.type == "release":
        return "🚀"
    if payload.type == "status":
        return STATUS_EMOJIS.get(payload.status or "", "❌")
    return "📢"


def _format_discord(payload: NotificationPayload, username: str, avatar_url: Optional[str]) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "title": payload.title,
        "description": payload.message,
        "color": DISCORD_COLORS[payload.type],
        "timestamp": to_iso(utc_now()),
        "footer": {"text": BRAND},
    }
    if payload.url:
        embed["url"] = payload.url
    if payload.fields:
        embed["fields"] = [{"name": name, "value": value, "inline": True} for name, value in payload.fields]
    body: dict[str, Any] = {"username": username, "embeds": [embed]}
    if avatar_url:
        body["avatar_url"] = avatar_url
    return body


def _format_slack(payload: NotificationPayload, username: str, channel: Optional[str]) -> dict[str, Any]:
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"{SLACK_EMOJIS[payload.type]} {payload.title}", "emoji": True},
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": payload.message}},
    ]
    if payload.url:
        blocks.append(
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": " "},
                "accessory": {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "View Details", "emoji": True},
                    "url": payload.url,
                },
            }
        )
    blocks.append(
        {"type": "context", "elements": [{"type": "mrkdwn", "text": f"_via {BRAND} • {to_iso(utc_now())}_"}]}
    )
    body: dict[str, Any] = {"username": username, "icon_emoji": ":bee:", "blocks": blocks}
    if channel:
        body["channel"] = channel
    return body


def _format_matrix(payload: NotificationPayload) -> dict[str, Any]:
    emoji = _payload_emoji(payload)
    plain = f"{emoji} {payload.title}\n\n{payload.message}"
    if payload.url:
        plain += f"\n\n{payload.url}"

    parts = [f"<h4>{emoji} {html.escape(payload.title)}</h4>", f"<p>{html.escape(payload.message)}</p>"]
    if payload.url:
        parts.append(f"<p><a href=\"{html.escape(payload.url)}\">View Details</a></p>")
    if payload.fields:
        items = "".join(
            f"<li><strong>{html.escape(name)}:</strong> {html.escape(value)}</li>" for name, value in payload.fields
        )
        parts.append(f"<ul>{items}</ul>")
    return {
        "msgtype": "m.text",
        "body": plain,
        "format": "org.matrix.custom.html",
        "formatted_body": "\n".join(parts),
    }


def _format_webhook(payload: NotificationPayload) -> dict[str, Any]:
    body: dict[str, Any] = {
        "event": f"{BRAND}:{payload.type}",
        "title": payload.title,
        "message": payload.message,
        "type": payload.type,
        "timestamp": to_iso(utc_now()),
    }
    if payload.url:
        body["url"] = payload.url
    if payload.metadata:
        body["metadata"] = dict(payload.metadata)
    return body


def _format_email(payload: NotificationPayload) -> dict[str, str]:
    title = html.escape(payload.title)
    message = html.escape(payload.message).replace("\n", "<br>")
    button = (
        f"<a href=\"{html.escape(payload.url)}\" class=\"button\">View Details</a>" if payload.url else ""
    )
    body_html = f"""<!DOCTYPE html>
<html>
<head>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background: #5865f2; color: white; padding: 20px; border-radius: 8px 8px 0 0; }}
    .content {{ background: #f9f9f9; padding: 20px; border-radius: 0 0 8px 8px; }}
    .button {{ display: inline-block; background: #5865f2; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin-top: 16px; }}
    .footer {{ margin-top: 20px; font-size: 12px; color: #666; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header"><h1 style="margin: 0;">{title}</h1></div>
    <div class="content">
      <p>{message}</p>
      {button}
    </div>
    <div class="footer">
      <p>Sent by <a href="{BRAND_URL}">{BRAND}</a></p>
      <p>You're receiving this because you subscribed to Beeper ecosystem updates.</p>
    </div>
  </div>
</body>
</html>"""
    return {
        "subject": EMAIL_SUBJECTS[payload.type],
        "html": body_html,
        "text": f"{payload.title}\n\n{payload.message}\n\n{payload.url or ''}",
    }


def format_payload(payload: NotificationPayload, mode: str, **options: Any) -> dict[str, Any]:
    """Return the channel-specific request body for ``payload``."""

    if mode == "discord":
        return _format_discord(payload, options.get("username", "Beeper Pulse"), options.get("avatar_url"))
    if mode == "slack":
        return _format_slack(payload, options.get("username", "Beeper Pulse"), options.get("channel"))
    if mode == "matrix":
        return _format_matrix(payload)
    if mode == "webhook":
        return _format_webhook(payload)
    if mode == "email":
        return _format_email(payload)
    raise ValueError(f"Unsupported notification format: {mode}")
