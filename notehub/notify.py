from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import quote

from .errors import SlackCallError

logger = logging.getLogger(__name__)

# Tags every message NoteHub posts so channel sync can skip it.
NOTIFY_MARKER = "[NoteHubNotify]"


def build_article_link(web_app_url: str, article_id: str) -> str:
    base = (web_app_url or "").rstrip("/")
    if not base:
        return ""
    return f"{base}?articleId={quote(article_id, safe='')}"


def article_notice(title: str, author: str, link: str = "") -> str:
    if link:
        return f"{NOTIFY_MARKER} New article: <{link}|{title}> by {author}"
    return f"{NOTIFY_MARKER} New article: {title} by {author}"


def notify_new_article(
    client,
    channel_ids: Iterable[str],
    article_id: str,
    title: str,
    author: str,
    web_app_url: str = "",
) -> int:
    """Post the notice to each channel; returns how many posts Slack accepted."""

    text = article_notice(title, author, build_article_link(web_app_url, article_id))
    sent = 0
    for channel in channel_ids:
        try:
            response = client.post_message(channel, text)
        except SlackCallError as exc:
            logger.error("Slack notification to %s failed: %s", channel, exc)
            continue
        if response.ok:
            sent += 1
    return sent
