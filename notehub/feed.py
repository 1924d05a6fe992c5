from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from .articles import get_articles, guess_name_from_email
from .models import (
    ArticleAuthor,
    ArticleItem,
    ContentItem,
    SlackAuthor,
    SlackChannel,
    SlackItem,
    SlackMessageRecord,
    SlackUser,
    cell,
)
from .resolver import ResolvedConfig
from .store import RowStore

logger = logging.getLogger(__name__)


def _float(value: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _iso_from_seconds(seconds: float) -> str:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return ""


def _iso_seconds(value: str) -> float:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def get_slack_messages(
    store: RowStore,
    sheet: str,
    channel_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[SlackMessageRecord]:
    """Stored Slack messages, newest first."""

    try:
        values = store.read_all_rows(sheet)
    except Exception as exc:  # noqa: BLE001
        logger.error("reading Slack messages failed: %s", exc)
        return []
    if len(values) < 2:
        return []

    headers = [str(h) for h in values[0]]

    def idx(name: str) -> int:
        return headers.index(name) if name in headers else -1

    messages = []
    for row in values[1:]:
        ts = cell(row, idx("Timestamp"))
        channel = cell(row, idx("ChannelID"))
        messages.append(
            SlackMessageRecord(
                id=f"slack-{ts}-{channel}",
                timestamp=ts,
                user=SlackUser(
                    id=cell(row, idx("UserID")),
                    name=cell(row, idx("UserName")),
                    avatar=cell(row, idx("UserAvatar")),
                ),
                text=cell(row, idx("Text")),
                channel=SlackChannel(id=channel, name=cell(row, idx("ChannelName"))),
                link=cell(row, idx("MessageLink")),
            )
        )

    if channel_id:
        messages = [m for m in messages if m.channel.id == channel_id]
    messages.sort(key=lambda m: _float(m.timestamp), reverse=True)
    if limit:
        messages = messages[:limit]
    return messages


def get_content(store: RowStore, config: ResolvedConfig) -> list[ContentItem]:
    """Articles and Slack messages merged into one newest-first feed."""

    items: list[ContentItem] = []
    for article in get_articles(store, config.articles_sheet):
        items.append(
            ArticleItem(
                id=article.id,
                title=article.title,
                content=article.content,
                timestamp=_iso_seconds(article.updated_at or article.created_at),
                created_at=article.created_at,
                updated_at=article.updated_at,
                tags=article.tags,
                author=ArticleAuthor(
                    email=article.author_email,
                    name=article.author_name or guess_name_from_email(article.author_email),
                ),
            )
        )
    for msg in get_slack_messages(store, config.messages_sheet):
        seconds = _float(msg.timestamp)
        items.append(
            SlackItem(
                id=msg.id,
                content=msg.text,
                timestamp=seconds,
                created_at=_iso_from_seconds(seconds),
                tags=["slack", f"channel:{msg.channel.name}"],
                author=SlackAuthor(name=msg.user.name, avatar=msg.user.avatar),
                channel=msg.channel,
                link=msg.link,
            )
        )
    items.sort(key=lambda item: item.timestamp, reverse=True)
    return items


def _matches(item: ContentItem, q: str) -> bool:
    if isinstance(item, ArticleItem):
        fields = [item.title, item.content, item.author.email, item.author.name]
    else:
        fields = [item.content, item.author.name, item.channel.name]
    return any(q in f.lower() for f in fields + item.tags)


def search_content(store: RowStore, config: ResolvedConfig, query: str) -> list[ContentItem]:
    q = (query or "").lower()
    items = get_content(store, config)
    if not q:
        return items
    return [item for item in items if _matches(item, q)]
