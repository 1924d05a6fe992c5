from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from .errors import ArticleNotFound
from .models import ARTICLE_HEADERS, Article, ArticleForm, cell
from .notify import notify_new_article
from .resolver import ResolvedConfig
from .store import RowStore

logger = logging.getLogger(__name__)

_COLUMN = {name: index for index, name in enumerate(ARTICLE_HEADERS)}
_ID = _COLUMN["ID"]
_AUTHOR_EMAIL = _COLUMN["AuthorEmail"]


def guess_name_from_email(email: Optional[str]) -> str:
    if not email:
        return "Unknown"
    return email.split("@")[0]


def parse_tags(raw: Any) -> list[str]:
    return [t.strip() for t in str(raw or "").split(",") if t.strip()]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _to_article(row: Sequence[Any]) -> Article:
    email = cell(row, _AUTHOR_EMAIL)
    return Article(
        id=cell(row, _ID),
        title=cell(row, _COLUMN["Title"]),
        content=cell(row, _COLUMN["Content"]),
        created_at=cell(row, _COLUMN["CreatedAt"]),
        updated_at=cell(row, _COLUMN["UpdatedAt"]),
        tags=parse_tags(cell(row, _COLUMN["Tags"])),
        author_email=email,
        author_name=cell(row, _COLUMN["AuthorName"]) or guess_name_from_email(email),
    )


def get_articles(store: RowStore, sheet: str) -> list[Article]:
    try:
        values = store.read_all_rows(sheet)
    except Exception as exc:  # noqa: BLE001
        logger.error("reading articles failed: %s", exc)
        return []
    return [_to_article(row) for row in values[1:] if any(row)]


def get_article_by_id(store: RowStore, sheet: str, article_id: str) -> Optional[Article]:
    if not article_id:
        return None
    for article in get_articles(store, sheet):
        if article.id == article_id:
            return article
    return None


def add_article(
    store: RowStore,
    config: ResolvedConfig,
    form: ArticleForm,
    user_email: str,
    slack=None,
) -> Article:
    now = _now()
    author = guess_name_from_email(user_email)
    article = Article(
        id=str(uuid.uuid4()),
        title=form.title,
        content=form.content,
        created_at=now,
        updated_at=now,
        tags=parse_tags(form.tags_string),
        author_email=user_email or "",
        author_name=author,
    )
    store.append_rows(config.articles_sheet, [article.to_row()])
    logger.info("article %s added by %s", article.id, author)

    if slack is not None and config.bot_token and config.notification_channel_ids:
        notify_new_article(
            slack,
            config.notification_channel_ids,
            article.id,
            article.title,
            author,
            config.web_app_url,
        )
    return article


def _find_owned(
    store: RowStore, sheet: str, article_id: str, user_email: str
) -> tuple[int, list[Any]]:
    if article_id and user_email:
        for index, row in enumerate(store.read_all_rows(sheet)[1:]):
            if cell(row, _ID) == article_id and cell(row, _AUTHOR_EMAIL) == user_email:
                return index, list(row)
    raise ArticleNotFound(f"article {article_id!r} not found or not owned by caller")


def update_article(
    store: RowStore,
    sheet: str,
    article_id: str,
    form: ArticleForm,
    user_email: str,
) -> Article:
    """Rewrite title, content and tags of the caller's own article."""

    index, row = _find_owned(store, sheet, article_id, user_email)
    article = _to_article(row).model_copy(
        update={
            "title": form.title,
            "content": form.content,
            "tags": parse_tags(form.tags_string),
            "updated_at": _now(),
        }
    )
    store.update_row(sheet, index, article.to_row())
    return article


def delete_article(store: RowStore, sheet: str, article_id: str, user_email: str) -> None:
    index, _ = _find_owned(store, sheet, article_id, user_email)
    store.delete_row(sheet, index)
    logger.info("article %s deleted", article_id)
