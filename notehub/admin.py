from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .articles import add_article, delete_article, get_articles
from .config import Settings
from .feed import get_content
from .models import ARTICLE_HEADERS, SLACK_HEADERS, ArticleForm
from .resolver import ResolvedConfig
from .slack import SlackClient
from .store import RowStore
from .sync import summarize, sync_channels

logger = logging.getLogger(__name__)

SMOKE_USER = "smoke-test@notehub.invalid"


def ensure_sheet_structure(store: RowStore, config: ResolvedConfig) -> str:
    store.ensure_sheet(config.articles_sheet, ARTICLE_HEADERS)
    store.ensure_sheet(config.messages_sheet, SLACK_HEADERS)
    return "sheet structure is ready"


def run_sync(
    store: RowStore, config: ResolvedConfig, slack: SlackClient, cfg: Settings
) -> str:
    results = sync_channels(
        config,
        slack,
        store,
        page_size=cfg.SLACK_HISTORY_LIMIT,
        watermark_policy=cfg.WATERMARK_POLICY,
    )
    status = summarize(results)
    logger.info("slack sync: %s", status)
    return status


def smoke_test(
    store: RowStore,
    config: ResolvedConfig,
    cfg: Settings,
    slack: Optional[SlackClient] = None,
) -> dict[str, Any]:
    """Exercise setup, article add/delete, the feed and (if configured) sync.

    Only the article this run creates, marked ``[SMOKE]``, is deleted.
    """

    results: dict[str, Any] = {}
    # each step reports its own failure so later steps still run
    try:
        results["ensure"] = ensure_sheet_structure(store, config)
    except Exception as exc:  # noqa: BLE001
        results["ensure"] = f"error: {exc}"

    title = f"[SMOKE] ping {datetime.now(timezone.utc).isoformat()}"
    try:
        form = ArticleForm(title=title, content="smoke test", tags_string="smoke")
        add_article(store, config, form, SMOKE_USER)
        results["added"] = title
    except Exception as exc:  # noqa: BLE001
        results["added"] = f"error: {exc}"

    try:
        articles = get_articles(store, config.articles_sheet)
        results["article_count"] = len(articles)
        dummy = next((a for a in articles if a.title == title), None)
        results["found_dummy"] = dummy is not None
        if dummy is not None:
            delete_article(store, config.articles_sheet, dummy.id, SMOKE_USER)
            results["delete"] = "deleted"
        else:
            results["delete"] = "skip (not found)"
    except Exception as exc:  # noqa: BLE001
        results["article_ops"] = f"error: {exc}"

    try:
        results["content_count"] = len(get_content(store, config))
    except Exception as exc:  # noqa: BLE001
        results["content"] = f"error: {exc}"

    if slack is not None and config.slack_configured:
        try:
            results["slack_sync"] = run_sync(store, config, slack, cfg)
        except Exception as exc:  # noqa: BLE001
            results["slack_sync"] = f"error: {exc}"
    else:
        results["slack_sync"] = "skip (no slack config)"

    logger.info("smoke test: %s", results)
    return results
