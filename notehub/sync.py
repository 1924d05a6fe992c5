"""Incremental mirroring of Slack channel history into the messages sheet.

For each channel the synchronizer finds the newest timestamp already stored
(the watermark), fetches one page of history from that point on, drops what
was already ingested or was posted by NoteHub itself, enriches the rest with
author and permalink, and appends the rows oldest-first in one batch.

Timestamps are compared at two-decimal precision. The history lower bound is
inclusive, so the boundary message comes back on every run and is dropped by
that comparison.
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Iterable, Literal, Optional

from .errors import ErrorKind, SlackCallError
from .metrics import SYNC_FAILURES, SYNCED
from .models import SLACK_HEADERS, ChannelSyncResult, IngestedMessage, cell
from .notify import NOTIFY_MARKER
from .resolver import ResolvedConfig
from .slack import SlackClient, SlackMessage
from .store import RowStore

logger = logging.getLogger(__name__)

NO_WATERMARK = "0"
UNKNOWN_USER = "Unknown User"
SKIPPED_SUBTYPES = frozenset({"channel_join", "channel_leave"})

TS_COLUMN = SLACK_HEADERS.index("Timestamp")
CHANNEL_COLUMN = SLACK_HEADERS.index("ChannelID")

_CENT = Decimal("0.01")
# Slack timestamps are epoch seconds; anything at or past this is corrupt
_MAX_TS = Decimal(10) ** 12

WatermarkPolicy = Literal["max", "last_row"]


def _stored_ts(value: Any) -> str:
    text = "" if value is None else str(value).strip()
    # a leading quote is how a sheet keeps a number as text
    return text[1:] if text.startswith("'") else text


def _as_decimal(ts: Any) -> Optional[Decimal]:
    try:
        value = Decimal(_stored_ts(ts))
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0 or value >= _MAX_TS:
        return None
    return value


def truncate_ts(ts: Any) -> Optional[Decimal]:
    """Floor a Slack timestamp to hundredths; None when it is not a number."""

    value = _as_decimal(ts)
    if value is None:
        return None
    return value.quantize(_CENT, rounding=ROUND_FLOOR)


class ChannelSynchronizer:
    def __init__(
        self,
        client: SlackClient,
        store: RowStore,
        sheet_name: str,
        page_size: int = 200,
        watermark_policy: WatermarkPolicy = "max",
        marker: str = NOTIFY_MARKER,
    ) -> None:
        self.client = client
        self.store = store
        self.sheet_name = sheet_name
        self.page_size = page_size
        self.watermark_policy = watermark_policy
        self.marker = marker

    def watermark(self, channel_id: str) -> str:
        """Newest stored timestamp for the channel, or ``"0"`` when none."""

        if self.watermark_policy == "last_row":
            last = self.store.get_last_row(self.sheet_name)
            if last is not None and cell(last, CHANNEL_COLUMN) == channel_id:
                ts = _stored_ts(cell(last, TS_COLUMN))
                if _as_decimal(ts) is not None:
                    return ts
        return self._max_watermark(channel_id)

    def _max_watermark(self, channel_id: str) -> str:
        best, best_value = NO_WATERMARK, None
        for row in self.store.read_all_rows(self.sheet_name)[1:]:
            if cell(row, CHANNEL_COLUMN) != channel_id:
                continue
            ts = _stored_ts(cell(row, TS_COLUMN))
            value = _as_decimal(ts)
            if value is None:
                logger.warning(
                    "%s: ignoring timestamp %r in %s for %s",
                    ErrorKind.MALFORMED_ROW.value,
                    ts,
                    self.sheet_name,
                    channel_id,
                )
                continue
            if best_value is None or value > best_value:
                best, best_value = ts, value
        return best

    def sync_channel(self, channel_id: str) -> ChannelSyncResult:
        oldest = self.watermark(channel_id)
        oldest_trunc = truncate_ts(oldest)

        try:
            page = self.client.fetch_history(
                channel_id,
                None if oldest == NO_WATERMARK else oldest,
                self.page_size,
            )
        except SlackCallError as exc:
            logger.error("history fetch for %s failed: %s", channel_id, exc)
            return self.record_failure(channel_id, ErrorKind.CALL_FAILED, str(exc))
        if not page.ok:
            logger.error("Slack API error for %s: %s", channel_id, page.error)
            return self.record_failure(channel_id, ErrorKind.API_REJECTED, page.error)

        messages = list(reversed(page.messages))
        if not messages:
            return ChannelSyncResult(channel_id=channel_id)
        if len(messages) == 1 and truncate_ts(messages[0].ts) == oldest_trunc:
            logger.debug("%s: nothing newer than %s", channel_id, oldest)
            return ChannelSyncResult(channel_id=channel_id)

        channel_name = self._channel_name(channel_id)
        users: dict[str, tuple[str, str]] = {}
        ingested = [
            self._ingest(msg, channel_id, channel_name, users)
            for msg in self._fresh(messages, oldest_trunc)
        ]

        if ingested:
            self.store.append_rows(self.sheet_name, [m.to_row() for m in ingested])
            SYNCED.labels(channel_id).inc(len(ingested))
        logger.info("%s: appended %d message(s)", channel_id, len(ingested))
        return ChannelSyncResult(
            channel_id=channel_id, appended=len(ingested), messages=ingested
        )

    def _fresh(
        self, messages: Iterable[SlackMessage], oldest_trunc: Optional[Decimal]
    ) -> Iterable[SlackMessage]:
        for msg in messages:
            if msg.subtype in SKIPPED_SUBTYPES:
                continue
            if self.marker in (msg.text or ""):
                continue
            if truncate_ts(msg.ts) == oldest_trunc:
                continue
            yield msg

    def _ingest(
        self,
        msg: SlackMessage,
        channel_id: str,
        channel_name: str,
        users: dict[str, tuple[str, str]],
    ) -> IngestedMessage:
        name, avatar = self._author(msg.user, users)
        return IngestedMessage(
            timestamp=msg.ts,
            user_id=msg.user or "",
            user_name=name,
            user_avatar=avatar,
            text=msg.text or "",
            channel_id=channel_id,
            channel_name=channel_name,
            permalink=self._permalink(channel_id, msg.ts),
        )

    def _channel_name(self, channel_id: str) -> str:
        try:
            info = self.client.fetch_channel_info(channel_id)
        except SlackCallError as exc:
            logger.error("channel info for %s failed: %s", channel_id, exc)
            return channel_id
        return (info.ok and info.name) or channel_id

    def _author(
        self, user_id: Optional[str], users: dict[str, tuple[str, str]]
    ) -> tuple[str, str]:
        if not user_id:
            return UNKNOWN_USER, ""
        if user_id in users:
            return users[user_id]
        try:
            info = self.client.fetch_user_info(user_id)
        except SlackCallError as exc:
            logger.error("user info for %s failed: %s", user_id, exc)
            return UNKNOWN_USER, ""
        if not info.ok:
            # not cached: the next message from this author retries
            return UNKNOWN_USER, ""
        users[user_id] = (info.name or UNKNOWN_USER, info.avatar_url)
        return users[user_id]

    def _permalink(self, channel_id: str, ts: str) -> str:
        try:
            link = self.client.fetch_permalink(channel_id, ts)
        except SlackCallError as exc:
            logger.error("permalink for %s/%s failed: %s", channel_id, ts, exc)
            return ""
        return link.url if link.ok else ""

    def record_failure(
        self, channel_id: str, kind: ErrorKind, detail: Optional[str]
    ) -> ChannelSyncResult:
        SYNC_FAILURES.labels(kind.value).inc()
        return ChannelSyncResult(channel_id=channel_id, error_kind=kind, detail=detail)


def sync_channels(
    config: ResolvedConfig,
    client: SlackClient,
    store: RowStore,
    page_size: int = 200,
    watermark_policy: WatermarkPolicy = "max",
) -> list[ChannelSyncResult]:
    """Sync every configured channel in order; one failure never stops the rest."""

    if not config.slack_configured:
        logger.error("Slack settings are incomplete (token/channel ids); skipping sync")
        return []

    store.ensure_sheet(config.messages_sheet, SLACK_HEADERS)
    synchronizer = ChannelSynchronizer(
        client,
        store,
        config.messages_sheet,
        page_size=page_size,
        watermark_policy=watermark_policy,
    )
    results: list[ChannelSyncResult] = []
    for channel_id in config.channel_ids:
        try:
            results.append(synchronizer.sync_channel(channel_id))
        except Exception as exc:  # noqa: BLE001
            logger.exception("sync of %s aborted", channel_id)
            failure = synchronizer.record_failure(channel_id, ErrorKind.CALL_FAILED, repr(exc))
            results.append(failure)
    return results


def summarize(results: list[ChannelSyncResult]) -> str:
    if not results:
        return "skip (no slack config)"
    parts = []
    for result in results:
        if result.ok:
            parts.append(f"{result.channel_id} +{result.appended}")
        else:
            kind = result.error_kind.value if result.error_kind else "error"
            parts.append(f"{result.channel_id} failed ({kind}: {result.detail})")
    status = "ok" if all(r.ok for r in results) else "partial"
    return f"{status}: " + ", ".join(parts)
