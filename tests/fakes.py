"""In-memory Slack stand-in shared by the sync and API tests."""

from __future__ import annotations

from decimal import Decimal

from notehub.errors import SlackCallError
from notehub.slack import (
    ChannelInfo,
    HistoryPage,
    Permalink,
    SlackMessage,
    SlackResponse,
    UserInfo,
)


class FakeSlack:
    """Holds channel history newest-first and treats ``oldest`` as inclusive."""

    def __init__(self) -> None:
        self.history: dict[str, list[dict]] = {}
        self.users = {"U1": ("Ada Lovelace", "https://avatars.test/ada.png"), "U2": ("Bob", "")}
        self.rejected: dict[str, str] = {}
        self.broken_history: set[str] = set()
        self.broken_users: set[str] = set()
        self.permalink_down = False
        self.channel_info_down = False
        self.posted: list[tuple[str, str]] = []
        self.calls: list[tuple] = []

    def post(
        self,
        channel: str,
        ts: str,
        text: str = "hello",
        user: str | None = "U1",
        subtype: str | None = None,
    ) -> None:
        msg = {"ts": ts, "text": text, "user": user}
        if subtype:
            msg["subtype"] = subtype
        self.history.setdefault(channel, []).insert(0, msg)

    def calls_of(self, kind: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == kind]

    def fetch_history(self, channel_id, oldest=None, limit=200):
        self.calls.append(("history", channel_id, oldest, limit))
        if channel_id in self.broken_history:
            raise SlackCallError("connection reset")
        if channel_id in self.rejected:
            return HistoryPage(ok=False, error=self.rejected[channel_id])
        messages = [
            m
            for m in self.history.get(channel_id, [])
            if oldest is None or Decimal(m["ts"]) >= Decimal(oldest)
        ]
        return HistoryPage(ok=True, messages=[SlackMessage(**m) for m in messages[:limit]])

    def fetch_user_info(self, user_id):
        self.calls.append(("user", user_id))
        if user_id in self.broken_users:
            raise SlackCallError("timeout")
        if user_id not in self.users:
            return UserInfo(ok=False, error="user_not_found")
        name, avatar = self.users[user_id]
        return UserInfo(ok=True, name=name, avatar_url=avatar)

    def fetch_channel_info(self, channel_id):
        self.calls.append(("channel", channel_id))
        if self.channel_info_down:
            raise SlackCallError("timeout")
        return ChannelInfo(ok=True, name=f"general-{channel_id.lower()}")

    def fetch_permalink(self, channel_id, message_ts):
        self.calls.append(("permalink", channel_id, message_ts))
        if self.permalink_down:
            return Permalink(ok=False, error="message_not_found")
        url = f"https://team.slack.test/archives/{channel_id}/p{message_ts.replace('.', '')}"
        return Permalink(ok=True, url=url)

    def post_message(self, channel_id, text):
        self.posted.append((channel_id, text))
        return SlackResponse(ok=True)
