"""Thin Slack Web API client.

Every call returns a typed response carrying Slack's ``ok``/``error`` pair.
Transport and decoding failures raise :class:`SlackCallError` so callers can
tell a rejected request from one that never completed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SlackCallError
from .ratelimit import Limiter, NoopLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://slack.com/api"


class SlackMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ts: str
    user: Optional[str] = None
    text: Optional[str] = None
    subtype: Optional[str] = None


class SlackResponse(BaseModel):
    ok: bool = False
    error: Optional[str] = None


class HistoryPage(SlackResponse):
    messages: list[SlackMessage] = Field(default_factory=list)
    has_more: bool = False


class UserInfo(SlackResponse):
    name: str = ""
    avatar_url: str = ""


class ChannelInfo(SlackResponse):
    name: str = ""


class Permalink(SlackResponse):
    url: str = ""


class SlackClient:
    def __init__(
        self,
        token: str,
        limiter: Limiter | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.limiter = limiter or NoopLimiter()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{method}"
        try:
            if payload is not None:
                response = self.session.post(url, json=payload, timeout=self.timeout)
            else:
                response = self.session.get(url, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SlackCallError(f"{method} failed: {exc}") from exc
        if not isinstance(data, dict):
            raise SlackCallError(f"{method} returned a non-object body")
        return data

    def fetch_history(
        self, channel_id: str, oldest: str | None = None, limit: int = 200
    ) -> HistoryPage:
        params: dict[str, Any] = {"channel": channel_id, "limit": limit}
        if oldest is not None:
            params["oldest"] = oldest
        data = self._call("conversations.history", params=params)
        if not data.get("ok"):
            return HistoryPage(ok=False, error=data.get("error") or "unknown_error")
        try:
            messages = [SlackMessage.model_validate(m) for m in data.get("messages") or []]
        except ValidationError as exc:
            raise SlackCallError(f"conversations.history returned a bad message: {exc}") from exc
        return HistoryPage(ok=True, messages=messages, has_more=bool(data.get("has_more")))

    def fetch_user_info(self, user_id: str) -> UserInfo:
        self.limiter.acquire()
        data = self._call("users.info", params={"user": user_id})
        user = data.get("user")
        if not data.get("ok") or not user:
            return UserInfo(ok=False, error=data.get("error") or "user_not_found")
        profile = user.get("profile") or {}
        return UserInfo(
            ok=True,
            name=user.get("real_name") or user.get("name") or "",
            avatar_url=profile.get("image_48") or "",
        )

    def fetch_channel_info(self, channel_id: str) -> ChannelInfo:
        data = self._call("conversations.info", params={"channel": channel_id})
        channel = data.get("channel")
        if not data.get("ok") or not channel:
            return ChannelInfo(ok=False, error=data.get("error") or "channel_not_found")
        return ChannelInfo(ok=True, name=channel.get("name") or "")

    def fetch_permalink(self, channel_id: str, message_ts: str) -> Permalink:
        self.limiter.acquire()
        data = self._call(
            "chat.getPermalink",
            params={"channel": channel_id, "message_ts": message_ts},
        )
        if not data.get("ok"):
            return Permalink(ok=False, error=data.get("error") or "unknown_error")
        return Permalink(ok=True, url=data.get("permalink") or "")

    def post_message(self, channel_id: str, text: str) -> SlackResponse:
        data = self._call(
            "chat.postMessage", payload={"channel": channel_id, "text": text}
        )
        if not data.get("ok"):
            logger.warning("chat.postMessage to %s rejected: %s", channel_id, data.get("error"))
        return SlackResponse(ok=bool(data.get("ok")), error=data.get("error"))
