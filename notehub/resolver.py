"""Merge baked defaults and runtime properties into one immutable config.

Resolution never fails: a missing, empty or placeholder value falls back to
the baked default (or to "unset") instead of raising.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import Settings

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "PUT_"
PLACEHOLDER_MARKERS = ("YOUR_SLACK", "COMMA_SEPARATED")

_SPREADSHEET_URL = re.compile(r"spreadsheets/d/([a-zA-Z0-9-_]+)")
_SCRIPT_URL = re.compile(
    r"script\.google\.com/(?:d/|macros/s/|home/projects/)([a-zA-Z0-9-_]+)"
)

ChannelIds = Union[str, Sequence[str], None]


class PropertyStore(Protocol):
    def get_property(self, key: str) -> Optional[str]: ...


class MappingPropertyStore:
    """Property store over any string mapping."""

    def __init__(self, data: Mapping[str, str] | None = None) -> None:
        self._data = data if data is not None else {}

    def get_property(self, key: str) -> Optional[str]:
        value = self._data.get(key)
        return None if value is None else str(value)


class EnvPropertyStore(MappingPropertyStore):
    def __init__(self) -> None:
        super().__init__(os.environ)


class JsonPropertyStore(MappingPropertyStore):
    """Properties kept as a flat JSON object on disk; a missing file is empty."""

    def __init__(self, path: str) -> None:
        data: dict[str, str] = {}
        file_path = Path(path)
        if file_path.exists():
            try:
                raw = json.loads(file_path.read_text(encoding="utf-8"))
            except ValueError:
                logger.warning("ignoring unreadable properties file %s", path)
                raw = {}
            if isinstance(raw, dict):
                data = {str(k): str(v) for k, v in raw.items() if v is not None}
        super().__init__(data)


class SheetNames(BaseModel):
    articles: str = "Articles"
    slack_messages: str = "SlackMessages"


class DriveDefaults(BaseModel):
    images_folder_name: str = "notehub-images"


class SlackDefaults(BaseModel):
    bot_token: str = ""
    channel_ids: Union[str, list[str]] = Field(default_factory=list)
    notification_channel_ids: Union[str, list[str]] = Field(default_factory=list)
    bot_token_property_key: str = "SLACK_BOT_TOKEN"
    channel_ids_property_key: str = "SLACK_CHANNEL_IDS"
    notification_channel_ids_property_key: str = "SLACK_NOTIFICATION_CHANNEL_IDS"


class BakedConfig(BaseModel):
    """Defaults written at deploy time (``config.generated.json``)."""

    spreadsheet_id: str = ""
    sheets: SheetNames = Field(default_factory=SheetNames)
    drive: DriveDefaults = Field(default_factory=DriveDefaults)
    slack: SlackDefaults = Field(default_factory=SlackDefaults)
    web_app_url: str = ""


DEFAULT_CONFIG = BakedConfig()


class ResolvedConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    spreadsheet_id: str = ""
    articles_sheet: str = "Articles"
    messages_sheet: str = "SlackMessages"
    images_folder: str = "notehub-images"
    bot_token: str = ""
    channel_ids: tuple[str, ...] = ()
    notification_channel_ids: tuple[str, ...] = ()
    web_app_url: str = ""
    bot_token_property_key: str = "SLACK_BOT_TOKEN"
    channel_ids_property_key: str = "SLACK_CHANNEL_IDS"
    notification_channel_ids_property_key: str = "SLACK_NOTIFICATION_CHANNEL_IDS"

    @property
    def slack_configured(self) -> bool:
        return bool(self.bot_token) and bool(self.channel_ids)


def load_baked_defaults(path: str | None) -> BakedConfig:
    if not path or not Path(path).exists():
        return DEFAULT_CONFIG
    try:
        return BakedConfig.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except (ValidationError, ValueError) as exc:
        logger.warning("falling back to built-in defaults, %s is invalid: %s", path, exc)
        return DEFAULT_CONFIG


def load_property_store(cfg: Settings) -> PropertyStore:
    if cfg.PROPERTIES_PATH:
        return JsonPropertyStore(cfg.PROPERTIES_PATH)
    return EnvPropertyStore()


def extract_id(raw: str | None) -> str:
    """Return the ID portion of a bare ID or a spreadsheet/script URL."""

    if not raw:
        return ""
    value = raw.strip()
    for pattern in (_SPREADSHEET_URL, _SCRIPT_URL):
        match = pattern.search(value)
        if match:
            return match.group(1)
    return value


def is_placeholder(value: str | None) -> bool:
    if not value:
        return False
    return value.startswith(PLACEHOLDER_PREFIX) or any(
        marker in value for marker in PLACEHOLDER_MARKERS
    )


def sanitize_placeholder(value: ChannelIds) -> Union[str, list[str]]:
    if value is None:
        return ""
    if isinstance(value, str):
        return "" if is_placeholder(value) else value
    return [item for item in value if not is_placeholder(item)]


def normalize_channel_ids(raw: ChannelIds) -> list[str]:
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    return [part.strip() for part in parts if part and part.strip()]


def _pick(props: PropertyStore, key: str, default):
    # a None or empty property means "not set"
    value = props.get_property(key)
    return value if value else default


def _channel_list(raw: ChannelIds) -> list[str]:
    # placeholders can hide inside a comma-separated value too
    ids = normalize_channel_ids(sanitize_placeholder(raw))
    return [channel for channel in ids if not is_placeholder(channel)]


def resolve_config(
    props: PropertyStore, baked: BakedConfig = DEFAULT_CONFIG
) -> ResolvedConfig:
    slack = baked.slack
    spreadsheet_id = extract_id(_pick(props, "SPREADSHEET_ID", baked.spreadsheet_id))
    articles = _pick(props, "ARTICLES_SHEET_NAME", baked.sheets.articles)
    messages = _pick(props, "SLACK_SHEET_NAME", baked.sheets.slack_messages)
    folder = _pick(props, "DRIVE_IMAGES_FOLDER", baked.drive.images_folder_name)
    web_app_url = _pick(props, "WEB_APP_URL", baked.web_app_url)

    bot_token = sanitize_placeholder(
        _pick(props, slack.bot_token_property_key, slack.bot_token)
    )
    channel_ids = _channel_list(
        _pick(props, slack.channel_ids_property_key, slack.channel_ids)
    )
    notify_ids = _channel_list(
        _pick(
            props,
            slack.notification_channel_ids_property_key,
            slack.notification_channel_ids,
        )
    )

    return ResolvedConfig(
        spreadsheet_id=spreadsheet_id,
        articles_sheet=articles,
        messages_sheet=messages,
        images_folder=folder,
        bot_token=bot_token if isinstance(bot_token, str) else "",
        channel_ids=tuple(channel_ids),
        notification_channel_ids=tuple(notify_ids),
        web_app_url=web_app_url,
        bot_token_property_key=slack.bot_token_property_key,
        channel_ids_property_key=slack.channel_ids_property_key,
        notification_channel_ids_property_key=slack.notification_channel_ids_property_key,
    )


def resolve_from_settings(cfg: Settings) -> ResolvedConfig:
    return resolve_config(load_property_store(cfg), load_baked_defaults(cfg.BAKED_CONFIG_PATH))
