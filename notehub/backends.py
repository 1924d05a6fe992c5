from __future__ import annotations

from .config import Settings
from .credentials import load_credentials
from .errors import ErrorKind, StoreError
from .ratelimit import IntervalLimiter
from .resolver import ResolvedConfig
from .sheets import SheetsRowStore
from .slack import SlackClient
from .store import RowStore, SqliteRowStore


def make_row_store(cfg: Settings, config: ResolvedConfig) -> RowStore:
    if cfg.ROW_STORE == "sqlite":
        return SqliteRowStore(cfg.CACHE_DB_PATH)
    if not config.spreadsheet_id:
        raise StoreError("spreadsheet id not configured", ErrorKind.CONFIG_ABSENT)
    creds = load_credentials(cfg)
    if creds is None:
        raise StoreError("Google credentials not configured", ErrorKind.CONFIG_ABSENT)
    return SheetsRowStore(creds, config.spreadsheet_id)


def make_slack_client(cfg: Settings, config: ResolvedConfig) -> SlackClient:
    return SlackClient(
        config.bot_token,
        limiter=IntervalLimiter(cfg.SLACK_RATE_LIMIT_SECONDS),
        base_url=cfg.SLACK_API_BASE,
        timeout=cfg.SLACK_TIMEOUT_SECONDS,
    )
