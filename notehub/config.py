from __future__ import annotations

import os
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    LOG_LEVEL: str = Field(default="INFO")
    ROW_STORE: Literal["sheets", "sqlite"] = Field(default="sheets")
    CACHE_DB_PATH: str = Field(default="notehub.db")
    BAKED_CONFIG_PATH: str = Field(
        default="config.generated.json",
        description="deployment-generated defaults; optional",
    )
    PROPERTIES_PATH: Optional[str] = Field(
        default=None,
        description="JSON file of runtime properties; environment when unset",
    )
    GOOGLE_OAUTH_CLIENT_SECRETS: Optional[str] = Field(default=None)
    GOOGLE_SERVICE_ACCOUNT_JSON: Optional[str] = Field(default=None)
    DELEGATED_SUBJECT: Optional[str] = Field(default=None)
    TOKEN_STORE: str = Field(default=".tokens/google.json")
    SLACK_API_BASE: str = Field(default="https://slack.com/api")
    SLACK_TIMEOUT_SECONDS: float = Field(default=30.0)
    SLACK_RATE_LIMIT_SECONDS: float = Field(default=1.2)
    SLACK_HISTORY_LIMIT: int = Field(default=200, ge=1, le=1000)
    WATERMARK_POLICY: Literal["max", "last_row"] = Field(default="max")
    DRIVE_SHARE_DOMAIN: Optional[str] = Field(default=None)
    API_TOKEN: str = Field(default="dev_token")  # simple bearer for writes
    API_KEYS: str = Field(default="", description="comma-separated API keys")
    CORS_ALLOW_ORIGINS: str = Field(default="*")
    RATE_LIMIT_ENABLED: bool = Field(default=False)
    RATE_LIMIT_RPS: float = Field(default=5.0)
    RATE_LIMIT_BURST: int = Field(default=20)
    SYNC_ENABLED: bool = Field(default=False)
    SYNC_INTERVAL_SECONDS: int = Field(default=900)
    SYNC_JITTER_SECONDS: int = Field(default=15)
    SYNC_BACKOFF_MAX_SECONDS: int = Field(default=600)


def _load_settings(existing: Settings | None = None) -> Settings:
    values: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        env_value = os.getenv(name)
        if env_value is None:
            if existing is not None and hasattr(existing, name):
                values[name] = getattr(existing, name)
                continue
            values[name] = field.get_default(call_default_factory=True)
        else:
            values[name] = env_value

    try:
        return Settings(**values)
    except ValidationError as exc:
        invalid = sorted(
            {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        )
        raise RuntimeError(
            f"Invalid environment variables: {', '.join(invalid)}"
        ) from exc


settings = _load_settings()


def reload_settings() -> Settings:
    global settings
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
