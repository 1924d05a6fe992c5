"""Google credentials for the Sheets and Drive backends.

A service account (optionally impersonating a workspace user) wins over an
installed-app OAuth client; the OAuth token is cached in ``TOKEN_STORE``.
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Optional

from google.auth.credentials import Credentials as BaseCredentials
from google.oauth2.credentials import Credentials
from google.oauth2.service_account import Credentials as ServiceAccountCredentials
from google_auth_oauthlib.flow import InstalledAppFlow

from .config import Settings

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


def _service_account(raw: str, subject: Optional[str], scopes: list[str]):
    creds = ServiceAccountCredentials.from_service_account_info(
        json.loads(raw), scopes=scopes
    )
    return creds.with_subject(subject) if subject else creds


def _installed_app(secrets_path: str, token_store: str, scopes: list[str]) -> Credentials:
    token_path = pathlib.Path(token_store)
    if token_path.exists():
        return Credentials.from_authorized_user_file(str(token_path), scopes)
    flow = InstalledAppFlow.from_client_secrets_file(secrets_path, scopes=scopes)
    creds = flow.run_local_server(port=0, open_browser=False)
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    return creds


def load_credentials(cfg: Settings) -> Optional[BaseCredentials]:
    """Return Google credentials, or None when none are configured."""

    scopes = SCOPES
    if cfg.GOOGLE_SERVICE_ACCOUNT_JSON:
        return _service_account(cfg.GOOGLE_SERVICE_ACCOUNT_JSON, cfg.DELEGATED_SUBJECT, scopes)
    secrets = cfg.GOOGLE_OAUTH_CLIENT_SECRETS
    if secrets:
        if not pathlib.Path(secrets).exists():
            logger.warning("OAuth client secrets %s not found", secrets)
            return None
        return _installed_app(secrets, cfg.TOKEN_STORE, scopes)
    return None
