from typing import Optional

from fastapi import Header, HTTPException, status

from .config import settings


def require_write_token(
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
):
    configured = (settings.API_TOKEN or "").strip()
    valid_keys = {k.strip() for k in settings.API_KEYS.split(",") if k.strip()}

    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if (configured and token == configured) or token in valid_keys:
            return
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="bad token")

    if x_api_key and x_api_key in valid_keys:
        return

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing token")


def current_user_email(
    x_user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
) -> str:
    """Identity of the signed-in user, set by the fronting proxy."""

    return (x_user_email or "").strip()
