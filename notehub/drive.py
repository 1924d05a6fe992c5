"""Upload article images to a Drive folder that sits next to the spreadsheet."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from datetime import datetime
from typing import Optional

from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from .models import UploadResult

logger = logging.getLogger(__name__)

# errors a Drive round trip can end in
_DRIVE_ERRORS = (HttpError, GoogleAuthError, OSError, KeyError)

FOLDER_MIME = "application/vnd.google-apps.folder"
DEFAULT_FOLDER = "notehub-images"


def _service(creds):
    return build("drive", "v3", credentials=creds, cache_discovery=False)


def stamped_name(original: str, now: Optional[datetime] = None) -> str:
    """``photo.png`` -> ``20240102_030405_photo.png``."""

    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    parts = original.split(".")
    ext = f".{parts.pop()}" if len(parts) > 1 else ""
    base = ".".join(parts) or "image"
    return f"{stamp}_{base}{ext}"


def _parent_of(svc, file_id: str) -> str:
    meta = svc.files().get(fileId=file_id, fields="parents").execute()
    parents = meta.get("parents") or []
    return parents[0] if parents else "root"


def _folder(svc, parent: str, name: str) -> dict:
    escaped = name.replace("\\", "\\\\").replace("'", "\\'")
    query = (
        f"name = '{escaped}' and mimeType = '{FOLDER_MIME}' "
        f"and '{parent}' in parents and trashed = false"
    )
    found = svc.files().list(q=query, fields="files(id, name)", pageSize=1).execute()
    files = found.get("files") or []
    if files:
        return files[0]
    body = {"name": name, "mimeType": FOLDER_MIME, "parents": [parent]}
    return svc.files().create(body=body, fields="id, name").execute()


def _share(svc, file_id: str, domain: Optional[str]) -> Optional[str]:
    """Share view-only: domain-with-link first, anyone-with-link as fallback.

    Returns an error message when neither could be applied.
    """

    if domain:
        try:
            svc.permissions().create(
                fileId=file_id,
                body={
                    "type": "domain",
                    "role": "reader",
                    "domain": domain,
                    "allowFileDiscovery": False,
                },
            ).execute()
            return None
        except _DRIVE_ERRORS as exc:
            logger.warning("domain sharing failed for %s: %s", file_id, exc)
    try:
        svc.permissions().create(
            fileId=file_id, body={"type": "anyone", "role": "reader"}
        ).execute()
    except _DRIVE_ERRORS as exc:
        logger.error("anyone-with-link sharing failed for %s: %s", file_id, exc)
        return f"could not set file sharing: {exc}"
    return None


def upload_image(
    creds,
    spreadsheet_id: str,
    folder_name: str,
    file_name: str,
    mime_type: str,
    base64_data: str,
    share_domain: Optional[str] = None,
    service=None,
) -> UploadResult:
    try:
        data = base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError) as exc:
        return UploadResult(success=False, error=f"invalid image data: {exc}")

    try:
        svc = service or _service(creds)
        folder = _folder(svc, _parent_of(svc, spreadsheet_id), folder_name or DEFAULT_FOLDER)
        name = stamped_name(file_name)
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
        created = (
            svc.files()
            .create(
                body={"name": name, "parents": [folder["id"]]},
                media_body=media,
                fields="id",
            )
            .execute()
        )
        file_id = created["id"]
    except _DRIVE_ERRORS as exc:
        logger.error("Drive upload failed: %s", exc)
        return UploadResult(success=False, error=f"upload failed: {exc}")

    error = _share(svc, file_id, share_domain)
    if error:
        return UploadResult(success=False, error=error)
    return UploadResult(
        success=True,
        file_id=file_id,
        file_name=name,
        file_path=f"{folder.get('name', folder_name)}/{name}",
        file_url=f"https://lh3.googleusercontent.com/d/{file_id}",
    )
