from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """What went wrong, and therefore how far the failure reaches."""

    CONFIG_ABSENT = "config_absent"  # resolved to a default, never surfaced
    API_REJECTED = "api_rejected"  # remote said ok=false; fatal for the channel
    CALL_FAILED = "call_failed"  # transport or parse failure
    MALFORMED_ROW = "malformed_row"  # stored cell unusable; skipped
    NOT_FOUND = "not_found"  # no such row, or not the caller's


class NoteHubError(Exception):
    kind: ErrorKind = ErrorKind.CALL_FAILED

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class SlackCallError(NoteHubError):
    kind = ErrorKind.CALL_FAILED


class StoreError(NoteHubError):
    kind = ErrorKind.CALL_FAILED


class ArticleNotFound(NoteHubError):
    kind = ErrorKind.NOT_FOUND
