"""Application error taxonomy mapped onto the API failure envelope."""

from __future__ import annotations

from typing import Any, Optional

from . import constants


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    code: str = constants.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(AppError):
    """Transcription failed the template or field checks. Always recoverable."""

    status_code = 400
    code = constants.INVALID_MESSAGE_FORMAT


class RecordNotFoundError(AppError):
    status_code = 404
    code = constants.RECORD_NOT_FOUND


class PersistenceError(AppError):
    """A storage call failed. The original cause is chained and logged."""

    status_code = 500
    code = constants.DATABASE_ERROR


class SyncError(AppError):
    """External sink unreachable, timed out or rejected the row."""

    status_code = 502
    code = constants.GOOGLE_SHEETS_ERROR


class TranscriptionError(AppError):
    status_code = 502
    code = constants.TRANSCRIPTION_FAILED
