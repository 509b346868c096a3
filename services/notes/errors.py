"""Domain errors raised by the notes service."""

from __future__ import annotations

from typing import Iterable

from fastapi import status

from api_response.http.errors import ApiResponseError

__all__ = [
    "NoteNotFoundError",
    "NoteLockedError",
    "NotesQuotaExceeded",
    "NoteValidationError",
]


class NoteNotFoundError(ApiResponseError):
    """Raised when a requested note does not exist."""

    default_status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, note_id: str) -> None:
        self.note_id = note_id
        super().__init__(f"Note '{note_id}' was not found.", [{"noteId": note_id}])


class NoteValidationError(ApiResponseError):
    """Raised when a note payload breaks a business rule."""

    def __init__(self, errors: Iterable[str], *, status_code: int | None = None) -> None:
        super().__init__("Validation failed", errors, status_code=status_code)


class NoteLockedError(PermissionError):
    """Raised when a note is locked for editing."""


class NotesQuotaExceeded(Exception):
    """Raised when a caller exceeds the number of notes they may create."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Note quota of {limit} reached.")
        self.limit = limit

    def classify(self) -> tuple[str, ...]:
        return ("rate_limited",)
