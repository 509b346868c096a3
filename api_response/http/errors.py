"""Exception types understood by the exception resolver."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Iterable, Protocol, runtime_checkable

__all__ = [
    "ApiResponseError",
    "ClassifiableError",
    "RuleConfigurationError",
    "status_phrase",
]


class ApiResponseError(RuntimeError):
    """Application error carrying its own message, sub-errors and status.

    ``status_code`` may be ``None``; the resolver then falls back to a
    generic internal server error.
    """

    default_message = "An error occurred"
    default_status_code: int | None = None

    def __init__(
        self,
        message: str | None = None,
        errors: Iterable[Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        resolved_message = message or self.default_message
        super().__init__(resolved_message)
        self.message = resolved_message
        self.errors = list(errors or [])
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )

    def get_errors(self) -> list[Any]:
        """Return a copy of the sub-errors carried by the exception."""

        return list(self.errors)


class RuleConfigurationError(ValueError):
    """Raised when a rule table entry cannot be applied as configured."""

    def __init__(
        self,
        message: str,
        *,
        error_type: object | None = None,
        mutator: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.mutator = mutator


@runtime_checkable
class ClassifiableError(Protocol):
    """Errors that describe themselves with category labels.

    Rules registered under a label (instead of a type) match any error whose
    ``classify()`` yields that label. A single label may be returned as a
    plain string.
    """

    def classify(self) -> str | Iterable[str]:
        ...


def status_phrase(status_code: int) -> str:
    """Return the reason phrase for ``status_code``."""

    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "HTTP Error"
