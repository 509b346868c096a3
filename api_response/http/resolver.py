"""Resolve an exception into a status code, message and structured errors."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Callable, Iterable, Iterator, Mapping

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api_response.observability.logger import get_logger

from .errors import ApiResponseError, status_phrase
from .rules import RuleTable

__all__ = [
    "ExceptionHandler",
    "ExceptionResolver",
    "HandlerRegistry",
    "default_handler_registry",
]

logger = get_logger(__name__)

ExceptionHandler = Callable[[Any, "ExceptionResolver"], None]

_STATUS_ATTRIBUTES = ("status_code", "status")


class HandlerRegistry:
    """Custom handlers keyed by exception type.

    Lookup walks the exception's MRO, so the most specific registered type
    wins and at most one handler runs per exception.
    """

    def __init__(
        self, handlers: Mapping[type[BaseException], ExceptionHandler] | None = None
    ) -> None:
        self._handlers: dict[type[BaseException], ExceptionHandler] = dict(
            handlers or {}
        )

    def register(
        self,
        error_type: type[BaseException],
        handler: ExceptionHandler | None = None,
    ) -> Any:
        """Register ``handler`` for ``error_type``; usable as a decorator."""

        if handler is None:

            def decorator(func: ExceptionHandler) -> ExceptionHandler:
                self._handlers[error_type] = func
                return func

            return decorator

        self._handlers[error_type] = handler
        return handler

    def get(self, exception: BaseException) -> ExceptionHandler | None:
        for klass in type(exception).__mro__:
            handler = self._handlers.get(klass)
            if handler is not None:
                return handler
        return None

    def copy(self) -> "HandlerRegistry":
        return HandlerRegistry(self._handlers)

    def __contains__(self, error_type: object) -> bool:
        return error_type in self._handlers

    def __iter__(self) -> Iterator[type[BaseException]]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


class ExceptionResolver:
    """Accumulates the HTTP status, message and errors for one exception.

    Construction seeds state from the explicit ``status_code`` and from the
    exception's own ``status_code``/``status`` and ``message`` attributes,
    then runs :meth:`resolve`. Later writers override earlier ones: matching
    rules in table order, then the custom handler for the exception type.
    """

    def __init__(
        self,
        exception: BaseException,
        status_code: int | None = None,
        *,
        rules: RuleTable | None = None,
        handlers: HandlerRegistry | None = None,
    ) -> None:
        if exception is None:
            raise TypeError("ExceptionResolver requires an exception instance.")

        self.exception = exception
        self.rules = rules if rules is not None else RuleTable()
        self.handlers = handlers if handlers is not None else default_handler_registry()
        self.matched = False
        self._status_code: int | None = None
        self._message: str | None = None
        self._errors: list[Any] = []

        if status_code is not None:
            self.set_status_code(status_code)
        self._seed_from_exception()
        self.resolve()

    def _seed_from_exception(self) -> None:
        for attribute in _STATUS_ATTRIBUTES:
            value = getattr(self.exception, attribute, None)
            if isinstance(value, int) and not isinstance(value, bool):
                self.set_status_code(value)
                break

        message = getattr(self.exception, "message", None)
        if message is None and self.exception.args:
            message = str(self.exception)
        if message:
            self.set_message(str(message))

    def resolve(self) -> bool:
        """Apply every matching rule, then the custom handler.

        Returns ``True`` when at least one rule or handler fired.
        """

        matched = False
        for matcher, rule in self.rules.matching(self.exception):
            if rule.apply(self.exception, self):
                matched = True
                logger.debug(
                    "exception_rule_applied",
                    rule=matcher.identifier,
                    exception=self.get_exception_class(),
                )

        handler = self.handlers.get(self.exception)
        if handler is not None:
            handler(self.exception, self)
            matched = True

        self.matched = matched
        return matched

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_status_code(self, status_code: int) -> "ExceptionResolver":
        self._status_code = int(status_code)
        return self

    def set_message(self, message: str) -> "ExceptionResolver":
        self._message = str(message)
        return self

    def merge_errors(self, errors: Iterable[Any]) -> "ExceptionResolver":
        """Append ``errors`` in order; a string or mapping counts as one entry."""

        if isinstance(errors, (str, bytes, Mapping)):
            self._errors.append(errors)
        else:
            self._errors.extend(errors)
        return self

    def add_error(self, *errors: Any) -> "ExceptionResolver":
        self._errors.extend(errors)
        return self

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_status_code(self) -> int | None:
        return self._status_code

    def get_message(self) -> str | None:
        return self._message

    def get_errors(self) -> list[Any]:
        return list(self._errors)

    def get_exception_class(self) -> str:
        """Return the fully qualified class name of the exception."""

        klass = type(self.exception)
        return f"{klass.__module__}.{klass.__qualname__}"

    def get_exception_short_name(self) -> str:
        return type(self.exception).__name__

    def failed(self) -> bool:
        """Return ``True`` when no rule or handler fired for the exception."""

        return not self.matched


# ----------------------------------------------------------------------
# Built-in handlers
# ----------------------------------------------------------------------


def handle_api_response_error(
    error: ApiResponseError, resolver: ExceptionResolver
) -> None:
    """Unwrap the sub-errors, message and status carried by the error."""

    resolver.merge_errors(error.get_errors()).set_message(error.message).set_status_code(
        error.status_code
        if error.status_code is not None
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def _split_detail(detail: Any) -> tuple[str | None, list[Any]]:
    if isinstance(detail, Mapping):
        message = detail.get("detail") or detail.get("message") or detail.get("error")
        errors = detail.get("errors")
        if isinstance(errors, list):
            return (str(message) if message is not None else None), errors
        extras = {
            key: value
            for key, value in detail.items()
            if key not in {"detail", "message", "error"}
        }
        return (str(message) if message is not None else None), (
            [extras] if extras else []
        )
    if isinstance(detail, list):
        return None, detail
    if detail is None:
        return None, []
    return str(detail), []


def handle_http_exception(
    error: StarletteHTTPException, resolver: ExceptionResolver
) -> None:
    """Use the status and detail raised through ``HTTPException``."""

    message, errors = _split_detail(error.detail)
    resolver.set_status_code(error.status_code).set_message(
        message or status_phrase(error.status_code)
    ).merge_errors(errors)


def handle_request_validation_error(
    error: RequestValidationError, resolver: ExceptionResolver
) -> None:
    resolver.set_status_code(HTTPStatus.UNPROCESSABLE_ENTITY).set_message(
        "The given data was invalid."
    ).merge_errors(jsonable_encoder(error.errors()))


def default_handler_registry() -> HandlerRegistry:
    """Return a fresh registry holding the built-in handlers."""

    return HandlerRegistry(
        {
            ApiResponseError: handle_api_response_error,
            StarletteHTTPException: handle_http_exception,
            RequestValidationError: handle_request_validation_error,
        }
    )
