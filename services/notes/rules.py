"""Exception rules and custom handlers for the notes service."""

from __future__ import annotations

from fastapi import status

from api_response.http.resolver import (
    ExceptionResolver,
    HandlerRegistry,
    default_handler_registry,
)
from api_response.http.rules import RuleTable

from .errors import NotesQuotaExceeded

__all__ = ["build_handlers", "build_rules"]


def _quota_rule(error: BaseException, resolver: ExceptionResolver) -> bool:
    if not isinstance(error, NotesQuotaExceeded):
        return False
    resolver.add_error({"limit": error.limit})
    return True


def build_rules(*, strict: bool = True) -> RuleTable:
    """Return the rule table used by the notes service."""

    return RuleTable.from_mapping(
        {
            PermissionError: {
                "setMessage": "Not allowed",
                "setStatusCode": status.HTTP_403_FORBIDDEN,
            },
            "rate_limited": {
                "set_status_code": status.HTTP_429_TOO_MANY_REQUESTS,
                "set_message": "Too many notes.",
            },
            NotesQuotaExceeded: _quota_rule,
            LookupError: "lookup_failed",
        },
        strict=strict,
    )


def build_handlers() -> HandlerRegistry:
    """Return the built-in handlers plus the notes-specific ones."""

    handlers = default_handler_registry()

    @handlers.register(TimeoutError)
    def handle_timeout(error: TimeoutError, resolver: ExceptionResolver) -> None:
        resolver.set_status_code(status.HTTP_504_GATEWAY_TIMEOUT).set_message(
            "Upstream storage timed out."
        )

    return handlers
