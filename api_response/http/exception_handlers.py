"""Register resolver-backed exception handlers on a FastAPI application."""

from __future__ import annotations

from typing import Iterable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api_response.config.settings import Settings, get_settings
from api_response.observability.logger import get_logger, get_request_id

from .resolver import ExceptionResolver, HandlerRegistry, default_handler_registry
from .response import ApiErrorResponse, error_response
from .rules import RuleTable

__all__ = ["register_exception_handlers"]

logger = get_logger(__name__)


def register_exception_handlers(
    app: FastAPI,
    *,
    rules: RuleTable | None = None,
    handlers: HandlerRegistry | None = None,
    settings: Settings | None = None,
    extra_types: Iterable[type[BaseException]] = (),
) -> None:
    """Translate every exception raised by ``app`` into a JSON error envelope.

    ``rules`` defaults to the table configured in settings and ``handlers`` to
    the built-in registry. Both are built once here and shared by all requests.

    Each concrete type named by the table or the registry gets its own
    handler, which runs inside user middleware. Anything else, including
    errors matched only by a category label, falls through to the catch-all
    ``Exception`` handler. Starlette runs that one in ``ServerErrorMiddleware``,
    outside user middleware: the envelope then has no ``requestId`` and the
    error is re-raised to the server after the response is sent. Pass such
    types in ``extra_types`` to resolve them like the named ones.
    """

    from api_response.config.rules_loader import rule_table_from_settings

    resolved_settings = settings or get_settings()
    table = rules if rules is not None else rule_table_from_settings(resolved_settings)
    registry = handlers if handlers is not None else default_handler_registry()
    debug = resolved_settings.exceptions.debug

    def _resolve(request: Request, exc: Exception) -> JSONResponse:
        try:
            resolver = ExceptionResolver(exc, rules=table, handlers=registry)
        except Exception as resolution_error:
            logger.exception(
                "exception_resolution_failed",
                error=str(resolution_error),
                exc_info=resolution_error,
                original_error=str(exc),
                path=str(request.url),
            )
            payload = ApiErrorResponse(request_id=get_request_id())
            return JSONResponse(
                payload.model_dump(mode="json", by_alias=True, exclude_none=True),
                status_code=payload.status,
            )

        response = error_response(resolver, debug=debug)
        if response.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.exception(
                "unhandled_exception",
                error=str(exc),
                exc_info=exc,
                exception=resolver.get_exception_class(),
                path=str(request.url),
                matched=resolver.matched,
            )
        else:
            logger.info(
                "exception_resolved",
                exception=resolver.get_exception_class(),
                status=response.status_code,
                path=str(request.url),
                matched=resolver.matched,
            )
        return response

    # Starlette re-raises anything that only reaches the ``Exception`` handler,
    # so every concrete type we know how to resolve gets its own registration.
    known_types: list[type] = [StarletteHTTPException, RequestValidationError]
    known_types.extend(matcher.error_type for matcher, _ in table if matcher.error_type)
    known_types.extend(registry)
    known_types.extend(extra_types)
    for error_type in dict.fromkeys(known_types):
        if issubclass(error_type, Exception) and error_type is not Exception:
            app.add_exception_handler(error_type, _resolve)
    app.add_exception_handler(Exception, _resolve)
