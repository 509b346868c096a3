"""JSON error envelope built from a resolved exception."""

from __future__ import annotations

import traceback
from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from api_response.observability.logger import get_request_id

from .errors import status_phrase
from .resolver import ExceptionResolver

__all__ = [
    "ApiErrorResponse",
    "build_error_payload",
    "error_response",
]


class ApiErrorResponse(BaseModel):
    """Envelope returned to clients when a request fails."""

    success: bool = Field(default=False)
    status: int = Field(default=status.HTTP_500_INTERNAL_SERVER_ERROR)
    message: str = Field(default="Internal Server Error")
    errors: list[Any] = Field(default_factory=list)
    exception: str | None = Field(
        default=None, description="Exception class, only populated in debug mode"
    )
    request_id: str | None = Field(default=None, alias="requestId")
    trace: list[str] | None = Field(
        default=None, description="Formatted traceback, only populated in debug mode"
    )

    model_config = ConfigDict(populate_by_name=True)


def build_error_payload(
    resolver: ExceptionResolver, *, debug: bool = False
) -> ApiErrorResponse:
    """Return the envelope for ``resolver``, filling in defaults for unset fields."""

    status_code = resolver.get_status_code() or status.HTTP_500_INTERNAL_SERVER_ERROR
    message = resolver.get_message() or status_phrase(status_code)

    exception_name: str | None = None
    trace: list[str] | None = None
    if debug:
        exception_name = resolver.get_exception_class()
        error = resolver.exception
        trace = traceback.format_exception(type(error), error, error.__traceback__)

    return ApiErrorResponse(
        status=status_code,
        message=message,
        errors=resolver.get_errors(),
        exception=exception_name,
        request_id=get_request_id(),
        trace=trace,
    )


def error_response(resolver: ExceptionResolver, *, debug: bool = False) -> JSONResponse:
    payload = build_error_payload(resolver, debug=debug)
    return JSONResponse(
        payload.model_dump(mode="json", by_alias=True, exclude_none=True),
        status_code=payload.status,
    )
