"""Request id propagation for FastAPI applications."""

from __future__ import annotations

from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .logger import generate_request_id, request_context

__all__ = ["CorrelationIdMiddleware"]

_MAX_REQUEST_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the request and echo it on the response.

    The id is taken from the first non-empty candidate header, or generated.
    Error envelopes built while the request is in flight carry the same id.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        header_name: str = "X-Request-ID",
        correlation_header: str = "X-Correlation-ID",
    ) -> None:
        super().__init__(app)
        self.header_name = header_name
        self.correlation_header = correlation_header
        self._candidate_headers = list(
            dict.fromkeys(name for name in (header_name, correlation_header) if name)
        )

    def _resolve_request_id(self, request: Request) -> str:
        for header in self._candidate_headers:
            value = (request.headers.get(header) or "").strip()
            if value:
                return value[:_MAX_REQUEST_ID_LENGTH]
        return generate_request_id()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = self._resolve_request_id(request)
        request.state.request_id = request_id

        with request_context(request_id=request_id):
            response = await call_next(request)

        response.headers.setdefault(self.header_name, request_id)
        return response
