"""Tests for the JSON error envelope."""

from __future__ import annotations

import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from api_response.http.errors import ApiResponseError, status_phrase  # noqa: E402
from api_response.http.resolver import ExceptionResolver  # noqa: E402
from api_response.http.response import build_error_payload, error_response  # noqa: E402
from api_response.http.rules import RuleTable  # noqa: E402
from api_response.observability.logger import request_context  # noqa: E402


class SilentError(Exception):
    pass


def _raise_and_capture(error: Exception) -> Exception:
    try:
        raise error
    except Exception as exc:
        return exc


def test_unresolved_error_defaults_to_500_and_reason_phrase() -> None:
    payload = build_error_payload(ExceptionResolver(SilentError(), rules=RuleTable()))

    assert payload.success is False
    assert payload.status == 500
    assert payload.message == "Internal Server Error"
    assert payload.errors == []
    assert payload.exception is None
    assert payload.trace is None


def test_missing_message_uses_phrase_of_resolved_status() -> None:
    rules = RuleTable.from_mapping({SilentError: {"set_status_code": 404}})

    payload = build_error_payload(ExceptionResolver(SilentError(), rules=rules))

    assert payload.status == 404
    assert payload.message == "Not Found"


def test_status_phrase_for_unknown_codes() -> None:
    assert status_phrase(418) == "I'm a Teapot"
    assert status_phrase(599) == "HTTP Error"


def test_debug_payload_includes_exception_and_trace() -> None:
    error = _raise_and_capture(ApiResponseError("Boom", status_code=409))

    payload = build_error_payload(ExceptionResolver(error), debug=True)

    assert payload.exception == "api_response.http.errors.ApiResponseError"
    assert payload.trace is not None
    assert any("Traceback" in line for line in payload.trace)
    assert "ApiResponseError: Boom" in payload.trace[-1]


def test_payload_carries_bound_request_id() -> None:
    with request_context("req-123"):
        payload = build_error_payload(ExceptionResolver(ApiResponseError("x")))

    assert payload.request_id == "req-123"


def test_error_response_serializes_envelope() -> None:
    error = ApiResponseError("Validation failed", ["field required"], status_code=422)

    with request_context("req-456"):
        response = error_response(ExceptionResolver(error))

    assert response.status_code == 422
    assert json.loads(response.body) == {
        "success": False,
        "status": 422,
        "message": "Validation failed",
        "errors": ["field required"],
        "requestId": "req-456",
    }
