"""Exception resolution and JSON error responses."""

from .errors import (
    ApiResponseError,
    ClassifiableError,
    RuleConfigurationError,
    status_phrase,
)
from .rules import (
    ActionRule,
    CallableRule,
    ErrorMatcher,
    Rule,
    RuleTable,
    normalize_rule,
    resolve_error_type,
)
from .resolver import ExceptionResolver, HandlerRegistry, default_handler_registry
from .response import ApiErrorResponse, build_error_payload, error_response
from .exception_handlers import register_exception_handlers

__all__ = [
    "ActionRule",
    "ApiErrorResponse",
    "ApiResponseError",
    "CallableRule",
    "ClassifiableError",
    "ErrorMatcher",
    "ExceptionResolver",
    "HandlerRegistry",
    "Rule",
    "RuleConfigurationError",
    "RuleTable",
    "build_error_payload",
    "default_handler_registry",
    "error_response",
    "normalize_rule",
    "register_exception_handlers",
    "resolve_error_type",
    "status_phrase",
]
