"""Tests for rule normalization and the rule table."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from structlog.testing import CapturingLogger

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import api_response.http.rules as rules_module  # noqa: E402
from api_response.http.errors import ApiResponseError, RuleConfigurationError  # noqa: E402
from api_response.http.resolver import ExceptionResolver  # noqa: E402
from api_response.http.rules import (  # noqa: E402
    ActionRule,
    CallableRule,
    ErrorMatcher,
    RuleTable,
    normalize_mutator_name,
    normalize_rule,
    resolve_error_type,
)


class SampleError(Exception):
    pass


@pytest.fixture
def captured_logger(monkeypatch: pytest.MonkeyPatch) -> CapturingLogger:
    capturing = CapturingLogger()
    monkeypatch.setattr(rules_module, "logger", capturing)
    return capturing


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("setStatusCode", "set_status_code"),
        ("set_message", "set_message"),
        ("mergeErrors", "merge_errors"),
        (" add-error ", "add_error"),
    ],
)
def test_normalize_mutator_name(name: str, expected: str) -> None:
    assert normalize_mutator_name(name) == expected


def test_mapping_rule_passes_merge_errors_sequence_whole() -> None:
    rule = normalize_rule({"setStatusCode": 403, "mergeErrors": ["a", "b"]})

    assert rule == ActionRule(
        (("set_status_code", (403,)), ("merge_errors", (["a", "b"],)))
    )


def test_sequence_and_scalar_rules_target_add_error() -> None:
    assert normalize_rule(["a", "b"]) == ActionRule((("add_error", ("a", "b")),))
    assert normalize_rule("only") == ActionRule((("add_error", ("only",)),))


def test_callable_rule_is_wrapped() -> None:
    def rule(error: BaseException, resolver: object) -> bool:
        return True

    assert normalize_rule(rule) == CallableRule(rule)


def test_none_rule_is_rejected() -> None:
    with pytest.raises(RuleConfigurationError):
        normalize_rule(None, error_type="SampleError")


def test_resolve_error_type_accepts_both_path_styles() -> None:
    assert resolve_error_type("api_response.http.errors.ApiResponseError") is ApiResponseError
    assert resolve_error_type("api_response.http.errors:ApiResponseError") is ApiResponseError


def test_resolve_error_type_rejects_unknown_and_non_types() -> None:
    with pytest.raises(RuleConfigurationError):
        resolve_error_type("api_response.http.errors.DoesNotExist")
    with pytest.raises(RuleConfigurationError):
        resolve_error_type("api_response.http.errors.status_phrase")


def test_matcher_for_keys() -> None:
    assert ErrorMatcher.for_key(SampleError) == ErrorMatcher(error_type=SampleError)
    assert ErrorMatcher.for_key("throttled") == ErrorMatcher(category="throttled")
    assert ErrorMatcher.for_key("builtins.KeyError") == ErrorMatcher(error_type=KeyError)
    assert ErrorMatcher(error_type=KeyError).identifier == "builtins.KeyError"
    with pytest.raises(RuleConfigurationError):
        ErrorMatcher.for_key(42)


def test_category_matcher_ignores_unclassifiable_errors() -> None:
    assert ErrorMatcher(category="throttled").matches(SampleError()) is False


class RateLimitedError(Exception):
    def classify(self) -> str:
        return "rate_limited"


def test_category_matcher_treats_string_label_as_one_label() -> None:
    assert ErrorMatcher(category="rate_limited").matches(RateLimitedError()) is True
    assert ErrorMatcher(category="r").matches(RateLimitedError()) is False


def test_string_label_rule_sets_status() -> None:
    table = RuleTable.from_mapping({"rate_limited": {"set_status_code": 429}})

    resolver = ExceptionResolver(RateLimitedError(), rules=table)

    assert resolver.get_status_code() == 429


def test_table_preserves_insertion_order() -> None:
    table = RuleTable.from_mapping(
        {SampleError: "first", Exception: "second", "label": "third"}
    )

    assert [matcher.identifier for matcher, _ in table] == [
        f"{__name__}.SampleError",
        "builtins.Exception",
        "label",
    ]
    assert len(table) == 3


def test_matching_returns_entries_in_table_order() -> None:
    table = RuleTable.from_mapping(
        {Exception: "generic", KeyError: "key", SampleError: "sample"}
    )

    matched = table.matching(SampleError())

    assert [rule for _, rule in matched] == [
        ActionRule((("add_error", ("generic",)),)),
        ActionRule((("add_error", ("sample",)),)),
    ]


def test_lookup_finds_exact_entries_only() -> None:
    table = RuleTable.from_mapping({Exception: "generic", "label": "tagged"})

    assert table.lookup(Exception) == ActionRule((("add_error", ("generic",)),))
    assert table.lookup("label") == ActionRule((("add_error", ("tagged",)),))
    assert table.lookup(SampleError) is None


def test_permissive_table_warns_about_unknown_mutators(
    captured_logger: CapturingLogger,
) -> None:
    table = RuleTable.from_mapping({SampleError: {"set_message": "x", "fly": True}})

    problems = table.validate()

    assert [problem.mutator for problem in problems] == ["fly"]
    warnings = [call for call in captured_logger.calls if call.method_name == "warning"]
    assert len(warnings) == 1
    assert warnings[0].args == ("rule_unknown_mutator",)
    assert warnings[0].kwargs["mutator"] == "fly"


def test_strict_table_rejects_unknown_mutators() -> None:
    with pytest.raises(RuleConfigurationError) as excinfo:
        RuleTable.from_mapping({SampleError: {"setMesage": "typo"}}, strict=True)

    assert excinfo.value.mutator == "set_mesage"
    assert excinfo.value.error_type == f"{__name__}.SampleError"


def test_wrong_argument_count_is_reported(captured_logger: CapturingLogger) -> None:
    table = RuleTable.from_mapping({SampleError: {"setStatusCode": [400, 401]}})

    assert [problem.mutator for problem in table.validate()] == ["set_status_code"]
    assert captured_logger.calls[0].args == ("rule_invalid_arguments",)
    with pytest.raises(RuleConfigurationError):
        RuleTable.from_mapping({SampleError: {"setStatusCode": [400, 401]}}, strict=True)


def test_unresolvable_dotted_keys_are_dropped_when_permissive(
    captured_logger: CapturingLogger,
) -> None:
    table = RuleTable.from_mapping(
        {"missing.module.Error": "ignored", SampleError: "kept"}
    )

    assert len(table) == 1
    assert captured_logger.calls[0].args == ("rule_unresolved_error_type",)


def test_unresolvable_dotted_keys_raise_when_strict() -> None:
    with pytest.raises(RuleConfigurationError):
        RuleTable.from_mapping({"missing.module.Error": "ignored"}, strict=True)
