"""Rule table mapping exception types to resolver writes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Union,
)

from pydantic import ImportString, TypeAdapter, ValidationError

from api_response.observability.logger import get_logger

from .errors import ClassifiableError, RuleConfigurationError

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .resolver import ExceptionResolver

__all__ = [
    "ActionRule",
    "CallableRule",
    "ERROR_MUTATOR",
    "ErrorMatcher",
    "KNOWN_MUTATORS",
    "Rule",
    "RuleCallable",
    "RuleTable",
    "normalize_mutator_name",
    "normalize_rule",
    "resolve_error_type",
]

logger = get_logger(__name__)

ERROR_MUTATOR = "add_error"
KNOWN_MUTATORS = frozenset(
    {"set_status_code", "set_message", "merge_errors", ERROR_MUTATOR}
)
# Mutators taking exactly one argument; ``merge_errors`` receives its sequence whole.
_SINGLE_ARGUMENT_MUTATORS = frozenset({"set_status_code", "set_message", "merge_errors"})

RuleCallable = Callable[[BaseException, "ExceptionResolver"], Optional[bool]]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_IMPORT_ADAPTER: TypeAdapter[Any] = TypeAdapter(ImportString)


def normalize_mutator_name(name: str) -> str:
    """Return ``name`` in snake_case (``setStatusCode`` -> ``set_status_code``)."""

    cleaned = name.strip().replace("-", "_")
    return _CAMEL_BOUNDARY.sub("_", cleaned).lower()


def _as_args(name: str, value: Any) -> tuple[Any, ...]:
    # ``merge_errors`` takes one sequence; other mutators spread list values.
    if name == "merge_errors":
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


@dataclass(frozen=True)
class ActionRule:
    """Ordered mutator calls applied to the resolver when the rule matches."""

    actions: tuple[tuple[str, tuple[Any, ...]], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ActionRule":
        return cls(
            tuple(
                (mutator, _as_args(mutator, value))
                for mutator, value in (
                    (normalize_mutator_name(str(name)), value)
                    for name, value in mapping.items()
                )
            )
        )

    @classmethod
    def for_errors(cls, *errors: Any) -> "ActionRule":
        """Return a rule adding ``errors`` as structured error entries."""

        return cls(((ERROR_MUTATOR, tuple(errors)),))

    def unknown_mutators(self) -> list[str]:
        return [name for name, _ in self.actions if name not in KNOWN_MUTATORS]

    def misshapen_mutators(self) -> list[str]:
        """Return known mutators configured with the wrong number of arguments."""

        return [
            name
            for name, args in self.actions
            if (name in _SINGLE_ARGUMENT_MUTATORS and len(args) != 1)
            or (name == ERROR_MUTATOR and not args)
        ]

    def apply(self, error: BaseException, resolver: "ExceptionResolver") -> bool:
        skipped = set(self.misshapen_mutators())
        for name, args in self.actions:
            if name not in KNOWN_MUTATORS or name in skipped:
                continue
            getattr(resolver, name)(*args)
        return True


@dataclass(frozen=True)
class CallableRule:
    """Rule delegating to ``func(error, resolver)``.

    The rule counts as fired unless ``func`` explicitly returns ``False``.
    """

    func: RuleCallable

    def apply(self, error: BaseException, resolver: "ExceptionResolver") -> bool:
        return self.func(error, resolver) is not False


Rule = Union[ActionRule, CallableRule]


def normalize_rule(value: Any, *, error_type: object = None) -> Rule:
    """Normalize a configured rule value into an :class:`ActionRule` or :class:`CallableRule`."""

    if isinstance(value, (ActionRule, CallableRule)):
        return value
    if isinstance(value, Mapping):
        return ActionRule.from_mapping(value)
    if isinstance(value, (list, tuple)):
        return ActionRule.for_errors(*value)
    if callable(value):
        return CallableRule(value)
    if value is None:
        raise RuleConfigurationError(
            f"Rule for '{error_type}' has no value.", error_type=error_type
        )
    return ActionRule.for_errors(value)


def resolve_error_type(identifier: str) -> type:
    """Import the exception type named by a dotted path.

    Both ``package.module.ClassName`` and ``package.module:ClassName`` are
    accepted.
    """

    try:
        resolved = _IMPORT_ADAPTER.validate_python(identifier)
    except ValidationError as exc:
        raise RuleConfigurationError(
            f"Cannot import error type '{identifier}'.", error_type=identifier
        ) from exc
    if not isinstance(resolved, type):
        raise RuleConfigurationError(
            f"'{identifier}' does not name a type.", error_type=identifier
        )
    return resolved


def _is_dotted(identifier: str) -> bool:
    return "." in identifier or ":" in identifier


@dataclass(frozen=True)
class ErrorMatcher:
    """Matches an error by type (``isinstance``) or by category label."""

    error_type: type | None = None
    category: str | None = None

    @classmethod
    def for_key(cls, key: Any) -> "ErrorMatcher":
        if isinstance(key, ErrorMatcher):
            return key
        if isinstance(key, type):
            return cls(error_type=key)
        if isinstance(key, str):
            if _is_dotted(key):
                return cls(error_type=resolve_error_type(key))
            return cls(category=key)
        raise RuleConfigurationError(
            f"Unsupported rule key {key!r}.", error_type=key
        )

    @property
    def identifier(self) -> str:
        if self.error_type is not None:
            return f"{self.error_type.__module__}.{self.error_type.__qualname__}"
        return self.category or ""

    def matches(self, error: BaseException) -> bool:
        if self.error_type is not None:
            return isinstance(error, self.error_type)
        if isinstance(error, ClassifiableError):
            labels = error.classify()
            if isinstance(labels, str):
                return self.category == labels
            return self.category in set(labels)
        return False


class RuleTable:
    """Read-only, ordered collection of ``(matcher, rule)`` entries.

    In permissive mode (the default) action rules naming unknown mutators, or
    passing the wrong number of arguments, are logged once here and skipped
    when applied; in strict mode construction fails with
    :class:`RuleConfigurationError`.
    """

    def __init__(
        self,
        entries: Iterable[tuple[ErrorMatcher, Rule]] = (),
        *,
        strict: bool = False,
    ) -> None:
        self._entries: tuple[tuple[ErrorMatcher, Rule], ...] = tuple(entries)
        self.strict = strict
        for problem in self.validate():
            logger.warning(
                "rule_unknown_mutator"
                if problem.mutator not in KNOWN_MUTATORS
                else "rule_invalid_arguments",
                error_type=problem.error_type,
                mutator=problem.mutator,
            )

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[Any, Any], *, strict: bool = False
    ) -> "RuleTable":
        """Build a table from ``{error type or label: rule value}`` in insertion order.

        Dotted string keys that cannot be imported are dropped with a warning,
        or raise in strict mode.
        """

        entries: list[tuple[ErrorMatcher, Rule]] = []
        for key, value in mapping.items():
            try:
                matcher = ErrorMatcher.for_key(key)
            except RuleConfigurationError as exc:
                if strict:
                    raise
                logger.warning("rule_unresolved_error_type", error_type=key, error=str(exc))
                continue
            entries.append((matcher, normalize_rule(value, error_type=key)))
        return cls(entries, strict=strict)

    def validate(self) -> list[RuleConfigurationError]:
        """Return configuration problems, raising the first one in strict mode."""

        problems: list[RuleConfigurationError] = []
        for matcher, rule in self._entries:
            if not isinstance(rule, ActionRule):
                continue
            for name in rule.unknown_mutators():
                problem = RuleConfigurationError(
                    f"Rule for '{matcher.identifier}' names unknown mutator '{name}'.",
                    error_type=matcher.identifier,
                    mutator=name,
                )
                if self.strict:
                    raise problem
                problems.append(problem)
            for name in rule.misshapen_mutators():
                problem = RuleConfigurationError(
                    f"Rule for '{matcher.identifier}' passes the wrong number of "
                    f"arguments to '{name}'.",
                    error_type=matcher.identifier,
                    mutator=name,
                )
                if self.strict:
                    raise problem
                problems.append(problem)
        return problems

    def lookup(self, error_type: type | str) -> Rule | None:
        """Return the rule registered exactly under ``error_type``, if any."""

        matcher = ErrorMatcher.for_key(error_type)
        for candidate, rule in self._entries:
            if candidate == matcher:
                return rule
        return None

    def matching(self, error: BaseException) -> list[tuple[ErrorMatcher, Rule]]:
        """Return every entry satisfied by ``error``, in table order."""

        return [(matcher, rule) for matcher, rule in self._entries if matcher.matches(error)]

    def __iter__(self) -> Iterator[tuple[ErrorMatcher, Rule]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
