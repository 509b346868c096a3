"""Load the exception rule table from a JSON configuration file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from api_response.config.settings import Settings, get_settings
from api_response.http.errors import RuleConfigurationError
from api_response.http.rules import RuleTable, resolve_error_type
from api_response.observability.logger import get_logger

__all__ = [
    "build_rule_table",
    "load_rules_file",
    "resolve_error_type",
    "rule_table_from_settings",
]

logger = get_logger(__name__)


def load_rules_file(path: str | Path) -> dict[str, Any]:
    """Return the ordered ``{error type: rule}`` mapping stored at ``path``."""

    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RuleConfigurationError(
            f"Rules file '{file_path}' is not valid JSON: {exc.msg}"
        ) from exc
    if not isinstance(data, dict):
        raise RuleConfigurationError(
            f"Rules file '{file_path}' must contain a JSON object."
        )
    return data


def build_rule_table(mapping: Mapping[Any, Any], *, strict: bool = False) -> RuleTable:
    return RuleTable.from_mapping(mapping, strict=strict)


def rule_table_from_settings(settings: Settings | None = None) -> RuleTable:
    """Return the rule table configured by ``settings`` (empty when none is set)."""

    resolved = settings or get_settings()
    config = resolved.exceptions
    if not config.rules_file:
        return RuleTable(strict=config.strict_rules)

    mapping = load_rules_file(config.rules_file)
    table = build_rule_table(mapping, strict=config.strict_rules)
    logger.info(
        "exception_rules_loaded",
        path=config.rules_file,
        rules=len(table),
        strict=config.strict_rules,
    )
    return table
