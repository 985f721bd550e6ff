"""Text transformation and replacement blocks."""
from __future__ import annotations

import logging
from typing import Any

import regex

from .base import (
    BlockExecutionResult,
    BlockExecutor,
    ConfigError,
    Variables,
    block_label,
    config_str,
    load_config,
    parse_choice,
    variable_key,
)

logger = logging.getLogger(__name__)

TRANSFORM_OPERATIONS = ("Trim", "Lower", "Upper")
DEFAULT_RESULT_VARIABLE = "result"
REGEX_TIMEOUT = 0.25

_GROUP_REFERENCE = regex.compile(r"\$(\d+|\{\w+\})")


def _read_input(config, variables: Variables) -> str:
    literal = config.get("input")
    literal = "" if literal is None else str(literal)
    input_variable = config_str(config, "inputVariable")
    if input_variable.strip():
        value = variables.get(variable_key(input_variable), "")
        return value if value else literal
    return literal


def _result_variable(config) -> str:
    name = config_str(config, "resultVariable").strip()
    return variable_key(name) if name else DEFAULT_RESULT_VARIABLE


class TextTransformBlockExecutor(BlockExecutor):
    """Trims or re-cases a value and stores it in the result variable."""

    block_type = "TextTransform"
    requires_config = False

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid config for block {block_label(block)}: {exc}", True)

        operation = parse_choice(config.get("operation"), TRANSFORM_OPERATIONS, "Trim")
        value = _read_input(config, variables)
        if operation == "Lower":
            output = value.lower()
        elif operation == "Upper":
            output = value.upper()
        else:
            output = value.strip()

        result_variable = _result_variable(config)
        variables[result_variable] = output
        return BlockExecutionResult(f"TextTransform {operation} -> {result_variable}")


def _replacement_template(template: str) -> str:
    """Translate ``$1``/``${name}`` group references to the regex module syntax."""

    escaped = template.replace("\\", "\\\\")
    return _GROUP_REFERENCE.sub(lambda match: "\\g<" + match.group(1).strip("{}") + ">", escaped)


def apply_replacements(value: str, rules: list[Any], timeout: float = REGEX_TIMEOUT) -> str:
    current = value
    for rule in rules:
        if not isinstance(rule, dict):
            continue
        source = str(rule.get("from") or "")
        target = str(rule.get("to") or "")
        if not source:
            continue
        ignore_case = rule.get("ignoreCase") is True

        if rule.get("useRegex") is True:
            flags = regex.MULTILINE | (regex.IGNORECASE if ignore_case else 0)
            try:
                current = regex.sub(
                    source, _replacement_template(target), current, flags=flags, timeout=timeout
                )
            except (regex.error, TimeoutError, IndexError) as exc:
                logger.warning("Skipping replacement rule %r: %s", source, exc)
        elif ignore_case:
            current = regex.sub(
                regex.escape(source), lambda _match: target, current, flags=regex.IGNORECASE
            )
        else:
            current = current.replace(source, target)
    return current


class TextReplaceBlockExecutor(BlockExecutor):
    """Applies ordered literal or regex replacement rules to a value."""

    block_type = "TextReplace"
    requires_config = False

    def __init__(self, timeout: float = REGEX_TIMEOUT):
        self.timeout = timeout

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid config for block {block_label(block)}: {exc}", True)

        rules = config.get("replacements") or []
        if not isinstance(rules, list):
            return BlockExecutionResult("Invalid config: replacements must be a list", True)

        result_variable = _result_variable(config)
        variables[result_variable] = apply_replacements(
            _read_input(config, variables), rules, self.timeout
        )
        return BlockExecutionResult(f"TextReplace -> {result_variable} ({len(rules)} rule(s))")
