"""Two-operand comparison routing to the Success or Error edge."""
from __future__ import annotations

import operator
from typing import Any

from .base import (
    BlockExecutionResult,
    BlockExecutor,
    ConfigError,
    Variables,
    block_label,
    config_str,
    load_config,
    parse_choice,
    resolve_operand,
)
from .calculation import parse_number

DATA_TYPES = ("String", "Number")
OPERATIONS = ("Equal", "NotEqual", "GreaterThan", "LessThan", "GreaterOrEqual", "LessOrEqual")

_COMPARATORS = {
    "Equal": (operator.eq, "=="),
    "NotEqual": (operator.ne, "!="),
    "GreaterThan": (operator.gt, ">"),
    "LessThan": (operator.lt, "<"),
    "GreaterOrEqual": (operator.ge, ">="),
    "LessOrEqual": (operator.le, "<="),
}


class ConditionBlockExecutor(BlockExecutor):
    """Evaluates an ``If`` block; a false condition signals the error edge."""

    block_type = "If"

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid config for block {block_label(block)}: {exc}", True)

        data_type = parse_choice(config.get("dataType"), DATA_TYPES, "String")
        operation = parse_choice(config.get("operation"), OPERATIONS, "Equal")
        first = resolve_operand(config_str(config, "first"), variables)
        second = resolve_operand(config_str(config, "second"), variables)

        compare, symbol = _COMPARATORS[operation]
        if data_type == "Number":
            condition = compare(parse_number(first), parse_number(second))
        else:
            condition = compare(first, second)

        return BlockExecutionResult(f"IF {first} {symbol} {second} => {condition}", not condition)
