"""Arithmetic and concatenation over two workflow variables."""
from __future__ import annotations

import math
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
)

OPERATIONS = ("Add", "Subtract", "Multiply", "Divide", "Concat")
_SYMBOLS = {"Add": "+", "Subtract": "-", "Multiply": "*", "Divide": "/", "Concat": "+"}


def parse_number(value: str | None) -> float:
    """Parse a number the lenient way users type them; failures read as 0."""

    if value is None:
        return 0.0
    text = value.strip()
    for candidate in (text, text.replace(",", ".")):
        try:
            return float(candidate)
        except ValueError:
            continue
    return 0.0


def format_number(value: float) -> str:
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _calculate(operation: str, a: float, b: float) -> float:
    if operation == "Add":
        return a + b
    if operation == "Subtract":
        return a - b
    if operation == "Multiply":
        return a * b
    if operation == "Divide":
        return a if b == 0 else a / b
    return a


class CalculationBlockExecutor(BlockExecutor):
    block_type = "Calculation"

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid config for block {block_label(block)}: {exc}", True)

        operation = parse_choice(config.get("operation"), OPERATIONS, "Add")
        first_name = config_str(config, "firstVariable")
        second_name = config_str(config, "secondVariable")
        destination = config_str(config, "resultVariable") or first_name

        first = variables.get(first_name, "")
        second = variables.get(second_name, "")

        if operation == "Concat":
            variables[destination] = first + second
            return BlockExecutionResult(f"{destination} = {first} + {second}")

        a = parse_number(first)
        b = parse_number(second)
        result = format_number(_calculate(operation, a, b))
        variables[destination] = result
        return BlockExecutionResult(
            f"{destination} = {format_number(a)} {_SYMBOLS[operation]} {format_number(b)} => {result}"
        )
