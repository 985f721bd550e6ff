"""Multi-branch block; the runner picks the branch from connection labels."""
from __future__ import annotations

import re
from typing import Any

from .base import (
    BlockExecutionResult,
    BlockExecutor,
    ConfigError,
    Variables,
    block_label,
    config_str,
    load_config,
    resolve_operand,
)

# Editor labels may carry an ordinal prefix such as "#3 · gold".
_ORDINAL_PREFIX = re.compile(r"^\s*#\d+\s*(?:[·•:.\-|)]\s*)?")


def switch_value(block: Any, variables: Variables) -> str:
    """Resolve the configured expression of a Switch block."""

    try:
        config = load_config(block)
    except ConfigError:
        return ""
    return resolve_operand(config_str(config, "expression"), variables)


def normalize_label(label: str | None, variables: Variables) -> str:
    """Strip ordinal markers and whitespace, then resolve ``$variable`` labels."""

    if not label:
        return ""
    cleaned = _ORDINAL_PREFIX.sub("", label).strip()
    if cleaned.startswith("$"):
        return resolve_operand(cleaned, variables).strip()
    return cleaned


class SwitchBlockExecutor(BlockExecutor):
    block_type = "Switch"

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid config for block {block_label(block)}: {exc}", True)

        expression = config_str(config, "expression")
        evaluated = resolve_operand(expression, variables)
        return BlockExecutionResult(f"SWITCH {expression} => {evaluated}")
