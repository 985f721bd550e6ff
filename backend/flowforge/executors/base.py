"""Shared contract and helpers for block executors."""
from __future__ import annotations

import json
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any

from requests.structures import CaseInsensitiveDict

Variables = MutableMapping[str, str]


class ConfigError(ValueError):
    """Raised when a block configuration payload cannot be used."""


@dataclass(frozen=True)
class BlockExecutionResult:
    """Outcome of running one block: a description and the error-edge flag."""

    description: str
    error: bool = False


class BlockExecutor:
    """Strategy for one block type.

    Subclasses set ``block_type`` and implement :meth:`execute`. When
    ``requires_config`` is true a block with a blank configuration is left to
    the next executor in the registry.
    """

    block_type: str = ""
    requires_config: bool = True

    def can_execute(self, block: Any) -> bool:
        if block_type_of(block) != self.block_type:
            return False
        if self.requires_config:
            return bool((getattr(block, "json_config", None) or "").strip())
        return True

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        raise NotImplementedError


def block_type_of(block: Any) -> str | None:
    type_name = getattr(block, "type_name", None)
    if type_name is not None:
        return type_name
    system_block = getattr(block, "system_block", None)
    return getattr(system_block, "type", None)


def block_label(block: Any) -> str:
    name = getattr(block, "name", None)
    if name and name.strip():
        return name
    return block_type_of(block) or str(getattr(block, "id", ""))


def load_config(block: Any) -> CaseInsensitiveDict:
    """Parse the block's JSON configuration into a case-insensitive mapping."""

    raw = (getattr(block, "json_config", None) or "").strip()
    if not raw:
        return CaseInsensitiveDict()
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    if not isinstance(payload, dict):
        raise ConfigError("configuration must be a JSON object")
    return CaseInsensitiveDict(payload)


def config_str(config: CaseInsensitiveDict, key: str, default: str = "") -> str:
    value = config.get(key)
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def parse_choice(value: Any, choices: tuple[str, ...], default: str) -> str:
    """Match ``value`` against ``choices`` ignoring case, else ``default``."""

    if isinstance(value, str):
        candidate = value.strip().lower()
        for choice in choices:
            if choice.lower() == candidate:
                return choice
    return default


def variable_key(name: str) -> str:
    return name.strip().lstrip("$")


def resolve_operand(value: str | None, variables: Variables) -> str:
    """Return a literal, or the variable's value for ``$name`` references."""

    if value is None or not value.strip():
        return ""
    if value.startswith("$"):
        return variables.get(value[1:], "")
    return value
