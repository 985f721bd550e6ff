"""Delay block."""
from __future__ import annotations

import math
import time
from typing import Any

from .base import (
    BlockExecutionResult,
    BlockExecutor,
    ConfigError,
    Variables,
    block_label,
    config_str,
    load_config,
    variable_key,
)
from .calculation import parse_number

DEFAULT_MAX_DELAY_MS = 30_000


class WaitBlockExecutor(BlockExecutor):
    """Sleeps for ``delayMs`` (or the value of ``delayVariable``), clipped to a maximum.

    Unattended runs construct it with ``skip=True`` so nothing sleeps.
    """

    block_type = "Wait"
    requires_config = False

    def __init__(self, skip: bool = False, max_delay_ms: int = DEFAULT_MAX_DELAY_MS, sleep=None):
        self.skip = skip
        self.max_delay_ms = max_delay_ms
        self._sleep = sleep or time.sleep

    def delay_ms(self, config, variables: Variables) -> int:
        delay = parse_number(str(config.get("delayMs") or 0))
        delay_variable = config_str(config, "delayVariable")
        if delay_variable.strip():
            value = variables.get(variable_key(delay_variable), "")
            if value.strip():
                delay = parse_number(value)
        if not math.isfinite(delay):
            delay = 0
        return int(min(max(delay, 0), self.max_delay_ms))

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        try:
            config = load_config(block)
        except ConfigError as exc:
            return BlockExecutionResult(f"Invalid config for block {block_label(block)}: {exc}", True)

        delay = self.delay_ms(config, variables)
        if self.skip:
            return BlockExecutionResult(f"Wait {delay} ms skipped")
        if delay:
            self._sleep(delay / 1000)
        return BlockExecutionResult(f"Waited {delay} ms")
