"""Block executors tried in registration order; the default runs last."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .base import BlockExecutionResult, BlockExecutor, ConfigError
from .calculation import CalculationBlockExecutor
from .condition import ConditionBlockExecutor
from .default import DefaultBlockExecutor
from .http_request import DEFAULT_TIMEOUT, HttpRequestBlockExecutor
from .parser import ParserBlockExecutor
from .switch import SwitchBlockExecutor
from .text import TextReplaceBlockExecutor, TextTransformBlockExecutor
from .wait import DEFAULT_MAX_DELAY_MS, WaitBlockExecutor


def build_executors(
    *,
    skip_waits: bool = False,
    http_timeout: float = DEFAULT_TIMEOUT,
    max_wait_ms: int = DEFAULT_MAX_DELAY_MS,
) -> list[BlockExecutor]:
    """Return the executor chain for one evaluation."""

    return [
        CalculationBlockExecutor(),
        ConditionBlockExecutor(),
        SwitchBlockExecutor(),
        HttpRequestBlockExecutor(timeout=http_timeout),
        ParserBlockExecutor(),
        TextTransformBlockExecutor(),
        TextReplaceBlockExecutor(),
        WaitBlockExecutor(skip=skip_waits, max_delay_ms=max_wait_ms),
        DefaultBlockExecutor(),
    ]


def find_executor(block: Any, executors: Sequence[BlockExecutor]) -> BlockExecutor:
    """Return the first executor that accepts ``block``."""

    for executor in executors:
        if executor.can_execute(block):
            return executor
    return DefaultBlockExecutor()


__all__ = [
    "BlockExecutionResult",
    "BlockExecutor",
    "ConfigError",
    "build_executors",
    "find_executor",
]
