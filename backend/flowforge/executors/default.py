"""Catch-all executor for blocks without type-specific behaviour."""
from __future__ import annotations

from typing import Any

from .base import BlockExecutionResult, BlockExecutor, Variables, block_label


class DefaultBlockExecutor(BlockExecutor):
    def can_execute(self, block: Any) -> bool:
        return True

    def execute(self, block: Any, variables: Variables) -> BlockExecutionResult:
        return BlockExecutionResult(f"Executed block {block_label(block)}")
