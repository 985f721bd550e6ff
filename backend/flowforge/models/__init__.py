"""Database models for the Flowforge backend."""

from .execution import WorkflowExecution
from .revision import WorkflowRevision
from .schedule import WorkflowSchedule
from .system_block import SystemBlock
from .workflow import Block, BlockConnection, Workflow, WorkflowVariable

__all__ = [
    "Block",
    "BlockConnection",
    "SystemBlock",
    "Workflow",
    "WorkflowExecution",
    "WorkflowRevision",
    "WorkflowSchedule",
    "WorkflowVariable",
]
