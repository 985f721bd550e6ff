"""Loading of workflow aggregates with their full graph."""
from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Block, Workflow


class WorkflowNotFoundError(LookupError):
    """Raised when an operation names a workflow that does not exist."""

    def __init__(self, workflow_id: int):
        super().__init__(f"workflow {workflow_id} not found")
        self.workflow_id = workflow_id


def load_workflow_graph(workflow_id: int) -> Workflow:
    """Return the workflow with blocks, connections and variables loaded."""

    workflow = db.session.get(
        Workflow,
        workflow_id,
        options=[
            selectinload(Workflow.blocks).selectinload(Block.source_connections),
            selectinload(Workflow.blocks).selectinload(Block.target_connections),
            selectinload(Workflow.variables),
        ],
    )
    if workflow is None:
        raise WorkflowNotFoundError(workflow_id)
    return workflow
