"""Workflow execution record."""

from __future__ import annotations

import json

from ..extensions import db
from ..utils.clock import utcnow


def _load(text: str | None, default):
    if not text:
        return default
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return default


class WorkflowExecution(db.Model):
    """Append-only audit record of one evaluation."""

    __tablename__ = "workflow_executions"

    id = db.Column(db.Integer, primary_key=True)
    executed_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    workflow_id = db.Column(db.Integer, db.ForeignKey("workflows.id"), nullable=False)
    input_data = db.Column(db.Text, nullable=True)
    result_data = db.Column(db.Text, nullable=True)
    path_data = db.Column(db.Text, nullable=True)
    actions_data = db.Column(db.Text, nullable=True)

    workflow = db.relationship("Workflow", back_populates="executions")

    @property
    def inputs(self) -> dict[str, str] | None:
        return _load(self.input_data, None)

    @property
    def result(self) -> dict[str, str]:
        return _load(self.result_data, {})

    @property
    def path(self) -> list[str]:
        return _load(self.path_data, [])

    @property
    def actions(self) -> list[str]:
        return _load(self.actions_data, [])

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<WorkflowExecution {self.id} of workflow {self.workflow_id}>"
