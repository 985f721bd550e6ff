"""Workflow revision model definition."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow


class WorkflowRevision(db.Model):
    """Immutable, versioned snapshot of a workflow graph."""

    __tablename__ = "workflow_revisions"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(db.Integer, db.ForeignKey("workflows.id"), nullable=False)
    version = db.Column(db.String(32), nullable=False)
    label = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    applied_at = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    snapshot_json = db.Column(db.Text, nullable=False)

    workflow = db.relationship(
        "Workflow", back_populates="revisions", foreign_keys=[workflow_id]
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<WorkflowRevision {self.workflow_id}:{self.version}>"
