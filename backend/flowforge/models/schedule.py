"""Workflow schedule model definition."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow

TRIGGER_INTERVAL = "Interval"
TRIGGER_ONCE = "Once"
TRIGGER_DAILY = "Daily"
TRIGGER_TYPES = (TRIGGER_INTERVAL, TRIGGER_ONCE, TRIGGER_DAILY)


class WorkflowSchedule(db.Model):
    """Recurrence policy that triggers unattended workflow runs."""

    __tablename__ = "workflow_schedules"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(db.Integer, db.ForeignKey("workflows.id"), nullable=False)
    workflow_revision_id = db.Column(
        db.Integer,
        db.ForeignKey("workflow_revisions.id", ondelete="SET NULL"),
        nullable=True,
    )
    name = db.Column(db.String(255), nullable=False, default="")
    description = db.Column(db.Text, nullable=True)
    trigger_type = db.Column(db.String(20), nullable=False, default=TRIGGER_INTERVAL)
    start_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    interval_minutes = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    time_zone_id = db.Column(db.String(64), nullable=False, default="UTC")
    last_run_at = db.Column(db.DateTime, nullable=True)
    next_run_at = db.Column(db.DateTime, nullable=True, index=True)

    workflow = db.relationship("Workflow", back_populates="schedules")
    workflow_revision = db.relationship("WorkflowRevision")

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<WorkflowSchedule {self.name!r} {self.trigger_type}>"
