"""Workflow graph model definitions."""

from __future__ import annotations

from ..extensions import db
from ..utils.clock import utcnow

CONNECTION_SUCCESS = "Success"
CONNECTION_ERROR = "Error"
CONNECTION_TYPES = (CONNECTION_SUCCESS, CONNECTION_ERROR)


class Workflow(db.Model):
    """Represents an executable workflow graph."""

    __tablename__ = "workflows"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), unique=True, nullable=False)
    active_revision_id = db.Column(
        db.Integer,
        db.ForeignKey(
            "workflow_revisions.id",
            use_alter=True,
            name="fk_workflows_active_revision",
            ondelete="SET NULL",
        ),
        nullable=True,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    blocks = db.relationship(
        "Block",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="Block.id",
    )
    variables = db.relationship(
        "WorkflowVariable",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowVariable.id",
    )
    revisions = db.relationship(
        "WorkflowRevision",
        back_populates="workflow",
        cascade="all, delete-orphan",
        foreign_keys="WorkflowRevision.workflow_id",
    )
    active_revision = db.relationship(
        "WorkflowRevision",
        foreign_keys=[active_revision_id],
        post_update=True,
    )
    executions = db.relationship(
        "WorkflowExecution", back_populates="workflow", cascade="all, delete-orphan"
    )
    schedules = db.relationship(
        "WorkflowSchedule", back_populates="workflow", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Workflow {self.name!r}>"


class Block(db.Model):
    """A typed node of a workflow graph."""

    __tablename__ = "blocks"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, default="")
    workflow_id = db.Column(db.Integer, db.ForeignKey("workflows.id"), nullable=False)
    system_block_id = db.Column(db.Integer, db.ForeignKey("system_blocks.id"), nullable=False)
    json_config = db.Column(db.Text, nullable=True)
    position_x = db.Column(db.Float, nullable=True)
    position_y = db.Column(db.Float, nullable=True)

    workflow = db.relationship("Workflow", back_populates="blocks")
    system_block = db.relationship("SystemBlock", lazy="joined")
    source_connections = db.relationship(
        "BlockConnection",
        back_populates="source_block",
        foreign_keys="BlockConnection.source_block_id",
        cascade="all, delete-orphan",
        order_by="BlockConnection.id",
    )
    target_connections = db.relationship(
        "BlockConnection",
        back_populates="target_block",
        foreign_keys="BlockConnection.target_block_id",
        cascade="all, delete-orphan",
    )

    @property
    def type_name(self) -> str | None:
        """Return the block type string resolved through the catalog."""

        if self.system_block is None:
            return None
        return self.system_block.type

    @property
    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name
        return self.type_name or str(self.id)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Block {self.id} {self.type_name}>"


class BlockConnection(db.Model):
    """Directed edge between two blocks."""

    __tablename__ = "block_connections"

    id = db.Column(db.Integer, primary_key=True)
    source_block_id = db.Column(db.Integer, db.ForeignKey("blocks.id"), nullable=False)
    target_block_id = db.Column(db.Integer, db.ForeignKey("blocks.id"), nullable=False)
    connection_type = db.Column(
        db.Enum(*CONNECTION_TYPES, name="connection_type"),
        nullable=False,
        default=CONNECTION_SUCCESS,
    )
    # Only Switch blocks route by label.
    label = db.Column(db.String(255), nullable=True)

    source_block = db.relationship(
        "Block", foreign_keys=[source_block_id], back_populates="source_connections"
    )
    target_block = db.relationship(
        "Block", foreign_keys=[target_block_id], back_populates="target_connections"
    )


class WorkflowVariable(db.Model):
    """Named variable with an optional default value."""

    __tablename__ = "workflow_variables"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    default_value = db.Column(db.Text, nullable=True)
    workflow_id = db.Column(db.Integer, db.ForeignKey("workflows.id"), nullable=False)

    workflow = db.relationship("Workflow", back_populates="variables")
