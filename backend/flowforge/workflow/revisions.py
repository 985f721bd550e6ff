"""Versioned snapshots of a workflow graph and restoring from them."""
from __future__ import annotations

import json
import logging
import re

from ..extensions import db
from ..models import Workflow, WorkflowRevision
from ..utils.clock import utcnow
from .loader import load_workflow_graph
from .snapshots import apply_snapshot, load_snapshot, serialize_graph

logger = logging.getLogger(__name__)

_VERSION_NUMBER = re.compile(r"(\d+)\s*$")


def next_version(versions) -> str:
    """Return ``v<n+1>`` where ``n`` is the highest numeric suffix in ``versions``."""

    highest = 0
    for version in versions:
        match = _VERSION_NUMBER.search(version or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"v{highest + 1}"


def _activate(workflow: Workflow, revision: WorkflowRevision) -> None:
    WorkflowRevision.query.filter(
        WorkflowRevision.workflow_id == workflow.id,
        WorkflowRevision.is_active.is_(True),
    ).update({WorkflowRevision.is_active: False}, synchronize_session="fetch")
    revision.is_active = True
    workflow.active_revision = revision


def create_snapshot(workflow_id: int, label: str | None = None) -> WorkflowRevision:
    """Store the live graph as a new active revision of the workflow."""

    workflow = load_workflow_graph(workflow_id)
    versions = [
        version
        for (version,) in db.session.query(WorkflowRevision.version).filter(
            WorkflowRevision.workflow_id == workflow.id
        )
    ]
    revision = WorkflowRevision(
        workflow=workflow,
        version=next_version(versions),
        label=label.strip() if label and label.strip() else None,
        created_at=utcnow(),
        snapshot_json=json.dumps(serialize_graph(workflow)),
    )
    db.session.add(revision)
    db.session.flush()
    _activate(workflow, revision)
    db.session.commit()
    logger.info("Created revision %s of workflow %s", revision.version, workflow.id)
    return revision


def restore_revision(workflow_id: int, revision_id: int) -> bool:
    """Rebuild the live graph from a stored revision.

    Returns ``False`` when the workflow or revision is missing or the revision
    belongs to a different workflow. Raises
    :class:`~flowforge.workflow.snapshots.SnapshotError` for a corrupt snapshot.
    """

    workflow = db.session.get(Workflow, workflow_id)
    revision = db.session.get(WorkflowRevision, revision_id)
    if workflow is None or revision is None or revision.workflow_id != workflow.id:
        return False

    snapshot = load_snapshot(revision.snapshot_json)
    counts = apply_snapshot(workflow, snapshot)
    revision.applied_at = utcnow()
    _activate(workflow, revision)
    db.session.commit()
    logger.info(
        "Restored workflow %s from revision %s: %s", workflow.id, revision.version, counts
    )
    return True


def list_revisions(workflow_id: int) -> list[WorkflowRevision]:
    return (
        WorkflowRevision.query.filter_by(workflow_id=workflow_id)
        .order_by(WorkflowRevision.created_at.desc(), WorkflowRevision.id.desc())
        .all()
    )


def get_latest_revision(workflow_id: int) -> WorkflowRevision | None:
    revisions = list_revisions(workflow_id)
    return revisions[0] if revisions else None
