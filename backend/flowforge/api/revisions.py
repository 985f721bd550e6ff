"""Endpoints for workflow revisions."""
from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request

from ..models import Workflow, WorkflowRevision
from ..utils.clock import isoformat_utc
from ..workflow.revisions import create_snapshot, list_revisions, restore_revision
from ..workflow.snapshots import SnapshotError

bp = Blueprint("revisions", __name__)

MAX_LABEL_LENGTH = 255


def _serialize_revision(revision: WorkflowRevision, *, include_snapshot: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": revision.id,
        "workflow_id": revision.workflow_id,
        "version": revision.version,
        "label": revision.label,
        "created_at": isoformat_utc(revision.created_at),
        "applied_at": isoformat_utc(revision.applied_at),
        "is_active": revision.is_active,
    }
    if include_snapshot:
        try:
            payload["snapshot"] = json.loads(revision.snapshot_json)
        except (TypeError, ValueError):
            payload["snapshot"] = None
    return payload


@bp.get("/workflows/<int:workflow_id>/revisions")
def get_revisions(workflow_id: int) -> tuple[object, int]:
    Workflow.query.get_or_404(workflow_id)
    revisions = list_revisions(workflow_id)
    return jsonify([_serialize_revision(revision) for revision in revisions]), HTTPStatus.OK


@bp.post("/workflows/<int:workflow_id>/revisions")
def post_revision(workflow_id: int) -> tuple[object, int]:
    Workflow.query.get_or_404(workflow_id)
    payload = request.get_json(silent=True, force=True) or {}
    label = payload.get("label") if isinstance(payload, dict) else None
    if label is not None and not isinstance(label, str):
        return jsonify({"errors": ["label must be a string"]}), HTTPStatus.BAD_REQUEST
    if label is not None and len(label) > MAX_LABEL_LENGTH:
        return jsonify({"errors": ["label is too long"]}), HTTPStatus.BAD_REQUEST

    revision = create_snapshot(workflow_id, label)
    return jsonify(_serialize_revision(revision, include_snapshot=True)), HTTPStatus.CREATED


@bp.get("/revisions/<int:revision_id>")
def get_revision(revision_id: int) -> tuple[object, int]:
    revision = WorkflowRevision.query.get_or_404(revision_id)
    return jsonify(_serialize_revision(revision, include_snapshot=True)), HTTPStatus.OK


@bp.post("/workflows/<int:workflow_id>/revisions/<int:revision_id>/restore")
def post_restore(workflow_id: int, revision_id: int) -> tuple[object, int]:
    try:
        restored = restore_revision(workflow_id, revision_id)
    except SnapshotError as exc:
        return jsonify({"errors": [str(exc)]}), HTTPStatus.UNPROCESSABLE_ENTITY
    if not restored:
        return jsonify({"error": "workflow or revision not found"}), HTTPStatus.NOT_FOUND

    revision = WorkflowRevision.query.get_or_404(revision_id)
    return jsonify(_serialize_revision(revision)), HTTPStatus.OK
