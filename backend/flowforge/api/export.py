"""API endpoints for exporting and importing workflow graphs."""
from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from ..models import Workflow
from ..workflow.loader import load_workflow_graph
from ..workflow.snapshots import SnapshotError, WorkflowNameTakenError, import_graph, serialize_graph
from .workflow import _serialize_workflow

bp = Blueprint("export", __name__)


@bp.get("/workflows/<int:workflow_id>/export")
def export_workflow(workflow_id: int) -> tuple[object, int]:
    """Return the workflow graph in the portable snapshot format."""

    Workflow.query.get_or_404(workflow_id)
    workflow = load_workflow_graph(workflow_id)
    return jsonify(serialize_graph(workflow)), HTTPStatus.OK


@bp.post("/workflows/import")
def import_workflow() -> tuple[object, int]:
    """Create a new workflow from an exported graph."""

    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "payload must be an object"}), HTTPStatus.BAD_REQUEST

    name = request.args.get("name")
    try:
        workflow = import_graph(payload, name=name)
    except WorkflowNameTakenError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.CONFLICT
    except SnapshotError as exc:
        return jsonify({"errors": [str(exc)]}), HTTPStatus.BAD_REQUEST

    return jsonify(_serialize_workflow(workflow)), HTTPStatus.CREATED
