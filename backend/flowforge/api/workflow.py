"""REST API endpoints for inspecting and running workflows."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..extensions import limiter
from ..models import Block, BlockConnection, Workflow, WorkflowExecution
from ..utils.clock import isoformat_utc
from ..workflow.loader import load_workflow_graph
from ..workflow.runner import evaluate_workflow

bp = Blueprint("workflows", __name__)


def _run_rate_limit() -> str:
    return current_app.config.get("RUN_RATE_LIMIT", "30 per minute")


def _serialize_workflow(workflow: Workflow) -> dict[str, Any]:
    return {
        "id": workflow.id,
        "name": workflow.name,
        "active_revision_id": workflow.active_revision_id,
        "created_at": isoformat_utc(workflow.created_at),
        "updated_at": isoformat_utc(workflow.updated_at),
    }


def _serialize_block(block: Block) -> dict[str, Any]:
    return {
        "id": block.id,
        "name": block.name,
        "type": block.type_name,
        "system_block_id": block.system_block_id,
        "json_config": block.json_config,
        "position_x": block.position_x,
        "position_y": block.position_y,
    }


def _serialize_connection(connection: BlockConnection) -> dict[str, Any]:
    return {
        "id": connection.id,
        "source_block_id": connection.source_block_id,
        "target_block_id": connection.target_block_id,
        "connection_type": connection.connection_type,
        "label": connection.label,
    }


def _serialize_execution(execution: WorkflowExecution) -> dict[str, Any]:
    return {
        "id": execution.id,
        "workflow_id": execution.workflow_id,
        "executed_at": isoformat_utc(execution.executed_at),
        "inputs": execution.inputs,
        "result": execution.result,
        "path": execution.path,
        "actions": execution.actions,
    }


def _validate_inputs(payload: Any) -> tuple[dict[str, str] | None, list[str]]:
    """Return the ``inputs`` map of a run request as strings."""

    if not isinstance(payload, dict):
        return None, []
    inputs = payload.get("inputs")
    if inputs is None:
        return None, []
    if not isinstance(inputs, dict):
        return None, ["inputs must be an object"]

    errors: list[str] = []
    normalised: dict[str, str] = {}
    for key, value in inputs.items():
        if isinstance(value, (dict, list)):
            errors.append(f"inputs.{key} must be a scalar value")
            continue
        if value is None:
            normalised[key] = ""
        elif isinstance(value, bool):
            normalised[key] = "true" if value else "false"
        else:
            normalised[key] = str(value)
    return normalised, errors


@bp.get("/workflows")
def list_workflows() -> tuple[object, int]:
    workflows = Workflow.query.order_by(Workflow.name.asc()).all()
    return jsonify([_serialize_workflow(workflow) for workflow in workflows]), HTTPStatus.OK


@bp.get("/workflows/<int:workflow_id>/graph")
def get_workflow_graph(workflow_id: int) -> tuple[object, int]:
    Workflow.query.get_or_404(workflow_id)
    workflow = load_workflow_graph(workflow_id)
    connections = sorted(
        (connection for block in workflow.blocks for connection in block.source_connections),
        key=lambda connection: connection.id,
    )
    payload = _serialize_workflow(workflow)
    payload.update(
        {
            "blocks": [_serialize_block(block) for block in workflow.blocks],
            "connections": [_serialize_connection(connection) for connection in connections],
            "variables": [
                {"id": variable.id, "name": variable.name, "default_value": variable.default_value}
                for variable in workflow.variables
            ],
        }
    )
    return jsonify(payload), HTTPStatus.OK


@bp.post("/workflows/<int:workflow_id>/run")
@limiter.limit(_run_rate_limit)
def run_workflow(workflow_id: int) -> tuple[object, int]:
    Workflow.query.get_or_404(workflow_id)
    payload = request.get_json(silent=True, force=True) or {}

    inputs, errors = _validate_inputs(payload)
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    skip_waits = bool(payload.get("skip_waits", False)) if isinstance(payload, dict) else False
    workflow = load_workflow_graph(workflow_id)
    execution = evaluate_workflow(workflow, inputs, skip_waits=skip_waits)
    return jsonify(_serialize_execution(execution)), HTTPStatus.CREATED


@bp.get("/workflows/<int:workflow_id>/executions")
def list_executions(workflow_id: int) -> tuple[object, int]:
    Workflow.query.get_or_404(workflow_id)
    executions = (
        WorkflowExecution.query.filter_by(workflow_id=workflow_id)
        .order_by(WorkflowExecution.executed_at.desc(), WorkflowExecution.id.desc())
        .all()
    )
    return jsonify([_serialize_execution(execution) for execution in executions]), HTTPStatus.OK


@bp.get("/executions/<int:execution_id>")
def get_execution(execution_id: int) -> tuple[object, int]:
    execution = WorkflowExecution.query.get_or_404(execution_id)
    return jsonify(_serialize_execution(execution)), HTTPStatus.OK
