"""REST API endpoints for workflow schedules."""
from __future__ import annotations

from datetime import datetime
from http import HTTPStatus
from typing import Any

from flask import Blueprint, jsonify, request

from ..extensions import db
from ..models import Workflow, WorkflowRevision, WorkflowSchedule
from ..models.schedule import TRIGGER_INTERVAL, TRIGGER_TYPES
from ..utils.clock import as_naive_utc, isoformat_utc, utcnow
from ..workflow.loader import WorkflowNotFoundError
from ..workflow.scheduler import run_schedule_now
from ..workflow.scheduling import compute_next_run, normalize_trigger_type, resolve_timezone
from .workflow import _serialize_execution

bp = Blueprint("schedules", __name__)

MAX_NAME_LENGTH = 255
MAX_TIME_ZONE_LENGTH = 64


def _serialize_schedule(schedule: WorkflowSchedule) -> dict[str, Any]:
    return {
        "id": schedule.id,
        "workflow_id": schedule.workflow_id,
        "workflow_revision_id": schedule.workflow_revision_id,
        "name": schedule.name,
        "description": schedule.description,
        "trigger_type": schedule.trigger_type,
        "start_at": isoformat_utc(schedule.start_at),
        "interval_minutes": schedule.interval_minutes,
        "is_active": schedule.is_active,
        "time_zone_id": schedule.time_zone_id,
        "last_run_at": isoformat_utc(schedule.last_run_at),
        "next_run_at": isoformat_utc(schedule.next_run_at),
    }


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    candidate = value.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return as_naive_utc(datetime.fromisoformat(candidate))
    except ValueError:
        return None


def _validate_schedule_payload(
    payload: Any, *, partial: bool = False
) -> tuple[dict[str, Any], list[str]]:
    """Validate a create/update payload and return the normalised fields."""

    if not isinstance(payload, dict):
        return {}, ["payload must be an object"]

    data: dict[str, Any] = {}
    errors: list[str] = []

    if "workflow_id" in payload or not partial:
        workflow_id = payload.get("workflow_id")
        if isinstance(workflow_id, bool) or not isinstance(workflow_id, int):
            errors.append("workflow_id must be an integer")
        elif db.session.get(Workflow, workflow_id) is None:
            errors.append("workflow_id does not reference an existing workflow")
        else:
            data["workflow_id"] = workflow_id

    if "workflow_revision_id" in payload:
        revision_id = payload.get("workflow_revision_id")
        if revision_id is None:
            data["workflow_revision_id"] = None
        elif isinstance(revision_id, bool) or not isinstance(revision_id, int):
            errors.append("workflow_revision_id must be an integer or null")
        elif db.session.get(WorkflowRevision, revision_id) is None:
            errors.append("workflow_revision_id does not reference an existing revision")
        else:
            data["workflow_revision_id"] = revision_id

    if "name" in payload or not partial:
        name = payload.get("name") or ""
        if not isinstance(name, str):
            errors.append("name must be a string")
        elif len(name.strip()) > MAX_NAME_LENGTH:
            errors.append("name is too long")
        else:
            data["name"] = name.strip()

    if "description" in payload:
        description = payload.get("description")
        if description is not None and not isinstance(description, str):
            errors.append("description must be a string or null")
        else:
            data["description"] = description

    if "trigger_type" in payload or not partial:
        raw_trigger = payload.get("trigger_type")
        if raw_trigger is None or (isinstance(raw_trigger, str) and not raw_trigger.strip()):
            data["trigger_type"] = TRIGGER_INTERVAL
        else:
            trigger = normalize_trigger_type(raw_trigger)
            if trigger is None:
                errors.append(f"trigger_type must be one of {', '.join(TRIGGER_TYPES)}")
            else:
                data["trigger_type"] = trigger

    if "start_at" in payload or not partial:
        raw_start = payload.get("start_at")
        if raw_start is None:
            data["start_at"] = utcnow()
        else:
            start_at = _parse_datetime(raw_start)
            if start_at is None:
                errors.append("start_at must be an ISO-8601 timestamp")
            else:
                data["start_at"] = start_at

    if "interval_minutes" in payload:
        interval = payload.get("interval_minutes")
        if interval is None:
            data["interval_minutes"] = None
        elif isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            errors.append("interval_minutes must be a positive integer or null")
        else:
            data["interval_minutes"] = interval

    if "is_active" in payload:
        is_active = payload.get("is_active")
        if not isinstance(is_active, bool):
            errors.append("is_active must be a boolean")
        else:
            data["is_active"] = is_active

    if "time_zone_id" in payload:
        time_zone_id = payload.get("time_zone_id") or "UTC"
        if not isinstance(time_zone_id, str) or len(time_zone_id) > MAX_TIME_ZONE_LENGTH:
            errors.append("time_zone_id must be a string")
        else:
            data["time_zone_id"] = time_zone_id.strip() or "UTC"

    return data, errors


def _refresh_next_run(schedule: WorkflowSchedule) -> None:
    schedule.next_run_at = None
    schedule.next_run_at = compute_next_run(
        schedule, utcnow(), resolve_timezone(schedule.time_zone_id)
    )


@bp.get("/schedules")
def list_schedules() -> tuple[object, int]:
    schedules = WorkflowSchedule.query.order_by(WorkflowSchedule.id.asc()).all()
    return jsonify([_serialize_schedule(schedule) for schedule in schedules]), HTTPStatus.OK


@bp.get("/workflows/<int:workflow_id>/schedules")
def list_workflow_schedules(workflow_id: int) -> tuple[object, int]:
    Workflow.query.get_or_404(workflow_id)
    schedules = (
        WorkflowSchedule.query.filter_by(workflow_id=workflow_id)
        .order_by(WorkflowSchedule.id.asc())
        .all()
    )
    return jsonify([_serialize_schedule(schedule) for schedule in schedules]), HTTPStatus.OK


@bp.get("/schedules/<int:schedule_id>")
def get_schedule(schedule_id: int) -> tuple[object, int]:
    schedule = WorkflowSchedule.query.get_or_404(schedule_id)
    return jsonify(_serialize_schedule(schedule)), HTTPStatus.OK


@bp.post("/schedules")
def create_schedule() -> tuple[object, int]:
    payload = request.get_json(silent=True, force=True)
    data, errors = _validate_schedule_payload(payload)
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    schedule = WorkflowSchedule(**data)
    if schedule.is_active is None:
        schedule.is_active = True
    if not schedule.time_zone_id:
        schedule.time_zone_id = "UTC"
    _refresh_next_run(schedule)
    db.session.add(schedule)
    db.session.commit()
    return jsonify(_serialize_schedule(schedule)), HTTPStatus.CREATED


@bp.put("/schedules/<int:schedule_id>")
def update_schedule(schedule_id: int) -> tuple[object, int]:
    schedule = WorkflowSchedule.query.get_or_404(schedule_id)
    payload = request.get_json(silent=True, force=True)
    data, errors = _validate_schedule_payload(payload, partial=True)
    if errors:
        return jsonify({"errors": errors}), HTTPStatus.BAD_REQUEST

    for key, value in data.items():
        setattr(schedule, key, value)
    _refresh_next_run(schedule)
    db.session.commit()
    return jsonify(_serialize_schedule(schedule)), HTTPStatus.OK


@bp.delete("/schedules/<int:schedule_id>")
def delete_schedule(schedule_id: int) -> tuple[object, int]:
    schedule = WorkflowSchedule.query.get_or_404(schedule_id)
    db.session.delete(schedule)
    db.session.commit()
    return "", HTTPStatus.NO_CONTENT


@bp.post("/schedules/<int:schedule_id>/run")
def run_schedule(schedule_id: int) -> tuple[object, int]:
    WorkflowSchedule.query.get_or_404(schedule_id)
    try:
        execution = run_schedule_now(schedule_id)
    except WorkflowNotFoundError as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.NOT_FOUND
    if execution is None:
        return jsonify({"error": "schedule not found"}), HTTPStatus.NOT_FOUND

    schedule = WorkflowSchedule.query.get_or_404(schedule_id)
    return (
        jsonify(
            {
                "execution": _serialize_execution(execution),
                "schedule": _serialize_schedule(schedule),
            }
        ),
        HTTPStatus.OK,
    )
