"""Health check endpoint."""

from flask import Blueprint, jsonify

from ..workflow.scheduler import get_scheduler

bp = Blueprint("health", __name__)


@bp.get("/health")
def health() -> tuple[dict[str, object], int]:
    """Return the service health status and whether the poller is alive."""
    poller = get_scheduler()
    return jsonify({"status": "ok", "scheduler": bool(poller and poller.running)}), 200
