"""Background poller that runs due workflow schedules."""
from __future__ import annotations

import threading
from datetime import datetime

from flask import Flask, current_app

from ..extensions import db
from ..models import WorkflowExecution, WorkflowSchedule
from ..utils.clock import as_naive_utc, utcnow
from .loader import WorkflowNotFoundError, load_workflow_graph
from .runner import evaluate_workflow
from .scheduling import advance_after_run

DEFAULT_POLL_INTERVAL = 30.0


def due_schedules(now: datetime) -> list[WorkflowSchedule]:
    return (
        WorkflowSchedule.query.filter(
            WorkflowSchedule.is_active.is_(True),
            WorkflowSchedule.next_run_at.isnot(None),
            WorkflowSchedule.next_run_at <= as_naive_utc(now),
        )
        .order_by(WorkflowSchedule.next_run_at.asc(), WorkflowSchedule.id.asc())
        .all()
    )


def _deactivate(schedule: WorkflowSchedule) -> None:
    schedule.is_active = False
    schedule.next_run_at = None


def run_due_schedules(now: datetime | None = None) -> int:
    """Evaluate every due schedule and commit once; returns how many fired.

    Each run happens inside a savepoint. A run that raises is rolled back on
    its own and its schedule still advances, so it does not re-fire on every
    tick and the other schedules keep their results.
    """

    now = as_naive_utc(now) if now is not None else utcnow()
    fired = 0
    for schedule in due_schedules(now):
        try:
            with db.session.begin_nested():
                workflow = load_workflow_graph(schedule.workflow_id)
                evaluate_workflow(workflow, skip_waits=True, commit=False)
        except WorkflowNotFoundError:
            current_app.logger.warning(
                "Schedule %s points at missing workflow %s; deactivating",
                schedule.id,
                schedule.workflow_id,
            )
            _deactivate(schedule)
            continue
        except Exception:
            current_app.logger.exception(
                "Scheduled run of workflow %s failed (schedule %s)",
                schedule.workflow_id,
                schedule.id,
            )
            advance_after_run(schedule, now)
            continue
        advance_after_run(schedule, now)
        fired += 1
    db.session.commit()
    return fired


def run_schedule_now(schedule_id: int) -> WorkflowExecution | None:
    """Fire a schedule immediately and advance it as if its trigger had elapsed.

    Returns ``None`` when the schedule does not exist and raises
    :class:`WorkflowNotFoundError` when its workflow is gone.
    """

    schedule = db.session.get(WorkflowSchedule, schedule_id)
    if schedule is None:
        return None
    try:
        workflow = load_workflow_graph(schedule.workflow_id)
    except WorkflowNotFoundError:
        _deactivate(schedule)
        db.session.commit()
        raise
    execution = evaluate_workflow(workflow, skip_waits=True, commit=False)
    advance_after_run(schedule, utcnow())
    db.session.commit()
    return execution


class SchedulePoller:
    """Runs :func:`run_due_schedules` on a daemon thread until stopped."""

    def __init__(self, app: Flask, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.app = app
        self.interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run_loop, name="schedule-poller", daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        if self._thread.is_alive():
            return
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout)

    def tick(self, now: datetime | None = None) -> int:
        with self.app.app_context():
            try:
                return run_due_schedules(now)
            except Exception:
                db.session.rollback()
                self.app.logger.exception("Schedule poller tick failed")
                return 0

    def _run_loop(self) -> None:
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval)


_poller_instance: SchedulePoller | None = None
_poller_lock = threading.Lock()


def ensure_scheduler_started(app: Flask) -> SchedulePoller:
    """Ensure the schedule poller is running for the given Flask app."""
    global _poller_instance
    with _poller_lock:
        if _poller_instance is None:
            interval = float(app.config.get("SCHEDULER_POLL_INTERVAL", DEFAULT_POLL_INTERVAL))
            _poller_instance = SchedulePoller(app, interval=interval)
            _poller_instance.start()
    return _poller_instance


def get_scheduler() -> SchedulePoller | None:
    return _poller_instance
