import threading
import time
from datetime import UTC, datetime

from apscheduler.schedulers.background import BackgroundScheduler

from ..errors import ConflictError
from ..models import db

REFRESH_JOB_ID = "metadata_refresh"


def _now():
    return datetime.now(UTC).isoformat()


class RefreshJob:
    """Pollable status of the metadata refresh, shared by the API and the scheduler thread."""

    def __init__(self):
        self.lock = threading.Lock()
        self.cancel_event = threading.Event()
        self.status = self._idle_status()

    @staticmethod
    def _idle_status():
        return {
            "state": "idle",
            "processed": 0,
            "downloaded": 0,
            "skipped": 0,
            "failed": 0,
            "total": 0,
            "started_at": None,
            "finished_at": None,
            "duration_ms": None,
            "error": None,
        }

    def snapshot(self):
        with self.lock:
            return dict(self.status)

    def begin(self):
        with self.lock:
            if self.status["state"] == "running":
                raise ConflictError("A metadata refresh is already running")
            self.cancel_event.clear()
            self.status = self._idle_status()
            self.status["state"] = "running"
            self.status["started_at"] = _now()
            return dict(self.status)

    def update(self, counters):
        with self.lock:
            for key in ("processed", "downloaded", "skipped", "failed", "total"):
                if key in counters:
                    self.status[key] = counters[key]

    def finish(self, state, counters=None, duration_ms=None, error=None):
        with self.lock:
            if counters:
                for key in ("processed", "downloaded", "skipped", "failed", "total"):
                    if key in counters:
                        self.status[key] = counters[key]
            self.status["state"] = state
            self.status["finished_at"] = _now()
            if duration_ms is not None:
                self.status["duration_ms"] = round(duration_ms, 2)
            self.status["error"] = error
            return dict(self.status)

    def request_cancel(self):
        with self.lock:
            if self.status["state"] != "running":
                raise ConflictError("No metadata refresh is running")
            self.cancel_event.set()
            return dict(self.status)


def init_scheduler(app):
    scheduler = BackgroundScheduler()
    scheduler.start()
    app.scheduler = scheduler


def _run_refresh(app):
    """Run the refresh loop and record its outcome on ``app.metadata_refresh``."""
    from .service import refresh_metadata

    job = app.metadata_refresh
    started = time.perf_counter()
    try:
        counters = refresh_metadata(should_cancel=job.cancel_event.is_set, on_progress=job.update)
    except Exception as exc:
        # Broad boundary: a crash must still leave the job in a terminal state
        db.session.rollback()
        app.logger.exception("Scheduler job %s crashed.", REFRESH_JOB_ID)
        return job.finish(
            "failed",
            duration_ms=(time.perf_counter() - started) * 1000,
            error=type(exc).__name__,
        )

    duration_ms = (time.perf_counter() - started) * 1000
    app.logger.info("Scheduler job %s completed in %.2f ms.", REFRESH_JOB_ID, duration_ms)
    state = "cancelled" if counters["cancelled"] else "completed"
    return job.finish(state, counters, duration_ms=duration_ms)


def start_refresh(app):
    """Start a refresh. Returns ``(status, ran_inline)``.

    With the scheduler running the loop becomes a one-off background job;
    otherwise it runs to completion in the calling thread.
    """
    job = app.metadata_refresh
    job.begin()

    scheduler = getattr(app, "scheduler", None)
    if scheduler is None or not scheduler.running:
        return _run_refresh(app), True

    def run():
        with app.app_context():
            _run_refresh(app)

    try:
        scheduler.add_job(func=run, id=REFRESH_JOB_ID, max_instances=1, replace_existing=True)
    except Exception:
        job.finish("failed")
        raise
    return job.snapshot(), False
