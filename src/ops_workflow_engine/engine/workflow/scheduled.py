"""Scheduled invocation of the bulk runner.

`run_scheduled_workflows` is the trigger an external scheduler (cron, the
CLI's `run-scheduled` command, or :class:`DailyScheduler`) calls once a day.
It is gated by the automation feature flag and never raises into the caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ops_workflow_engine.engine.config import WorkflowSettings

from .runner import BulkRunResult
from .service import WorkflowService

logger = logging.getLogger(__name__)


def run_scheduled_workflows(
    service: WorkflowService,
    settings: WorkflowSettings,
    *,
    cancel: threading.Event | None = None,
) -> BulkRunResult | None:
    if not settings.automation_enabled:
        logger.debug("Workflow automation is disabled (WORKFLOW_AUTOMATION_ENABLED=false)")
        return None

    limit = settings.daily_limit
    logger.info("Starting scheduled workflow automation", extra={"limit": limit})

    try:
        result = service.run_for_active_jobs(limit, cancel=cancel)
    except Exception:
        # Workflow failures must not take the host process down.
        logger.exception("Scheduled workflow automation failed")
        return None

    logger.info(
        "Scheduled workflow automation complete",
        extra={"processed": result.processed, "actions": result.actions},
    )
    return result


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from `now` until the next occurrence of `hour`:00 UTC."""

    now = now.astimezone(UTC)
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DailyScheduler:
    """Background thread firing the scheduled trigger once a day."""

    def __init__(
        self,
        *,
        service: WorkflowService,
        settings: WorkflowSettings,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._service = service
        self._settings = settings
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="workflow-daily-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(
            "Workflow scheduler started", extra={"run_hour_utc": self._settings.daily_run_hour}
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            # Keep the handle so start() cannot spawn a second loop alongside it.
            logger.warning(
                "Workflow scheduler still finishing a run", extra={"timeout_seconds": timeout}
            )
            return
        self._thread = None
        logger.info("Workflow scheduler stopped")

    def _loop(self) -> None:
        while not self._stop.is_set():
            delay = seconds_until_next_run(self._clock(), self._settings.daily_run_hour)
            if self._stop.wait(delay):
                return
            # Stopping the scheduler also cancels a run in progress between jobs.
            run_scheduled_workflows(self._service, self._settings, cancel=self._stop)
