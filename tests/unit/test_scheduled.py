"""Unit tests for the scheduled trigger."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from ops_workflow_engine.engine.config import WorkflowSettings
from ops_workflow_engine.engine.workflow.action_log import ActionLogStoreError
from ops_workflow_engine.engine.workflow.runner import BulkRunResult
from ops_workflow_engine.engine.workflow.scheduled import (
    DailyScheduler,
    run_scheduled_workflows,
    seconds_until_next_run,
)
from ops_workflow_engine.engine.workflow.service import WorkflowService


def _settings(**values: object) -> WorkflowSettings:
    return WorkflowSettings.model_validate(values)


def test_disabled_trigger_is_a_noop() -> None:
    service = Mock(spec=WorkflowService)

    assert run_scheduled_workflows(service, _settings(WORKFLOW_AUTOMATION_ENABLED=False)) is None
    service.run_for_active_jobs.assert_not_called()


def test_enabled_trigger_runs_with_daily_limit() -> None:
    service = Mock(spec=WorkflowService)
    service.run_for_active_jobs.return_value = BulkRunResult(processed=3, actions=2)

    result = run_scheduled_workflows(
        service,
        _settings(WORKFLOW_AUTOMATION_ENABLED=True, WORKFLOW_AUTOMATION_DAILY_LIMIT=25),
    )

    assert result == BulkRunResult(processed=3, actions=2)
    service.run_for_active_jobs.assert_called_once_with(25, cancel=None)


@pytest.mark.parametrize("error", [RuntimeError("boom"), ActionLogStoreError("log unreadable")])
def test_trigger_never_raises(error: Exception) -> None:
    service = Mock(spec=WorkflowService)
    service.run_for_active_jobs.side_effect = error

    assert run_scheduled_workflows(service, _settings(WORKFLOW_AUTOMATION_ENABLED=True)) is None


@pytest.mark.parametrize(
    ("now", "hour", "expected"),
    [
        (datetime(2025, 6, 2, 1, 0, tzinfo=UTC), 4, timedelta(hours=3)),
        (datetime(2025, 6, 2, 4, 0, tzinfo=UTC), 4, timedelta(days=1)),
        (datetime(2025, 6, 2, 5, 30, tzinfo=UTC), 4, timedelta(hours=22, minutes=30)),
        # 23:00 at UTC-2 is 01:00 UTC the next day.
        (datetime(2025, 6, 2, 23, 0, tzinfo=timezone(timedelta(hours=-2))), 4, timedelta(hours=3)),
    ],
)
def test_seconds_until_next_run(now: datetime, hour: int, expected: timedelta) -> None:
    assert seconds_until_next_run(now, hour) == expected.total_seconds()


_JUST_BEFORE_RUN = datetime(2025, 6, 2, 3, 59, 59, 990000, tzinfo=UTC)


def _scheduler(service: WorkflowService) -> DailyScheduler:
    return DailyScheduler(
        service=service,
        settings=_settings(WORKFLOW_AUTOMATION_ENABLED=True, WORKFLOW_AUTOMATION_HOUR=4),
        clock=lambda: _JUST_BEFORE_RUN,
    )


def test_daily_scheduler_stop_cancels_in_flight_run() -> None:
    started = threading.Event()
    cancels: list[threading.Event] = []

    def run(limit: int, *, cancel: threading.Event) -> BulkRunResult:
        cancels.append(cancel)
        started.set()
        cancel.wait(timeout=5)
        return BulkRunResult(processed=1, actions=0, cancelled=cancel.is_set())

    service = Mock(spec=WorkflowService)
    service.run_for_active_jobs.side_effect = run
    scheduler = _scheduler(service)

    scheduler.start()
    assert started.wait(timeout=5)
    assert scheduler.running
    scheduler.stop()

    assert cancels[0].is_set()
    assert not scheduler.running
    service.run_for_active_jobs.assert_called_once()


def test_daily_scheduler_restart_waits_for_slow_run() -> None:
    started = threading.Event()
    release = threading.Event()

    def run(limit: int, *, cancel: threading.Event) -> BulkRunResult:
        started.set()
        release.wait(timeout=5)
        return BulkRunResult(processed=0, actions=0)

    service = Mock(spec=WorkflowService)
    service.run_for_active_jobs.side_effect = run
    scheduler = _scheduler(service)

    try:
        scheduler.start()
        assert started.wait(timeout=5)
        first_thread = scheduler._thread

        scheduler.stop(timeout=0.01)
        assert scheduler.running

        scheduler.start()
        assert scheduler._thread is first_thread
    finally:
        release.set()

    scheduler.stop(timeout=5)
    assert not scheduler.running
    service.run_for_active_jobs.assert_called_once()
