"""Test configuration and fixtures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from ops_workflow_engine.engine.jobs.state import JobSnapshot, JobStateDocument, JsonJobStateStore
from ops_workflow_engine.engine.notifications.outbox import CustomerMessage
from ops_workflow_engine.engine.workflow.action_log import JsonActionLogStore

BASE_NOW = datetime(2025, 6, 2, 12, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic clock that tests move forward explicitly."""

    def __init__(self, start: datetime = BASE_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, days: float = 0, hours: float = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@dataclass
class RecordingDispatcher:
    """ExternalEffectDispatcher that records calls instead of performing them."""

    tasks: list[dict[str, object]] = field(default_factory=list)
    notes: list[dict[str, object]] = field(default_factory=list)
    messages: list[tuple[str, CustomerMessage]] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return len(self.tasks) + len(self.notes) + len(self.messages)

    def create_external_task(
        self, target_id: str, title: str, description: str, due_in_days: int = 3
    ) -> bool:
        self.tasks.append(
            {
                "target_id": target_id,
                "title": title,
                "description": description,
                "due_in_days": due_in_days,
            }
        )
        return True

    def create_external_note(self, target_id: str, text: str) -> bool:
        self.notes.append({"target_id": target_id, "text": text})
        return True

    def send_customer_message(self, job_id: str, message: CustomerMessage) -> bool:
        self.messages.append((job_id, message))
        return True


def make_job(
    job_id: str = "job-1",
    *,
    status: str = "IN_PROGRESS",
    jobnimbus_id: str | None = "jn-1",
    updated_at: datetime = BASE_NOW,
    customer_name: str | None = "Dana Rivera",
) -> JobSnapshot:
    return JobSnapshot(
        id=job_id,
        jobnimbus_id=jobnimbus_id,
        status=status,
        customer_name=customer_name,
        updated_at=updated_at,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def log_store(tmp_path: Path) -> JsonActionLogStore:
    return JsonActionLogStore(tmp_path / "workflow_state" / "action_log.json")


@pytest.fixture
def job_store(tmp_path: Path) -> JsonJobStateStore:
    store = JsonJobStateStore(tmp_path / "workflow_state" / "jobs.json")
    store.save(JobStateDocument())
    return store
