"""Unit tests for the append-only action log."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest
from conftest import BASE_NOW

from ops_workflow_engine.engine.workflow.action_log import (
    ActionLogStoreError,
    ActionType,
    JsonActionLogStore,
)


def _append(store: JsonActionLogStore, job_id: str, rule_key: str, days_ago: float) -> str:
    record = store.append(
        job_id=job_id,
        rule_key=rule_key,
        action_type=ActionType.EXTERNAL_TASK,
        metadata={"n": days_ago},
        created_at=BASE_NOW - timedelta(days=days_ago),
    )
    return record.id


def test_missing_file_is_an_empty_log(tmp_path: Path) -> None:
    store = JsonActionLogStore(tmp_path / "nope" / "action_log.json")

    assert store.recent() == []
    assert store.latest_since(job_id="j", rule_key="R", since=BASE_NOW) is None


def test_append_persists_rows(log_store: JsonActionLogStore) -> None:
    record = log_store.append(
        job_id="job-1",
        rule_key="RULE_A",
        action_type=ActionType.EXTERNAL_NOTE,
        metadata={"amount": 12.5},
        created_at=BASE_NOW,
    )

    raw = json.loads(log_store.path.read_text(encoding="utf-8"))
    assert len(raw) == 1
    assert raw[0]["id"] == record.id
    assert raw[0]["job_id"] == "job-1"
    assert raw[0]["rule_key"] == "RULE_A"
    assert raw[0]["action_type"] == "EXTERNAL_NOTE"
    assert raw[0]["metadata"] == {"amount": 12.5}


def test_recent_is_most_recent_first_and_bounded(log_store: JsonActionLogStore) -> None:
    oldest = _append(log_store, "job-1", "RULE_A", 5)
    middle = _append(log_store, "job-2", "RULE_A", 3)
    newest = _append(log_store, "job-1", "RULE_B", 1)

    assert [r.id for r in log_store.recent()] == [newest, middle, oldest]
    assert [r.id for r in log_store.recent(limit=2)] == [newest, middle]
    assert [r.id for r in log_store.recent(job_id="job-1")] == [newest, oldest]
    assert [r.id for r in log_store.recent(rule_key="RULE_A")] == [middle, oldest]
    assert [r.id for r in log_store.recent(job_id="job-1", rule_key="RULE_A")] == [oldest]


def test_latest_since_returns_most_recent_matching_row(log_store: JsonActionLogStore) -> None:
    _append(log_store, "job-1", "RULE_A", 6)
    latest = _append(log_store, "job-1", "RULE_A", 2)
    _append(log_store, "job-1", "RULE_B", 0.5)
    _append(log_store, "job-2", "RULE_A", 0.5)

    found = log_store.latest_since(
        job_id="job-1", rule_key="RULE_A", since=BASE_NOW - timedelta(days=7)
    )
    assert found is not None
    assert found.id == latest


def test_latest_since_is_strictly_after(log_store: JsonActionLogStore) -> None:
    _append(log_store, "job-1", "RULE_A", 7)

    since = BASE_NOW - timedelta(days=7)
    assert log_store.latest_since(job_id="job-1", rule_key="RULE_A", since=since) is None
    assert (
        log_store.latest_since(
            job_id="job-1", rule_key="RULE_A", since=since - timedelta(seconds=1)
        )
        is not None
    )


@pytest.mark.parametrize(
    "content", [b"{not json", b'{"rows": []}', b'[{"id": 1}]', b"[\xff\xfe]"]
)
def test_unreadable_log_is_a_hard_error(tmp_path: Path, content: bytes) -> None:
    path = tmp_path / "action_log.json"
    path.write_bytes(content)
    store = JsonActionLogStore(path)

    with pytest.raises(ActionLogStoreError):
        store.latest_since(job_id="j", rule_key="R", since=BASE_NOW)
    with pytest.raises(ActionLogStoreError):
        store.recent()


def test_recent_breaks_timestamp_ties_by_append_order(log_store: JsonActionLogStore) -> None:
    first = _append(log_store, "job-1", "RULE_A", 0)
    second = _append(log_store, "job-1", "RULE_B", 0)

    assert [r.id for r in log_store.recent()] == [second, first]
