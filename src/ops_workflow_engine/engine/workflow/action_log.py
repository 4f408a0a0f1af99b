"""Append-only log of workflow firings.

Every firing of a rule for a job is recorded exactly once. The log is the only
input to cooldown deduplication, so it is never updated or deleted by the
engine and an unreadable log is a hard error rather than an empty one.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    """Kind of external effect a firing took. Informational only."""

    EXTERNAL_TASK = "EXTERNAL_TASK"
    EXTERNAL_NOTE = "EXTERNAL_NOTE"
    CUSTOMER_EMAIL = "CUSTOMER_EMAIL"
    CUSTOMER_SMS = "CUSTOMER_SMS"


class ActionLogRecord(BaseModel):
    id: str
    job_id: str
    rule_key: str
    action_type: ActionType
    created_at: datetime
    metadata: dict[str, object] | None = Field(default=None)


class ActionLogStoreError(RuntimeError):
    """The action log cannot be read or written.

    This is the one failure the runners never isolate: without a readable log
    the cooldown check cannot be answered.
    """


class ActionLogStore(Protocol):
    def append(
        self,
        *,
        job_id: str,
        rule_key: str,
        action_type: ActionType,
        metadata: dict[str, object] | None,
        created_at: datetime,
    ) -> ActionLogRecord: ...

    def latest_since(
        self, *, job_id: str, rule_key: str, since: datetime
    ) -> ActionLogRecord | None: ...

    def recent(
        self, *, job_id: str | None = None, rule_key: str | None = None, limit: int = 50
    ) -> list[ActionLogRecord]: ...


class JsonActionLogStore:
    """JSON-file backed action log.

    The lock only keeps concurrent writers from corrupting the file. The dedup
    read (`latest_since`) and the write (`append`) stay separate operations, so
    two overlapping runs can still both fire the same rule for the same job.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> list[ActionLogRecord]:
        if not self._path.exists():
            return []
        # ValueError covers both malformed JSON and invalid UTF-8.
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ActionLogStoreError(f"Action log is unreadable: {self._path}") from e
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ActionLogStoreError(f"Action log has unexpected shape: {self._path}")
        try:
            return [ActionLogRecord.model_validate(item) for item in raw]
        except ValidationError as e:
            raise ActionLogStoreError(f"Action log contains invalid rows: {self._path}") from e

    def _save_unlocked(self, records: list[ActionLogRecord]) -> None:
        payload = [r.model_dump(mode="json") for r in records]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )
        except OSError as e:
            raise ActionLogStoreError(f"Action log is not writable: {self._path}") from e

    def append(
        self,
        *,
        job_id: str,
        rule_key: str,
        action_type: ActionType,
        metadata: dict[str, object] | None,
        created_at: datetime,
    ) -> ActionLogRecord:
        record = ActionLogRecord(
            id=uuid.uuid4().hex,
            job_id=job_id,
            rule_key=rule_key,
            action_type=action_type,
            created_at=created_at,
            metadata=metadata,
        )
        with self._lock:
            records = self._load_unlocked()
            records.append(record)
            self._save_unlocked(records)
        logger.debug(
            "Action log row appended",
            extra={"job_id": job_id, "rule_key": rule_key, "log_id": record.id},
        )
        return record

    def latest_since(
        self, *, job_id: str, rule_key: str, since: datetime
    ) -> ActionLogRecord | None:
        """Most recent row for (job_id, rule_key) created strictly after `since`."""

        with self._lock:
            records = self._load_unlocked()
        matching = [
            r
            for r in records
            if r.job_id == job_id and r.rule_key == rule_key and r.created_at > since
        ]
        if not matching:
            return None
        return max(matching, key=lambda r: r.created_at)

    def recent(
        self, *, job_id: str | None = None, rule_key: str | None = None, limit: int = 50
    ) -> list[ActionLogRecord]:
        if limit <= 0:
            return []
        with self._lock:
            records = self._load_unlocked()
        if job_id:
            records = [r for r in records if r.job_id == job_id]
        if rule_key:
            records = [r for r in records if r.rule_key == rule_key]
        # Later appends win ties on identical timestamps.
        ordered = sorted(
            enumerate(records), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True
        )
        return [record for _, record in ordered[:limit]]
