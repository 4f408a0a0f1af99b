"""Customer message hand-off.

Workflow rules do not talk to email or SMS providers directly. They hand a
:class:`CustomerMessage` to a :class:`CustomerMessenger`; the host decides how
it is delivered. :class:`CustomerMessageOutbox` is the local-first messenger:
it records each message, with the requested delivery channels, in a JSON file
that the host's delivery workers drain.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

MessageChannel = Literal["EMAIL", "SMS", "PORTAL"]


@dataclass(frozen=True, slots=True)
class CustomerMessage:
    type: str
    channel: MessageChannel
    title: str
    body: str
    send_email: bool = False
    send_sms: bool = False
    source: str = "SYSTEM"


class CustomerMessenger(Protocol):
    def create_message_for_job(self, job_id: str, message: CustomerMessage) -> None: ...


class CustomerMessageRecord(BaseModel):
    id: str
    job_id: str
    type: str
    channel: str
    source: str
    title: str
    body: str
    deliver_email: bool
    deliver_sms: bool
    created_at: datetime


class CustomerOutboxError(RuntimeError):
    """The outbox file cannot be read or written."""


class CustomerMessageOutbox:
    """JSON-file backed :class:`CustomerMessenger`."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def list(self) -> list[CustomerMessageRecord]:
        with self._lock:
            return self._load_unlocked()

    def _load_unlocked(self) -> list[CustomerMessageRecord]:
        if not self._path.exists():
            return []
        # Queued messages must never be overwritten, so a bad file is an error.
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CustomerOutboxError(f"Customer message outbox is unreadable: {self._path}") from e
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise CustomerOutboxError(
                f"Customer message outbox has unexpected shape: {self._path}"
            )
        try:
            return [CustomerMessageRecord.model_validate(item) for item in raw]
        except ValidationError as e:
            raise CustomerOutboxError(
                f"Customer message outbox contains invalid rows: {self._path}"
            ) from e

    def create_message_for_job(self, job_id: str, message: CustomerMessage) -> None:
        record = CustomerMessageRecord(
            id=uuid.uuid4().hex,
            job_id=job_id,
            type=message.type,
            channel=message.channel,
            source=message.source,
            title=message.title,
            body=message.body,
            # Email only goes out on the EMAIL channel, SMS only on the SMS channel.
            deliver_email=message.channel == "EMAIL" and message.send_email,
            deliver_sms=message.channel == "SMS" and message.send_sms,
            created_at=datetime.now(tz=UTC),
        )
        with self._lock:
            records = self._load_unlocked()
            records.append(record)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = [r.model_dump(mode="json") for r in records]
            self._path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )
        logger.info(
            "Customer message queued",
            extra={"job_id": job_id, "message_id": record.id, "channel": record.channel},
        )
