"""External side effects issued on behalf of firing rules.

Every dispatcher call is fire-and-forget from the engine's point of view:
failures are logged and absorbed here, never raised. A firing is recorded in
the action log when the effect was attempted, not when delivery is confirmed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from ops_workflow_engine.engine.jobnimbus.client import JobNimbusClient
from ops_workflow_engine.engine.notifications.outbox import CustomerMessage, CustomerMessenger

logger = logging.getLogger(__name__)


class ExternalEffectDispatcher(Protocol):
    """Boundary for tasks, notes and customer messages.

    Each method returns True when the call went out and False when it was
    skipped or failed. Implementations must not raise.
    """

    def create_external_task(
        self, target_id: str, title: str, description: str, due_in_days: int = 3
    ) -> bool: ...

    def create_external_note(self, target_id: str, text: str) -> bool: ...

    def send_customer_message(self, job_id: str, message: CustomerMessage) -> bool: ...


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class JobNimbusEffectDispatcher:
    """Dispatch tasks/notes to JobNimbus and customer messages to a messenger.

    Either collaborator may be absent (e.g. no JobNimbus credentials configured);
    the corresponding calls are then skipped with a warning.
    """

    def __init__(
        self,
        *,
        client: JobNimbusClient | None,
        messenger: CustomerMessenger | None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._client = client
        self._messenger = messenger
        self._clock = clock

    def create_external_task(
        self, target_id: str, title: str, description: str, due_in_days: int = 3
    ) -> bool:
        if self._client is None:
            logger.warning(
                "Cannot create JobNimbus task - client not configured",
                extra={"target_id": target_id, "title": title},
            )
            return False

        due_date = (self._clock() + timedelta(days=due_in_days)).date()
        try:
            self._client.create_task(
                target_id, title=title, description=description, due_date=due_date
            )
        except Exception:
            logger.exception(
                "Failed to create JobNimbus task",
                extra={"target_id": target_id, "title": title},
            )
            return False
        return True

    def create_external_note(self, target_id: str, text: str) -> bool:
        if self._client is None:
            logger.warning(
                "Cannot create JobNimbus note - client not configured",
                extra={"target_id": target_id},
            )
            return False

        try:
            self._client.create_note(target_id, text=text)
        except Exception:
            logger.exception("Failed to create JobNimbus note", extra={"target_id": target_id})
            return False
        return True

    def send_customer_message(self, job_id: str, message: CustomerMessage) -> bool:
        if self._messenger is None:
            logger.warning(
                "Cannot send customer message - no messenger configured",
                extra={"job_id": job_id, "channel": message.channel},
            )
            return False

        try:
            self._messenger.create_message_for_job(job_id, message)
        except Exception:
            logger.exception(
                "Failed to send customer message",
                extra={"job_id": job_id, "type": message.type, "channel": message.channel},
            )
            return False
        return True
