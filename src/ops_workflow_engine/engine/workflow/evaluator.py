from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ops_workflow_engine.engine.jobs.state import JobStateReader

from .action_log import ActionLogRecord, ActionLogStore
from .effects import ExternalEffectDispatcher
from .models import RuleContext, RuleOptions, WorkflowRule

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class RuleEvaluator:
    """Evaluate one rule for one job: condition, cooldown, effect, log.

    The cooldown is checked only after the condition holds, against the most
    recent prior firing of the same (job, rule) pair.
    """

    def __init__(
        self,
        *,
        jobs: JobStateReader,
        dispatcher: ExternalEffectDispatcher,
        log_store: ActionLogStore,
        options: RuleOptions | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._jobs = jobs
        self._dispatcher = dispatcher
        self._log_store = log_store
        self._options = options or RuleOptions()
        self._clock = clock

    def evaluate(self, rule: WorkflowRule, job_id: str) -> ActionLogRecord | None:
        if not rule.enabled:
            return None

        now = self._clock()
        ctx = RuleContext(
            jobs=self._jobs, dispatcher=self._dispatcher, now=now, options=self._options
        )

        match = rule.condition(ctx, job_id)
        if match is None:
            return None

        if self.fired_within_cooldown(rule, job_id, now=now):
            logger.debug(
                "Rule suppressed by cooldown",
                extra={"rule_key": rule.key, "job_id": job_id, "cooldown_days": rule.cooldown_days},
            )
            return None

        effect = rule.effect(ctx, match)
        return self._log_store.append(
            job_id=job_id,
            rule_key=rule.key,
            action_type=effect.action_type,
            metadata=effect.metadata,
            created_at=now,
        )

    def fired_within_cooldown(self, rule: WorkflowRule, job_id: str, *, now: datetime) -> bool:
        # A firing exactly cooldown_days ago no longer blocks; cooldown 0 never blocks.
        since = now - timedelta(days=rule.cooldown_days)
        latest = self._log_store.latest_since(job_id=job_id, rule_key=rule.key, since=since)
        return latest is not None
