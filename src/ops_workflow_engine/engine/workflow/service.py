"""Workflow service: the engine facade used by the HTTP server, CLI and scheduler.

External clients are built once from configuration and injected; nothing in
the engine reaches for global state.
"""

from __future__ import annotations

import logging
import threading

from ops_workflow_engine.engine.config import WorkflowSettings
from ops_workflow_engine.engine.jobnimbus.client import JobNimbusClient
from ops_workflow_engine.engine.jobs.state import JobStateReader, JsonJobStateStore
from ops_workflow_engine.engine.notifications.outbox import CustomerMessageOutbox

from .action_log import ActionLogRecord, ActionLogStore, JsonActionLogStore
from .effects import ExternalEffectDispatcher, JobNimbusEffectDispatcher
from .evaluator import Clock, RuleEvaluator, utc_now
from .models import RuleOptions, RuleSummary
from .registry import RuleRegistry
from .rules import default_registry
from .runner import BulkRunner, BulkRunResult, JobRunner, active_jobs_selector

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 50
DEFAULT_BULK_LIMIT = 500


class WorkflowService:
    def __init__(
        self,
        *,
        registry: RuleRegistry,
        jobs: JobStateReader,
        dispatcher: ExternalEffectDispatcher,
        log_store: ActionLogStore,
        options: RuleOptions | None = None,
        clock: Clock = utc_now,
        jobnimbus: JobNimbusClient | None = None,
    ) -> None:
        self._registry = registry
        self._jobs = jobs
        self._log_store = log_store
        self._jobnimbus = jobnimbus

        self.evaluator = RuleEvaluator(
            jobs=jobs,
            dispatcher=dispatcher,
            log_store=log_store,
            options=options,
            clock=clock,
        )
        self.job_runner = JobRunner(registry=registry, evaluator=self.evaluator)
        self.bulk_runner = BulkRunner(job_runner=self.job_runner)

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def list_rules(self) -> list[RuleSummary]:
        return self._registry.list_all()

    def recent_logs(
        self,
        *,
        job_id: str | None = None,
        rule_key: str | None = None,
        limit: int = DEFAULT_LOG_LIMIT,
    ) -> list[ActionLogRecord]:
        return self._log_store.recent(job_id=job_id, rule_key=rule_key, limit=limit)

    def run_for_job(self, job_id: str) -> list[ActionLogRecord]:
        return self.job_runner.run_for_job(job_id)

    def run_for_active_jobs(
        self, limit: int = DEFAULT_BULK_LIMIT, *, cancel: threading.Event | None = None
    ) -> BulkRunResult:
        return self.bulk_runner.run_for_population(
            active_jobs_selector(self._jobs), limit, cancel=cancel
        )

    def close(self) -> None:
        if self._jobnimbus is not None:
            self._jobnimbus.close()


def build_workflow_service(
    settings: WorkflowSettings,
    *,
    registry: RuleRegistry | None = None,
    clock: Clock = utc_now,
) -> WorkflowService:
    """Wire the default collaborators from settings."""

    jobnimbus: JobNimbusClient | None = None
    if settings.jobnimbus_configured:
        jobnimbus = JobNimbusClient(
            base_url=settings.jobnimbus_base_url,
            api_key=settings.jobnimbus_api_key,
            timeout_seconds=settings.jobnimbus_timeout_seconds,
        )
    else:
        logger.warning("JobNimbus credentials not configured - external tasks and notes disabled")

    dispatcher = JobNimbusEffectDispatcher(
        client=jobnimbus,
        messenger=CustomerMessageOutbox(settings.customer_messages_file),
        clock=clock,
    )
    return WorkflowService(
        registry=registry or default_registry(),
        jobs=JsonJobStateStore(settings.job_state_file),
        dispatcher=dispatcher,
        log_store=JsonActionLogStore(settings.action_log_file),
        options=RuleOptions(payment_reminder_sms=settings.payment_reminder_sms_enabled),
        clock=clock,
        jobnimbus=jobnimbus,
    )
