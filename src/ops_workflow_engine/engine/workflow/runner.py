"""Per-job and bulk execution of the rule registry.

Execution is sequential: jobs one at a time, rules one at a time in
registration order. Failures are isolated at two levels:

- a rule that raises is logged and treated as "did not fire"; the remaining
  rules for the job still run
- a job that raises is logged and counted as processed; the remaining jobs in
  the population still run

An :class:`ActionLogStoreError` is never isolated. It propagates to whoever
triggered the run.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ops_workflow_engine.engine.jobs.state import JobStateReader

from .action_log import ActionLogRecord, ActionLogStoreError
from .evaluator import RuleEvaluator
from .registry import RuleRegistry

logger = logging.getLogger(__name__)

JobSelector = Callable[[int], Sequence[str]]


@dataclass(frozen=True, slots=True)
class BulkRunResult:
    processed: int
    actions: int
    cancelled: bool = False


def active_jobs_selector(jobs: JobStateReader) -> JobSelector:
    """Select active jobs (not cancelled or complete), most recently updated first."""

    def _select(limit: int) -> Sequence[str]:
        return [job.id for job in jobs.list_active_jobs(limit)]

    return _select


class JobRunner:
    def __init__(self, *, registry: RuleRegistry, evaluator: RuleEvaluator) -> None:
        self._registry = registry
        self._evaluator = evaluator

    def run_for_job(self, job_id: str) -> list[ActionLogRecord]:
        """Evaluate every enabled rule for one job and return the firings."""

        logger.info("Running workflow rules for job", extra={"job_id": job_id})
        actions: list[ActionLogRecord] = []

        for rule in self._registry.rules:
            if not rule.enabled:
                continue
            try:
                action = self._evaluator.evaluate(rule, job_id)
            except ActionLogStoreError:
                raise
            except Exception:
                logger.exception(
                    "Workflow rule failed", extra={"rule_key": rule.key, "job_id": job_id}
                )
                continue

            if action is not None:
                actions.append(action)
                logger.info(
                    "Workflow rule fired",
                    extra={"rule_key": rule.key, "job_id": job_id, "log_id": action.id},
                )

        return actions


class BulkRunner:
    def __init__(self, *, job_runner: JobRunner) -> None:
        self._job_runner = job_runner

    def run_for_population(
        self,
        selector: JobSelector,
        limit: int,
        *,
        cancel: threading.Event | None = None,
    ) -> BulkRunResult:
        """Run all rules for up to `limit` selected jobs.

        `cancel` is checked between jobs; a job already started always finishes.
        """

        if limit <= 0:
            raise ValueError("limit must be a positive integer")

        logger.info("Running workflow rules for job population", extra={"limit": limit})
        job_ids = list(selector(limit))[:limit]
        logger.info("Selected jobs to process", extra={"job_count": len(job_ids)})

        processed = 0
        total_actions = 0
        cancelled = False

        for job_id in job_ids:
            if cancel is not None and cancel.is_set():
                cancelled = True
                logger.warning(
                    "Workflow run cancelled",
                    extra={"processed": processed, "remaining": len(job_ids) - processed},
                )
                break

            processed += 1
            try:
                actions = self._job_runner.run_for_job(job_id)
            except ActionLogStoreError:
                raise
            except Exception:
                logger.exception("Workflow run failed for job", extra={"job_id": job_id})
                continue
            total_actions += len(actions)

        logger.info(
            "Workflow execution complete",
            extra={"processed": processed, "actions": total_actions},
        )
        return BulkRunResult(processed=processed, actions=total_actions, cancelled=cancelled)
