"""CLI entrypoint for the workflow engine.

Suitable for cron: `workflow-engine run-scheduled` honours the automation
feature flag exactly like the in-process scheduler.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from pydantic import ValidationError

from ops_workflow_engine import __version__
from ops_workflow_engine.engine.config import WorkflowSettings
from ops_workflow_engine.engine.logging import configure_logging
from ops_workflow_engine.engine.workflow.action_log import ActionLogStoreError
from ops_workflow_engine.engine.workflow.scheduled import run_scheduled_workflows
from ops_workflow_engine.engine.workflow.service import (
    DEFAULT_BULK_LIMIT,
    DEFAULT_LOG_LIMIT,
    build_workflow_service,
)

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-engine",
        description="Evaluate operations workflow rules against jobs",
    )
    parser.add_argument("--version", action="version", version=f"ops-workflow-engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("rules", help="List registered workflow rules")

    logs = subparsers.add_parser("logs", help="Show recent workflow action log entries")
    logs.add_argument("--job-id", default=None, help="Only show entries for this job")
    logs.add_argument("--rule-key", default=None, help="Only show entries for this rule")
    logs.add_argument(
        "--limit",
        type=_positive_int,
        default=DEFAULT_LOG_LIMIT,
        help="Maximum number of entries (most recent first)",
    )

    run_job = subparsers.add_parser("run-job", help="Run all enabled rules for one job")
    run_job.add_argument("job_id", help="Job identifier")

    run_all = subparsers.add_parser("run-all", help="Run all enabled rules for active jobs")
    run_all.add_argument(
        "--limit",
        type=_positive_int,
        default=DEFAULT_BULK_LIMIT,
        help="Maximum number of active jobs to process",
    )

    subparsers.add_parser(
        "run-scheduled",
        help=(
            "Scheduled trigger: run active jobs if WORKFLOW_AUTOMATION_ENABLED=true, "
            "using WORKFLOW_AUTOMATION_DAILY_LIMIT"
        ),
    )

    return parser


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    # stdout carries the JSON result.
    configure_logging(settings.log_level, stream=sys.stderr)
    service = build_workflow_service(settings)

    try:
        if args.command == "rules":
            _emit([asdict(rule) for rule in service.list_rules()])
            return 0

        if args.command == "logs":
            records = service.recent_logs(
                job_id=args.job_id, rule_key=args.rule_key, limit=args.limit
            )
            _emit([r.model_dump(mode="json") for r in records])
            return 0

        if args.command == "run-job":
            actions = service.run_for_job(args.job_id)
            _emit({"jobId": args.job_id, "actions": [a.model_dump(mode="json") for a in actions]})
            return 0

        if args.command == "run-all":
            result = service.run_for_active_jobs(args.limit)
            _emit({"processed": result.processed, "actions": result.actions})
            return 0

        if args.command == "run-scheduled":
            scheduled = run_scheduled_workflows(service, settings)
            if scheduled is None:
                _emit({"ran": False})
            else:
                _emit({"ran": True, "processed": scheduled.processed, "actions": scheduled.actions})
            return 0

    except ActionLogStoreError:
        logger.exception("Workflow action log unavailable", extra={"command": args.command})
        return 1
    finally:
        service.close()

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
