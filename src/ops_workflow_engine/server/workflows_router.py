"""Workflow automation REST API.

Thin wrappers over :class:`WorkflowService`. Runs are synchronous: the request
returns once every selected job has been evaluated.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, HTTPException, Query, Request

from ops_workflow_engine.engine.workflow.action_log import ActionLogStoreError
from ops_workflow_engine.engine.workflow.service import WorkflowService
from ops_workflow_engine.server.models import (
    ApiActionLog,
    ApiRuleSummary,
    RunAllRequest,
    RunAllResponse,
    RunForJobResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _service(request: Request) -> WorkflowService:
    service = getattr(request.app.state, "workflows", None)
    if not isinstance(service, WorkflowService):
        # This should never happen for the real app, but keeps the API fail-fast.
        raise HTTPException(status_code=500, detail="Workflow service not configured")
    return service


def _store_unavailable(e: ActionLogStoreError) -> HTTPException:
    logger.error("Workflow action log unavailable", extra={"error": str(e)})
    return HTTPException(status_code=503, detail="Workflow action log unavailable")


@router.get("/rules", response_model=list[ApiRuleSummary])
def list_rules(request: Request) -> list[ApiRuleSummary]:
    return [ApiRuleSummary.from_summary(s) for s in _service(request).list_rules()]


@router.get("/logs", response_model=list[ApiActionLog])
def list_logs(
    request: Request,
    job_id: str | None = Query(default=None, alias="jobId"),
    rule_key: str | None = Query(default=None, alias="ruleKey"),
    limit: int = Query(default=50, ge=1, le=500),
) -> list[ApiActionLog]:
    try:
        records = _service(request).recent_logs(job_id=job_id, rule_key=rule_key, limit=limit)
    except ActionLogStoreError as e:
        raise _store_unavailable(e) from e
    return [ApiActionLog.from_record(r) for r in records]


@router.post("/jobs/{job_id}/run", response_model=RunForJobResponse)
def run_for_job(job_id: str, request: Request) -> RunForJobResponse:
    logger.info("Manual workflow execution requested for job", extra={"job_id": job_id})
    try:
        actions = _service(request).run_for_job(job_id)
    except ActionLogStoreError as e:
        raise _store_unavailable(e) from e
    return RunForJobResponse(job_id=job_id, actions=[ApiActionLog.from_record(a) for a in actions])


@router.post("/run-all", response_model=RunAllResponse)
def run_all(request: Request, body: RunAllRequest | None = Body(default=None)) -> RunAllResponse:
    limit = (body or RunAllRequest()).limit
    logger.info("Manual workflow execution requested for active jobs", extra={"limit": limit})
    try:
        result = _service(request).run_for_active_jobs(limit)
    except ActionLogStoreError as e:
        raise _store_unavailable(e) from e
    return RunAllResponse(processed=result.processed, actions=result.actions)
