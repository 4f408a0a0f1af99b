"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the workflow service.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ops_workflow_engine import __version__
from ops_workflow_engine.engine.config import WorkflowSettings
from ops_workflow_engine.engine.workflow.scheduled import DailyScheduler
from ops_workflow_engine.engine.workflow.service import WorkflowService, build_workflow_service
from ops_workflow_engine.server.config import ServerSettings
from ops_workflow_engine.server.workflows_router import router as workflows_router

logger = logging.getLogger(__name__)


def create_app(
    service: WorkflowService | None = None,
    *,
    workflow_settings: WorkflowSettings | None = None,
) -> FastAPI:
    settings = ServerSettings()
    workflow_settings = workflow_settings or WorkflowSettings()
    owns_service = service is None
    workflows = service or build_workflow_service(workflow_settings)

    scheduler: DailyScheduler | None = None
    if settings.run_scheduler:
        scheduler = DailyScheduler(service=workflows, settings=workflow_settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()
            if owns_service:
                workflows.close()

    app = FastAPI(
        title="Operations Workflow Engine",
        version=__version__,
        description="REST API over the workflow automation engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Expose settings and the service for request handlers.
    app.state.settings = settings
    app.state.workflow_settings = workflow_settings
    app.state.workflows = workflows
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/v1/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "rules": len(workflows.registry),
            "schedulerRunning": scheduler is not None and scheduler.running,
        }

    app.include_router(workflows_router, prefix="/api/v1")
    return app
