"""Configuration for the REST server.

Engine settings (JobNimbus credentials, state path, automation flag) live in
:class:`ops_workflow_engine.engine.config.WorkflowSettings`; this only covers
concerns of the HTTP process itself.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for the REST API process."""

    run_scheduler: bool = Field(
        default=False,
        validation_alias="WORKFLOW_RUN_SCHEDULER",
        description=(
            "If true, the server starts the in-process daily scheduler. The scheduled run "
            "itself is still gated by WORKFLOW_AUTOMATION_ENABLED. Leave this off when an "
            "external cron invokes `workflow-engine run-scheduled` instead."
        ),
    )

    # Dev-friendly CORS for the internal dashboard. Override via WORKFLOW_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="WORKFLOW_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
