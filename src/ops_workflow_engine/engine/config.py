"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

JobNimbus credentials are optional. Without them the engine still evaluates
rules and records firings, but external tasks and notes are skipped.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """Settings for the workflow engine.

    Environment variables:
    - JOBNIMBUS_BASE_URL / JOBNIMBUS_API_KEY   (optional)
    - LOG_LEVEL                               (optional)
    - WORKFLOW_STATE_PATH                     (optional)
    - WORKFLOW_AUTOMATION_ENABLED             (optional, default false)
    - WORKFLOW_AUTOMATION_DAILY_LIMIT         (optional, default 500)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowSettings(_env_file=path_to_env)`.
    """

    jobnimbus_base_url: str = Field(
        default="",
        validation_alias="JOBNIMBUS_BASE_URL",
        description="JobNimbus API base URL",
    )
    jobnimbus_api_key: str = Field(
        default="",
        validation_alias="JOBNIMBUS_API_KEY",
        description="JobNimbus API key used for bearer authentication",
    )
    jobnimbus_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias="JOBNIMBUS_TIMEOUT_SECONDS",
        description="Per-request timeout for JobNimbus API calls",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    state_path: Path = Field(
        default=Path("workflow_state"),
        validation_alias="WORKFLOW_STATE_PATH",
        description="Directory holding the action log, job state and message outbox",
    )

    automation_enabled: bool = Field(
        default=False,
        validation_alias="WORKFLOW_AUTOMATION_ENABLED",
        description="If false, the scheduled daily trigger is a no-op",
    )
    daily_limit: int = Field(
        default=500,
        ge=1,
        validation_alias="WORKFLOW_AUTOMATION_DAILY_LIMIT",
        description="Maximum number of active jobs processed by the scheduled run",
    )
    daily_run_hour: int = Field(
        default=4,
        ge=0,
        le=23,
        validation_alias="WORKFLOW_AUTOMATION_HOUR",
        description="Hour of day (UTC) at which the in-process scheduler fires",
    )

    payment_reminder_sms_enabled: bool = Field(
        default=False,
        validation_alias="ENABLE_PAYMENT_REMINDER_SMS",
        description="Also text customers when an overdue payment reminder is emailed",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("jobnimbus_base_url", "jobnimbus_api_key")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @property
    def jobnimbus_configured(self) -> bool:
        return bool(self.jobnimbus_base_url and self.jobnimbus_api_key)

    @property
    def action_log_file(self) -> Path:
        """Path where workflow firings are appended."""

        return self.state_path / "action_log.json"

    @property
    def job_state_file(self) -> Path:
        """Path of the job state document maintained by the host application."""

        return self.state_path / "jobs.json"

    @property
    def customer_messages_file(self) -> Path:
        return self.state_path / "customer_messages.json"
