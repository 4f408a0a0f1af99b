"""Pydantic models for the REST server.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ops_workflow_engine.engine.workflow.action_log import ActionLogRecord
from ops_workflow_engine.engine.workflow.models import RuleSummary


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiRuleSummary(ApiModel):
    key: str
    name: str
    description: str
    department: str
    enabled: bool

    @classmethod
    def from_summary(cls, summary: RuleSummary) -> ApiRuleSummary:
        return cls(
            key=summary.key,
            name=summary.name,
            description=summary.description,
            department=summary.department.value,
            enabled=summary.enabled,
        )


class ApiActionLog(ApiModel):
    id: str
    job_id: str
    rule_key: str
    action_type: str
    created_at: datetime
    metadata: dict[str, object] | None = None

    @classmethod
    def from_record(cls, record: ActionLogRecord) -> ApiActionLog:
        return cls(
            id=record.id,
            job_id=record.job_id,
            rule_key=record.rule_key,
            action_type=record.action_type.value,
            created_at=record.created_at,
            metadata=record.metadata,
        )


class RunForJobResponse(ApiModel):
    job_id: str
    actions: list[ApiActionLog] = Field(default_factory=list)


class RunAllRequest(BaseModel):
    limit: int = Field(default=500, ge=1)


class RunAllResponse(BaseModel):
    processed: int
    actions: int
