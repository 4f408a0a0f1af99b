from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ops_workflow_engine.engine.jobs.state import JobSnapshot, JobStateReader

from .action_log import ActionType
from .effects import ExternalEffectDispatcher


class Department(str, Enum):
    """Owning department of a rule. Classification only."""

    SALES = "SALES"
    PRODUCTION = "PRODUCTION"
    ADMIN = "ADMIN"
    SAFETY = "SAFETY"
    WARRANTY = "WARRANTY"
    FINANCE = "FINANCE"


@dataclass(frozen=True, slots=True)
class RuleOptions:
    """Host-level switches that rule effects may consult."""

    payment_reminder_sms: bool = False


@dataclass(frozen=True, slots=True)
class RuleContext:
    """Everything a rule sees during one evaluation.

    Conditions only read (`jobs`, `now`); effects use `dispatcher`.
    """

    jobs: JobStateReader
    dispatcher: ExternalEffectDispatcher
    now: datetime
    options: RuleOptions = field(default_factory=RuleOptions)


@dataclass(frozen=True, slots=True)
class RuleMatch:
    """A positive condition check, carrying what the effect step needs."""

    job: JobSnapshot
    facts: dict[str, object] = field(default_factory=dict)

    @property
    def target_id(self) -> str:
        """JobNimbus record id the effects are attached to."""

        return self.job.jobnimbus_id or ""


@dataclass(frozen=True, slots=True)
class RuleEffect:
    """What the effect step did, as it should appear in the action log."""

    action_type: ActionType
    metadata: dict[str, object] | None = None


Condition = Callable[[RuleContext, str], RuleMatch | None]
Effect = Callable[[RuleContext, RuleMatch], RuleEffect]


@dataclass(frozen=True, slots=True)
class WorkflowRule:
    """A named condition -> effect unit evaluated per job.

    `cooldown_days` is the minimum time before the same rule may fire again for
    the same job; 0 means it may fire on every evaluation.
    """

    key: str
    name: str
    description: str
    department: Department
    cooldown_days: int
    condition: Condition
    effect: Effect
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.key.strip():
            raise ValueError("Rule key is required")
        if self.cooldown_days < 0:
            raise ValueError(f"Rule {self.key} has a negative cooldown: {self.cooldown_days}")

    def summary(self) -> RuleSummary:
        return RuleSummary(
            key=self.key,
            name=self.name,
            description=self.description,
            department=self.department,
            enabled=self.enabled,
        )


@dataclass(frozen=True, slots=True)
class RuleSummary:
    key: str
    name: str
    description: str
    department: Department
    enabled: bool
