"""Workflow automation engine.

This package provides first-class types for:
- Workflow rules (condition -> effect) and their ordered registry
- Cooldown-based deduplication against an append-only action log
- Per-job and bulk runners with failure isolation
- A daily, feature-flagged scheduled trigger
"""

from .action_log import ActionLogRecord, ActionLogStoreError, ActionType, JsonActionLogStore
from .models import Department, RuleContext, RuleEffect, RuleMatch, WorkflowRule
from .registry import RuleRegistry
from .runner import BulkRunner, BulkRunResult, JobRunner
from .service import WorkflowService, build_workflow_service

__all__ = [
    "ActionLogRecord",
    "ActionLogStoreError",
    "ActionType",
    "BulkRunResult",
    "BulkRunner",
    "Department",
    "JobRunner",
    "JsonActionLogStore",
    "RuleContext",
    "RuleEffect",
    "RuleMatch",
    "RuleRegistry",
    "WorkflowRule",
    "WorkflowService",
    "build_workflow_service",
]
