"""Unit tests for the rule registry and default rule set."""

from __future__ import annotations

import pytest

from ops_workflow_engine.engine.workflow.action_log import ActionType
from ops_workflow_engine.engine.workflow.models import Department, RuleEffect, WorkflowRule
from ops_workflow_engine.engine.workflow.registry import DuplicateRuleError, RuleRegistry
from ops_workflow_engine.engine.workflow.rules import build_default_rules, default_registry


def _rule(key: str, *, enabled: bool = True) -> WorkflowRule:
    return WorkflowRule(
        key=key,
        name=f"Rule {key}",
        description="",
        department=Department.ADMIN,
        cooldown_days=1,
        condition=lambda ctx, job_id: None,
        effect=lambda ctx, match: RuleEffect(action_type=ActionType.EXTERNAL_NOTE),
        enabled=enabled,
    )


def test_duplicate_keys_are_rejected() -> None:
    with pytest.raises(DuplicateRuleError, match="DUP"):
        RuleRegistry([_rule("DUP"), _rule("OTHER"), _rule("DUP")])


def test_list_all_preserves_registration_order_and_includes_disabled() -> None:
    registry = RuleRegistry([_rule("B"), _rule("A", enabled=False), _rule("C")])

    summaries = registry.list_all()

    assert [s.key for s in summaries] == ["B", "A", "C"]
    assert [s.enabled for s in summaries] == [True, False, True]
    assert len(registry) == 3


def test_get_returns_rule_by_key() -> None:
    registry = RuleRegistry([_rule("A"), _rule("B")])

    found = registry.get("B")
    assert found is not None
    assert found.key == "B"
    assert registry.get("missing") is None


def test_empty_key_is_rejected() -> None:
    with pytest.raises(ValueError):
        _rule("  ")


def test_default_rules_cover_every_department() -> None:
    registry = default_registry()

    assert {rule.department for rule in registry} == set(Department)
    assert len({rule.key for rule in registry}) == len(registry) == 9


def test_default_rule_cooldowns() -> None:
    cooldowns = {rule.key: rule.cooldown_days for rule in build_default_rules()}

    assert cooldowns == {
        "SALES_ESTIMATE_FOLLOWUP_72H": 7,
        "PRODUCTION_QC_FAIL_NEEDS_PHOTOS": 3,
        "PRODUCTION_MATERIAL_DELAY": 2,
        "ADMIN_SUB_NONCOMPLIANT_ASSIGNED": 1,
        "SAFETY_OPEN_HIGH_SEVERITY_INCIDENT": 1,
        "WARRANTY_EXPIRING_SOON": 14,
        "FINANCE_LOW_MARGIN_HIGH_RISK_JOB": 7,
        "FINANCE_MISSING_CONTRACT_AMOUNT": 5,
        "FINANCE_AR_OVERDUE_PAYMENT_REMINDER": 7,
    }
