from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from .models import RuleSummary, WorkflowRule

logger = logging.getLogger(__name__)


class DuplicateRuleError(ValueError):
    pass


class RuleRegistry:
    """Ordered, immutable collection of workflow rules.

    Registration order is the order in which rules are evaluated for a job and
    therefore the order of the actions returned for it.
    """

    def __init__(self, rules: Iterable[WorkflowRule]) -> None:
        ordered: list[WorkflowRule] = []
        seen: set[str] = set()
        for rule in rules:
            if rule.key in seen:
                raise DuplicateRuleError(f"Duplicate workflow rule key: {rule.key}")
            seen.add(rule.key)
            ordered.append(rule)
        self._rules = tuple(ordered)
        logger.info("Initialized workflow rules", extra={"rule_count": len(self._rules)})

    @property
    def rules(self) -> tuple[WorkflowRule, ...]:
        return self._rules

    def list_all(self) -> list[RuleSummary]:
        return [rule.summary() for rule in self._rules]

    def get(self, key: str) -> WorkflowRule | None:
        for rule in self._rules:
            if rule.key == key:
                return rule
        return None

    def __iter__(self) -> Iterator[WorkflowRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)
