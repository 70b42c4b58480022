"""
Stipulation lookup for segments.

A stipulation name maps to zero or one configured rule. Blank names and the
"Standard Match" sentinel attach nothing; unknown names are logged and
ignored so a typo never sinks a show.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from simulation.contracts import RuleProvider, SegmentRuleRecord

logger = logging.getLogger(__name__)

STANDARD_STIPULATION = "Standard Match"


class RuleHolder(Protocol):
    rules: list[SegmentRuleRecord]


def normalize_stipulation(stipulation: Optional[str]) -> str:
    if stipulation is None or not stipulation.strip():
        return STANDARD_STIPULATION
    return stipulation.strip()


def is_standard(stipulation: Optional[str]) -> bool:
    return normalize_stipulation(stipulation) == STANDARD_STIPULATION


class RuleApplier:
    def __init__(self, rules: RuleProvider) -> None:
        self._rules = rules

    def apply(self, result: RuleHolder, stipulation: Optional[str]) -> Optional[SegmentRuleRecord]:
        """Attach the rule named ``stipulation`` to ``result``, if there is one."""
        if is_standard(stipulation):
            return None

        name = stipulation.strip()
        rule = self._rules.find_by_name(name)
        if rule is None:
            logger.warning("No segment rules found for stipulation: %s", name)
            return None
        return self._attach(result, rule)

    def apply_by_id(self, result: RuleHolder, rule_id: Optional[int]) -> Optional[SegmentRuleRecord]:
        if rule_id is None:
            return None
        rule = self._rules.find_by_id(rule_id)
        if rule is None:
            logger.warning("No segment rule found with id %s", rule_id)
            return None
        return self._attach(result, rule)

    def exists(self, name: str) -> bool:
        return self._rules.exists_by_name(name)

    def high_heat_rules(self) -> list[SegmentRuleRecord]:
        return [r for r in self._rules.high_heat_rules() if r.is_active]

    def standard_rules(self) -> list[SegmentRuleRecord]:
        return [r for r in self._rules.standard_rules() if r.is_active]

    def _attach(self, result: RuleHolder, rule: SegmentRuleRecord) -> Optional[SegmentRuleRecord]:
        if not rule.is_active:
            logger.warning("Segment rule %s is inactive; not attaching", rule.name)
            return None
        if any(r.name == rule.name for r in result.rules):
            return rule
        result.rules.append(rule)
        logger.debug("Attached segment rule %s (bumps: %s)", rule.name, rule.bump_addition.value)
        return rule
