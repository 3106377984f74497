"""
Rule engine: ordered, first-match-wins evaluation of routing rules.
"""
from typing import Any, Iterable, List, Optional
import logging

from leadops.exceptions import MalformedRule
from leadops.routing_engine.core.conditions import get_field_value
from leadops.routing_engine.core.rules import RuleInput, parse_rule
from leadops.routing_engine.operators import get_operator
from leadops.schemas.routing import RoutingRuleConfig, RoutingTrace, TraceStep


logger = logging.getLogger(__name__)


class RuleEngine:
    """
    Evaluate a tenant's routing rules against a lead.

    Every rule and condition evaluated is appended to the trace, whether it
    matched or not. Malformed rules are skipped with a rule_skipped entry.
    """

    def parse_rules(self, rules: Iterable[RuleInput], trace: List[RoutingTrace]) -> List[RoutingRuleConfig]:
        """Enabled, well-formed rules in ascending order (stable for equal orders)."""
        parsed = []
        for raw in rules:
            try:
                rule = parse_rule(raw)
            except MalformedRule as e:
                logger.warning(f"Skipping malformed routing rule: {e}")
                trace.append(RoutingTrace(
                    step=TraceStep.RULE_SKIPPED,
                    rule=e.rule_id,
                    result=False,
                    reason=str(e),
                ))
                continue

            if rule.enabled:
                parsed.append(rule)

        return sorted(parsed, key=lambda r: r.order)

    def evaluate_rule(self, lead: Any, rule: RoutingRuleConfig, trace: List[RoutingTrace]) -> bool:
        trace.append(RoutingTrace(
            step=TraceStep.RULE_EVALUATION,
            rule=rule.id,
            result=False,
            reason=f'Evaluating rule "{rule.display_name}"',
        ))

        for condition in rule.conditions:
            value = get_field_value(lead, condition.field)
            operator = get_operator(condition.op)
            matches = operator.evaluate(value, condition.value)

            trace.append(RoutingTrace(
                step=TraceStep.CONDITION,
                rule=rule.id,
                condition=condition.describe(),
                result=matches,
                reason=operator.get_explanation(condition.field, value, matches),
            ))

            if not matches:
                trace.append(RoutingTrace(
                    step=TraceStep.RULE_NO_MATCH,
                    rule=rule.id,
                    result=False,
                    reason=f'Rule "{rule.display_name}" did not match',
                ))
                return False

        trace.append(RoutingTrace(
            step=TraceStep.RULE_MATCH,
            rule=rule.id,
            result=True,
            reason=f'Rule "{rule.display_name}" matched - all conditions satisfied',
        ))
        return True

    def find_matching_rule(
        self,
        lead: Any,
        rules: Iterable[RuleInput],
        trace: Optional[List[RoutingTrace]] = None,
    ) -> Optional[RoutingRuleConfig]:
        """
        First enabled rule whose conditions all hold, or None.

        Rules after the first match are not evaluated.
        """
        trace = trace if trace is not None else []

        for rule in self.parse_rules(rules, trace):
            if self.evaluate_rule(lead, rule, trace):
                return rule

        trace.append(RoutingTrace(
            step=TraceStep.NO_RULE_MATCHED,
            result=False,
            reason="No routing rules matched",
        ))
        return None
