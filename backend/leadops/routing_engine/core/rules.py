"""
Routing rule parsing, validation and stock rules.
"""
from numbers import Integral
from typing import Any, Dict, List, Mapping, Tuple, Union

from pydantic import ValidationError

from leadops.exceptions import MalformedRule
from leadops.schemas.routing import AlertChannel, ConditionOperator, RoutingRuleConfig


RuleInput = Union[RoutingRuleConfig, Mapping[str, Any]]

_MISSING = object()


def _definition(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    definition = raw.get("definition")
    return definition if isinstance(definition, Mapping) else raw


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool) and value > 0


def extract_rule_name(definition: Any) -> str:
    """Display name built from a rule definition: "If <conditions> then assign to <target>"."""
    conditions = definition.get("if") if isinstance(definition, Mapping) else None
    if not isinstance(conditions, list):
        return "Unnamed Rule"

    rendered = " AND ".join(
        f"{c.get('field')} {c.get('op', c.get('operator'))} {c.get('value')}"
        for c in conditions if isinstance(c, Mapping)
    )
    then = definition.get("then") if isinstance(definition.get("then"), Mapping) else {}
    return f"If {rendered} then assign to {then.get('assign') or 'unassigned'}"


def validate_routing_rule(raw: Mapping[str, Any]) -> Tuple[bool, List[str]]:
    """
    Check a rule before it is saved.

    Accepts the flat {name, if, then, order} shape or the stored
    {name, definition: {if, then}, order} shape.

    Returns:
        (valid, errors)
    """
    errors: List[str] = []

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Rule name is required")

    definition = _definition(raw)

    conditions = definition.get("if")
    if not isinstance(conditions, list) or not conditions:
        errors.append('Rule must have at least one condition in "if" array')
    else:
        for condition in conditions:
            if not isinstance(condition, Mapping):
                errors.append("Each condition must have field, op, and value")
                continue
            op = condition.get("op", condition.get("operator"))
            if not condition.get("field") or not op or condition.get("value", _MISSING) is _MISSING:
                errors.append("Each condition must have field, op, and value")
            elif op not in {o.value for o in ConditionOperator}:
                errors.append(f"Unknown operator: {op}")

    then = definition.get("then")
    if not isinstance(then, Mapping):
        errors.append('Rule must have "then" actions')
    else:
        if not then.get("assign"):
            errors.append('Rule must specify assignment target in "then.assign"')

        if then.get("sla") is not None and not _is_positive_int(then["sla"]):
            errors.append("SLA must be a positive integer (minutes)")

        if then.get("priority") is not None and not _is_positive_int(then["priority"]):
            errors.append("Priority must be a positive integer")

        alert = then.get("alert")
        if alert is not None and alert not in {a.value for a in AlertChannel}:
            errors.append("Alert type must be SLACK, EMAIL, or WEBHOOK")

        if alert == AlertChannel.WEBHOOK.value and not then.get("webhook"):
            errors.append("Webhook URL is required when alert type is WEBHOOK")

    order = raw.get("order")
    if order is not None and (
        not isinstance(order, Integral) or isinstance(order, bool) or order < 0
    ):
        errors.append("Rule order must be a non-negative integer")

    return len(errors) == 0, errors


def parse_rule(raw: RuleInput) -> RoutingRuleConfig:
    """
    Parse a stored or flat rule into a RoutingRuleConfig.

    Raises:
        MalformedRule: the rule cannot be evaluated
    """
    if isinstance(raw, RoutingRuleConfig):
        return raw

    rule_id = raw.get("id") if isinstance(raw, Mapping) else None
    if not isinstance(raw, Mapping):
        raise MalformedRule(None, ["Rule must be an object"])

    try:
        rule = RoutingRuleConfig.model_validate(raw)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'rule'}: {err['msg']}"
            for err in e.errors()
        ]
        raise MalformedRule(str(rule_id) if rule_id is not None else None, errors) from e

    if not rule.name:
        rule.name = extract_rule_name(_definition(raw))
    return rule


def default_routing_rules() -> List[RoutingRuleConfig]:
    """Stock rules used for tenants that have none configured."""
    stock: List[Dict[str, Any]] = [
        {
            "id": "default-high-score",
            "name": "High Score to AE Pool A",
            "if": [{"field": "scoreBand", "op": "equals", "value": "HIGH"}],
            "then": {"assign": "AE_POOL_A", "alert": "SLACK", "sla": 15, "priority": 1},
        },
        {
            "id": "default-enterprise",
            "name": "Enterprise Leads to Senior AEs",
            "if": [
                {"field": "fields.employees", "op": "greater_equal", "value": 1000},
                {"field": "fields.budget", "op": "greater_equal", "value": 100000},
            ],
            "then": {"assign": "SENIOR_AE_POOL", "alert": "SLACK", "sla": 10, "priority": 1},
        },
        {
            "id": "default-decision-makers",
            "name": "Decision Makers to AE Pool A",
            "if": [{"field": "fields.title", "op": "contains", "value": "ceo"}],
            "then": {"assign": "AE_POOL_A", "alert": "EMAIL", "sla": 20, "priority": 2},
        },
        {
            "id": "default-medium-score",
            "name": "Medium Score to AE Pool B",
            "if": [{"field": "scoreBand", "op": "equals", "value": "MEDIUM"}],
            "then": {"assign": "AE_POOL_B", "sla": 30},
        },
        {
            "id": "default-low-score",
            "name": "Low Score to SDR Pool",
            "if": [{"field": "scoreBand", "op": "equals", "value": "LOW"}],
            "then": {"assign": "SDR_POOL", "sla": 60},
        },
        {
            "id": "default-paid-search",
            "name": "Paid Search to Fast Track",
            "if": [
                {"field": "utm.medium", "op": "equals", "value": "cpc"},
                {"field": "utm.source", "op": "equals", "value": "google"},
            ],
            "then": {"assign": "FAST_TRACK_POOL", "alert": "SLACK", "sla": 5, "priority": 1},
        },
    ]

    return [
        RoutingRuleConfig.model_validate({**rule, "enabled": True, "order": index})
        for index, rule in enumerate(stock, start=1)
    ]
