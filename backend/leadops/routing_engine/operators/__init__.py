"""
Operator factory and registry.
"""
from leadops.schemas.routing import ConditionOperator
from .base import BaseOperator
from .equality import EqualityOperator
from .numeric import NumericOperator
from .text import TextOperator
from .pattern import RegexOperator
from .membership import MembershipOperator
from .presence import PresenceOperator

# Registry of available operators
OPERATOR_REGISTRY = {
    ConditionOperator.EQUALS: EqualityOperator,
    ConditionOperator.NOT_EQUALS: EqualityOperator,
    ConditionOperator.GREATER_THAN: NumericOperator,
    ConditionOperator.LESS_THAN: NumericOperator,
    ConditionOperator.GREATER_EQUAL: NumericOperator,
    ConditionOperator.LESS_EQUAL: NumericOperator,
    ConditionOperator.CONTAINS: TextOperator,
    ConditionOperator.NOT_CONTAINS: TextOperator,
    ConditionOperator.STARTS_WITH: TextOperator,
    ConditionOperator.ENDS_WITH: TextOperator,
    ConditionOperator.REGEX: RegexOperator,
    ConditionOperator.IN: MembershipOperator,
    ConditionOperator.NOT_IN: MembershipOperator,
    ConditionOperator.EXISTS: PresenceOperator,
    ConditionOperator.NOT_EXISTS: PresenceOperator,
}

_missing = set(ConditionOperator) - set(OPERATOR_REGISTRY)
if _missing:
    raise RuntimeError(f"Operators without an implementation: {sorted(op.value for op in _missing)}")


def get_operator(op) -> BaseOperator:
    """
    Factory function to create the operator for a condition.

    Args:
        op: ConditionOperator or its string value

    Returns:
        Instantiated operator

    Raises:
        ValueError: If op is not a known operator
    """
    try:
        op = ConditionOperator(op)
    except ValueError:
        raise ValueError(
            f"Unknown operator: {op}. "
            f"Available: {[o.value for o in OPERATOR_REGISTRY]}"
        )

    return OPERATOR_REGISTRY[op](op)
