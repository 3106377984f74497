"""
Base operator interface for routing conditions.
"""
from abc import ABC, abstractmethod
from numbers import Number
from typing import Any, Optional

from leadops.schemas.routing import ConditionOperator


def is_numeric(value: Any) -> bool:
    """Ints and floats count as numeric; bools do not."""
    return isinstance(value, Number) and not isinstance(value, bool)


def coerce_number(value: Any) -> Optional[float]:
    """Numeric view of a comparison value, or None if it has none."""
    if is_numeric(value):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def strict_equals(left: Any, right: Any) -> bool:
    """Equality that never conflates bools with numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_numeric(left) and is_numeric(right):
        return left == right
    return type(left) is type(right) and left == right


class BaseOperator(ABC):
    """Abstract base for all condition operators."""

    def __init__(self, op: ConditionOperator):
        """
        Args:
            op: The operator this instance evaluates
        """
        self.op = op

    @abstractmethod
    def evaluate(self, value: Any, target: Any) -> bool:
        """
        Evaluate the operator.

        Args:
            value: Resolved field value (None when the path is missing)
            target: Comparison value from the rule

        Returns:
            True if the condition holds. Never raises.
        """
        pass

    def get_explanation(self, field: str, value: Any, result: bool) -> str:
        """
        Return human-readable explanation of the result.
        """
        verdict = "matches" if result else "does not match"
        return f"Field '{field}' with value '{value}' {verdict} condition"
