"""
List membership operators.
"""
from typing import Any

from leadops.schemas.routing import ConditionOperator
from .base import BaseOperator, strict_equals


class MembershipOperator(BaseOperator):
    """in / not_in. The comparison value must be a list; anything else never matches."""

    def evaluate(self, value: Any, target: Any) -> bool:
        if not isinstance(target, (list, tuple, set, frozenset)):
            return False

        found = any(strict_equals(value, item) for item in target)

        if self.op == ConditionOperator.NOT_IN:
            return not found
        return found
