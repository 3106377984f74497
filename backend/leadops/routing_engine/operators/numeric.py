"""
Numeric comparison operators.
"""
import operator
from typing import Any

from leadops.schemas.routing import ConditionOperator
from .base import BaseOperator, coerce_number, is_numeric


_COMPARATORS = {
    ConditionOperator.GREATER_THAN: operator.gt,
    ConditionOperator.LESS_THAN: operator.lt,
    ConditionOperator.GREATER_EQUAL: operator.ge,
    ConditionOperator.LESS_EQUAL: operator.le,
}


class NumericOperator(BaseOperator):
    """
    greater_than / less_than / greater_equal / less_equal.

    False for non-numeric fields and for comparison values with no numeric form.
    """

    def evaluate(self, value: Any, target: Any) -> bool:
        if not is_numeric(value):
            return False

        threshold = coerce_number(target)
        if threshold is None:
            return False

        return _COMPARATORS[self.op](value, threshold)
