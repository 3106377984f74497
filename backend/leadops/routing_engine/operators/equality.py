"""
Strict equality operators.
"""
from typing import Any

from leadops.schemas.routing import ConditionOperator
from .base import BaseOperator, coerce_number, is_numeric, strict_equals


class EqualityOperator(BaseOperator):
    """
    equals / not_equals.

    A comparison value is coerced to a number when the field is numeric,
    so {"field": "score", "op": "equals", "value": "75"} matches score 75.
    """

    def evaluate(self, value: Any, target: Any) -> bool:
        if is_numeric(value):
            number = coerce_number(target)
            equal = number is not None and value == number
        else:
            equal = strict_equals(value, target)

        if self.op == ConditionOperator.NOT_EQUALS:
            return not equal
        return equal
