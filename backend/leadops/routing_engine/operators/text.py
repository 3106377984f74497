"""
Case-insensitive string operators.
"""
from typing import Any

from leadops.schemas.routing import ConditionOperator
from .base import BaseOperator


class TextOperator(BaseOperator):
    """contains / not_contains / starts_with / ends_with. Non-string fields never match."""

    def evaluate(self, value: Any, target: Any) -> bool:
        if not isinstance(value, str):
            return False

        haystack = value.lower()
        needle = str(target).lower()

        if self.op == ConditionOperator.CONTAINS:
            return needle in haystack
        if self.op == ConditionOperator.NOT_CONTAINS:
            return needle not in haystack
        if self.op == ConditionOperator.STARTS_WITH:
            return haystack.startswith(needle)
        return haystack.endswith(needle)
