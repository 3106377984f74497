"""
Presence operators.
"""
from typing import Any

from leadops.schemas.routing import ConditionOperator
from .base import BaseOperator


class PresenceOperator(BaseOperator):
    """exists / not_exists. None and "" count as absent; the comparison value is ignored."""

    def evaluate(self, value: Any, target: Any) -> bool:
        present = value is not None and value != ""
        if self.op == ConditionOperator.NOT_EXISTS:
            return not present
        return present
