"""
Condition evaluation against arbitrary lead records.
"""
from collections.abc import Mapping
from enum import Enum
from typing import Any, Iterable, Union
import re

from pydantic import BaseModel

from leadops.routing_engine.operators import get_operator
from leadops.schemas.routing import RuleCondition


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _lookup(container: Any, key: str) -> Any:
    if isinstance(container, Mapping):
        if key in container:
            return container[key]
        snake = camel_to_snake(key)
        return container.get(snake) if snake != key else None

    if isinstance(container, BaseModel):
        fields = type(container).model_fields
        if key in fields:
            return getattr(container, key)
        snake = camel_to_snake(key)
        return getattr(container, snake) if snake in fields else None

    return None


def as_record(record: Any) -> Any:
    """ORM rows expose their columns through to_record(); everything else is used as-is."""
    to_record = getattr(record, "to_record", None)
    if callable(to_record) and not isinstance(record, (Mapping, BaseModel)):
        return to_record()
    return record


def get_field_value(record: Any, path: str) -> Any:
    """
    Resolve a dot-delimited path ("fields.employees", "scoreBand").

    Returns None when any segment is missing or the traversal reaches a
    non-container value. Never raises.
    """
    if not path:
        return None

    value = as_record(record)
    for segment in path.split("."):
        if value is None:
            return None
        value = _lookup(value, segment)

    # Enum members compare by their plain value
    if isinstance(value, Enum):
        return value.value
    return value


def _as_condition(condition: Union[RuleCondition, Mapping]) -> RuleCondition:
    if isinstance(condition, RuleCondition):
        return condition
    return RuleCondition.model_validate(condition)


def evaluate_condition(record: Any, condition: Union[RuleCondition, Mapping]) -> bool:
    """Evaluate a single field/operator/value predicate."""
    condition = _as_condition(condition)
    value = get_field_value(record, condition.field)
    return get_operator(condition.op).evaluate(value, condition.value)


def check_rule_conditions(record: Any, conditions: Iterable[Union[RuleCondition, Mapping]]) -> bool:
    """AND over all conditions, stopping at the first false. An empty list matches."""
    return all(evaluate_condition(record, condition) for condition in conditions)
