"""
Routing engine core components.
"""
from .conditions import get_field_value, evaluate_condition, check_rule_conditions
from .rules import parse_rule, validate_routing_rule, default_routing_rules
from .rule_engine import RuleEngine
from .pool_state import (
    PoolCursorStore,
    InMemoryPoolCursorStore,
    RedisPoolCursorStore,
    create_cursor_store,
    reset_cursor_stores,
)
from .pool_assigner import PoolAssigner
from .orchestrator import RoutingOrchestrator


__all__ = [
    "get_field_value",
    "evaluate_condition",
    "check_rule_conditions",
    "parse_rule",
    "validate_routing_rule",
    "default_routing_rules",
    "RuleEngine",
    "PoolCursorStore",
    "InMemoryPoolCursorStore",
    "RedisPoolCursorStore",
    "create_cursor_store",
    "reset_cursor_stores",
    "PoolAssigner",
    "RoutingOrchestrator",
]
