"""
Pydantic schemas for routing rules, owner pools and routing results.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Any, Union
from enum import Enum


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class AlertChannel(str, Enum):
    SLACK = "SLACK"
    EMAIL = "EMAIL"
    WEBHOOK = "WEBHOOK"


class PoolStrategy(str, Enum):
    ROUND_ROBIN = "round_robin"
    LEAST_LOADED = "least_loaded"
    WEIGHTED = "weighted"


# ============================================================================
# RULE DEFINITIONS
# ============================================================================

class RuleCondition(BaseModel):
    """One field/operator/value predicate."""
    model_config = ConfigDict(populate_by_name=True)

    field: str = Field(..., min_length=1)
    op: ConditionOperator = Field(..., validation_alias="op")
    value: Any = None

    @model_validator(mode="before")
    @classmethod
    def accept_operator_key(cls, data):
        if isinstance(data, dict) and "op" not in data and "operator" in data:
            data = {**data, "op": data["operator"]}
        return data

    def describe(self) -> str:
        return f"{self.field} {self.op.value} {self.value}"


class ThenClause(BaseModel):
    """What happens when a rule matches."""
    assign: Optional[str] = None  # pool name or direct owner reference
    priority: Optional[int] = None
    alert: Optional[AlertChannel] = None
    webhook: Optional[str] = None
    sla: Optional[int] = None  # minutes


class RoutingRuleConfig(BaseModel):
    """
    Tenant routing rule.

    Accepts the flat shape {id, enabled, order, if, then} as well as the
    stored shape {id, name, enabled, order, definition: {if, then}}.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    enabled: bool = True
    order: int = 0
    conditions: List[RuleCondition] = Field(default_factory=list, alias="if")
    then: ThenClause = Field(default_factory=ThenClause)

    @model_validator(mode="before")
    @classmethod
    def unwrap_definition(cls, data):
        if isinstance(data, dict) and isinstance(data.get("definition"), dict):
            definition = data["definition"]
            data = {k: v for k, v in data.items() if k != "definition"}
            data.setdefault("if", definition.get("if", []))
            data.setdefault("then", definition.get("then", {}))
        if isinstance(data, dict) and data.get("id") is not None:
            data = {**data, "id": str(data["id"])}
        return data

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        conditions = " AND ".join(c.describe() for c in self.conditions)
        return f"If {conditions or 'always'} then assign to {self.then.assign or 'unassigned'}"


# ============================================================================
# OWNER POOLS
# ============================================================================

class PoolDefinition(BaseModel):
    """Capacity-based classification of owners into a named pool."""
    name: str
    strategy: PoolStrategy = PoolStrategy.ROUND_ROBIN
    min_capacity: int = 0
    max_capacity: Optional[int] = None  # inclusive

    def includes(self, capacity: int) -> bool:
        if capacity < self.min_capacity:
            return False
        return self.max_capacity is None or capacity <= self.max_capacity


class PoolOwner(BaseModel):
    owner_id: str
    capacity: int
    current_load: int = 0
    is_active: bool = True

    @property
    def has_capacity(self) -> bool:
        return self.is_active and self.current_load < self.capacity

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.capacity - self.current_load)


class OwnerPool(BaseModel):
    name: str
    strategy: PoolStrategy = PoolStrategy.ROUND_ROBIN
    owners: List[PoolOwner] = Field(default_factory=list)

    @property
    def active_owners(self) -> List[PoolOwner]:
        """Active owners below capacity, in stable owner-id order."""
        return sorted(
            (owner for owner in self.owners if owner.has_capacity),
            key=lambda owner: owner.owner_id,
        )


class PoolAssignment(BaseModel):
    """Outcome of resolving one assignment target."""
    owner_id: Optional[str] = None
    pool: Optional[str] = None


class PoolSummary(BaseModel):
    name: str
    owners: int
    strategy: PoolStrategy


# ============================================================================
# ROUTING RESULT
# ============================================================================

class TraceStep(str, Enum):
    START = "start"
    RULE_SKIPPED = "rule_skipped"
    RULE_EVALUATION = "rule_evaluation"
    CONDITION = "condition"
    RULE_MATCH = "rule_match"
    RULE_NO_MATCH = "rule_no_match"
    NO_RULE_MATCHED = "no_rule_matched"
    DIRECT_ASSIGNMENT = "direct_assignment"
    POOL_NOT_FOUND = "pool_not_found"
    NO_AVAILABLE_OWNERS = "no_available_owners"
    POOL_ASSIGNMENT = "pool_assignment"
    POOL_FAILURE = "pool_failure"
    ASSIGNMENT = "assignment"
    DEFAULT_ASSIGNMENT = "default_assignment"
    FALLBACK_ASSIGNMENT = "fallback_assignment"
    NO_ASSIGNMENT = "no_assignment"
    FINAL = "final"


class RoutingTrace(BaseModel):
    step: TraceStep
    rule: Optional[str] = None
    condition: Optional[str] = None
    result: Union[bool, str, None] = None
    reason: str


class RoutingAlert(BaseModel):
    type: AlertChannel
    target: Optional[str] = None
    message: str


class RoutingResult(BaseModel):
    owner_id: Optional[str] = None
    pool: Optional[str] = None
    rule_id: Optional[str] = None
    reason: str
    trace: List[RoutingTrace] = Field(default_factory=list)
    alerts: List[RoutingAlert] = Field(default_factory=list)
    sla: Optional[int] = None
    priority: Optional[int] = None
