"""
Typed failures raised by the dedupe and routing engines.

Orchestrators catch these at their boundary and degrade:
deduplication falls back to plain creation, routing falls back to the
default pool / any owner / unassigned chain.
"""
from typing import Optional


class LeadOpsError(Exception):
    """Base class for engine errors."""


class InsufficientKeyData(LeadOpsError):
    """No dedupe key could be derived from the lead (non-fatal)."""


class RecordNotFound(LeadOpsError):
    """A lead targeted by a merge does not exist."""

    def __init__(self, lead_id):
        super().__init__(f"Lead {lead_id} not found")
        self.lead_id = lead_id


class CrossTenantMerge(LeadOpsError):
    """Primary and duplicate belong to different tenants."""

    def __init__(self, primary_id, duplicate_id):
        super().__init__(
            f"Cannot merge lead {duplicate_id} into {primary_id}: leads belong to different tenants"
        )
        self.primary_id = primary_id
        self.duplicate_id = duplicate_id


class SelfMerge(LeadOpsError):
    """Primary and duplicate are the same lead."""

    def __init__(self, lead_id):
        super().__init__(f"Cannot merge lead {lead_id} into itself")
        self.lead_id = lead_id


class StoreFailure(LeadOpsError):
    """A record store call errored or timed out."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class MalformedRule(LeadOpsError):
    """A routing rule is structurally invalid and must be skipped."""

    def __init__(self, rule_id: Optional[str], errors):
        self.rule_id = rule_id
        self.errors = list(errors)
        super().__init__(f"Malformed routing rule {rule_id or '<unknown>'}: {'; '.join(self.errors)}")


class PoolResolutionFailure(LeadOpsError):
    """A named pool has no available owner."""

    def __init__(self, pool_name: str, reason: str):
        super().__init__(reason)
        self.pool_name = pool_name
        self.reason = reason
