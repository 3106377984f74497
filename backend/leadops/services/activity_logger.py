# backend/leadops/services/activity_logger.py
"""
Activity Logger - per-lead timeline entries written inside the caller's unit of work
"""

from typing import Optional, Dict, Any
import uuid

from leadops.models import TimelineEvent
from leadops.repositories.store import UnitOfWork


class ActivityLogger:
    """Logs engine decisions onto a lead's timeline"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    @staticmethod
    def _to_uuid(value):
        """Safely convert to UUID"""
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    async def log_event(self, lead_id, event_type: str, details: Optional[Dict[str, Any]] = None) -> TimelineEvent:
        return await self.uow.leads.add_timeline_event(
            self._to_uuid(lead_id), event_type, dict(details or {})
        )

    async def log_deduplication(self, lead_id, decision: str, details: Optional[Dict[str, Any]] = None):
        payload = {"action": "deduplication", "decision": decision}
        payload.update(details or {})
        return await self.log_event(lead_id, "deduplication", payload)

    async def log_merge(self, primary_id, details: Dict[str, Any]):
        payload = {"action": "lead_merged"}
        payload.update(details)
        return await self.log_event(primary_id, "lead_merged", payload)

    async def log_routing(self, lead_id, owner_id: Optional[str], pool: Optional[str],
                          rule_id: Optional[str], reason: str, sla: Optional[int] = None,
                          priority: Optional[int] = None):
        return await self.log_event(lead_id, "lead_routed", {
            "owner_id": owner_id,
            "pool": pool,
            "rule_id": rule_id,
            "reason": reason,
            "sla": sla,
            "priority": priority,
        })
