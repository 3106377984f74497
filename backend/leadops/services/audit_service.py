"""Audit logging service for engine decisions."""

import logging
from typing import Optional, Dict, Any
from uuid import UUID

from leadops.models import AuditLog
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.schemas.dedupe import DedupeKeys
from leadops.services.activity_logger import ActivityLogger

logger = logging.getLogger(__name__)


class AuditService:
    """Service for creating audit log entries. Failures are logged, never raised."""

    def __init__(self, store: LeadStore):
        self.store = store

    async def log_action(
        self,
        tenant_id: UUID,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
        status: str = 'success',
        error_message: Optional[str] = None,
        timeline: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Create an audit log entry, optionally with a timeline entry on the lead.

        timeline: {"lead_id": ..., "decision": ..., "details": {...}} for a deduplication event.
        """
        async def write(uow: UnitOfWork):
            uow.session.add(AuditLog(
                tenant_id=tenant_id,
                action=action,
                resource_type=resource_type,
                resource_id=str(resource_id) if resource_id else None,
                old_values=old_values,
                new_values=new_values,
                meta=meta,
                status=status,
                error_message=error_message[:1000] if error_message else None,
            ))
            if timeline:
                await ActivityLogger(uow).log_deduplication(
                    timeline["lead_id"], timeline["decision"], timeline.get("details")
                )

        try:
            await self.store.with_transaction(write, operation="audit_log")
            logger.info(f"Audit log created: {action} on {resource_type} {resource_id} (tenant: {tenant_id})")
            return True
        except Exception as e:
            logger.error(f"Failed to create audit log: {e}")
            return False

    async def log_dedupe_decision(
        self,
        tenant_id: UUID,
        action: str,
        lead_id: Optional[UUID],
        keys: DedupeKeys,
        decision: str,
        merged_lead_id: Optional[UUID] = None,
        consolidated_messages: Optional[int] = None,
        consolidated_events: Optional[int] = None,
        previous_score: Optional[int] = None,
        final_score: Optional[int] = None,
        error: Optional[str] = None,
    ) -> bool:
        details = {
            "keys": keys.model_dump(),
            "merged_lead_id": str(merged_lead_id) if merged_lead_id else None,
            "consolidated_messages": consolidated_messages,
            "consolidated_events": consolidated_events,
            "previous_score": previous_score,
            "final_score": final_score,
        }
        return await self.log_action(
            tenant_id=tenant_id,
            action=f"dedupe_{action}",
            resource_type="lead",
            resource_id=str(lead_id) if lead_id else None,
            new_values={"decision": decision, **details, "error": error},
            status="failure" if error else "success",
            error_message=error,
            timeline={"lead_id": lead_id, "decision": decision, "details": details} if lead_id else None,
        )
