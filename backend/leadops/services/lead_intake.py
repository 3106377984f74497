# backend/leadops/services/lead_intake.py
"""
Lead Intake Pipeline

Flow:
1. Deduplicate (create / merge / skip)
2. Route newly created leads
3. Persist owner, SLA clock and routing timeline entry
4. Dispatch routing alerts
"""

from typing import Optional, Dict, Any, Union
from uuid import UUID
import logging

from pydantic import BaseModel

from leadops.dedupe_engine.core.deduplicator import Deduplicator
from leadops.exceptions import StoreFailure
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.routing_engine.core.orchestrator import RoutingOrchestrator
from leadops.schemas.dedupe import DedupeAction, DedupeOptions, DedupeResult
from leadops.schemas.lead import LeadPayload
from leadops.schemas.routing import RoutingResult
from leadops.services.activity_logger import ActivityLogger
from leadops.services.notifications import NotificationSink, LoggingNotificationSink

logger = logging.getLogger(__name__)


class IntakeResult(BaseModel):
    dedupe: DedupeResult
    routing: Optional[RoutingResult] = None
    alerts_delivered: int = 0


class LeadIntakeService:
    """
    Caller-side glue around the dedupe and routing engines.

    Merged and skipped leads keep their existing owner and are not re-routed.
    """

    def __init__(
        self,
        store: Optional[LeadStore] = None,
        deduplicator: Optional[Deduplicator] = None,
        orchestrator: Optional[RoutingOrchestrator] = None,
        notification_sink: Optional[NotificationSink] = None,
    ):
        self.store = store or LeadStore()
        self.deduplicator = deduplicator or Deduplicator(self.store)
        self.orchestrator = orchestrator or RoutingOrchestrator(self.store)
        self.notification_sink = notification_sink or LoggingNotificationSink()

    @staticmethod
    def _owner_uuid(owner_id: Optional[str]) -> Optional[UUID]:
        if not owner_id:
            return None
        try:
            return UUID(str(owner_id))
        except ValueError:
            logger.warning(f"Owner reference {owner_id} is not a stored owner id, leaving lead unowned")
            return None

    async def _persist_routing(self, lead_id: UUID, routing: RoutingResult) -> bool:
        owner_uuid = self._owner_uuid(routing.owner_id)

        async def persist(uow: UnitOfWork):
            if owner_uuid:
                await uow.leads.set_owner(lead_id, owner_uuid)
            if routing.sla:
                await uow.leads.open_sla_clock(lead_id, routing.sla, owner_id=owner_uuid)
            await ActivityLogger(uow).log_routing(
                lead_id,
                owner_id=routing.owner_id,
                pool=routing.pool,
                rule_id=routing.rule_id,
                reason=routing.reason,
                sla=routing.sla,
                priority=routing.priority,
            )

        try:
            await self.store.with_transaction(persist, operation="persist_routing")
            return True
        except StoreFailure as e:
            logger.error(f"Failed to persist routing decision for lead {lead_id}: {e}")
            return False

    async def _dispatch_alerts(self, lead_id: UUID, routing: RoutingResult) -> int:
        delivered = 0
        for alert in routing.alerts:
            if await self.notification_sink.send(alert, lead_id):
                delivered += 1
            else:
                logger.warning(f"Alert for lead {lead_id} was not delivered: {alert.message}")
        return delivered

    async def ingest(
        self,
        lead: Union[LeadPayload, Dict[str, Any]],
        tenant_id: UUID,
        options: Optional[DedupeOptions] = None,
    ) -> IntakeResult:
        """Deduplicate one lead and route it if it became a new record."""
        if not isinstance(lead, LeadPayload):
            lead = LeadPayload.model_validate(lead)

        dedupe = await self.deduplicator.deduplicate_lead(lead, tenant_id, options)

        if dedupe.action == DedupeAction.ERROR:
            logger.error(f"Lead not stored for tenant {tenant_id}, skipping routing: {dedupe.error}")
            return IntakeResult(dedupe=dedupe)

        if dedupe.action != DedupeAction.CREATED:
            logger.info(f"Lead {dedupe.lead_id} {dedupe.action.value}, not re-routed")
            return IntakeResult(dedupe=dedupe)

        routing = await self.orchestrator.route_lead_for_tenant(lead, tenant_id)
        await self._persist_routing(dedupe.lead_id, routing)
        delivered = await self._dispatch_alerts(dedupe.lead_id, routing)

        return IntakeResult(dedupe=dedupe, routing=routing, alerts_delivered=delivered)
