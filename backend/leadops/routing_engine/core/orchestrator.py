"""
Routing orchestrator.

Rule engine -> pool assigner -> fallback chain -> RoutingResult.

Fallback order when no rule matched or the rule's target produced no owner:
1. tenant default pool
2. any available owner tenant-wide
3. unassigned
"""
from typing import Any, Iterable, List, Optional, Tuple
from uuid import UUID
import logging

from leadops.exceptions import StoreFailure
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.routing_engine.core.conditions import as_record, get_field_value
from leadops.routing_engine.core.pool_assigner import PoolAssigner
from leadops.routing_engine.core.rule_engine import RuleEngine
from leadops.routing_engine.core.rules import RuleInput, default_routing_rules
from leadops.schemas.routing import (
    PoolAssignment, RoutingAlert, RoutingResult, RoutingRuleConfig, RoutingTrace, TraceStep
)


logger = logging.getLogger(__name__)


class RoutingOrchestrator:
    """Decide the owner, SLA, priority and alerts for a lead."""

    def __init__(
        self,
        store: Optional[LeadStore] = None,
        rule_engine: Optional[RuleEngine] = None,
        pool_assigner: Optional[PoolAssigner] = None,
    ):
        self.store = store or LeadStore()
        self.rule_engine = rule_engine or RuleEngine()
        self.pool_assigner = pool_assigner or PoolAssigner(self.store)

    async def _assign_target(self, target: str, tenant_id: UUID, trace: List[RoutingTrace]) -> PoolAssignment:
        try:
            return await self.pool_assigner.assign(target, tenant_id, trace)
        except StoreFailure as e:
            logger.warning(f"Pool resolution for '{target}' failed, falling back: {e}")
            trace.append(RoutingTrace(
                step=TraceStep.POOL_FAILURE,
                result=False,
                reason=f'Could not resolve "{target}": {e}',
            ))
            return PoolAssignment()

    async def _fallback(
        self, tenant_id: UUID, trace: List[RoutingTrace], rule_matched: bool
    ) -> Tuple[Optional[str], Optional[str]]:
        trace.append(RoutingTrace(
            step=TraceStep.DEFAULT_ASSIGNMENT,
            result="attempting",
            reason=(
                "Matched rule produced no owner, attempting default assignment"
                if rule_matched
                else "No routing rules matched, attempting default assignment"
            ),
        ))

        try:
            pool_name, pool = await self.pool_assigner.resolve_default_pool(tenant_id)
            if pool is None:
                trace.append(RoutingTrace(
                    step=TraceStep.POOL_NOT_FOUND,
                    result=False,
                    reason=f'Pool "{pool_name}" not found',
                ))
            else:
                owner_id = await self.pool_assigner.assign_from_pool(tenant_id, pool, trace)
                if owner_id:
                    return owner_id, pool.name

            owner_id = await self.pool_assigner.any_available_owner(tenant_id)
        except StoreFailure as e:
            logger.warning(f"Default assignment for tenant {tenant_id} failed: {e}")
            trace.append(RoutingTrace(
                step=TraceStep.POOL_FAILURE,
                result=False,
                reason=f"Default assignment failed: {e}",
            ))
            owner_id = None

        if owner_id:
            trace.append(RoutingTrace(
                step=TraceStep.FALLBACK_ASSIGNMENT,
                result=owner_id,
                reason=f"Fallback assignment to available owner {owner_id}",
            ))
            return owner_id, None

        trace.append(RoutingTrace(
            step=TraceStep.NO_ASSIGNMENT,
            result=False,
            reason="No available owners found for assignment",
        ))
        return None, None

    @staticmethod
    def _build_alerts(record: Any, rule: Optional[RoutingRuleConfig],
                      owner_id: Optional[str], pool: Optional[str]) -> List[RoutingAlert]:
        if rule is None or rule.then.alert is None:
            return []

        who = get_field_value(record, "name") or get_field_value(record, "email")
        return [RoutingAlert(
            type=rule.then.alert,
            target=rule.then.webhook,
            message=f'Lead {who} routed to {pool or owner_id or "unassigned"} via rule "{rule.display_name}"',
        )]

    async def route_lead(self, lead: Any, rules: Iterable[RuleInput], tenant_id: UUID) -> RoutingResult:
        """
        Route one lead. Never raises for store or rule problems; every
        degraded step is recorded in the trace.
        """
        record = as_record(lead)
        trace: List[RoutingTrace] = [RoutingTrace(
            step=TraceStep.START,
            result="initialized",
            reason=(
                f"Starting routing for lead with score {get_field_value(record, 'score')} "
                f"({get_field_value(record, 'scoreBand')})"
            ),
        )]

        owner_id: Optional[str] = None
        pool: Optional[str] = None
        sla: Optional[int] = None
        priority: Optional[int] = None

        rule = self.rule_engine.find_matching_rule(record, rules, trace)

        if rule is not None:
            sla = rule.then.sla
            priority = rule.then.priority

            if rule.then.assign:
                assignment = await self._assign_target(rule.then.assign, tenant_id, trace)
                owner_id, pool = assignment.owner_id, assignment.pool

            trace.append(RoutingTrace(
                step=TraceStep.ASSIGNMENT,
                rule=rule.id,
                result=owner_id or pool or "no_assignment",
                reason=f'Rule "{rule.display_name}" matched and assigned to {owner_id or pool or "nobody"}',
            ))

        if owner_id is None:
            owner_id, pool = await self._fallback(tenant_id, trace, rule_matched=rule is not None)

        if owner_id:
            reason = f"Assigned to owner {owner_id}" + (f" from pool {pool}" if pool else "")
        else:
            reason = "No assignment made - no matching rules or available owners"

        trace.append(RoutingTrace(
            step=TraceStep.FINAL,
            result=owner_id or pool or "unassigned",
            reason=reason,
        ))

        logger.info(f"Routing decision for tenant {tenant_id}: {reason}")

        return RoutingResult(
            owner_id=owner_id,
            pool=pool,
            rule_id=rule.id if rule else None,
            reason=reason,
            trace=trace,
            alerts=self._build_alerts(record, rule, owner_id, pool),
            sla=sla,
            priority=priority,
        )

    async def load_rules(self, tenant_id: UUID) -> List[Any]:
        """Stored rules for the tenant, or the stock rules when none are configured."""
        async def load(uow: UnitOfWork):
            return await uow.owners.list_routing_rules(tenant_id)

        try:
            rules = await self.store.with_transaction(load, operation="load_routing_rules")
        except StoreFailure as e:
            logger.error(f"Could not load routing rules for tenant {tenant_id}, using defaults: {e}")
            rules = []

        return rules or default_routing_rules()

    async def route_lead_for_tenant(self, lead: Any, tenant_id: UUID) -> RoutingResult:
        return await self.route_lead(lead, await self.load_rules(tenant_id), tenant_id)
