"""
Owner repository - read-only access to owners, tenant settings and routing rules.
"""

from typing import Any, Dict, List, Tuple
from uuid import UUID

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from leadops.models import Owner, Lead, Tenant, RoutingRule, CLOSED_LEAD_STATUSES


class OwnerRepository:
    """Repository for owner and routing configuration lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_with_load(self, tenant_id: UUID) -> List[Tuple[Owner, int]]:
        """Tenant owners with their current count of open leads, ordered by id."""
        open_lead = and_(
            Lead.owner_id == Owner.id,
            Lead.status.not_in(CLOSED_LEAD_STATUSES),
        )
        query = (
            select(Owner, func.count(Lead.id).label("load"))
            .outerjoin(Lead, open_lead)
            .where(Owner.tenant_id == tenant_id)
            .group_by(Owner.id)
            .order_by(Owner.id.asc())
        )
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def get_tenant_settings(self, tenant_id: UUID) -> Dict[str, Any]:
        result = await self.db.execute(select(Tenant.settings).where(Tenant.id == tenant_id))
        return dict(result.scalar_one_or_none() or {})

    async def list_routing_rules(self, tenant_id: UUID) -> List[Dict[str, Any]]:
        """Stored rules as plain configs. Disabled rules are included; the engine skips them."""
        result = await self.db.execute(
            select(RoutingRule)
            .where(RoutingRule.tenant_id == tenant_id)
            .order_by(RoutingRule.order.asc(), RoutingRule.created_at.asc())
        )
        return [rule.to_config() for rule in result.scalars().all()]
