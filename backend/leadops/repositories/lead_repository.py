"""
Lead repository - database operations for leads, their dedupe keys and dependent history.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
import uuid

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from leadops.clock import utcnow
from leadops.models import Lead, LeadDedupeKey, Message, TimelineEvent, SLAClock
from leadops.schemas.dedupe import DedupeKeys


LEAD_COLUMNS = (
    "email", "name", "company", "domain", "phone", "source", "external_id",
    "source_ref", "fields", "utm", "score", "score_band", "status", "owner_id",
)


class LeadRepository:
    """Repository for Lead database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    async def get_by_id(self, lead_id: UUID) -> Optional[Lead]:
        result = await self.db.execute(select(Lead).where(Lead.id == lead_id))
        return result.scalar_one_or_none()

    async def create(self, tenant_id: UUID, data: Dict[str, Any]) -> Lead:
        """Create a new lead from already-normalized column values."""
        now = utcnow()
        lead = Lead(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            created_at=now,
            updated_at=now,
            **{key: value for key, value in data.items() if key in LEAD_COLUMNS},
        )
        self.db.add(lead)
        await self.db.flush()
        return lead

    async def update(self, lead: Lead, values: Dict[str, Any]) -> Lead:
        for field, value in values.items():
            if field in LEAD_COLUMNS:
                setattr(lead, field, value)
        lead.updated_at = utcnow()
        await self.db.flush()
        return lead

    async def set_owner(self, lead_id: UUID, owner_id: Optional[UUID]) -> None:
        await self.db.execute(
            update(Lead)
            .where(Lead.id == lead_id)
            .values(owner_id=owner_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def delete(self, lead_id: UUID) -> None:
        """Delete a lead and whatever history still points at it."""
        for model in (Message, TimelineEvent, SLAClock, LeadDedupeKey):
            await self.db.execute(
                delete(model)
                .where(model.lead_id == lead_id)
                .execution_options(synchronize_session=False)
            )
        await self.db.execute(
            delete(Lead).where(Lead.id == lead_id).execution_options(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # Dedupe keys
    # ------------------------------------------------------------------

    async def create_dedupe_key(self, lead_id: UUID, keys: DedupeKeys) -> LeadDedupeKey:
        key_row = LeadDedupeKey(
            id=uuid.uuid4(),
            lead_id=lead_id,
            email_hash=keys.email_hash,
            domain=keys.domain,
            name_key=keys.name_key,
            created_at=utcnow(),
        )
        self.db.add(key_row)
        await self.db.flush()
        return key_row

    async def list_dedupe_keys(self, lead_id: UUID) -> List[LeadDedupeKey]:
        result = await self.db.execute(
            select(LeadDedupeKey)
            .where(LeadDedupeKey.lead_id == lead_id)
            .order_by(LeadDedupeKey.created_at.asc(), LeadDedupeKey.id.asc())
        )
        return list(result.scalars().all())

    def _scoped_keys(self, tenant_id: UUID, since: Optional[datetime]):
        query = (
            select(LeadDedupeKey.lead_id, LeadDedupeKey.name_key)
            .join(Lead, Lead.id == LeadDedupeKey.lead_id)
            .where(Lead.tenant_id == tenant_id)
        )
        if since is not None:
            query = query.where(Lead.created_at >= since)
        return query

    async def find_by_email_hash(
        self, tenant_id: UUID, email_hash: str, since: Optional[datetime] = None
    ) -> List[UUID]:
        """Lead ids carrying this exact email fingerprint."""
        query = self._scoped_keys(tenant_id, since).where(LeadDedupeKey.email_hash == email_hash)
        result = await self.db.execute(query)
        return list(dict.fromkeys(row.lead_id for row in result.all()))

    async def find_by_domain(
        self, tenant_id: UUID, domain: str, since: Optional[datetime] = None
    ) -> List[Tuple[UUID, Optional[str]]]:
        """(lead_id, name_key) pairs of key rows sharing this domain."""
        query = self._scoped_keys(tenant_id, since).where(LeadDedupeKey.domain == domain)
        result = await self.db.execute(query)
        return [(row.lead_id, row.name_key) for row in result.all()]

    async def sample_name_keys(
        self, tenant_id: UUID, limit: int, since: Optional[datetime] = None
    ) -> List[Tuple[UUID, str]]:
        """Most recently created key rows that carry a name key."""
        query = (
            self._scoped_keys(tenant_id, since)
            .where(LeadDedupeKey.name_key.is_not(None))
            .order_by(LeadDedupeKey.created_at.desc(), LeadDedupeKey.id.asc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [(row.lead_id, row.name_key) for row in result.all()]

    async def repoint_dedupe_keys(self, key_ids: Sequence[UUID], to_lead_id: UUID) -> int:
        if not key_ids:
            return 0
        result = await self.db.execute(
            update(LeadDedupeKey)
            .where(LeadDedupeKey.id.in_(list(key_ids)))
            .values(lead_id=to_lead_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Dependent history
    # ------------------------------------------------------------------

    async def _count(self, model, lead_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(model.id)).where(model.lead_id == lead_id)
        )
        return result.scalar_one()

    async def count_messages(self, lead_id: UUID) -> int:
        return await self._count(Message, lead_id)

    async def count_events(self, lead_id: UUID) -> int:
        return await self._count(TimelineEvent, lead_id)

    async def count_sla_clocks(self, lead_id: UUID) -> int:
        return await self._count(SLAClock, lead_id)

    async def _repoint(self, model, from_lead_id: UUID, to_lead_id: UUID) -> int:
        result = await self.db.execute(
            update(model)
            .where(model.lead_id == from_lead_id)
            .values(lead_id=to_lead_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def repoint_messages(self, from_lead_id: UUID, to_lead_id: UUID) -> int:
        return await self._repoint(Message, from_lead_id, to_lead_id)

    async def repoint_events(self, from_lead_id: UUID, to_lead_id: UUID) -> int:
        return await self._repoint(TimelineEvent, from_lead_id, to_lead_id)

    async def repoint_sla_clocks(self, from_lead_id: UUID, to_lead_id: UUID) -> int:
        return await self._repoint(SLAClock, from_lead_id, to_lead_id)

    async def add_timeline_event(
        self, lead_id: UUID, event_type: str, payload: Dict[str, Any]
    ) -> TimelineEvent:
        event = TimelineEvent(
            id=uuid.uuid4(),
            lead_id=lead_id,
            event_type=event_type,
            payload=payload,
            created_at=utcnow(),
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def open_sla_clock(
        self,
        lead_id: UUID,
        target_minutes: int,
        owner_id: Optional[UUID] = None,
        started_at: Optional[datetime] = None,
    ) -> SLAClock:
        started_at = started_at or utcnow()
        clock = SLAClock(
            id=uuid.uuid4(),
            lead_id=lead_id,
            owner_id=owner_id,
            target_minutes=target_minutes,
            started_at=started_at,
            due_at=started_at + timedelta(minutes=target_minutes),
        )
        self.db.add(clock)
        await self.db.flush()
        return clock
