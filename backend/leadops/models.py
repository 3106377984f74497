# backend/leadops/models.py
"""
SQLAlchemy ORM models for the dedupe and routing engine.

Relationships are intentionally one-way and minimal: dependents carry a
lead_id foreign key and are moved with bulk UPDATEs during merges, so no
ORM collections are loaded or cascaded.
"""

from sqlalchemy import (
    Column, String, Boolean, Integer, Text, DateTime, JSON, Index, Uuid,
    ForeignKey, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
import uuid

from leadops.database import Base
from leadops.clock import utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Lead statuses that no longer count against an owner's capacity
CLOSED_LEAD_STATUSES = ("CONVERTED", "DISQUALIFIED")


# ============================================================================
# TENANT & OWNER MODELS
# ============================================================================

class Tenant(Base):
    """Tenant/team account."""
    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    settings = Column(JSONType, default=dict)
    # Recognised keys:
    #   "default_pool": "SDR_POOL"
    #   "owner_pools": [{"name": "EMEA", "strategy": "least_loaded", "min_capacity": 10}]
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}')>"


class Owner(Base):
    """Salesperson who can own leads, bounded by capacity."""
    __tablename__ = "owners"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255))
    email = Column(String(255))
    capacity = Column(Integer, nullable=False, default=20)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="chk_owner_capacity"),
    )


# ============================================================================
# LEAD MODEL
# ============================================================================

class Lead(Base):
    """Canonical lead/contact record. tenant_id never changes after creation."""
    __tablename__ = "leads"

    # ========================================================================
    # BASIC INFO
    # ========================================================================
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Uuid, ForeignKey("owners.id", ondelete="SET NULL"), index=True)

    # ========================================================================
    # CONTACT INFO
    # ========================================================================
    email = Column(String(255), index=True)
    name = Column(String(255))
    company = Column(String(255))
    domain = Column(String(255))
    phone = Column(String(50))

    # ========================================================================
    # SOURCE
    # ========================================================================
    source = Column(String(100), nullable=False, default="UNKNOWN")
    external_id = Column(String(255))
    source_ref = Column(String(500))

    # ========================================================================
    # STRUCTURED DATA
    # ========================================================================
    fields = Column(JSONType, default=dict)
    utm = Column(JSONType, default=dict)

    # ========================================================================
    # SCORING & LIFECYCLE
    # ========================================================================
    score = Column(Integer, nullable=False, default=0)
    score_band = Column(String(10), nullable=False, default="LOW")
    status = Column(String(30), nullable=False, default="NEW")

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("score_band IN ('LOW', 'MEDIUM', 'HIGH')", name="chk_lead_score_band"),
        Index("idx_leads_tenant_created", "tenant_id", "created_at"),
    )

    def to_record(self) -> dict:
        """Plain dict view used by merge resolution and rule evaluation."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "owner_id": self.owner_id,
            "email": self.email,
            "name": self.name,
            "company": self.company,
            "domain": self.domain,
            "phone": self.phone,
            "source": self.source,
            "external_id": self.external_id,
            "source_ref": self.source_ref,
            "fields": dict(self.fields or {}),
            "utm": dict(self.utm or {}),
            "score": self.score,
            "score_band": self.score_band,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return f"<Lead(id={self.id}, email='{self.email}', tenant_id={self.tenant_id})>"


class LeadDedupeKey(Base):
    """Derived identity fingerprint row. A lead can own several over its lifetime."""
    __tablename__ = "lead_dedupe_keys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    email_hash = Column(String(64), index=True)
    domain = Column(String(255), index=True)
    name_key = Column(String(255))
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def identity(self) -> tuple:
        return (self.email_hash, self.domain, self.name_key)


# ============================================================================
# DEPENDENT HISTORY
# ============================================================================

class Message(Base):
    """Inbound/outbound message attached to a lead."""
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    direction = Column(String(10), nullable=False, default="IN")
    channel = Column(String(30))
    subject = Column(String(500))
    body = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TimelineEvent(Base):
    """Per-lead audit/timeline entry."""
    __tablename__ = "timeline_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    # Event types: deduplication, lead_merged, lead_routed
    payload = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_timeline_lead_created", "lead_id", "created_at"),
    )


class SLAClock(Base):
    """Response-time clock opened when a routed lead carries an SLA."""
    __tablename__ = "sla_clocks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Uuid, ForeignKey("owners.id", ondelete="SET NULL"))
    target_minutes = Column(Integer, nullable=False)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    due_at = Column(DateTime, nullable=False)
    stopped_at = Column(DateTime)


# ============================================================================
# CONFIGURATION & AUDIT
# ============================================================================

class RoutingRule(Base):
    """Tenant-owned routing rule. Lower order = higher precedence."""
    __tablename__ = "routing_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200))
    definition = Column(JSONType, nullable=False)
    # {"if": [{"field": "scoreBand", "op": "equals", "value": "HIGH"}],
    #  "then": {"assign": "AE_POOL_A", "alert": "SLACK", "sla": 15, "priority": 1}}
    enabled = Column(Boolean, nullable=False, default=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def to_config(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "enabled": self.enabled,
            "order": self.order,
            "definition": self.definition,
        }


class AuditLog(Base):
    """Audit log for engine decisions."""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(100), nullable=True, index=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    meta = Column(JSON, nullable=True)
    status = Column(String(20), default='success')
    error_message = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_tenant_created', 'tenant_id', 'created_at'),
        Index('idx_audit_resource', 'resource_type', 'resource_id'),
    )
