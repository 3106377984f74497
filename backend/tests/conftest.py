# tests/conftest.py

import os

# Settings are read at import time
os.environ.setdefault("DEDUPE_EMAIL_SALT", "test-salt")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ROUTING_CURSOR_BACKEND", "memory")

import random
from datetime import timedelta
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from leadops.clock import utcnow
from leadops.database import init_models
from leadops.dedupe_engine.core.keys import build_keys
from leadops.models import Tenant, Owner, Lead, LeadDedupeKey, Message, TimelineEvent, SLAClock, RoutingRule
from leadops.repositories.store import LeadStore
from leadops.routing_engine.core.pool_state import InMemoryPoolCursorStore, reset_cursor_stores
from leadops.schemas.lead import LeadPayload


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite file database per test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'leadops_test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def store(session_factory):
    return LeadStore(session_factory, timeout=5.0)


@pytest.fixture
def cursor_store():
    return InMemoryPoolCursorStore()


@pytest.fixture(autouse=True)
def shared_cursor_stores():
    """Fresh process-wide round-robin cursors per test"""
    reset_cursor_stores()
    yield
    reset_cursor_stores()


@pytest.fixture
def seeded_rng():
    return random.Random(42)


# ============================================================================
# RECORD FACTORIES
# ============================================================================

@pytest_asyncio.fixture
async def tenant(session_factory):
    async with session_factory() as session:
        async with session.begin():
            tenant = Tenant(id=uuid4(), name="Test Co", settings={})
            session.add(tenant)
    return tenant


@pytest_asyncio.fixture
async def other_tenant(session_factory):
    async with session_factory() as session:
        async with session.begin():
            tenant = Tenant(id=uuid4(), name="Other Co", settings={})
            session.add(tenant)
    return tenant


@pytest.fixture
def make_owner(session_factory, tenant):
    """Create an owner, optionally carrying `load` open leads"""
    async def _make(capacity=20, is_active=True, load=0, tenant_id=None, owner_id=None, name=None):
        tenant_id = tenant_id or tenant.id
        async with session_factory() as session:
            async with session.begin():
                owner = Owner(
                    id=owner_id or uuid4(),
                    tenant_id=tenant_id,
                    name=name or f"Owner {capacity}",
                    email=f"owner{uuid4().hex[:6]}@test.com",
                    capacity=capacity,
                    is_active=is_active,
                )
                session.add(owner)
                await session.flush()
                for _ in range(load):
                    session.add(Lead(
                        id=uuid4(),
                        tenant_id=tenant_id,
                        owner_id=owner.id,
                        source="seed",
                        status="NEW",
                    ))
        return owner
    return _make


@pytest.fixture
def make_lead(session_factory, tenant):
    """Create a lead plus its dedupe key row, as the Deduplicator would"""
    async def _make(tenant_id=None, created_at=None, updated_at=None, with_keys=True, **data):
        tenant_id = tenant_id or tenant.id
        payload = LeadPayload(**data)
        keys = build_keys(payload)
        created_at = created_at or utcnow()
        async with session_factory() as session:
            async with session.begin():
                lead = Lead(
                    id=uuid4(),
                    tenant_id=tenant_id,
                    email=payload.email,
                    name=payload.name,
                    company=payload.company,
                    domain=payload.domain,
                    phone=payload.phone,
                    source=payload.source,
                    external_id=payload.external_id,
                    source_ref=payload.source_ref,
                    fields=payload.fields,
                    utm=payload.utm,
                    score=payload.score,
                    score_band=payload.score_band.value,
                    status=payload.status.value,
                    created_at=created_at,
                    updated_at=updated_at or created_at,
                )
                session.add(lead)
                await session.flush()
                if with_keys and keys.is_valid:
                    session.add(LeadDedupeKey(
                        id=uuid4(),
                        lead_id=lead.id,
                        email_hash=keys.email_hash,
                        domain=keys.domain,
                        name_key=keys.name_key,
                        created_at=created_at,
                    ))
        return lead
    return _make


@pytest.fixture
def add_history(session_factory):
    """Attach messages, timeline events and SLA clocks to a lead"""
    async def _add(lead_id, messages=0, events=0, sla_clocks=0):
        now = utcnow()
        async with session_factory() as session:
            async with session.begin():
                for i in range(messages):
                    session.add(Message(id=uuid4(), lead_id=lead_id, direction="IN", body=f"msg {i}"))
                for i in range(events):
                    session.add(TimelineEvent(id=uuid4(), lead_id=lead_id, event_type="note", payload={"i": i}))
                for _ in range(sla_clocks):
                    session.add(SLAClock(
                        id=uuid4(), lead_id=lead_id, target_minutes=15,
                        started_at=now, due_at=now + timedelta(minutes=15),
                    ))
    return _add


@pytest.fixture
def add_rule(session_factory, tenant):
    async def _add(definition, order=0, enabled=True, name=None, tenant_id=None):
        async with session_factory() as session:
            async with session.begin():
                rule = RoutingRule(
                    id=uuid4(),
                    tenant_id=tenant_id or tenant.id,
                    name=name,
                    definition=definition,
                    order=order,
                    enabled=enabled,
                )
                session.add(rule)
        return rule
    return _add


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: tests against a real SQLite store")
    config.addinivalue_line("markers", "slow: slow running tests")
