"""
Tests for the routing orchestrator and its fallback chain
"""
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update

from leadops.exceptions import StoreFailure
from leadops.models import Tenant
from leadops.routing_engine.core.orchestrator import RoutingOrchestrator
from leadops.routing_engine.core.pool_assigner import PoolAssigner
from leadops.routing_engine.core.rules import default_routing_rules
from leadops.schemas.lead import LeadPayload
from leadops.schemas.routing import AlertChannel, TraceStep


PAID_SEARCH_ONLY = [{
    "id": "paid",
    "name": "Paid search",
    "order": 1,
    "if": [{"field": "utm.medium", "op": "equals", "value": "cpc"}],
    "then": {"assign": "FAST_TRACK_POOL", "sla": 5, "priority": 1},
}]


def make_orchestrator(store, cursor_store):
    return RoutingOrchestrator(store, pool_assigner=PoolAssigner(store, cursor_store=cursor_store))


def steps(result):
    return [entry.step for entry in result.trace]


async def set_tenant_settings(session_factory, tenant_id, values):
    async with session_factory() as session:
        async with session.begin():
            await session.execute(update(Tenant).where(Tenant.id == tenant_id).values(settings=values))


# ============================================================================
# TEST: Rule-driven routing
# ============================================================================

@pytest.mark.integration
class TestRuleRouting:
    """Test routing through a matched rule"""

    @pytest.mark.asyncio
    async def test_high_score_to_pool(self, store, tenant, make_owner, cursor_store):
        owner = await make_owner(capacity=60)
        lead = LeadPayload(email="ceo@acme.com", name="Ada Lovelace", score=92)

        result = await make_orchestrator(store, cursor_store).route_lead(lead, default_routing_rules(), tenant.id)

        assert result.owner_id == str(owner.id)
        assert result.pool == "AE_POOL_A"
        assert result.rule_id == "default-high-score"
        assert result.sla == 15
        assert result.priority == 1
        assert result.reason == f"Assigned to owner {owner.id} from pool AE_POOL_A"

        assert steps(result)[0] == TraceStep.START
        assert steps(result)[-1] == TraceStep.FINAL
        assert TraceStep.ASSIGNMENT in steps(result)
        assert TraceStep.DEFAULT_ASSIGNMENT not in steps(result)

        assert len(result.alerts) == 1
        assert result.alerts[0].type == AlertChannel.SLACK
        assert result.alerts[0].message == (
            'Lead Ada Lovelace routed to AE_POOL_A via rule "High Score to AE Pool A"'
        )

    @pytest.mark.asyncio
    async def test_first_match_sla(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=40)
        lead = {"score": 90, "scoreBand": "HIGH", "utm": {"medium": "cpc"}}

        result = await make_orchestrator(store, cursor_store).route_lead(lead, PAID_SEARCH_ONLY, tenant.id)

        assert result.rule_id == "paid"
        assert result.sla == 5
        assert result.pool == "FAST_TRACK_POOL"
        assert result.alerts == []

    @pytest.mark.asyncio
    async def test_direct_owner_rule(self, store, tenant, cursor_store):
        rules = [{"id": "vip", "if": [], "then": {"assign": "owner_vip_desk", "alert": "EMAIL"}}]

        result = await make_orchestrator(store, cursor_store).route_lead({"email": "x@y.com"}, rules, tenant.id)

        assert result.owner_id == "owner_vip_desk"
        assert result.pool is None
        assert result.reason == "Assigned to owner owner_vip_desk"
        assert result.alerts[0].message.startswith("Lead x@y.com routed to owner_vip_desk")

    @pytest.mark.asyncio
    async def test_orm_lead(self, store, tenant, make_owner, make_lead, cursor_store):
        owner = await make_owner(capacity=10)
        lead = await make_lead(email="low@acme.com", score=5)

        result = await make_orchestrator(store, cursor_store).route_lead(lead, default_routing_rules(), tenant.id)

        assert result.rule_id == "default-low-score"
        assert result.owner_id == str(owner.id)
        assert result.pool == "SDR_POOL"

    @pytest.mark.asyncio
    async def test_round_robin_continues_across_orchestrators(self, store, tenant, make_owner):
        first = await make_owner(capacity=60)
        second = await make_owner(capacity=60)
        lead = LeadPayload(email="ceo@acme.com", score=92)

        owners = []
        for _ in range(4):
            result = await RoutingOrchestrator(store).route_lead(lead, default_routing_rules(), tenant.id)
            assert result.pool == "AE_POOL_A"
            owners.append(result.owner_id)

        ordered = sorted([str(first.id), str(second.id)])
        assert owners == ordered + ordered


# ============================================================================
# TEST: Fallback chain
# ============================================================================

@pytest.mark.integration
class TestFallbackChain:
    """Test default pool -> any owner -> unassigned"""

    @pytest.mark.asyncio
    async def test_no_rule_uses_default_pool(self, store, tenant, make_owner, cursor_store):
        owner = await make_owner(capacity=10)

        result = await make_orchestrator(store, cursor_store).route_lead({"score": 10}, PAID_SEARCH_ONLY, tenant.id)

        assert result.rule_id is None
        assert result.owner_id == str(owner.id)
        assert result.pool == "DEFAULT"
        assert result.sla is None
        assert TraceStep.NO_RULE_MATCHED in steps(result)
        assert TraceStep.DEFAULT_ASSIGNMENT in steps(result)

    @pytest.mark.asyncio
    async def test_exhausted_pool_falls_back_to_any_owner(
        self, store, session_factory, tenant, make_owner, cursor_store
    ):
        await set_tenant_settings(session_factory, tenant.id, {"default_pool": "NOWHERE"})
        await make_owner(capacity=60, load=60)
        spare = await make_owner(capacity=10)

        lead = {"scoreBand": "HIGH"}
        result = await make_orchestrator(store, cursor_store).route_lead(lead, default_routing_rules(), tenant.id)

        assert result.rule_id == "default-high-score"
        assert result.owner_id == str(spare.id)
        assert result.pool is None
        assert result.sla == 15
        assert TraceStep.NO_AVAILABLE_OWNERS in steps(result)
        assert TraceStep.POOL_NOT_FOUND in steps(result)
        assert TraceStep.FALLBACK_ASSIGNMENT in steps(result)
        assert result.alerts[0].message.endswith(f'routed to {spare.id} via rule "High Score to AE Pool A"')

    @pytest.mark.asyncio
    async def test_no_owners_unassigned(self, store, tenant, cursor_store):
        result = await make_orchestrator(store, cursor_store).route_lead(
            {"name": "Nobody", "scoreBand": "HIGH"}, default_routing_rules(), tenant.id
        )

        assert result.owner_id is None
        assert result.pool is None
        assert result.reason == "No assignment made - no matching rules or available owners"
        assert steps(result)[-2:] == [TraceStep.NO_ASSIGNMENT, TraceStep.FINAL]
        assert result.alerts[0].message == 'Lead Nobody routed to unassigned via rule "High Score to AE Pool A"'

    @pytest.mark.asyncio
    async def test_store_failure_degrades(self, cursor_store):
        store = AsyncMock()
        store.with_transaction.side_effect = StoreFailure("db down", operation="load_owners")
        orchestrator = make_orchestrator(store, cursor_store)

        result = await orchestrator.route_lead_for_tenant({"scoreBand": "HIGH"}, tenant_id=None)

        assert result.rule_id == "default-high-score"
        assert result.owner_id is None
        assert steps(result).count(TraceStep.POOL_FAILURE) == 2
        assert steps(result)[-1] == TraceStep.FINAL


# ============================================================================
# TEST: Rule loading
# ============================================================================

@pytest.mark.integration
class TestLoadRules:
    """Test tenant rule loading"""

    @pytest.mark.asyncio
    async def test_defaults_when_none_stored(self, store, tenant, cursor_store):
        rules = await make_orchestrator(store, cursor_store).load_rules(tenant.id)
        assert [r.id for r in rules] == [r.id for r in default_routing_rules()]

    @pytest.mark.asyncio
    async def test_stored_rules_in_order(self, store, tenant, add_rule, make_owner, cursor_store):
        owner = await make_owner(capacity=10)
        late = await add_rule({"if": [], "then": {"assign": "AE_POOL_A"}}, order=9, name="Late")
        early = await add_rule(
            {"if": [{"field": "source", "op": "equals", "value": "webinar"}], "then": {"assign": "SDR_POOL", "sla": 45}},
            order=1,
        )
        await add_rule({"if": [], "then": {"assign": "SDR_POOL"}}, order=0, enabled=False)

        orchestrator = make_orchestrator(store, cursor_store)
        rules = await orchestrator.load_rules(tenant.id)
        assert len(rules) == 3

        result = await orchestrator.route_lead_for_tenant({"source": "webinar"}, tenant.id)

        assert result.rule_id == str(early.id)
        assert result.owner_id == str(owner.id)
        assert result.sla == 45
        assert str(late.id) not in {entry.rule for entry in result.trace}
