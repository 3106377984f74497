"""
Tests for pool resolution, selection strategies and round-robin cursors
"""
import asyncio
import random
from collections import Counter
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from redis.exceptions import RedisError
from sqlalchemy import update

from leadops.exceptions import PoolResolutionFailure, StoreFailure
from leadops.models import Tenant
from leadops.routing_engine.core.pool_assigner import PoolAssigner, pool_definitions
from leadops.routing_engine.core.pool_state import (
    InMemoryPoolCursorStore,
    RedisPoolCursorStore,
    create_cursor_store,
    reset_cursor_stores,
)
from leadops.routing_engine.strategies import STRATEGY_REGISTRY, get_strategy
from leadops.routing_engine.strategies.weighted import WeightedStrategy
from leadops.schemas.routing import OwnerPool, PoolOwner, PoolStrategy, TraceStep


def pool_owner(owner_id, capacity=60, load=0, active=True):
    return PoolOwner(owner_id=owner_id, capacity=capacity, current_load=load, is_active=active)


async def set_tenant_settings(session_factory, tenant_id, values):
    async with session_factory() as session:
        async with session.begin():
            await session.execute(update(Tenant).where(Tenant.id == tenant_id).values(settings=values))


# ============================================================================
# TEST: Cursor stores
# ============================================================================

@pytest.mark.unit
class TestCursorStores:
    """Test atomic ticket counters"""

    @pytest.mark.asyncio
    async def test_in_memory_tickets_start_at_zero(self):
        cursor_store = InMemoryPoolCursorStore()
        tenant_id = uuid4()

        tickets = [await cursor_store.next_ticket(tenant_id, "AE_POOL_A") for _ in range(3)]
        assert tickets == [0, 1, 2]
        assert await cursor_store.next_ticket(tenant_id, "SDR_POOL") == 0
        assert await cursor_store.next_ticket(uuid4(), "AE_POOL_A") == 0

    @pytest.mark.asyncio
    async def test_in_memory_concurrent_tickets_unique(self):
        cursor_store = InMemoryPoolCursorStore()
        tenant_id = uuid4()

        tickets = await asyncio.gather(*(cursor_store.next_ticket(tenant_id, "P") for _ in range(50)))
        assert sorted(tickets) == list(range(50))

    @pytest.mark.asyncio
    async def test_redis_uses_incr(self):
        client = AsyncMock()
        client.incr.side_effect = [1, 2, 3]
        cursor_store = RedisPoolCursorStore(client=client)
        tenant_id = uuid4()

        tickets = [await cursor_store.next_ticket(tenant_id, "AE_POOL_A") for _ in range(3)]

        assert tickets == [0, 1, 2]
        client.incr.assert_awaited_with(f"routing:cursor:{tenant_id}:AE_POOL_A")

    @pytest.mark.asyncio
    async def test_redis_error_becomes_store_failure(self):
        client = AsyncMock()
        client.incr.side_effect = RedisError("connection refused")
        cursor_store = RedisPoolCursorStore(client=client)

        with pytest.raises(StoreFailure) as exc_info:
            await cursor_store.next_ticket(uuid4(), "AE_POOL_A")
        assert exc_info.value.operation == "next_ticket"

    @pytest.mark.asyncio
    async def test_redis_close(self):
        client = AsyncMock()
        cursor_store = RedisPoolCursorStore(client=client)

        await cursor_store.close()

        client.aclose.assert_awaited_once()
        assert cursor_store.redis_client is None

    def test_create_cursor_store(self):
        assert isinstance(create_cursor_store("memory"), InMemoryPoolCursorStore)
        assert isinstance(create_cursor_store("REDIS"), RedisPoolCursorStore)
        with pytest.raises(ValueError):
            create_cursor_store("etcd")

    @pytest.mark.asyncio
    async def test_memory_cursor_store_is_shared(self):
        tenant_id = uuid4()

        assert create_cursor_store("memory") is create_cursor_store()
        assert await PoolAssigner(store=None).cursor_store.next_ticket(tenant_id, "AE_POOL_A") == 0
        assert await PoolAssigner(store=None).cursor_store.next_ticket(tenant_id, "AE_POOL_A") == 1

        reset_cursor_stores()
        assert await create_cursor_store("memory").next_ticket(tenant_id, "AE_POOL_A") == 0


# ============================================================================
# TEST: Strategies
# ============================================================================

@pytest.mark.unit
class TestStrategies:
    """Test owner selection strategies"""

    def test_every_strategy_registered(self):
        assert set(STRATEGY_REGISTRY) == set(PoolStrategy)

    def test_round_robin_needs_cursor_store(self):
        with pytest.raises(ValueError):
            get_strategy("round_robin")

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown pool strategy"):
            get_strategy("random")

    @pytest.mark.asyncio
    async def test_least_loaded_ties_by_id(self):
        owners = [pool_owner("b", load=1), pool_owner("a", load=1), pool_owner("c", load=4)]
        pool = OwnerPool(name="P", strategy=PoolStrategy.LEAST_LOADED, owners=owners)

        selected = await get_strategy(PoolStrategy.LEAST_LOADED).select(uuid4(), pool, pool.active_owners)
        assert selected.owner_id == "a"

    @pytest.mark.asyncio
    async def test_weighted_follows_remaining_capacity(self):
        owners = [pool_owner("small", capacity=20, load=10), pool_owner("large", capacity=40, load=10)]
        pool = OwnerPool(name="P", strategy=PoolStrategy.WEIGHTED, owners=owners)
        strategy = WeightedStrategy(random.Random(42))

        counts = Counter()
        for _ in range(4000):
            counts[(await strategy.select(uuid4(), pool, pool.active_owners)).owner_id] += 1

        # remaining capacity 10 vs 30
        assert 0.2 < counts["small"] / 4000 < 0.3

    @pytest.mark.asyncio
    async def test_weighted_is_reproducible(self):
        owners = [pool_owner("a", capacity=10), pool_owner("b", capacity=30)]
        pool = OwnerPool(name="P", strategy=PoolStrategy.WEIGHTED, owners=owners)

        async def picks(seed):
            strategy = WeightedStrategy(random.Random(seed))
            return [(await strategy.select(None, pool, pool.active_owners)).owner_id for _ in range(20)]

        assert await picks(7) == await picks(7)


# ============================================================================
# TEST: Pool classification
# ============================================================================

@pytest.mark.unit
class TestPoolDefinitions:
    """Test capacity-based pools"""

    def test_default_pools(self):
        definitions = pool_definitions()
        assert definitions["AE_POOL_A"].includes(50)
        assert not definitions["AE_POOL_A"].includes(49)
        assert definitions["AE_POOL_B"].includes(49)
        assert definitions["SDR_POOL"].includes(19)
        assert not definitions["SDR_POOL"].includes(20)
        assert definitions["SENIOR_AE_POOL"].strategy == PoolStrategy.LEAST_LOADED
        assert definitions["DEFAULT"].includes(0)

    def test_tenant_overrides(self):
        definitions = pool_definitions({"owner_pools": [
            {"name": "SDR_POOL", "strategy": "weighted", "max_capacity": 30},
            {"name": "EMEA", "min_capacity": 5},
            {"strategy": "missing-name"},
        ]})
        assert definitions["SDR_POOL"].strategy == PoolStrategy.WEIGHTED
        assert definitions["SDR_POOL"].includes(25)
        assert "EMEA" in definitions
        assert len(definitions) == 7


# ============================================================================
# TEST: Pool assignment against the store
# ============================================================================

@pytest.mark.integration
class TestPoolAssigner:
    """Test target resolution"""

    @pytest.mark.asyncio
    async def test_round_robin_fairness(self, store, tenant, make_owner, cursor_store):
        owners = [await make_owner(capacity=60) for _ in range(3)]
        assigner = PoolAssigner(store, cursor_store=cursor_store)

        picks = []
        for _ in range(9):
            assignment = await assigner.assign("AE_POOL_A", tenant.id, [])
            assert assignment.pool == "AE_POOL_A"
            picks.append(assignment.owner_id)

        counts = Counter(picks)
        assert set(counts) == {str(owner.id) for owner in owners}
        assert set(counts.values()) == {3}
        # Stable owner-id order
        assert picks[:3] == sorted(str(owner.id) for owner in owners)

    @pytest.mark.asyncio
    async def test_round_robin_under_concurrency(self, store, cursor_store):
        tenant_id = uuid4()
        owners = [pool_owner(f"owner-{i}") for i in range(4)]
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        assigner.load_owners = AsyncMock(return_value=(owners, {}))

        results = await asyncio.gather(*(assigner.assign("AE_POOL_A", tenant_id, []) for _ in range(40)))

        counts = Counter(result.owner_id for result in results)
        assert set(counts.values()) == {10}

    @pytest.mark.asyncio
    async def test_inactive_and_full_owners_skipped(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=5, load=5)
        await make_owner(capacity=5, is_active=False)
        available = await make_owner(capacity=5, load=1)
        assigner = PoolAssigner(store, cursor_store=cursor_store)

        for _ in range(3):
            assignment = await assigner.assign("SDR_POOL", tenant.id, [])
            assert assignment.owner_id == str(available.id)

    @pytest.mark.asyncio
    async def test_no_available_owners(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=2, load=2)
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        trace = []

        assignment = await assigner.assign("SDR_POOL", tenant.id, trace)

        assert assignment.owner_id is None
        assert assignment.pool is None
        assert trace[-1].step == TraceStep.NO_AVAILABLE_OWNERS
        assert trace[-1].reason == 'No available owners in pool "SDR_POOL" - all at capacity'

    @pytest.mark.asyncio
    async def test_select_owner_raises(self, store, cursor_store):
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        pool = OwnerPool(name="EMPTY", owners=[pool_owner("a", capacity=1, load=1)])

        with pytest.raises(PoolResolutionFailure) as exc_info:
            await assigner.select_owner(uuid4(), pool)
        assert exc_info.value.pool_name == "EMPTY"

    @pytest.mark.asyncio
    async def test_least_loaded_pool(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=100, load=3)
        lighter = await make_owner(capacity=120, load=1)
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        trace = []

        assignment = await assigner.assign("SENIOR_AE_POOL", tenant.id, trace)

        assert assignment.owner_id == str(lighter.id)
        assert trace[-1].step == TraceStep.POOL_ASSIGNMENT
        assert "least_loaded" in trace[-1].reason

    @pytest.mark.asyncio
    async def test_direct_owner_reference(self, store, tenant, cursor_store):
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        trace = []

        assignment = await assigner.assign("owner_42", tenant.id, trace)
        assert assignment.owner_id == "owner_42"
        assert assignment.pool is None
        assert trace[-1].step == TraceStep.DIRECT_ASSIGNMENT

        long_id = str(uuid4())
        assert (await assigner.assign(long_id, tenant.id, [])).owner_id == long_id

    def test_direct_owner_detection_settings(self):
        assert PoolAssigner(store=None).is_direct_owner("owner_42")
        assert not PoolAssigner(store=None).is_direct_owner("AE_POOL_A")

        no_prefix = PoolAssigner(store=None, owner_prefix="")
        assert not no_prefix.is_direct_owner("AE_POOL_A")
        assert no_prefix.is_direct_owner(str(uuid4()))

        zero_length = PoolAssigner(store=None, owner_id_min_length=0)
        assert zero_length.owner_id_min_length == 0
        assert zero_length.is_direct_owner("AE_POOL_A")

    @pytest.mark.asyncio
    async def test_unknown_pool(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=60)
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        trace = []

        assignment = await assigner.assign("MYSTERY_POOL", tenant.id, trace)

        assert assignment.owner_id is None
        assert trace[-1].step == TraceStep.POOL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_tenant_pool_override(self, store, session_factory, tenant, make_owner, cursor_store):
        await set_tenant_settings(session_factory, tenant.id, {
            "owner_pools": [{"name": "EMEA", "strategy": "least_loaded", "min_capacity": 10, "max_capacity": 15}],
        })
        member = await make_owner(capacity=12)
        await make_owner(capacity=60)
        assigner = PoolAssigner(store, cursor_store=cursor_store)

        assignment = await assigner.assign("EMEA", tenant.id, [])
        assert assignment.owner_id == str(member.id)
        assert assignment.pool == "EMEA"

    @pytest.mark.asyncio
    async def test_default_pool(self, store, session_factory, tenant, cursor_store):
        assigner = PoolAssigner(store, cursor_store=cursor_store)

        name, pool = await assigner.resolve_default_pool(tenant.id)
        assert name == "DEFAULT"
        assert pool is not None

        await set_tenant_settings(session_factory, tenant.id, {"default_pool": "NOWHERE"})
        name, pool = await assigner.resolve_default_pool(tenant.id)
        assert name == "NOWHERE"
        assert pool is None

    @pytest.mark.asyncio
    async def test_any_available_owner(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=10, load=4)
        idle = await make_owner(capacity=10, load=0)
        await make_owner(capacity=10, is_active=False)
        assigner = PoolAssigner(store, cursor_store=cursor_store)

        assert await assigner.any_available_owner(tenant.id) == str(idle.id)

    @pytest.mark.asyncio
    async def test_any_available_owner_none(self, store, tenant, cursor_store):
        assigner = PoolAssigner(store, cursor_store=cursor_store)
        assert await assigner.any_available_owner(tenant.id) is None

    @pytest.mark.asyncio
    async def test_summarize_pools(self, store, tenant, make_owner, cursor_store):
        await make_owner(capacity=60)
        await make_owner(capacity=25)
        await make_owner(capacity=10)
        assigner = PoolAssigner(store, cursor_store=cursor_store)

        summaries = {s.name: s for s in await assigner.summarize_pools(tenant.id)}

        assert set(summaries) == {"AE_POOL_A", "AE_POOL_B", "SDR_POOL", "FAST_TRACK_POOL", "DEFAULT"}
        assert summaries["DEFAULT"].owners == 3
        assert summaries["AE_POOL_A"].strategy == PoolStrategy.ROUND_ROBIN
