"""
Pool assigner: turns an assignment target into a concrete owner.

A target is either a direct owner reference (prefix or long id) or a pool
name. Pools are capacity classifications over the tenant's owners; the
defaults below can be overridden per tenant through
Tenant.settings["owner_pools"].
"""
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging
import random

from leadops.config import settings
from leadops.exceptions import PoolResolutionFailure
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.routing_engine.core.pool_state import PoolCursorStore, create_cursor_store
from leadops.routing_engine.strategies import get_strategy
from leadops.schemas.routing import (
    OwnerPool, PoolAssignment, PoolDefinition, PoolOwner, PoolStrategy, PoolSummary,
    RoutingTrace, TraceStep,
)


logger = logging.getLogger(__name__)


DEFAULT_POOL_DEFINITIONS = (
    PoolDefinition(name="AE_POOL_A", min_capacity=50),
    PoolDefinition(name="AE_POOL_B", min_capacity=20, max_capacity=49),
    PoolDefinition(name="SDR_POOL", max_capacity=19),
    PoolDefinition(name="SENIOR_AE_POOL", strategy=PoolStrategy.LEAST_LOADED, min_capacity=100),
    PoolDefinition(name="FAST_TRACK_POOL", min_capacity=30),
    PoolDefinition(name="DEFAULT"),
)


def pool_definitions(tenant_settings: Optional[Dict[str, Any]] = None) -> Dict[str, PoolDefinition]:
    """Default pool classification with tenant overrides applied by name."""
    definitions = {definition.name: definition for definition in DEFAULT_POOL_DEFINITIONS}
    for raw in (tenant_settings or {}).get("owner_pools") or []:
        try:
            definition = PoolDefinition.model_validate(raw)
        except ValueError as e:
            logger.warning(f"Ignoring invalid owner pool definition {raw}: {e}")
            continue
        definitions[definition.name] = definition
    return definitions


def build_pool(definition: PoolDefinition, owners: List[PoolOwner]) -> OwnerPool:
    return OwnerPool(
        name=definition.name,
        strategy=definition.strategy,
        owners=[owner for owner in owners if definition.includes(owner.capacity)],
    )


class PoolAssigner:
    """Resolve assignment targets to owners using each pool's strategy."""

    def __init__(
        self,
        store: LeadStore,
        cursor_store: Optional[PoolCursorStore] = None,
        rng: Optional[random.Random] = None,
        owner_prefix: Optional[str] = None,
        owner_id_min_length: Optional[int] = None,
    ):
        self.store = store
        self.cursor_store = cursor_store or create_cursor_store()
        self.rng = rng or random.Random()
        self.owner_prefix = owner_prefix if owner_prefix is not None else settings.ROUTING_OWNER_PREFIX
        self.owner_id_min_length = (
            owner_id_min_length if owner_id_min_length is not None else settings.ROUTING_OWNER_ID_MIN_LENGTH
        )

    def is_direct_owner(self, target: str) -> bool:
        # An empty prefix disables prefix matching
        if self.owner_prefix and target.startswith(self.owner_prefix):
            return True
        return len(target) >= self.owner_id_min_length

    async def load_owners(self, tenant_id: UUID) -> Tuple[List[PoolOwner], Dict[str, Any]]:
        """
        Tenant owners with current loads, plus tenant settings.

        Raises:
            StoreFailure: storage error or timeout
        """
        async def load(uow: UnitOfWork):
            rows = await uow.owners.list_with_load(tenant_id)
            tenant_settings = await uow.owners.get_tenant_settings(tenant_id)
            return rows, tenant_settings

        rows, tenant_settings = await self.store.with_transaction(load, operation="load_owners")
        owners = [
            PoolOwner(
                owner_id=str(owner.id),
                capacity=owner.capacity,
                current_load=load,
                is_active=owner.is_active,
            )
            for owner, load in rows
        ]
        return owners, tenant_settings

    async def resolve_pool(self, tenant_id: UUID, pool_name: str) -> Optional[OwnerPool]:
        """The named pool with its members, or None if no such pool is defined."""
        owners, tenant_settings = await self.load_owners(tenant_id)
        definition = pool_definitions(tenant_settings).get(pool_name)
        if definition is None:
            return None
        return build_pool(definition, owners)

    async def resolve_default_pool(self, tenant_id: UUID) -> Tuple[str, Optional[OwnerPool]]:
        """Tenant default pool (settings "default_pool", else ROUTING_DEFAULT_POOL)."""
        owners, tenant_settings = await self.load_owners(tenant_id)
        pool_name = tenant_settings.get("default_pool") or settings.ROUTING_DEFAULT_POOL
        definition = pool_definitions(tenant_settings).get(pool_name)
        if definition is None:
            return pool_name, None
        return pool_name, build_pool(definition, owners)

    async def select_owner(self, tenant_id: UUID, pool: OwnerPool) -> PoolOwner:
        """
        Raises:
            PoolResolutionFailure: no active owner below capacity
        """
        available = pool.active_owners
        if not available:
            raise PoolResolutionFailure(
                pool.name, f'No available owners in pool "{pool.name}" - all at capacity'
            )

        strategy = get_strategy(pool.strategy, cursor_store=self.cursor_store, rng=self.rng)
        return await strategy.select(tenant_id, pool, available)

    async def assign_from_pool(
        self, tenant_id: UUID, pool: OwnerPool, trace: List[RoutingTrace]
    ) -> Optional[str]:
        try:
            owner = await self.select_owner(tenant_id, pool)
        except PoolResolutionFailure as e:
            logger.info(f"Tenant {tenant_id}: {e.reason}")
            trace.append(RoutingTrace(step=TraceStep.NO_AVAILABLE_OWNERS, result=False, reason=e.reason))
            return None

        trace.append(RoutingTrace(
            step=TraceStep.POOL_ASSIGNMENT,
            result=owner.owner_id,
            reason=(
                f'Selected owner {owner.owner_id} from pool "{pool.name}" '
                f"using {pool.strategy.value} strategy"
            ),
        ))
        return owner.owner_id

    async def assign(self, target: str, tenant_id: UUID, trace: List[RoutingTrace]) -> PoolAssignment:
        """
        Resolve a then.assign target.

        Raises:
            StoreFailure: owners could not be loaded
        """
        if self.is_direct_owner(target):
            trace.append(RoutingTrace(
                step=TraceStep.DIRECT_ASSIGNMENT,
                result=target,
                reason=f"Direct assignment to owner {target}",
            ))
            return PoolAssignment(owner_id=target)

        pool = await self.resolve_pool(tenant_id, target)
        if pool is None:
            trace.append(RoutingTrace(
                step=TraceStep.POOL_NOT_FOUND,
                result=False,
                reason=f'Pool "{target}" not found',
            ))
            return PoolAssignment()

        owner_id = await self.assign_from_pool(tenant_id, pool, trace)
        if owner_id is None:
            return PoolAssignment()
        return PoolAssignment(owner_id=owner_id, pool=pool.name)

    async def any_available_owner(self, tenant_id: UUID) -> Optional[str]:
        """Lowest-load active owner below capacity tenant-wide, ties by id."""
        owners, _ = await self.load_owners(tenant_id)
        available = [owner for owner in owners if owner.has_capacity]
        if not available:
            return None
        return min(available, key=lambda owner: (owner.current_load, owner.owner_id)).owner_id

    async def summarize_pools(self, tenant_id: UUID) -> List[PoolSummary]:
        """Pools with at least one member, with member counts and strategy."""
        owners, tenant_settings = await self.load_owners(tenant_id)
        summaries = []
        for definition in pool_definitions(tenant_settings).values():
            pool = build_pool(definition, owners)
            if pool.owners:
                summaries.append(PoolSummary(
                    name=pool.name, owners=len(pool.owners), strategy=pool.strategy
                ))
        return summaries
