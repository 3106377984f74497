"""
Least-loaded selection.
"""
from typing import List
from uuid import UUID

from leadops.schemas.routing import OwnerPool, PoolOwner
from .base import BaseStrategy


class LeastLoadedStrategy(BaseStrategy):
    """Smallest absolute current load; ties go to the smallest owner id."""

    async def select(self, tenant_id: UUID, pool: OwnerPool, available: List[PoolOwner]) -> PoolOwner:
        return min(available, key=lambda owner: (owner.current_load, owner.owner_id))
