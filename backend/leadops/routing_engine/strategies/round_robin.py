"""
Round-robin selection backed by an atomic cursor.
"""
from typing import List
from uuid import UUID

from leadops.schemas.routing import OwnerPool, PoolOwner
from .base import BaseStrategy


class RoundRobinStrategy(BaseStrategy):
    """
    index = ticket mod len(available)

    Over N calls against a stable pool of K owners (N a multiple of K),
    every owner is selected exactly N/K times.
    """

    def __init__(self, cursor_store):
        """
        Args:
            cursor_store: PoolCursorStore handing out atomic tickets
        """
        self.cursor_store = cursor_store

    async def select(self, tenant_id: UUID, pool: OwnerPool, available: List[PoolOwner]) -> PoolOwner:
        ticket = await self.cursor_store.next_ticket(tenant_id, pool.name)
        return available[ticket % len(available)]
