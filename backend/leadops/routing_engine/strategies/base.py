"""
Base interface for pool selection strategies.
"""
from abc import ABC, abstractmethod
from typing import List
from uuid import UUID

from leadops.schemas.routing import OwnerPool, PoolOwner


class BaseStrategy(ABC):
    """Picks one owner from a pool's available owners."""

    @abstractmethod
    async def select(self, tenant_id: UUID, pool: OwnerPool, available: List[PoolOwner]) -> PoolOwner:
        """
        Select an owner.

        Args:
            tenant_id: Tenant the pool belongs to
            pool: The resolved pool
            available: Active owners below capacity, sorted by owner id (never empty)

        Returns:
            The selected owner
        """
        pass
