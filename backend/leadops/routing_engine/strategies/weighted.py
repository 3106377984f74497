"""
Capacity-weighted random selection.
"""
import random
from typing import List, Optional
from uuid import UUID

from leadops.schemas.routing import OwnerPool, PoolOwner
from .base import BaseStrategy


class WeightedStrategy(BaseStrategy):
    """Draw proportional to each owner's remaining capacity."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def select(self, tenant_id: UUID, pool: OwnerPool, available: List[PoolOwner]) -> PoolOwner:
        total = sum(owner.remaining_capacity for owner in available)
        if total <= 0:
            return available[0]

        draw = self.rng.random() * total
        running = 0
        for owner in available:
            running += owner.remaining_capacity
            if draw < running:
                return owner

        return available[-1]
