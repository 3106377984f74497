"""
Round-robin cursor storage.

Each (tenant, pool) pair owns a monotonically increasing ticket counter.
next_ticket() is atomic, so concurrent routing calls against the same pool
never receive the same ticket. The first ticket is 0.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
from uuid import UUID
import asyncio
import logging

import redis.asyncio as redis

from leadops.config import settings
from leadops.exceptions import StoreFailure

logger = logging.getLogger(__name__)


class PoolCursorStore(ABC):
    """Atomic per-pool ticket counter."""

    @abstractmethod
    async def next_ticket(self, tenant_id: UUID, pool_name: str) -> int:
        pass

    async def close(self):
        pass


class InMemoryPoolCursorStore(PoolCursorStore):
    """Process-local cursors guarded by an asyncio lock."""

    def __init__(self):
        self._cursors: Dict[Tuple[str, str], int] = {}
        self._lock = asyncio.Lock()

    async def next_ticket(self, tenant_id: UUID, pool_name: str) -> int:
        key = (str(tenant_id), pool_name)
        async with self._lock:
            ticket = self._cursors.get(key, 0)
            self._cursors[key] = ticket + 1
        return ticket


class RedisPoolCursorStore(PoolCursorStore):
    """Cursors shared between processes via Redis INCR."""

    def __init__(self, redis_url: Optional[str] = None, client=None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.redis_client = client

    async def initialize(self):
        """Initialize Redis connection."""
        if not self.redis_client:
            self.redis_client = await redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            logger.info("Redis connection initialized for routing cursors")

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None

    @staticmethod
    def cursor_key(tenant_id: UUID, pool_name: str) -> str:
        return f"routing:cursor:{tenant_id}:{pool_name}"

    async def next_ticket(self, tenant_id: UUID, pool_name: str) -> int:
        try:
            await self.initialize()
            # INCR returns 1 for a fresh key
            return int(await self.redis_client.incr(self.cursor_key(tenant_id, pool_name))) - 1
        except redis.RedisError as e:
            logger.error(f"Redis cursor increment failed for pool {pool_name}: {e}")
            raise StoreFailure(f"Cursor store failed: {e}", operation="next_ticket") from e


# Process-wide stores, one per backend
_cursor_stores: Dict[str, PoolCursorStore] = {}


def create_cursor_store(backend: Optional[str] = None) -> PoolCursorStore:
    """Shared cursor store selected by ROUTING_CURSOR_BACKEND (memory | redis)."""
    backend = (backend or settings.ROUTING_CURSOR_BACKEND).lower()
    if backend not in ("memory", "redis"):
        raise ValueError(f"Unknown cursor backend: {backend}. Available: ['memory', 'redis']")
    if backend not in _cursor_stores:
        _cursor_stores[backend] = RedisPoolCursorStore() if backend == "redis" else InMemoryPoolCursorStore()
    return _cursor_stores[backend]


def reset_cursor_stores():
    """Forget the shared cursor stores; the next call builds fresh ones."""
    _cursor_stores.clear()
