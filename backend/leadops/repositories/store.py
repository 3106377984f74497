"""
Record store: runs repository work inside one transaction with a timeout.
"""

from typing import Awaitable, Callable, Optional, TypeVar
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadops.config import settings
from leadops.database import AsyncSessionLocal
from leadops.exceptions import StoreFailure
from leadops.repositories.lead_repository import LeadRepository
from leadops.repositories.owner_repository import OwnerRepository


logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """Repositories bound to a single session/transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.leads = LeadRepository(session)
        self.owners = OwnerRepository(session)


class LeadStore:
    """
    Entry point for every record store call.

    with_transaction(fn) opens a session, begins a transaction, runs
    fn(UnitOfWork) and commits. Any exception rolls the whole unit back.
    SQLAlchemy errors and timeouts are re-raised as StoreFailure; engine
    exceptions raised by fn propagate unchanged.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def _run(self, fn: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        async with self.session_factory() as session:
            async with session.begin():
                return await fn(UnitOfWork(session))

    async def with_transaction(
        self,
        fn: Callable[[UnitOfWork], Awaitable[T]],
        operation: Optional[str] = None,
    ) -> T:
        operation = operation or getattr(fn, "__name__", "transaction")
        try:
            return await asyncio.wait_for(self._run(fn), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Store call '{operation}' timed out after {self.timeout}s")
            raise StoreFailure(f"Store call '{operation}' timed out", operation=operation) from e
        except SQLAlchemyError as e:
            logger.error(f"Store call '{operation}' failed: {e}")
            raise StoreFailure(f"Store call '{operation}' failed: {e}", operation=operation) from e
