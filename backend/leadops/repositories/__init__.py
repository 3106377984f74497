"""
Record store repositories.
"""
from .lead_repository import LeadRepository
from .owner_repository import OwnerRepository
from .store import LeadStore, UnitOfWork


__all__ = [
    "LeadRepository",
    "OwnerRepository",
    "LeadStore",
    "UnitOfWork",
]
