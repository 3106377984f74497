"""
Deduplication Engine.

Decides whether an incoming lead is the same real-world contact as one
already on file, and consolidates the two records when it is.

Main components:
- Keys: salted email fingerprint, company domain and name token key
- Finder: exact-email, domain + name and fuzzy-name candidate search
- Merger: primary selection and transactional merge resolution
- Deduplicator: per-lead orchestration with audit trail and degraded mode

Usage:
    from leadops.dedupe_engine.core import Deduplicator

    deduplicator = Deduplicator(store)
    result = await deduplicator.deduplicate_lead(payload, tenant_id)
"""

__version__ = "1.0.0"
__all__ = ["core"]
