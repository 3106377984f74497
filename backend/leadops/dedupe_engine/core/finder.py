"""
Duplicate finder.

Runs up to three tenant-scoped searches over stored dedupe keys:
1. exact email fingerprint (confidence 1.0)
2. same domain + similar name key
3. similar name key over a bounded sample of recent key rows
"""
from datetime import timedelta
from typing import Any, List, Optional
from uuid import UUID
import logging

from leadops.clock import Clock, utcnow
from leadops.dedupe_engine.core.keys import build_keys, name_similarity
from leadops.exceptions import StoreFailure
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.schemas.dedupe import (
    DedupeKeys, DedupePolicy, DuplicateMatch, DuplicateAnalysis, MatchType
)


logger = logging.getLogger(__name__)


def select_best_match(matches: List[DuplicateMatch]) -> Optional[DuplicateMatch]:
    """Highest match-type priority, then confidence, then smallest lead id."""
    ranked = rank_matches(matches)
    return ranked[0] if ranked else None


def rank_matches(matches: List[DuplicateMatch]) -> List[DuplicateMatch]:
    return sorted(
        matches,
        key=lambda m: (-m.match_type.priority, -m.confidence, str(m.lead_id)),
    )


class DuplicateFinder:
    """Find candidate duplicates of a lead within a tenant."""

    def __init__(self, store: LeadStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    async def collect_matches(
        self,
        keys: DedupeKeys,
        tenant_id: UUID,
        policy: DedupePolicy,
        apply_time_window: bool = True,
    ) -> List[DuplicateMatch]:
        """Every candidate the enabled searches produce, unranked."""
        since = None
        if apply_time_window and policy.time_window_hours:
            since = self.clock() - timedelta(hours=policy.time_window_hours)

        async def search(uow: UnitOfWork) -> List[DuplicateMatch]:
            matches: List[DuplicateMatch] = []

            if policy.email_exact and keys.email_hash:
                for lead_id in await uow.leads.find_by_email_hash(tenant_id, keys.email_hash, since):
                    matches.append(DuplicateMatch(
                        lead_id=lead_id,
                        match_type=MatchType.EMAIL_EXACT,
                        confidence=1.0,
                        matched_keys=["email"],
                    ))

            if policy.domain_fuzzy and keys.domain and keys.name_key:
                for lead_id, name_key in await uow.leads.find_by_domain(tenant_id, keys.domain, since):
                    if not name_key:
                        continue
                    similarity = name_similarity(keys.name_key, name_key)
                    if similarity >= policy.domain_name_threshold:
                        matches.append(DuplicateMatch(
                            lead_id=lead_id,
                            match_type=MatchType.DOMAIN_FUZZY,
                            confidence=similarity,
                            matched_keys=["domain", "name"],
                        ))

            if policy.name_fuzzy and keys.name_key:
                sample = await uow.leads.sample_name_keys(tenant_id, policy.name_sample_limit, since)
                for lead_id, name_key in sample:
                    similarity = name_similarity(keys.name_key, name_key)
                    if similarity >= policy.name_similarity_threshold:
                        matches.append(DuplicateMatch(
                            lead_id=lead_id,
                            match_type=MatchType.NAME_FUZZY,
                            confidence=similarity,
                            matched_keys=["name"],
                        ))

            return matches

        try:
            return await self.store.with_transaction(search, operation="find_duplicates")
        except StoreFailure:
            logger.error(f"Duplicate finding failed for tenant {tenant_id}")
            raise

    async def find_matches(
        self, keys: DedupeKeys, tenant_id: UUID, policy: Optional[DedupePolicy] = None
    ) -> List[DuplicateMatch]:
        """All candidates, best first."""
        policy = policy or DedupePolicy()
        return rank_matches(await self.collect_matches(keys, tenant_id, policy))

    async def find_duplicate(
        self, keys: DedupeKeys, tenant_id: UUID, policy: Optional[DedupePolicy] = None
    ) -> Optional[UUID]:
        """
        Id of the best existing duplicate, or None.

        Raises:
            StoreFailure: storage error or timeout during the search
        """
        policy = policy or DedupePolicy()
        if not keys.is_valid:
            return None

        best = select_best_match(await self.collect_matches(keys, tenant_id, policy))
        if best:
            logger.info(
                f"Duplicate candidate {best.lead_id} ({best.match_type.value}, "
                f"confidence {best.confidence:.2f}) for tenant {tenant_id}"
            )
            return best.lead_id
        return None

    async def analyze_duplicates(
        self, lead: Any, tenant_id: UUID, policy: Optional[DedupePolicy] = None
    ) -> DuplicateAnalysis:
        """Every match for the lead regardless of the time window, for debugging."""
        policy = policy or DedupePolicy()
        keys = build_keys(lead, derive_company_domain=policy.derive_company_domain)

        all_searches = policy.model_copy(
            update={"email_exact": True, "domain_fuzzy": True, "name_fuzzy": True}
        )
        matches = rank_matches(
            await self.collect_matches(keys, tenant_id, all_searches, apply_time_window=False)
        )

        return DuplicateAnalysis(
            keys=keys,
            matches=matches,
            recommendation=matches[0].lead_id if matches else None,
        )
