"""
Deduplicator for incoming leads.

build keys -> find duplicate -> create or merge -> audit.
Any unexpected failure degrades to plain creation. When creation itself
fails the result carries action "error" instead of raising.
"""
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from leadops.dedupe_engine.core.finder import DuplicateFinder
from leadops.dedupe_engine.core.keys import build_keys, ensure_valid_keys
from leadops.dedupe_engine.core.merger import MergeResolver, select_primary_lead
from leadops.exceptions import InsufficientKeyData, RecordNotFound
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.schemas.dedupe import DedupeAction, DedupeKeys, DedupeOptions, DedupeResult
from leadops.schemas.lead import LeadPayload
from leadops.services.audit_service import AuditService
from leadops.services.normalization import normalization_service


logger = logging.getLogger(__name__)


class Deduplicator:
    """
    Resolve an incoming lead against the tenant's existing leads.

    Decisions recorded in the audit log:
    - no_duplicate_found
    - duplicate_found_merge_skipped
    - duplicate_found_and_merged
    - deduplication_failed_fallback
    - deduplication_failed
    """

    def __init__(
        self,
        store: Optional[LeadStore] = None,
        finder: Optional[DuplicateFinder] = None,
        merger: Optional[MergeResolver] = None,
        audit: Optional[AuditService] = None,
    ):
        self.store = store or LeadStore()
        self.finder = finder or DuplicateFinder(self.store)
        self.merger = merger or MergeResolver(self.store)
        self.audit = audit or AuditService(self.store)

    @staticmethod
    def _lead_values(lead: LeadPayload) -> Dict[str, Any]:
        values = normalization_service.normalize_lead({
            "email": lead.email,
            "name": lead.name,
            "company": lead.company,
            "domain": lead.domain,
            "phone": lead.phone,
        })
        values.update({
            "source": lead.source or "UNKNOWN",
            "external_id": lead.external_id,
            "source_ref": lead.source_ref,
            "fields": dict(lead.fields or {}),
            "utm": dict(lead.utm or {}),
            "score": lead.score or 0,
            "score_band": lead.score_band.value,
            "status": lead.status.value,
            "owner_id": lead.owner_id,
        })
        return values

    async def create_lead_with_keys(self, lead: LeadPayload, tenant_id: UUID, keys: DedupeKeys) -> UUID:
        """Create the lead and, when any key exists, its key row in one transaction."""
        async def create(uow: UnitOfWork) -> UUID:
            record = await uow.leads.create(tenant_id, self._lead_values(lead))
            if keys.is_valid:
                await uow.leads.create_dedupe_key(record.id, keys)
            return record.id

        return await self.store.with_transaction(create, operation="create_lead")

    async def _select_primary(self, existing_id: UUID, incoming_id: UUID):
        async def load(uow: UnitOfWork):
            existing = await uow.leads.get_by_id(existing_id)
            incoming = await uow.leads.get_by_id(incoming_id)
            if existing is None:
                raise RecordNotFound(existing_id)
            if incoming is None:
                raise RecordNotFound(incoming_id)
            return select_primary_lead(existing.to_record(), incoming.to_record())

        primary, duplicate = await self.store.with_transaction(load, operation="select_primary")
        return primary["id"], duplicate["id"]

    async def deduplicate_lead(
        self,
        lead: Union[LeadPayload, Dict[str, Any]],
        tenant_id: UUID,
        options: Optional[DedupeOptions] = None,
    ) -> DedupeResult:
        """
        Deduplicate one incoming lead.

        Args:
            lead: Lead payload (model or camelCase/snake_case dict)
            tenant_id: Tenant the lead belongs to
            options: Policy, merge strategy and skip-merge flag

        Returns:
            DedupeResult with action created / merged / skipped, or error
            when even the fallback creation fails
        """
        options = options or DedupeOptions()
        policy = options.policy
        if not isinstance(lead, LeadPayload):
            lead = LeadPayload.model_validate(lead)

        keys = DedupeKeys()
        created_id: Optional[UUID] = None

        try:
            keys = build_keys(lead, derive_company_domain=policy.derive_company_domain)
            try:
                ensure_valid_keys(keys)
            except InsufficientKeyData as e:
                logger.warning(f"{e} (tenant: {tenant_id}, email: {lead.email})")

            duplicate_id = await self.finder.find_duplicate(keys, tenant_id, policy)

            if duplicate_id is None:
                created_id = await self.create_lead_with_keys(lead, tenant_id, keys)
                await self.audit.log_dedupe_decision(
                    tenant_id, DedupeAction.CREATED.value, created_id, keys, "no_duplicate_found"
                )
                return DedupeResult(
                    action=DedupeAction.CREATED,
                    lead_id=created_id,
                    keys=keys,
                    decision="no_duplicate_found",
                )

            if options.skip_merge:
                await self.audit.log_dedupe_decision(
                    tenant_id, DedupeAction.SKIPPED.value, duplicate_id, keys, "duplicate_found_merge_skipped"
                )
                return DedupeResult(
                    action=DedupeAction.SKIPPED,
                    lead_id=duplicate_id,
                    duplicate_id=duplicate_id,
                    keys=keys,
                    decision="duplicate_found_merge_skipped",
                )

            # The incoming lead goes through the normal creation path first
            created_id = await self.create_lead_with_keys(lead, tenant_id, keys)
            primary_id, absorbed_id = await self._select_primary(duplicate_id, created_id)

            merge_result = await self.merger.merge_leads(primary_id, absorbed_id, options.merge_strategy)

            await self.audit.log_dedupe_decision(
                tenant_id,
                DedupeAction.MERGED.value,
                merge_result.primary_lead_id,
                keys,
                "duplicate_found_and_merged",
                merged_lead_id=merge_result.duplicate_lead_id,
                consolidated_messages=merge_result.consolidated_messages,
                consolidated_events=merge_result.consolidated_events,
                previous_score=merge_result.previous_score,
                final_score=merge_result.final_score,
            )
            return DedupeResult(
                action=DedupeAction.MERGED,
                lead_id=merge_result.primary_lead_id,
                duplicate_id=merge_result.duplicate_lead_id,
                keys=keys,
                merge_result=merge_result,
                decision="duplicate_found_and_merged",
            )

        except Exception as e:
            logger.error(f"Deduplication failed, fallback: {e}")

            if created_id is None:
                try:
                    created_id = await self.create_lead_with_keys(lead, tenant_id, keys)
                except Exception as create_error:
                    error = f"{e}; fallback creation failed: {create_error}"
                    logger.error(f"Fallback lead creation failed (tenant: {tenant_id}): {create_error}")
                    await self.audit.log_dedupe_decision(
                        tenant_id, DedupeAction.ERROR.value, None, keys, "deduplication_failed", error=error
                    )
                    return DedupeResult(
                        action=DedupeAction.ERROR,
                        keys=keys,
                        decision="deduplication_failed",
                        error=error,
                    )

            await self.audit.log_dedupe_decision(
                tenant_id,
                DedupeAction.CREATED.value,
                created_id,
                keys,
                "deduplication_failed_fallback",
                error=str(e),
            )
            return DedupeResult(
                action=DedupeAction.CREATED,
                lead_id=created_id,
                keys=keys,
                decision="deduplication_failed_fallback",
                error=str(e),
            )
