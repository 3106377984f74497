"""
Merge resolution for duplicate leads.

The resolution functions are pure and operate on plain record dicts
(Lead.to_record()). MergeResolver applies them inside a single unit of
work: either every side effect of a merge is committed or none is.
"""
from typing import Any, Dict, Optional, Tuple
from uuid import UUID
import copy
import logging

from leadops.exceptions import RecordNotFound, CrossTenantMerge, SelfMerge
from leadops.repositories.store import LeadStore, UnitOfWork
from leadops.schemas import score_band_for
from leadops.schemas.dedupe import (
    MergeStrategy, MergeResult, MergePreview, ScoreStrategy, DataStrategy
)
from leadops.services.activity_logger import ActivityLogger


logger = logging.getLogger(__name__)


CORE_FIELDS = ("email", "name", "phone", "company", "domain")
NON_NULL_FIELDS = CORE_FIELDS + ("external_id", "source_ref")
JSON_FIELDS = ("fields", "utm")


# ============================================================================
# PURE RESOLUTION
# ============================================================================

def merge_json_fields(primary: Optional[Dict[str, Any]], duplicate: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge two JSON objects.

    The duplicate wins on conflicting leaf keys; None never overwrites;
    nested objects are merged recursively.
    """
    if not primary and not duplicate:
        return {}
    if not primary:
        return copy.deepcopy(duplicate)
    if not duplicate:
        return copy.deepcopy(primary)

    merged = copy.deepcopy(primary)
    for key, value in duplicate.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_json_fields(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _is_newer(duplicate: Dict[str, Any], primary: Dict[str, Any]) -> bool:
    dup_updated = duplicate.get("updated_at")
    prim_updated = primary.get("updated_at")
    if dup_updated is None or prim_updated is None:
        return False
    return dup_updated > prim_updated


def merge_lead_data(primary: Dict[str, Any], duplicate: Dict[str, Any], strategy: MergeStrategy) -> Dict[str, Any]:
    """Resolved field values for the primary after absorbing the duplicate."""
    merged = {field: primary.get(field) for field in NON_NULL_FIELDS}
    merged["fields"] = copy.deepcopy(primary.get("fields") or {})
    merged["utm"] = copy.deepcopy(primary.get("utm") or {})

    if strategy.data_strategy == DataStrategy.LATEST:
        if _is_newer(duplicate, primary):
            for field in CORE_FIELDS:
                merged[field] = duplicate.get(field) or primary.get(field)
            for field in JSON_FIELDS:
                merged[field] = copy.deepcopy(duplicate.get(field) or {})

    elif strategy.data_strategy == DataStrategy.MERGE_NON_NULL:
        for field in NON_NULL_FIELDS:
            merged[field] = duplicate.get(field) or primary.get(field)
        for field in JSON_FIELDS:
            merged[field] = merge_json_fields(primary.get(field), duplicate.get(field))

    return merged


def calculate_final_score(primary: Dict[str, Any], duplicate: Dict[str, Any], strategy: MergeStrategy) -> int:
    primary_score = primary.get("score") or 0
    duplicate_score = duplicate.get("score") or 0

    if strategy.score_strategy == ScoreStrategy.LATEST:
        return duplicate_score if _is_newer(duplicate, primary) else primary_score
    if strategy.score_strategy == ScoreStrategy.SUM:
        return primary_score + duplicate_score
    if strategy.score_strategy == ScoreStrategy.AVERAGE:
        # Half-up rounding of the mean
        return (primary_score + duplicate_score + 1) // 2
    return max(primary_score, duplicate_score)


def data_completeness(record: Dict[str, Any]) -> float:
    """Populated core fields plus 0.1 per structured field key."""
    score = float(sum(1 for field in CORE_FIELDS if record.get(field)))
    score += 0.1 * len(record.get("fields") or {})
    return score


def select_primary_lead(lead1: Dict[str, Any], lead2: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Decide which of two records survives a merge.

    Returns:
        (primary, duplicate)
    """
    score1, score2 = lead1.get("score") or 0, lead2.get("score") or 0
    if score1 != score2:
        return (lead1, lead2) if score1 > score2 else (lead2, lead1)

    completeness1, completeness2 = data_completeness(lead1), data_completeness(lead2)
    if abs(completeness1 - completeness2) > 1e-9:
        return (lead1, lead2) if completeness1 > completeness2 else (lead2, lead1)

    created1, created2 = lead1.get("created_at"), lead2.get("created_at")
    if created1 is not None and created2 is not None and created1 != created2:
        return (lead1, lead2) if created1 < created2 else (lead2, lead1)

    return (lead1, lead2) if str(lead1["id"]) <= str(lead2["id"]) else (lead2, lead1)


def describe_changes(primary: Dict[str, Any], merged: Dict[str, Any], final_score: int) -> list:
    changes = []
    for field in CORE_FIELDS:
        if primary.get(field) != merged.get(field):
            changes.append(f'{field}: "{primary.get(field)}" → "{merged.get(field)}"')
    if (primary.get("score") or 0) != final_score:
        changes.append(f"score: {primary.get('score') or 0} → {final_score}")
    return changes


# ============================================================================
# TRANSACTIONAL MERGE
# ============================================================================

class MergeResolver:
    """Fold a duplicate lead and its history into a primary lead."""

    def __init__(self, store: LeadStore):
        self.store = store

    @staticmethod
    async def _load_pair(uow: UnitOfWork, primary_id: UUID, duplicate_id: UUID):
        if primary_id == duplicate_id:
            raise SelfMerge(primary_id)
        primary =await uow.leads.get_by_id(primary_id)
        if primary is None:
            raise RecordNotFound(primary_id)
        duplicate = await uow.leads.get_by_id(duplicate_id)
        if duplicate is None:
            raise RecordNotFound(duplicate_id)
        if primary.tenant_id != duplicate.tenant_id:
            raise CrossTenantMerge(primary_id, duplicate_id)
        return primary, duplicate

    async def merge_leads(
        self,
        primary_id: UUID,
        duplicate_id: UUID,
        strategy: Optional[MergeStrategy] = None,
    ) -> MergeResult:
        """
        Merge duplicate into primary atomically.

        Raises:
            RecordNotFound: either lead is missing
            CrossTenantMerge: leads belong to different tenants
            SelfMerge: primary and duplicate are the same lead
            StoreFailure: storage error or timeout (nothing is written)
        """
        strategy = strategy or MergeStrategy()

        async def merge(uow: UnitOfWork) -> MergeResult:
            primary, duplicate = await self._load_pair(uow, primary_id, duplicate_id)
            primary_record = primary.to_record()
            duplicate_record = duplicate.to_record()

            merged_data = merge_lead_data(primary_record, duplicate_record, strategy)
            final_score = calculate_final_score(primary_record, duplicate_record, strategy)

            await uow.leads.update(primary, {
                **merged_data,
                "score": final_score,
                "score_band": score_band_for(final_score).value,
            })

            consolidated_messages = 0
            if strategy.consolidate_messages:
                consolidated_messages = await uow.leads.repoint_messages(duplicate_id, primary_id)

            consolidated_events = 0
            if strategy.consolidate_events:
                consolidated_events = await uow.leads.repoint_events(duplicate_id, primary_id)

            consolidated_sla_clocks = await uow.leads.repoint_sla_clocks(duplicate_id, primary_id)

            primary_identities = {key.identity() for key in await uow.leads.list_dedupe_keys(primary_id)}
            distinct_key_ids = [
                key.id for key in await uow.leads.list_dedupe_keys(duplicate_id)
                if key.identity() not in primary_identities
            ]
            moved_dedupe_keys = await uow.leads.repoint_dedupe_keys(distinct_key_ids, primary_id)

            await ActivityLogger(uow).log_merge(primary_id, {
                "merged_lead_id": str(duplicate_id),
                "previous_score": primary_record["score"],
                "new_score": final_score,
                "consolidated_messages": consolidated_messages,
                "consolidated_events": consolidated_events,
                "consolidated_sla_clocks": consolidated_sla_clocks,
                "moved_dedupe_keys": moved_dedupe_keys,
                "merge_strategy": strategy.model_dump(mode="json"),
            })

            await uow.leads.delete(duplicate_id)

            return MergeResult(
                primary_lead_id=primary_id,
                duplicate_lead_id=duplicate_id,
                merged_data=merged_data,
                consolidated_messages=consolidated_messages,
                consolidated_events=consolidated_events,
                consolidated_sla_clocks=consolidated_sla_clocks,
                moved_dedupe_keys=moved_dedupe_keys,
                previous_score=primary_record["score"],
                final_score=final_score,
            )

        result = await self.store.with_transaction(merge, operation="merge_leads")

        logger.info(
            f"Merged lead {duplicate_id} into {primary_id}: score "
            f"{result.previous_score} -> {result.final_score}, "
            f"{result.consolidated_messages} messages, {result.consolidated_events} events"
        )
        return result

    async def preview_merge(
        self,
        primary_id: UUID,
        duplicate_id: UUID,
        strategy: Optional[MergeStrategy] = None,
    ) -> MergePreview:
        """Same resolution as merge_leads, without writing anything."""
        strategy = strategy or MergeStrategy()

        async def preview(uow: UnitOfWork) -> MergePreview:
            primary, duplicate = await self._load_pair(uow, primary_id, duplicate_id)
            primary_record = primary.to_record()
            duplicate_record = duplicate.to_record()

            merged_data = merge_lead_data(primary_record, duplicate_record, strategy)
            final_score = calculate_final_score(primary_record, duplicate_record, strategy)

            return MergePreview(
                merged_data=merged_data,
                final_score=final_score,
                messages_to_consolidate=(
                    await uow.leads.count_messages(duplicate_id) if strategy.consolidate_messages else 0
                ),
                events_to_consolidate=(
                    await uow.leads.count_events(duplicate_id) if strategy.consolidate_events else 0
                ),
                data_changes=describe_changes(primary_record, merged_data, final_score),
            )

        return await self.store.with_transaction(preview, operation="preview_merge")
