"""
Pydantic schemas for deduplication: keys, policy, matches and merge outcomes.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from uuid import UUID
from enum import Enum

from leadops.config import settings


class DedupeKeys(BaseModel):
    """Derived, non-authoritative fingerprint of a lead."""
    email_hash: Optional[str] = None
    domain: Optional[str] = None
    name_key: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """At least one key must be present."""
        return bool(self.email_hash or self.domain or self.name_key)


class MatchType(str, Enum):
    EMAIL_EXACT = "email_exact"
    DOMAIN_FUZZY = "domain_fuzzy"
    NAME_FUZZY = "name_fuzzy"

    @property
    def priority(self) -> int:
        return _MATCH_PRIORITY[self]


_MATCH_PRIORITY = {
    MatchType.EMAIL_EXACT: 3,
    MatchType.DOMAIN_FUZZY: 2,
    MatchType.NAME_FUZZY: 1,
}


class DuplicateMatch(BaseModel):
    """Candidate pairing produced during a search. Never persisted."""
    lead_id: UUID
    match_type: MatchType
    confidence: float = Field(..., ge=0.0, le=1.0)
    matched_keys: List[str] = Field(default_factory=list)


class DedupePolicy(BaseModel):
    """Which searches to run and how strict they are."""
    email_exact: bool = True
    domain_fuzzy: bool = True
    name_fuzzy: bool = True

    name_similarity_threshold: float = Field(
        default_factory=lambda: settings.DEDUPE_NAME_SIMILARITY_THRESHOLD, ge=0.0, le=1.0
    )
    domain_name_threshold: float = Field(
        default_factory=lambda: settings.DEDUPE_DOMAIN_NAME_THRESHOLD, ge=0.0, le=1.0
    )

    # None = no lookback limit
    time_window_hours: Optional[int] = Field(default_factory=lambda: settings.DEDUPE_TIME_WINDOW_HOURS)
    name_sample_limit: int = Field(default_factory=lambda: settings.DEDUPE_NAME_SAMPLE_LIMIT, gt=0)

    # Heuristic "<company>.com" domain guess, advisory only
    derive_company_domain: bool = Field(default_factory=lambda: settings.DEDUPE_DERIVE_COMPANY_DOMAIN)


class ScoreStrategy(str, Enum):
    HIGHEST = "highest"
    LATEST = "latest"
    SUM = "sum"
    AVERAGE = "average"


class DataStrategy(str, Enum):
    PRIMARY = "primary"
    LATEST = "latest"
    MERGE_NON_NULL = "merge_non_null"


class MergeStrategy(BaseModel):
    """How conflicts are resolved when a duplicate is folded into a primary."""
    score_strategy: ScoreStrategy = ScoreStrategy.HIGHEST
    data_strategy: DataStrategy = DataStrategy.MERGE_NON_NULL
    consolidate_messages: bool = True
    consolidate_events: bool = True


class MergeResult(BaseModel):
    primary_lead_id: UUID
    duplicate_lead_id: UUID
    merged_data: Dict[str, Any]
    consolidated_messages: int = 0
    consolidated_events: int = 0
    consolidated_sla_clocks: int = 0
    moved_dedupe_keys: int = 0
    previous_score: int
    final_score: int


class MergePreview(BaseModel):
    merged_data: Dict[str, Any]
    final_score: int
    messages_to_consolidate: int
    events_to_consolidate: int
    data_changes: List[str] = Field(default_factory=list)


class DedupeAction(str, Enum):
    CREATED = "created"
    MERGED = "merged"
    SKIPPED = "skipped"
    ERROR = "error"


class DedupeOptions(BaseModel):
    policy: DedupePolicy = Field(default_factory=DedupePolicy)
    merge_strategy: MergeStrategy = Field(default_factory=MergeStrategy)
    skip_merge: bool = False  # detect only, never mutate the existing lead


class DedupeResult(BaseModel):
    action: DedupeAction
    lead_id: Optional[UUID] = None
    duplicate_id: Optional[UUID] = None
    keys: DedupeKeys
    merge_result: Optional[MergeResult] = None
    decision: str
    error: Optional[str] = None


class DuplicateAnalysis(BaseModel):
    keys: DedupeKeys
    matches: List[DuplicateMatch] = Field(default_factory=list)
    recommendation: Optional[UUID] = None
