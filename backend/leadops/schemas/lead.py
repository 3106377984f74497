"""
Pydantic schemas for incoming leads
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any
from uuid import UUID

from leadops.schemas import ScoreBand, LeadStatus, score_band_for


class LeadPayload(BaseModel):
    """A lead as submitted by an ingestion channel. Every contact field is optional."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "email": "john.doe@acme.com",
                "name": "John Doe",
                "company": "Acme Inc",
                "source": "website_form",
                "score": 82,
                "fields": {"title": "VP of Sales", "employees": 1200},
                "utm": {"source": "google", "medium": "cpc"},
            }
        },
    )

    email: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    domain: Optional[str] = None
    phone: Optional[str] = None
    source: str = "UNKNOWN"
    external_id: Optional[str] = None
    source_ref: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)
    utm: Dict[str, Any] = Field(default_factory=dict)
    score: int = 0
    score_band: Optional[ScoreBand] = None
    status: LeadStatus = LeadStatus.NEW
    owner_id: Optional[UUID] = None

    @model_validator(mode="after")
    def derive_score_band(self):
        if self.score_band is None:
            self.score_band = score_band_for(self.score)
        return self
