"""Pydantic schemas and shared enums."""

from enum import Enum


class ScoreBand(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class LeadStatus(str, Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    CONVERTED = "CONVERTED"
    DISQUALIFIED = "DISQUALIFIED"


def score_band_for(score) -> ScoreBand:
    """Map a numeric score onto its band: 0-30 LOW, 31-70 MEDIUM, 71+ HIGH."""
    if score is None or score <= 30:
        return ScoreBand.LOW
    if score <= 70:
        return ScoreBand.MEDIUM
    return ScoreBand.HIGH
