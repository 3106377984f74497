"""
Deduplication engine core components.
"""
from .keys import KeyBuilder, build_keys, build_name_key, calculate_name_similarity, name_similarity
from .finder import DuplicateFinder, select_best_match
from .merger import MergeResolver, select_primary_lead
from .deduplicator import Deduplicator


__all__ = [
    "KeyBuilder",
    "build_keys",
    "build_name_key",
    "calculate_name_similarity",
    "name_similarity",
    "DuplicateFinder",
    "select_best_match",
    "MergeResolver",
    "select_primary_lead",
    "Deduplicator",
]
