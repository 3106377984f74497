"""
Identity key construction for deduplication.

Three fingerprints are derived from the raw contact fields:
- email_hash: salted SHA-256 of the normalized email
- domain: company domain (explicit, from a business email, or guessed from the company name)
- name_key: order-independent token set of the person's name
"""
from typing import Any, Optional
import hashlib
import logging
import re

from leadops.config import settings
from leadops.exceptions import InsufficientKeyData
from leadops.schemas.dedupe import DedupeKeys


logger = logging.getLogger(__name__)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com",
    "yahoo.com",
    "hotmail.com",
    "outlook.com",
    "aol.com",
    "icloud.com",
    "protonmail.com",
    "mail.com",
    "yandex.com",
    "zoho.com",
})

_HONORIFIC_PREFIX = re.compile(r"^(mr|mrs|ms|dr|prof)\.?\s+")
_GENERATIONAL_SUFFIX = re.compile(r"\s+(jr|sr|ii|iii|iv)\.?$")
_PUNCTUATION = re.compile(r"[^\w\s]")
_LEGAL_SUFFIX = re.compile(r"(inc|corp|llc|ltd|company|co)$")


def _field(lead: Any, name: str) -> Optional[str]:
    """Read a contact field from a dict, pydantic model or ORM object."""
    if isinstance(lead, dict):
        value = lead.get(name)
    else:
        value = getattr(lead, name, None)
    if value is None:
        return None
    return str(value)


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def normalize_domain(domain: Optional[str]) -> Optional[str]:
    if not domain:
        return None
    domain = domain.strip().lower()
    if domain.startswith("www."):
        domain = domain[4:]
    domain = domain.rstrip("/")
    return domain or None


def build_name_key(name: Optional[str]) -> Optional[str]:
    """
    Build an order-independent name key.

    "Dr. John  Doe Jr." and "doe, john" both become "doe john".
    """
    if not name:
        return None

    normalized = name.strip().lower()
    normalized = _HONORIFIC_PREFIX.sub("", normalized)
    normalized = _GENERATIONAL_SUFFIX.sub("", normalized)
    normalized = _PUNCTUATION.sub("", normalized)

    tokens = sorted(token for token in normalized.split() if len(token) > 1)
    return " ".join(tokens) or None


def company_domain_guess(company: Optional[str]) -> Optional[str]:
    """Heuristic "<company>.com" guess. Advisory only."""
    if not company:
        return None

    cleaned = _PUNCTUATION.sub("", company.lower())
    cleaned = re.sub(r"\s+", "", cleaned)
    cleaned = _LEGAL_SUFFIX.sub("", cleaned)

    if 3 <= len(cleaned) <= 30:
        return f"{cleaned}.com"
    return None


def name_similarity(key1: Optional[str], key2: Optional[str]) -> float:
    """Jaccard similarity over whitespace tokens of two name keys."""
    if key1 and key1 == key2:
        return 1.0

    tokens1 = set((key1 or "").split())
    tokens2 = set((key2 or "").split())
    union = tokens1 | tokens2
    if not union:
        return 0.0

    return len(tokens1 & tokens2) / len(union)


def calculate_name_similarity(name1: Optional[str], name2: Optional[str]) -> float:
    """Similarity of two raw names, compared through their name keys."""
    return name_similarity(build_name_key(name1), build_name_key(name2))


def validate_keys(keys: DedupeKeys) -> bool:
    return keys.is_valid


def ensure_valid_keys(keys: DedupeKeys) -> DedupeKeys:
    if not keys.is_valid:
        raise InsufficientKeyData("Lead has insufficient data for deduplication")
    return keys


class KeyBuilder:
    """Builds DedupeKeys with a fixed email salt."""

    def __init__(self, salt: str, derive_company_domain: bool = True):
        if not salt:
            raise ValueError("Email salt must be configured")
        self.salt = salt
        self.derive_company_domain = derive_company_domain

    def hash_email(self, email: Optional[str]) -> Optional[str]:
        if not is_valid_email(email):
            return None
        normalized = email.strip().lower()
        return hashlib.sha256(f"{self.salt}{normalized}".encode("utf-8")).hexdigest()

    def extract_domain(self, lead: Any) -> Optional[str]:
        explicit = normalize_domain(_field(lead, "domain"))
        if explicit:
            return explicit

        email = _field(lead, "email")
        if is_valid_email(email):
            email_domain = email.strip().lower().split("@", 1)[1]
            if email_domain in PERSONAL_EMAIL_DOMAINS:
                return None
            return email_domain

        if self.derive_company_domain:
            return company_domain_guess(_field(lead, "company"))

        return None

    def build(self, lead: Any) -> DedupeKeys:
        return DedupeKeys(
            email_hash=self.hash_email(_field(lead, "email")),
            domain=self.extract_domain(lead),
            name_key=build_name_key(_field(lead, "name")),
        )


def build_keys(lead: Any, derive_company_domain: Optional[bool] = None) -> DedupeKeys:
    """Build dedupe keys using the configured email salt."""
    if derive_company_domain is None:
        derive_company_domain = settings.DEDUPE_DERIVE_COMPANY_DOMAIN
    builder = KeyBuilder(settings.DEDUPE_EMAIL_SALT, derive_company_domain=derive_company_domain)
    return builder.build(lead)
