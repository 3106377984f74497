"""Lead contact-field normalization applied at creation time."""

import re
import logging
from typing import Dict, Any, Optional
import phonenumbers

logger = logging.getLogger(__name__)


class NormalizationService:
    """Normalize and standardize contact fields before a lead is stored."""

    @staticmethod
    def normalize_email(email: Optional[str]) -> Optional[str]:
        """Lower-case and strip whitespace. Empty input becomes None."""
        if not email:
            return None
        return email.strip().lower() or None

    @staticmethod
    def normalize_domain(domain: Optional[str]) -> Optional[str]:
        """
        Normalize a company domain.
        - Lowercase, strip whitespace
        - Drop scheme, leading "www." and trailing slashes
        """
        if not domain:
            return None

        domain = domain.strip().lower()
        domain = re.sub(r'^https?://', '', domain)
        if domain.startswith('www.'):
            domain = domain[4:]
        domain = domain.rstrip('/')

        return domain or None

    @staticmethod
    def normalize_name(name: Optional[str]) -> Optional[str]:
        """Collapse internal whitespace."""
        if not name:
            return None
        return ' '.join(name.split()) or None

    @staticmethod
    def normalize_phone(phone: Optional[str], default_region: str = "US") -> Optional[str]:
        """
        Normalize phone number to E.164 format.
        Returns the original value if parsing fails.
        """
        if not phone:
            return None

        try:
            cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)
            parsed = phonenumbers.parse(cleaned, default_region)

            if phonenumbers.is_valid_number(parsed):
                return phonenumbers.format_number(
                    parsed,
                    phonenumbers.PhoneNumberFormat.E164
                )
        except phonenumbers.NumberParseException:
            logger.debug(f"Failed to parse phone number: {phone}")

        return phone

    def normalize_lead(self, lead_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Normalize the contact fields of a lead record.
        Unknown keys are passed through untouched.
        """
        normalized = dict(lead_data)

        if 'email' in normalized:
            normalized['email'] = self.normalize_email(normalized['email'])

        if 'domain' in normalized:
            normalized['domain'] = self.normalize_domain(normalized['domain'])

        for key in ('name', 'company'):
            if key in normalized:
                normalized[key] = self.normalize_name(normalized[key])

        if 'phone' in normalized:
            normalized['phone'] = self.normalize_phone(normalized['phone'])

        logger.debug(f"Normalized lead: {normalized.get('email')}")

        return normalized


# Singleton instance
normalization_service = NormalizationService()
