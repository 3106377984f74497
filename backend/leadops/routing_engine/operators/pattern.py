"""
Regular expression operator.
"""
import logging
import re
from typing import Any

from .base import BaseOperator


logger = logging.getLogger(__name__)


class RegexOperator(BaseOperator):
    """Case-insensitive search. An invalid pattern is a non-match."""

    def evaluate(self, value: Any, target: Any) -> bool:
        if not isinstance(value, str) or target is None:
            return False

        try:
            return re.search(str(target), value, re.IGNORECASE) is not None
        except re.error as e:
            logger.warning(f"Invalid regex pattern '{target}': {e}")
            return False
