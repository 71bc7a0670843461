"""
Keyword category classifier.

Maps free-form event text to one EventCategory value by scanning an ordered
(category, keywords) table. The first category with any keyword contained in
the lowercased text wins, so specific categories are listed before broad
catch-alls in the lexicon.
"""

import logging
from typing import Optional, Sequence, Tuple

from citypulse.schemas.event import EventCategory
from citypulse.schemas.lexicon import get_category_keywords

logger = logging.getLogger(__name__)

CategoryTable = Sequence[Tuple[str, Sequence[str]]]


class CategoryClassifier:
    """Ordered keyword classifier with an "Other" default."""

    def __init__(self, table: Optional[CategoryTable] = None):
        self.table = tuple(table) if table is not None else get_category_keywords()

    def classify(self, text: Optional[str]) -> str:
        """
        Return the category label for text.

        Example:
            >>> CategoryClassifier().classify("Jazz Night at Blue Note")
            'Music'
        """
        match = self.match(text)
        return match[0] if match else EventCategory.OTHER.value

    def match(self, text: Optional[str]) -> Optional[Tuple[str, str]]:
        """(category, keyword) of the first hit, or None."""
        if not text:
            return None
        lowered = text.lower()
        for category, keywords in self.table:
            for keyword in keywords:
                if keyword in lowered:
                    logger.debug(f"Category '{category}' matched keyword '{keyword}'")
                    return category, keyword
        return None
