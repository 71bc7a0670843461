"""
Date recovery for free-form event text.

An ordered chain of formats is tried against the text; the first match that
forms a real calendar date wins. Dates without a year resolve to their next
occurrence on or after "today", which is injectable so results are
deterministic under test.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, List, Optional, Tuple

from citypulse.schemas.event import Recovered

logger = logging.getLogger(__name__)

LONG_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)
SHORT_MONTHS = "Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec"
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_ORDINAL = r"(?:st|nd|rd|th)?"

ISO_PATTERN = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
SLASH_PATTERN = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\b")
LONG_MONTH_PATTERN = re.compile(
    rf"\b({LONG_MONTHS})\s+(\d{{1,2}}){_ORDINAL}\b(?:,?\s+(\d{{4}}))?", re.IGNORECASE
)
SHORT_MONTH_PATTERN = re.compile(
    rf"\b({SHORT_MONTHS})\.?\s+(\d{{1,2}}){_ORDINAL}\b(?:,?\s+(\d{{4}}))?", re.IGNORECASE
)
DAY_FIRST_PATTERN = re.compile(
    rf"\b(\d{{1,2}}){_ORDINAL}\s+({LONG_MONTHS}|{SHORT_MONTHS})\.?,?\s+(\d{{4}})\b",
    re.IGNORECASE,
)
WEEKDAY_PATTERN = re.compile(rf"\b({'|'.join(WEEKDAYS)})\b", re.IGNORECASE)


def _month_number(name: str) -> int:
    """'September' / 'sept' / 'Sep' -> 9."""
    key = name[:3].title()
    return datetime.strptime(key, "%b").month


class DateParser:
    """
    Ordered date fallback chain.

    Links, in order: iso, slash (M/D/Y), long_month, short_month, day_first,
    weekday. ``recover`` falls back to tomorrow when nothing matches.
    """

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or date.today

    @property
    def today(self) -> date:
        return self._today()

    def parse(self, text: Optional[str]) -> Optional[Recovered[date]]:
        """Run the chain; None when no link yields a valid calendar date."""
        if not text:
            return None
        for method, candidates in self._chain(text):
            for value in candidates:
                if value is not None:
                    return Recovered(value, method)
        return None

    def recover(self, text: Optional[str]) -> Recovered[date]:
        """Like ``parse`` but never empty: defaults to tomorrow."""
        found = self.parse(text)
        if found is not None:
            return found
        logger.debug("No date found in text, defaulting to tomorrow")
        return Recovered.default(self.today + timedelta(days=1))

    # =========================================================================
    # CHAIN
    # =========================================================================

    def _chain(self, text: str) -> List[Tuple[str, Iterator[Optional[date]]]]:
        return [
            ("iso", self._iso(text)),
            ("slash", self._slash(text)),
            ("long_month", self._month_first(LONG_MONTH_PATTERN, text)),
            ("short_month", self._month_first(SHORT_MONTH_PATTERN, text)),
            ("day_first", self._day_first(text)),
            ("weekday", self._weekday(text)),
        ]

    def _iso(self, text: str) -> Iterator[Optional[date]]:
        for m in ISO_PATTERN.finditer(text):
            yield self._safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    def _slash(self, text: str) -> Iterator[Optional[date]]:
        for m in SLASH_PATTERN.finditer(text):
            year = int(m.group(3))
            if year < 100:
                year += 2000
            yield self._safe_date(year, int(m.group(1)), int(m.group(2)))

    def _month_first(self, pattern: re.Pattern, text: str) -> Iterator[Optional[date]]:
        for m in pattern.finditer(text):
            month = _month_number(m.group(1))
            day = int(m.group(2))
            if m.group(3):
                yield self._safe_date(int(m.group(3)), month, day)
            else:
                yield self._next_occurrence(month, day)

    def _day_first(self, text: str) -> Iterator[Optional[date]]:
        for m in DAY_FIRST_PATTERN.finditer(text):
            yield self._safe_date(int(m.group(3)), _month_number(m.group(2)), int(m.group(1)))

    def _weekday(self, text: str) -> Iterator[Optional[date]]:
        for m in WEEKDAY_PATTERN.finditer(text):
            target = WEEKDAYS.index(m.group(1).lower())
            today = self.today
            yield today + timedelta(days=(target - today.weekday()) % 7)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _safe_date(year: int, month: int, day: int) -> Optional[date]:
        try:
            return date(year, month, day)
        except ValueError:
            return None

    def _next_occurrence(self, month: int, day: int) -> Optional[date]:
        """Next month/day on or after today (Feb 29 waits for a leap year)."""
        today = self.today
        for offset in range(0, 5):
            candidate = self._safe_date(today.year + offset, month, day)
            if candidate is not None and candidate >= today:
                return candidate
        return None
