"""
Rule-based field recovery.

Deterministic extraction of event fields from raw text, used whenever the
model-assisted path is unavailable or fails. Every field is recovered by an
ordered chain of heuristics; the result is tagged with the link that
produced it (see ``Recovered``) so callers can tell precise recovery from a
policy default.
"""

import logging
import re
from datetime import date
from typing import List, Optional, Tuple

from citypulse.ingestion.normalization.category_classifier import CategoryClassifier
from citypulse.ingestion.normalization.currency import CurrencyParser
from citypulse.ingestion.normalization.date_parser import WEEKDAYS, DateParser
from citypulse.schemas.event import (
    CandidateRecord,
    ExtractionMethod,
    RawBlob,
    Recovered,
    make_record_id,
)
from citypulse.schemas.lexicon import (
    find_phrase,
    get_default_address,
    get_known_venues,
    get_ticket_action_phrases,
)

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 5
NAME_MAX_LENGTH = 200
DEFAULT_DESCRIPTION_LENGTH = 200

# =============================================================================
# PATTERNS
# =============================================================================

_CLOCK = r"\d{1,2}(?::\d{2})?"
_MERIDIEM = r"[ap]\.?m\.?(?![a-z])"
_NOT_AFTER = r"(?<![\w:/-])"

# "8:00 PM", "7pm", "8:00 p.m. - 11:00 p.m.", "7-9 PM"
TIME_PATTERN = re.compile(
    rf"{_NOT_AFTER}{_CLOCK}(?:\s*{_MERIDIEM})?\s*[-–]\s*{_CLOCK}\s*{_MERIDIEM}"
    rf"|{_NOT_AFTER}{_CLOCK}\s*{_MERIDIEM}",
    re.IGNORECASE,
)

STREET_SUFFIXES = (
    "Street|St|Avenue|Ave|Boulevard|Blvd|Road|Rd|Drive|Dr|Place|Pl|Court|Ct|"
    "Lane|Ln|Parkway|Pkwy|Square|Sq|Way|Plaza|Terrace|Broadway"
)
_WORD = r"[A-Za-z][A-Za-z.'-]*"

# number + up to five words + suffix, optional ", City" and ", ST 12345"
ADDRESS_PATTERN = re.compile(
    rf"\b\d+[A-Za-z]?\s+(?:[A-Za-z0-9.'-]+\s+){{0,5}}?(?:{STREET_SUFFIXES})\b\.?"
    rf"(?:,\s*{_WORD}(?:\s+{_WORD}){{0,3}})?"
    r"(?:,\s*[A-Z]{2}\b(?:\s+\d{5})?)?",
    re.IGNORECASE,
)

URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)

# Segment separators inside a scraped title line
NAME_SEPARATORS = re.compile(r"\s+[-|•–]\s+|\n")

_WEEKDAY_ALT = "|".join(WEEKDAYS)


def _build_name_heuristics() -> List[Tuple[str, re.Pattern]]:
    ticket_alt = "|".join(re.escape(p) for p in get_ticket_action_phrases())
    return [
        ("before_ticket_marker", re.compile(rf"^(.+?)(?:{ticket_alt})", re.I | re.S)),
        ("before_weekday", re.compile(rf"^(.+?)\b(?:{_WEEKDAY_ALT})\b", re.I | re.S)),
        ("before_time", re.compile(rf"^(.+?)(?:{TIME_PATTERN.pattern})", re.I | re.S)),
        ("before_price", re.compile(r"^(.+?)(?:[$€£]\s?\d|\bfree\b)", re.I | re.S)),
        ("before_bullet", re.compile(r"^([^•]+)•", re.S)),
    ]


class RuleBasedExtractor:
    """
    Deterministic extractor built from ordered heuristic chains.

    Args:
        date_parser: Date chain; inject one with a fixed clock for tests
        classifier: Keyword category classifier
        description_max_length: Description truncation bound
    """

    def __init__(
        self,
        date_parser: Optional[DateParser] = None,
        classifier: Optional[CategoryClassifier] = None,
        description_max_length: int = DEFAULT_DESCRIPTION_LENGTH,
    ):
        self.date_parser = date_parser or DateParser()
        self.classifier = classifier or CategoryClassifier()
        self.description_max_length = description_max_length
        self._name_heuristics = _build_name_heuristics()

    # =========================================================================
    # RECORD
    # =========================================================================

    def extract(self, blob: RawBlob) -> Optional[CandidateRecord]:
        """
        Build a candidate record from a blob, or None when no name is found.
        """
        text = blob.text
        name = self.extract_name(text)
        if name is None:
            logger.info(f"No plausible event name in blob from '{blob.source}'")
            return None

        address = self.extract_address(text)
        start_time = self.extract_start_time(text)
        event_date = self.extract_date(text)

        warnings = []
        if address.is_default:
            warnings.append("address_defaulted")
        if start_time is None:
            warnings.append("start_time_missing")
        if event_date.is_default:
            warnings.append("date_defaulted")

        return CandidateRecord(
            name=name.value,
            address=address.value,
            start_time=start_time.value if start_time else None,
            date=event_date.value,
            price=self.extract_price(text).value,
            category=self.extract_category(text),
            description=self.extract_description(text),
            website=self.extract_website(text),
            provenance=ExtractionMethod.RULE_BASED,
            unique_id=make_record_id(blob.source, text),
            source=blob.source,
            warnings=tuple(warnings),
        )

    # =========================================================================
    # NAME
    # =========================================================================

    def extract_name(self, text: str) -> Optional[Recovered[str]]:
        """
        Recover the event name.

        Tries each pattern heuristic in order, then the first line of
        plausible length. None when nothing plausible is found.
        """
        if not text or not text.strip():
            return None

        for method, pattern in self._name_heuristics:
            match = pattern.search(text)
            if not match:
                continue
            candidate = self._clean_name(match.group(1))
            if self._is_plausible_name(candidate):
                return Recovered(candidate, method)

        for line in text.splitlines():
            candidate = self._clean_name(line)
            if self._is_plausible_name(candidate):
                return Recovered(candidate, "first_line")

        return None

    def _clean_name(self, raw: str) -> str:
        candidate = raw.strip()
        # Drop leading status badges ("Almost full", "Going fast")
        changed = True
        while changed:
            changed = False
            for phrase in get_ticket_action_phrases():
                if candidate.lower().startswith(phrase):
                    candidate = candidate[len(phrase):].lstrip(" \t\r\n:-|•")
                    changed = True
        candidate = NAME_SEPARATORS.split(candidate, maxsplit=1)[0]
        return candidate.strip(" \t-|•–,:;")

    def _is_plausible_name(self, candidate: str) -> bool:
        if not NAME_MIN_LENGTH <= len(candidate) <= NAME_MAX_LENGTH:
            return False
        if find_phrase(candidate, get_ticket_action_phrases()):
            return False
        if TIME_PATTERN.search(candidate):
            return False
        return True

    # =========================================================================
    # ADDRESS, TIME, DATE, PRICE
    # =========================================================================

    def extract_address(self, text: str) -> Recovered[str]:
        """Street address, then known venue, then the citywide placeholder."""
        match = ADDRESS_PATTERN.search(text or "")
        if match:
            return Recovered(match.group(0).strip(" ,"), "street_address")

        lowered = (text or "").lower()
        for venue in get_known_venues():
            if venue.lower() in lowered:
                return Recovered(venue, "known_venue")

        return Recovered.default(get_default_address())

    def extract_start_time(self, text: str) -> Optional[Recovered[str]]:
        match = TIME_PATTERN.search(text or "")
        if not match:
            return None
        return Recovered(" ".join(match.group(0).split()), "clock_pattern")

    def extract_date(self, text: str) -> Recovered[date]:
        return self.date_parser.recover(text)

    def extract_price(self, text: str) -> Recovered[str]:
        return CurrencyParser.recover_price(text)

    # =========================================================================
    # CATEGORY, DESCRIPTION, WEBSITE
    # =========================================================================

    def extract_category(self, text: str) -> str:
        return self.classifier.classify(text)

    def extract_description(self, text: str) -> str:
        """Whitespace-normalized blob, truncated with a '...' marker."""
        normalized = " ".join((text or "").split())
        if len(normalized) > self.description_max_length:
            return normalized[: self.description_max_length] + "..."
        return normalized

    def extract_website(self, text: str) -> Optional[str]:
        match = URL_PATTERN.search(text or "")
        if not match:
            return None
        return match.group(0).rstrip(".,;:)]")
