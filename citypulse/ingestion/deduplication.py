"""
Module for event deduplication strategies.

Provides multiple deduplication strategies using the Strategy pattern:
- RuleBasedDeduplicator: name+date, shared website, or name containment+date
- ExactMatchDeduplicator: case-insensitive name + date only
- FuzzyMatchDeduplicator: fuzzy name match for typos/variations via difflib
- CompositeDeduplicator: duplicate if any chained strategy says so

AcceptedEventIndex owns the accepted collection for one run and makes the
check-then-insert step atomic, so concurrent workers cannot both admit the
same event.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import Iterable, List, Optional

from citypulse.schemas.event import ValidatedRecord


class DeduplicationStrategy(str, Enum):
    """Available deduplication strategies."""

    RULES = "rules"
    EXACT = "exact"
    FUZZY = "fuzzy"
    COMPOSITE = "composite"


class EventDeduplicator(ABC):
    """Abstract base for deduplication strategies."""

    @abstractmethod
    def is_duplicate(self, candidate: ValidatedRecord, existing: ValidatedRecord) -> bool:
        """True when candidate describes the same event as existing."""
        pass

    def find_duplicate(
        self, candidate: ValidatedRecord, accepted: Iterable[ValidatedRecord]
    ) -> Optional[ValidatedRecord]:
        """First accepted record the candidate duplicates, or None."""
        for existing in accepted:
            if self.is_duplicate(candidate, existing):
                return existing
        return None

    def deduplicate(self, events: List[ValidatedRecord]) -> List[ValidatedRecord]:
        """
        Deduplicate events and return the unique set.

        Returns:
            List of unique events (first occurrence kept)
        """
        unique_events: List[ValidatedRecord] = []
        for event in events:
            if self.find_duplicate(event, unique_events) is None:
                unique_events.append(event)
        return unique_events


def _norm_name(record: ValidatedRecord) -> str:
    return record.name.strip().lower()


class RuleBasedDeduplicator(EventDeduplicator):
    """
    Default strategy. Two records are the same event when any holds:

    - exact case-insensitive name match AND same date
    - both websites non-empty and equal (case-insensitive)
    - one name contains the other (case-insensitive) AND same date
    """

    def is_duplicate(self, candidate: ValidatedRecord, existing: ValidatedRecord) -> bool:
        same_date = candidate.date is not None and candidate.date == existing.date
        a, b = _norm_name(candidate), _norm_name(existing)

        if same_date and a == b:
            return True

        site_a = (candidate.website or "").strip().lower()
        site_b = (existing.website or "").strip().lower()
        if site_a and site_b and site_a == site_b:
            return True

        return same_date and (a in b or b in a)


class ExactMatchDeduplicator(EventDeduplicator):
    """Match by case-insensitive name + date (exact)."""

    def is_duplicate(self, candidate: ValidatedRecord, existing: ValidatedRecord) -> bool:
        return candidate.date == existing.date and _norm_name(candidate) == _norm_name(existing)


class FuzzyMatchDeduplicator(EventDeduplicator):
    """
    Fuzzy name match for typos and slight variations in event names.

    Uses difflib.SequenceMatcher to detect near-duplicate events. Two events
    are considered duplicates when they share the same date and their names
    have a similarity ratio >= threshold.
    """

    def __init__(self, threshold: float = 0.85):
        """
        Initialize with similarity threshold.

        Args:
            threshold: Similarity threshold (0.0-1.0) for name matching
        """
        self.threshold = threshold

    def is_duplicate(self, candidate: ValidatedRecord, existing: ValidatedRecord) -> bool:
        if candidate.date != existing.date:
            return False
        ratio = SequenceMatcher(None, _norm_name(candidate), _norm_name(existing)).ratio()
        return ratio >= self.threshold


class CompositeDeduplicator(EventDeduplicator):
    """Duplicate when any of the chained strategies reports a duplicate."""

    def __init__(self, strategies: Optional[List[EventDeduplicator]] = None):
        self.strategies = strategies or [RuleBasedDeduplicator(), FuzzyMatchDeduplicator()]

    def is_duplicate(self, candidate: ValidatedRecord, existing: ValidatedRecord) -> bool:
        return any(s.is_duplicate(candidate, existing) for s in self.strategies)


def get_deduplicator(
    strategy: DeduplicationStrategy = DeduplicationStrategy.RULES,
    fuzzy_threshold: float = 0.85,
) -> EventDeduplicator:
    """
    Create a deduplicator instance for the given strategy.

    Args:
        strategy: DeduplicationStrategy enum value (or its string value)
        fuzzy_threshold: Similarity threshold for the fuzzy strategy

    Returns:
        Configured EventDeduplicator instance
    """
    strategy = DeduplicationStrategy(strategy)
    if strategy == DeduplicationStrategy.EXACT:
        return ExactMatchDeduplicator()
    elif strategy == DeduplicationStrategy.FUZZY:
        return FuzzyMatchDeduplicator(threshold=fuzzy_threshold)
    elif strategy == DeduplicationStrategy.COMPOSITE:
        return CompositeDeduplicator(
            [RuleBasedDeduplicator(), FuzzyMatchDeduplicator(threshold=fuzzy_threshold)]
        )
    return RuleBasedDeduplicator()


# =============================================================================
# ACCEPTED EVENT INDEX
# =============================================================================


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of offering one record to the accepted index."""

    admitted: bool
    reason: str  # "accepted", "duplicate" or "cap_reached"
    duplicate_of: Optional[str] = None


class AcceptedEventIndex:
    """
    Lock-guarded collection of records accepted so far in one run.

    ``try_admit`` checks for a duplicate and inserts under a single lock
    acquisition, and refuses new records once ``max_records`` is reached.
    """

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    CAP_REACHED = "cap_reached"

    def __init__(
        self,
        deduplicator: Optional[EventDeduplicator] = None,
        max_records: Optional[int] = None,
    ):
        self.deduplicator = deduplicator or RuleBasedDeduplicator()
        self.max_records = max_records
        self._records: List[ValidatedRecord] = []
        self._lock = threading.Lock()

    def try_admit(self, record: ValidatedRecord) -> AdmissionResult:
        with self._lock:
            if self.max_records is not None and len(self._records) >= self.max_records:
                return AdmissionResult(False, self.CAP_REACHED)

            existing = self.deduplicator.find_duplicate(record, self._records)
            if existing is not None:
                return AdmissionResult(False, self.DUPLICATE, duplicate_of=existing.unique_id)

            self._records.append(record)
            return AdmissionResult(True, self.ACCEPTED)

    def is_duplicate(self, record: ValidatedRecord) -> bool:
        """Read-only duplicate check against the current snapshot."""
        with self._lock:
            return self.deduplicator.find_duplicate(record, self._records) is not None

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self.max_records is not None and len(self._records) >= self.max_records

    @property
    def records(self) -> List[ValidatedRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
