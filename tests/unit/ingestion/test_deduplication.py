"""
Unit tests for deduplication strategies and the accepted-event index.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from citypulse.ingestion.deduplication import (
    AcceptedEventIndex,
    CompositeDeduplicator,
    DeduplicationStrategy,
    ExactMatchDeduplicator,
    FuzzyMatchDeduplicator,
    RuleBasedDeduplicator,
    get_deduplicator,
)

SHOW_DATE = date(2025, 11, 20)
OTHER_DATE = date(2025, 11, 21)


class TestRuleBasedDeduplicator:
    """Tests for the default rule set."""

    def setup_method(self):
        self.dedup = RuleBasedDeduplicator()

    def test_same_name_same_date(self, create_record):
        a = create_record(name="Jazz Night", date=SHOW_DATE)
        b = create_record(name="  JAZZ NIGHT ", date=SHOW_DATE)
        assert self.dedup.is_duplicate(b, a)

    def test_same_name_other_date(self, create_record):
        a = create_record(name="Jazz Night", date=SHOW_DATE)
        b = create_record(name="Jazz Night", date=OTHER_DATE)
        assert not self.dedup.is_duplicate(b, a)

    def test_name_containment_same_date(self, create_record):
        hamilton = create_record(name="Hamilton", date=SHOW_DATE, price="$199")
        broadway = create_record(name="Hamilton on Broadway", date=SHOW_DATE, price="$249")
        assert self.dedup.is_duplicate(broadway, hamilton)
        assert self.dedup.is_duplicate(hamilton, broadway)

    def test_shared_website_any_date(self, create_record):
        a = create_record(name="Jazz Night", date=SHOW_DATE, website="https://bluenote.net/e/1")
        b = create_record(name="Late Set", date=OTHER_DATE, website="HTTPS://BLUENOTE.NET/E/1")
        assert self.dedup.is_duplicate(b, a)

    def test_blank_websites_do_not_match(self, create_record):
        a = create_record(name="Jazz Night", date=SHOW_DATE, website=None)
        b = create_record(name="Comedy Cellar", date=OTHER_DATE, website=None)
        assert not self.dedup.is_duplicate(b, a)


class TestOtherStrategies:
    def test_exact_ignores_containment(self, create_record):
        dedup = ExactMatchDeduplicator()
        a = create_record(name="Hamilton", date=SHOW_DATE)
        b = create_record(name="Hamilton on Broadway", date=SHOW_DATE)
        assert not dedup.is_duplicate(b, a)
        assert dedup.is_duplicate(create_record(name="hamilton", date=SHOW_DATE), a)

    def test_fuzzy_catches_typos(self, create_record):
        dedup = FuzzyMatchDeduplicator(threshold=0.85)
        a = create_record(name="Jazz Night at Blue Note", date=SHOW_DATE)
        b = create_record(name="Jazz Nite at Blue Note", date=SHOW_DATE)
        assert dedup.is_duplicate(b, a)

    def test_fuzzy_requires_same_date(self, create_record):
        dedup = FuzzyMatchDeduplicator()
        a = create_record(name="Jazz Night at Blue Note", date=SHOW_DATE)
        b = create_record(name="Jazz Nite at Blue Note", date=OTHER_DATE)
        assert not dedup.is_duplicate(b, a)

    def test_fuzzy_different_names(self, create_record):
        dedup = FuzzyMatchDeduplicator()
        a = create_record(name="Jazz Night", date=SHOW_DATE)
        b = create_record(name="Comedy Night", date=SHOW_DATE)
        assert not dedup.is_duplicate(b, a)

    def test_composite_any(self, create_record):
        dedup = CompositeDeduplicator()
        a = create_record(name="Hamilton", date=SHOW_DATE)
        assert dedup.is_duplicate(create_record(name="Hamilton on Broadway", date=SHOW_DATE), a)
        assert dedup.is_duplicate(create_record(name="Hamiltan", date=SHOW_DATE), a)

    def test_deduplicate_keeps_first(self, create_record):
        first = create_record(name="Hamilton", date=SHOW_DATE)
        second = create_record(name="Hamilton on Broadway", date=SHOW_DATE)
        third = create_record(name="Jazz Night", date=SHOW_DATE)
        assert RuleBasedDeduplicator().deduplicate([first, second, third]) == [first, third]


class TestGetDeduplicator:
    @pytest.mark.parametrize(
        "strategy,cls",
        [
            ("rules", RuleBasedDeduplicator),
            (DeduplicationStrategy.EXACT, ExactMatchDeduplicator),
            ("fuzzy", FuzzyMatchDeduplicator),
            ("composite", CompositeDeduplicator),
        ],
    )
    def test_strategies(self, strategy, cls):
        assert isinstance(get_deduplicator(strategy), cls)

    def test_fuzzy_threshold(self):
        assert get_deduplicator("fuzzy", fuzzy_threshold=0.9).threshold == 0.9

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            get_deduplicator("vibes")


class TestAcceptedEventIndex:
    """Tests for the lock-guarded accepted collection."""

    def test_admit_then_duplicate(self, create_record):
        index = AcceptedEventIndex()
        hamilton = create_record(name="Hamilton", date=SHOW_DATE)

        assert index.try_admit(hamilton).admitted
        result = index.try_admit(create_record(name="Hamilton on Broadway", date=SHOW_DATE))

        assert not result.admitted
        assert result.reason == AcceptedEventIndex.DUPLICATE
        assert result.duplicate_of == hamilton.unique_id
        assert len(index) == 1

    def test_cap(self, create_record):
        index = AcceptedEventIndex(max_records=1)
        index.try_admit(create_record(name="Jazz Night"))

        result = index.try_admit(create_record(name="Comedy Cellar"))
        assert result.reason == AcceptedEventIndex.CAP_REACHED
        assert index.is_full

    def test_is_duplicate_does_not_insert(self, create_record):
        index = AcceptedEventIndex()
        index.try_admit(create_record(name="Jazz Night"))
        assert index.is_duplicate(create_record(name="jazz night"))
        assert len(index) == 1

    def test_records_is_a_copy(self, create_record):
        index = AcceptedEventIndex()
        index.try_admit(create_record())
        index.records.clear()
        assert len(index) == 1

    def test_concurrent_admission_is_atomic(self, create_record):
        index = AcceptedEventIndex()
        copies = [create_record(name="Jazz Night") for _ in range(50)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(index.try_admit, copies))

        assert sum(r.admitted for r in results) == 1
        assert len(index) == 1
