"""
Unit tests for RecordValidator.

Rules run in order and the first error rejects; soft signals only warn.
"""

import logging
from datetime import timedelta

import pytest

from citypulse.ingestion.validation import RecordValidator, create_validator_from_config


def codes(issues):
    return [issue.code for issue in issues]


class TestAcceptance:
    def test_valid_record_has_no_issues(self, validator, create_record):
        result = validator.check(create_record())
        assert result.ok
        assert result.issues == []
        assert result.rejection_code is None

    def test_validate_shortcut(self, validator, create_record):
        assert validator.validate(create_record()) is True
        assert validator.validate(create_record(address=None)) is False


class TestRequiredFields:
    @pytest.mark.parametrize(
        "field,value",
        [("address", None), ("address", "   "), ("date", None), ("start_time", None), ("start_time", "")],
    )
    def test_missing_field(self, validator, create_record, field, value):
        result = validator.check(create_record(**{field: value}))
        assert not result.ok
        assert result.rejection_code == "missing_field"
        assert result.errors()[0].field == field


class TestNameRules:
    """Tests for the name length, placeholder and generic-content rules."""

    @pytest.mark.parametrize("length,ok", [(4, False), (5, True), (200, True), (201, False)])
    def test_name_length_boundaries(self, validator, create_record, length, ok):
        result = validator.check(create_record(name="J" * length))
        assert result.ok is ok
        if not ok:
            assert result.rejection_code == "name_length"

    @pytest.mark.parametrize("name", ["TBD Jazz Night", "Coming Soon: Summer Series", "Untitled Event"])
    def test_placeholder_phrase(self, validator, create_record, name):
        assert validator.check(create_record(name=name)).rejection_code == "placeholder_name"

    def test_exact_placeholder(self, validator, create_record):
        assert validator.check(create_record(name="Event")).rejection_code == "placeholder_name"

    def test_exact_placeholder_only_when_whole_name(self, validator, create_record):
        assert validator.check(create_record(name="Event Horizon Jazz Night")).ok

    def test_generic_content(self, validator, create_record):
        result = validator.check(create_record(name="Best of NYC Walking Tour"))
        assert result.rejection_code == "generic_content"

    def test_first_error_wins(self, validator, create_record):
        result = validator.check(create_record(name="TBD", category="Rave"))
        assert codes(result.issues) == ["name_length"]


class TestAddressRules:
    def test_too_long(self, validator, create_record):
        result = validator.check(create_record(address="1 Main St, New York " + "x" * 2000))
        assert result.rejection_code == "address_length"

    def test_custom_bound(self, create_record, fixed_today):
        validator = RecordValidator(address_max_length=20, today=fixed_today)
        assert validator.check(create_record()).rejection_code == "address_length"

    def test_no_locale_only_warns(self, validator, create_record):
        result = validator.check(create_record(address="456 Unknown Rd, Nowhereville"))
        assert result.ok
        assert codes(result.warnings()) == ["no_locale_indicator"]


class TestOtherRules:
    @pytest.mark.parametrize("website", ["www.bluenotejazz.com", "ftp://example.com", "https://bad url.com"])
    def test_invalid_url(self, validator, create_record, website):
        assert validator.check(create_record(website=website)).rejection_code == "invalid_url"

    def test_valid_url(self, validator, create_record):
        assert validator.check(create_record(website="https://www.bluenotejazz.com/nyc")).ok

    def test_invalid_category(self, validator, create_record):
        assert validator.check(create_record(category="Rave")).rejection_code == "invalid_category"

    def test_placeholder_description(self, validator, create_record):
        result = validator.check(create_record(description="No description available"))
        assert result.rejection_code == "placeholder_description"

    def test_short_placeholder_description_allowed(self, validator, create_record):
        assert validator.check(create_record(description="TBD")).ok


class TestSoftChecks:
    """Date plausibility and placeholder times never reject."""

    def test_date_in_past(self, validator, create_record, fixed_today):
        result = validator.check(create_record(date=fixed_today() - timedelta(days=1)))
        assert result.ok
        assert codes(result.warnings()) == ["date_in_past"]

    def test_date_too_far(self, validator, create_record, fixed_today):
        result = validator.check(create_record(date=fixed_today() + timedelta(days=366)))
        assert result.ok
        assert codes(result.warnings()) == ["date_too_far"]

    def test_date_today_and_limit(self, validator, create_record, fixed_today):
        assert validator.check(create_record(date=fixed_today())).issues == []
        assert validator.check(create_record(date=fixed_today() + timedelta(days=365))).issues == []

    @pytest.mark.parametrize("start_time", ["TBA", "tbd", "Unknown"])
    def test_placeholder_start_time(self, validator, create_record, start_time):
        result = validator.check(create_record(start_time=start_time))
        assert result.ok
        assert codes(result.warnings()) == ["placeholder_start_time"]


def test_rejection_is_logged(validator, create_record, caplog):
    with caplog.at_level(logging.INFO, logger="citypulse.ingestion.validation"):
        validator.check(create_record(category="Rave"))
    record = caplog.records[-1]
    assert record.rule == "invalid_category"
    assert "Rave" in record.getMessage()


def test_create_validator_from_config(fixed_today):
    validator = create_validator_from_config({"name_min_length": 3, "max_days_ahead": 30}, today=fixed_today)
    assert validator.name_min_length == 3
    assert validator.name_max_length == 200
    assert validator.max_days_ahead == 30
