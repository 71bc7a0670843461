"""
Unit tests for the event record models.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from citypulse.schemas.event import (
    CandidateRecord,
    Coordinates,
    EventCategory,
    GeocodedRecord,
    GeocodeProvenance,
    RawBlob,
    Recovered,
    make_record_id,
)


class TestEventCategory:
    """Tests for the EventCategory enumeration."""

    def test_values_include_catch_all(self):
        assert "Other" in EventCategory.values()
        assert "Food & Drink" in EventCategory.values()
        assert len(EventCategory.values()) == 31

    def test_normalize_is_case_insensitive(self):
        assert EventCategory.normalize("  food & drink ") is EventCategory.FOOD_AND_DRINK
        assert EventCategory.normalize("MUSIC") is EventCategory.MUSIC

    def test_normalize_unknown_label(self):
        assert EventCategory.normalize("Rave") is None
        assert EventCategory.normalize("") is None
        assert EventCategory.normalize(None) is None


class TestRecovered:
    def test_default_marker(self):
        value = Recovered.default("New York, NY")
        assert value.is_default
        assert value.method == "default"

    def test_precise_value(self):
        value = Recovered("131 W 3rd St", "street_address")
        assert not value.is_default


class TestCandidateRecord:
    """Tests for the CandidateRecord construction invariant."""

    def test_name_is_stripped(self, create_record):
        record = create_record(name="  Jazz Night  ")
        assert record.name == "Jazz Night"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, create_record, name):
        with pytest.raises(ValidationError):
            create_record(name=name)

    def test_record_is_frozen(self, create_record):
        record = create_record()
        with pytest.raises(ValidationError):
            record.name = "Something else"

    def test_defaults(self):
        record = CandidateRecord(name="Open Mic Night")
        assert record.price == "Unknown"
        assert record.category == "Other"
        assert record.unique_id
        assert record.warnings == ()

    def test_date_field_holds_a_date(self):
        record = CandidateRecord(name="Jazz Night", date=date(2025, 11, 8))
        geocoded = GeocodedRecord.from_validated(
            record,
            Coordinates(latitude=40.7282, longitude=-73.9857),
            GeocodeProvenance.DEFAULT,
        )
        assert record.date == date(2025, 11, 8)
        assert geocoded.date == date(2025, 11, 8)

    def test_date_from_iso_string(self):
        assert CandidateRecord(name="Jazz Night", date="2025-11-08").date == date(2025, 11, 8)


class TestRecordIds:
    def test_same_blob_same_id(self):
        assert make_record_id("crawler", "Jazz Night") == make_record_id("crawler", "Jazz Night")

    def test_source_changes_id(self):
        assert make_record_id("a", "Jazz Night") != make_record_id("b", "Jazz Night")


class TestCoordinates:
    @pytest.mark.parametrize("lat,lng", [(91, 0), (-91, 0), (0, 181), (0, -181)])
    def test_out_of_range(self, lat, lng):
        with pytest.raises(ValidationError):
            Coordinates(latitude=lat, longitude=lng)


class TestGeocodedRecord:
    def test_to_api_dict(self, create_record):
        record = create_record(date=date(2025, 11, 8))
        geocoded = GeocodedRecord.from_validated(
            record,
            Coordinates(latitude=40.7309, longitude=-74.0006),
            GeocodeProvenance.FALLBACK_NEIGHBORHOOD,
        )
        payload = geocoded.to_api_dict()

        assert payload["id"] == record.unique_id
        assert payload["startTime"] == "8:00 PM"
        assert payload["date"] == "2025-11-08"
        assert payload["latitude"] == 40.7309
        assert payload["longitude"] == -74.0006
        assert set(payload) == {
            "id", "name", "description", "address", "startTime",
            "date", "price", "category", "latitude", "longitude",
        }


def test_raw_blob_defaults():
    blob = RawBlob(text="Jazz Night")
    assert blob.source == "unknown"
    assert blob.retrieved_at.tzinfo is not None
