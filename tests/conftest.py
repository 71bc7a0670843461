"""
Shared pytest fixtures for the CityPulse test suite.

Provides a fixed clock, blob/record factories and stub collaborators so no
test touches the network.
"""

import logging
from datetime import date, timedelta
from typing import Optional

import pytest

from citypulse.ingestion.normalization.field_extractor import FieldExtractor
from citypulse.ingestion.normalization.geocoder import Geocoder
from citypulse.ingestion.normalization.llm_client import BaseLLMClient
from citypulse.ingestion.validation import RecordValidator
from citypulse.schemas.event import CandidateRecord, ExtractionMethod, RawBlob

# Saturday
FIXED_TODAY = date(2025, 11, 1)

JAZZ_BLOB = (
    "Jazz Night at Blue Note - 131 W 3rd St, New York, NY 10012 - 8:00 PM - $25 - "
    "Live jazz music featuring local artists"
)
HAMILTON_BLOB = (
    "Hamilton - Richard Rodgers Theatre, 226 W 46th St, New York, NY 10036 - "
    "2025-11-20 - 7:00 PM - $199"
)
HAMILTON_BROADWAY_BLOB = (
    "Hamilton on Broadway - Richard Rodgers Theatre, 226 W 46th St, New York, NY 10036 - "
    "2025-11-20 - 8:00 PM - $249"
)
POTLUCK_BLOB = "Neighborhood Potluck Dinner - 456 Unknown Rd, Nowhereville - 6:00 PM - Free"
GENERIC_BLOB = "100 Best Things to Do in NYC This Weekend"


class StubLLMClient(BaseLLMClient):
    """Completion client returning a canned reply (or raising)."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def stub_llm():
    """Return the StubLLMClient class for building canned clients."""
    return StubLLMClient


@pytest.fixture
def sample_blobs():
    """Named sample blob texts shared across tests."""
    return {
        "jazz": JAZZ_BLOB,
        "hamilton": HAMILTON_BLOB,
        "hamilton_broadway": HAMILTON_BROADWAY_BLOB,
        "potluck": POTLUCK_BLOB,
        "generic": GENERIC_BLOB,
    }


@pytest.fixture
def fixed_today():
    """Clock pinned to FIXED_TODAY."""
    return lambda: FIXED_TODAY


@pytest.fixture
def make_blob():
    """
    Return a function that creates RawBlob objects.

    Example:
        blob = make_blob("Jazz Night ...", source="crawler-a")
    """

    def _make_blob(text: str = JAZZ_BLOB, source: str = "test") -> RawBlob:
        return RawBlob(text=text, source=source)

    return _make_blob


@pytest.fixture
def create_record():
    """
    Return a function that creates valid CandidateRecord objects.

    All defaults pass validation against FIXED_TODAY and can be
    overridden via keyword arguments.
    """

    def _create_record(name: str = "Jazz Night at Blue Note", **kwargs) -> CandidateRecord:
        defaults = {
            "name": name,
            "address": "131 W 3rd St, New York, NY 10012",
            "start_time": "8:00 PM",
            "date": FIXED_TODAY + timedelta(days=7),
            "price": "$25",
            "category": "Music",
            "description": "Live jazz music featuring local artists",
            "website": None,
            "provenance": ExtractionMethod.RULE_BASED,
            "source": "test",
        }
        defaults.update(kwargs)
        return CandidateRecord(**defaults)

    return _create_record


@pytest.fixture
def rule_extractor_only(fixed_today):
    """FieldExtractor with no completion client, pinned to FIXED_TODAY."""
    return FieldExtractor(llm_client=None, today=fixed_today)


@pytest.fixture
def validator(fixed_today):
    return RecordValidator(today=fixed_today)


@pytest.fixture
def offline_geocoder():
    """Geocoder with the precise tier disabled."""
    return Geocoder(geocoding_enabled=False)


@pytest.fixture(autouse=True)
def restore_citypulse_logger():
    """Undo any setup_logging() call so caplog keeps seeing records."""
    logger = logging.getLogger("citypulse")
    saved = (list(logger.handlers), logger.propagate, logger.level)
    yield
    logger.handlers[:] = saved[0]
    logger.propagate = saved[1]
    logger.setLevel(saved[2])
