# citypulse/schemas/event.py
"""
Event records for the CityPulse normalization pipeline.

A raw text blob moves through four representations, each a new immutable
value owned by the stage that produced it:

    RawBlob -> CandidateRecord -> ValidatedRecord -> GeocodedRecord

Only GeocodedRecord leaves the pipeline; it is the unit the serving layer
consumes.
"""

import uuid
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

# Namespace for deterministic record ids (same blob -> same id on every run)
RECORD_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://citypulse.local/records")


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================


class EventCategory(str, Enum):
    """
    Closed category enumeration shared by the extractor and the validator.
    """

    MUSIC = "Music"
    ART = "Art"
    FOOD_AND_DRINK = "Food & Drink"
    COMEDY = "Comedy"
    FREE = "Free"
    FREE_FOOD = "Free Food"
    INFLUENCERS = "Influencers"
    HERITAGE = "Heritage"
    SPORTS = "Sports"
    EDUCATION = "Education"
    HEALTH_AND_WELLNESS = "Health & Wellness"
    HEALTH = "Health"
    TECHNOLOGY = "Technology"
    BUSINESS = "Business"
    THEATER = "Theater"
    BROADWAY = "Broadway"
    ENTERTAINMENT = "Entertainment"
    PERFORMANCE = "Performance"
    COMMUNITY = "Community"
    CULTURAL = "Cultural"
    NETWORKING = "Networking"
    WORKSHOP = "Workshop"
    TOUR = "Tour"
    OUTDOOR = "Outdoor"
    FAMILY = "Family"
    NIGHTLIFE = "Nightlife"
    SHOPPING = "Shopping"
    FASHION = "Fashion"
    PHOTOGRAPHY = "Photography"
    GAMING = "Gaming"
    OTHER = "Other"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        """All category labels, in declaration order."""
        return tuple(member.value for member in cls)

    @classmethod
    def normalize(cls, label: Optional[str]) -> Optional["EventCategory"]:
        """
        Map a label to its category, ignoring case and surrounding whitespace.

        Example:
            >>> EventCategory.normalize("food & drink")
            <EventCategory.FOOD_AND_DRINK: 'Food & Drink'>
            >>> EventCategory.normalize("Rave") is None
            True
        """
        if not label:
            return None
        wanted = label.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


class ExtractionMethod(str, Enum):
    """Which extraction path produced a candidate record."""

    MODEL_ASSISTED = "model_assisted"
    RULE_BASED = "rule_based"


class GeocodeProvenance(str, Enum):
    """Which geocoding tier produced a coordinate pair."""

    PRECISE = "precise"
    FALLBACK_NEIGHBORHOOD = "fallback_neighborhood"
    DEFAULT = "default"


# ============================================================================
# FALLBACK CHAIN RESULT
# ============================================================================


@dataclass(frozen=True)
class Recovered(Generic[T]):
    """
    A value recovered by an ordered fallback chain, tagged with the method
    that produced it.

    ``method`` names the link of the chain that succeeded (e.g. "iso",
    "street_address", "fallback_neighborhood"); ``DEFAULT_METHOD`` marks a
    value that no link recovered and was filled in by policy.
    """

    value: T
    method: str

    DEFAULT_METHOD = "default"

    @property
    def is_default(self) -> bool:
        return self.method == self.DEFAULT_METHOD

    @classmethod
    def default(cls, value: T) -> "Recovered[T]":
        return cls(value=value, method=cls.DEFAULT_METHOD)


# ============================================================================
# RECORDS
# ============================================================================


class RawBlob(BaseModel):
    """One unit of raw, unstructured candidate-event text from a crawler."""

    model_config = ConfigDict(frozen=True)

    text: str
    source: str = "unknown"
    retrieved_at: datetime = Field(default_factory=_utc_now)


class Coordinates(BaseModel):
    """Latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


def make_record_id(source: str, text: str) -> str:
    """
    Deterministic record id for a blob.

    Re-running the pipeline over the same blobs yields the same ids.
    """
    return uuid.uuid5(RECORD_ID_NAMESPACE, f"{source}\x1f{text}").hex


class CandidateRecord(BaseModel):
    """
    Structured-but-unvalidated output of the field extractor.

    ``name`` is never empty: a blob with no recoverable name yields no
    record at all.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    address: Optional[str] = None
    start_time: Optional[str] = Field(
        default=None, description="Free-form display text, e.g. '8:00 PM'"
    )
    date: Optional[Date] = None
    price: str = "Unknown"
    category: str = EventCategory.OTHER.value
    description: str = ""
    website: Optional[str] = None
    provenance: ExtractionMethod = ExtractionMethod.RULE_BASED
    unique_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source: str = "unknown"
    warnings: Tuple[str, ...] = ()

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


# Validation is a filter, not a transform: a validated record is a
# candidate record that passed.
ValidatedRecord = CandidateRecord


class GeocodedRecord(CandidateRecord):
    """A validated record plus its coordinates; the unit served downstream."""

    coordinates: Coordinates
    geocode_provenance: GeocodeProvenance

    @classmethod
    def from_validated(
        cls,
        record: ValidatedRecord,
        coordinates: Coordinates,
        provenance: GeocodeProvenance,
    ) -> "GeocodedRecord":
        return cls(
            **record.model_dump(),
            coordinates=coordinates,
            geocode_provenance=provenance,
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """Serialize to the serving-layer contract (camelCase keys)."""
        return {
            "id": self.unique_id,
            "name": self.name,
            "description": self.description,
            "address": self.address,
            "startTime": self.start_time,
            "date": self.date.isoformat() if self.date else None,
            "price": self.price,
            "category": self.category,
            "latitude": self.coordinates.latitude,
            "longitude": self.coordinates.longitude,
        }
