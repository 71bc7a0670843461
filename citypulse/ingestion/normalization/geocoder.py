"""
Geocoder for event addresses.

Resolves an address to coordinates through an ordered fallback chain:

1. Precise: Nominatim via geopy (rate-limited, cached), only when enabled
2. Fallback table: well-known neighborhoods, landmarks and venues
3. Citywide default point

The chain never raises; every result is tagged with the tier that produced
it so downstream consumers can tell a rooftop hit from a placeholder pin.
"""

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim
from pydantic import ValidationError

from citypulse.configs.settings import Settings, get_settings
from citypulse.schemas.event import Coordinates, GeocodeProvenance, Recovered
from citypulse.schemas.lexicon import (
    find_phrase,
    get_default_coordinates,
    get_fallback_coordinates,
    get_locale_indicators,
)

logger = logging.getLogger(__name__)

_WORDS = re.compile(r"[a-z0-9]+")


class Geocoder:
    """
    Resolve addresses to coordinates, degrading gracefully.

    Args:
        geocoding_enabled: Call the external service at all
        user_agent: Nominatim user agent (required by its usage policy)
        timeout: Per-call timeout in seconds
        min_delay_seconds: Minimum spacing between external calls
        city_context: Suffix added to addresses without a city token
        country_code: Restricts Nominatim results to one country
        geocoder: Pre-built geopy geocoder (tests inject a stub)
        fallback_table: Override for the lexicon fallback table
    """

    def __init__(
        self,
        geocoding_enabled: bool = False,
        user_agent: str = "citypulse-event-pipeline",
        timeout: float = 10.0,
        min_delay_seconds: float = 1.0,
        city_context: str = "New York, NY",
        country_code: Optional[str] = "us",
        geocoder=None,
        fallback_table: Optional[Dict[str, Tuple[float, float]]] = None,
    ) -> None:
        self.geocoding_enabled = geocoding_enabled
        self.user_agent = user_agent
        self.timeout = timeout
        self.min_delay_seconds = min_delay_seconds
        self.city_context = city_context
        self.country_code = country_code
        self._geocoder = geocoder
        self._rate_limiter = None
        # Per-instance so the cache dies with the geocoder
        self._geocode_cached = lru_cache(maxsize=512)(self._query_service)
        # City words say nothing about which place in the city is meant
        self._locale_words = frozenset(_WORDS.findall(city_context.lower())) | {"nyc", "usa"}

        table = fallback_table if fallback_table is not None else get_fallback_coordinates()
        # Longest key first so "brooklyn bridge park" wins over "brooklyn"
        self._fallback_keys = sorted(table, key=len, reverse=True)
        self._fallback_table = table

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def geocode(self, address: Optional[str]) -> Recovered[Coordinates]:
        """
        Resolve an address through the fallback chain. Never raises.

        Example:
            >>> Geocoder().geocode("Union Square, New York, NY 10003").method
            'fallback_neighborhood'
        """
        address = (address or "").strip()

        if address and self.geocoding_enabled:
            coords = self.geocode_precise(address)
            if coords is not None:
                return Recovered(coords, GeocodeProvenance.PRECISE.value)

        if address:
            coords = self.lookup_fallback(address)
            if coords is not None:
                return Recovered(coords, GeocodeProvenance.FALLBACK_NEIGHBORHOOD.value)

        logger.debug(f"Using citywide default coordinates for address '{address}'")
        lat, lng = get_default_coordinates()
        return Recovered.default(Coordinates(latitude=lat, longitude=lng))

    def geocode_many(self, addresses: Iterable[Optional[str]]) -> List[Recovered[Coordinates]]:
        """Geocode a batch; external calls are spaced by the rate limiter."""
        return [self.geocode(address) for address in addresses]

    # ------------------------------------------------------------------
    # Precise tier (Nominatim, rate-limited, cached)
    # ------------------------------------------------------------------

    def geocode_precise(self, address: str) -> Optional[Coordinates]:
        """Query Nominatim; None on no result or any service failure."""
        query = self.augment_address(address)
        if not query:
            return None
        return self._geocode_cached(query)

    def _query_service(self, query: str) -> Optional[Coordinates]:
        """One Nominatim lookup; wrapped in an LRU cache per instance."""
        kwargs = {"exactly_one": True}
        if self.country_code:
            kwargs["country_codes"] = self.country_code

        try:
            location = self._get_rate_limiter()(query, **kwargs)
        except GeopyError as e:
            logger.warning(f"Geocoding service error for query '{query}': {e}")
            return None
        except Exception:
            logger.warning(f"Geocoding failed for query '{query}'", exc_info=True)
            return None

        if location is None:
            logger.debug(f"Nominatim returned no result for query: {query}")
            return None

        return self._validate_coordinates(location.latitude, location.longitude)

    def augment_address(self, address: str) -> str:
        """Append the city context when the address names no locale."""
        address = address.strip()
        if not address:
            return ""
        if find_phrase(address, get_locale_indicators()):
            return address
        return f"{address}, {self.city_context}"

    # ------------------------------------------------------------------
    # Fallback tier
    # ------------------------------------------------------------------

    def lookup_fallback(self, address: str) -> Optional[Coordinates]:
        """
        Match an address against the fallback table.

        Exact containment first (longest key first), then relaxed word
        overlap: more than half of a key's words appear in the address.
        City words ("new", "york", "ny") are left out of the overlap count.
        """
        lowered = address.lower()

        for key in self._fallback_keys:
            if key in lowered:
                return self._table_coordinates(key)

        address_words = set(_WORDS.findall(lowered))
        for key in self._fallback_keys:
            key_words = [w for w in _WORDS.findall(key) if w not in self._locale_words]
            if not key_words:
                continue
            hits = sum(1 for word in key_words if word in address_words)
            if hits * 2 > len(key_words):
                logger.debug(f"Word-overlap fallback match '{key}' for address '{address}'")
                return self._table_coordinates(key)

        return None

    def _table_coordinates(self, key: str) -> Coordinates:
        lat, lng = self._fallback_table[key]
        return Coordinates(latitude=lat, longitude=lng)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_geocoder(self):
        """Lazy-initialize Nominatim geocoder."""
        if self._geocoder is None:
            self._geocoder = Nominatim(user_agent=self.user_agent, timeout=self.timeout)
        return self._geocoder

    def _get_rate_limiter(self):
        """Lazy-initialize rate limiter; no retries, errors reach the caller."""
        if self._rate_limiter is None:
            self._rate_limiter = RateLimiter(
                self._get_geocoder().geocode,
                min_delay_seconds=self.min_delay_seconds,
                max_retries=0,
                swallow_exceptions=False,
            )
        return self._rate_limiter

    @staticmethod
    def _validate_coordinates(lat: float, lng: float) -> Optional[Coordinates]:
        """Round to 6 decimal places (~0.11m); None when out of range."""
        try:
            return Coordinates(latitude=round(float(lat), 6), longitude=round(float(lng), 6))
        except (ValidationError, ValueError, TypeError):
            logger.debug(f"Discarding invalid coordinates lat={lat} lng={lng}")
            return None


def create_geocoder_from_config(config: Dict, settings: Optional[Settings] = None) -> Geocoder:
    """
    Factory function to create Geocoder from config.

    Example config:
        geocoding:
          enabled: false
          timeout_seconds: 10
          min_delay_seconds: 1.0
    """
    settings = settings or get_settings()
    return Geocoder(
        geocoding_enabled=bool(config.get("enabled", settings.GEOCODING_ENABLED)),
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout=float(config.get("timeout_seconds", settings.GEOCODING_TIMEOUT_SECONDS)),
        min_delay_seconds=float(
            config.get("min_delay_seconds", settings.GEOCODING_MIN_DELAY_SECONDS)
        ),
        city_context=settings.city_context,
        country_code=settings.COUNTRY_CODE,
    )
