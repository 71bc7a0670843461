"""
Builds and provides access to the heuristic lexicon.

The lexicon holds every phrase list and lookup table the pipeline matches
against (generic-content phrases, placeholder names, category keywords,
known venues, fallback coordinates). Keeping them in one versioned YAML
asset lets the tables be tuned and tested independently of the matching
logic.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from citypulse.configs.config import Config
from citypulse.schemas.event import EventCategory

LEXICON_PATH = Config.get_lexicon_path()


@lru_cache
def load_lexicon(path: Optional[str] = None) -> dict:
    """
    Load and cache the lexicon.
    """
    lexicon_path = Path(path) if path else LEXICON_PATH
    with open(lexicon_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def lexicon_version() -> int:
    """Version number of the loaded lexicon."""
    return int(load_lexicon().get("version", 0))


def _phrases(key: str) -> Tuple[str, ...]:
    """Lowercased, stripped phrase list for a lexicon key."""
    return tuple(
        str(p).strip().lower() for p in load_lexicon().get(key, []) if str(p).strip()
    )


# =============================================================================
# PHRASE LISTS
# =============================================================================


@lru_cache
def get_generic_content_phrases() -> Tuple[str, ...]:
    """Phrases marking listicles and guides rather than single events."""
    return _phrases("generic_content_phrases")


@lru_cache
def get_placeholder_names() -> Tuple[str, ...]:
    """Phrases that disqualify a name when contained anywhere in it."""
    return _phrases("placeholder_names")


@lru_cache
def get_exact_placeholder_names() -> Tuple[str, ...]:
    """Names that are placeholders only when they make up the whole name."""
    return _phrases("placeholder_names_exact")


@lru_cache
def get_placeholder_descriptions() -> Tuple[str, ...]:
    return _phrases("placeholder_descriptions")


@lru_cache
def get_placeholder_start_times() -> Tuple[str, ...]:
    return _phrases("placeholder_start_times")


@lru_cache
def get_ticket_action_phrases() -> Tuple[str, ...]:
    """Ticketing widgets and status badges that never belong to a name."""
    return _phrases("ticket_action_phrases")


@lru_cache
def get_locale_indicators() -> Tuple[str, ...]:
    return _phrases("locale_indicators")


@lru_cache
def get_known_venues() -> Tuple[str, ...]:
    """Venue and park names in their display casing."""
    return tuple(str(v).strip() for v in load_lexicon().get("known_venues", []))


def get_default_address() -> str:
    return str(load_lexicon().get("default_address", "New York, NY"))


def find_phrase(text: str, phrases: Tuple[str, ...]) -> Optional[str]:
    """
    Return the first phrase contained in text (case-insensitive), else None.
    """
    if not text:
        return None
    lowered = text.lower()
    for phrase in phrases:
        if phrase in lowered:
            return phrase
    return None


# =============================================================================
# CATEGORY KEYWORDS
# =============================================================================


@lru_cache
def get_category_keywords() -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    """
    Ordered (category, keywords) pairs.

    Raises:
        ValueError: If a table entry names a category outside EventCategory
    """
    entries = []
    for entry in load_lexicon().get("category_keywords", []):
        category = EventCategory.normalize(entry["category"])
        if category is None:
            raise ValueError(
                f"Lexicon category '{entry['category']}' is not a valid EventCategory"
            )
        keywords = tuple(str(k).lower() for k in entry.get("keywords", []))
        entries.append((category.value, keywords))
    return tuple(entries)


# =============================================================================
# COORDINATES
# =============================================================================


@lru_cache
def get_fallback_coordinates() -> Dict[str, Tuple[float, float]]:
    """
    Mapping of lowercased place key -> (latitude, longitude).
    """
    table = load_lexicon().get("fallback_coordinates", {}) or {}
    return {
        str(key).strip().lower(): (float(lat), float(lng))
        for key, (lat, lng) in table.items()
    }


def get_default_coordinates() -> Tuple[float, float]:
    lat, lng = load_lexicon().get("default_coordinates", [40.7282, -73.9857])
    return float(lat), float(lng)


def list_categories_with_keywords() -> List[str]:
    """Categories that the keyword classifier can emit, in match order."""
    return [category for category, _ in get_category_keywords()]
