"""
Normalization module for raw event text.

This package provides:
- FieldExtractor: model-assisted extraction with rule-based fallback
- RuleBasedExtractor: deterministic field recovery chains
- DateParser, CategoryClassifier, CurrencyParser: per-field recovery
- Geocoder: address -> coordinates with table and default fallbacks
- LangChainLLMClient: text-completion client
"""

from .category_classifier import CategoryClassifier
from .currency import CurrencyParser
from .date_parser import DateParser
from .errors import ExtractionError, ExtractionParseError, LLMUnavailableError
from .extraction_models import ExtractionOutput, parse_extraction_output
from .field_extractor import FieldExtractor, create_field_extractor_from_config
from .geocoder import Geocoder, create_geocoder_from_config
from .llm_client import BaseLLMClient, LangChainLLMClient, create_llm_client
from .rule_extractor import RuleBasedExtractor

__all__ = [
    # Extraction
    "FieldExtractor",
    "create_field_extractor_from_config",
    "RuleBasedExtractor",
    "ExtractionOutput",
    "parse_extraction_output",
    # Field recovery
    "CategoryClassifier",
    "CurrencyParser",
    "DateParser",
    # Geocoding
    "Geocoder",
    "create_geocoder_from_config",
    # LLM
    "BaseLLMClient",
    "LangChainLLMClient",
    "create_llm_client",
    # Errors
    "ExtractionError",
    "ExtractionParseError",
    "LLMUnavailableError",
]
