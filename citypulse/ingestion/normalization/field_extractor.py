"""
Field Extractor for raw event text.

Turns one raw text blob into a CandidateRecord:
1. Pre-filter: listicles and guides ("100 Best Things to Do...") yield nothing
2. Model-assisted path: a text-completion call returning a JSON object
3. Rule-based path: deterministic heuristics, used whenever (2) is
   unavailable or fails for any reason

Fields the model leaves empty (address, start time, date) are backfilled
from the rule-based recovery chains.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Optional

from citypulse.ingestion.normalization.category_classifier import CategoryClassifier
from citypulse.ingestion.normalization.currency import CurrencyParser
from citypulse.ingestion.normalization.date_parser import DateParser
from citypulse.ingestion.normalization.extraction_models import (
    ExtractionOutput,
    parse_extraction_output,
)
from citypulse.ingestion.normalization.llm_client import BaseLLMClient
from citypulse.ingestion.normalization.rule_extractor import (
    DEFAULT_DESCRIPTION_LENGTH,
    RuleBasedExtractor,
)
from citypulse.schemas.event import (
    CandidateRecord,
    EventCategory,
    ExtractionMethod,
    RawBlob,
    make_record_id,
)
from citypulse.schemas.lexicon import find_phrase, get_generic_content_phrases

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert event data extractor for {city} events. "
    "You answer with a single JSON object and nothing else."
)

EXTRACTION_PROMPT = """From the following text, extract structured event information.

REQUIREMENTS:
1. Extract Event Name, Address, Start Time, Date, Price, Description and Website
2. Assign ONE category from: {categories}
3. For addresses, keep the street address or venue exactly as written
4. For prices, use "Free" if the event is free, otherwise the exact price format (e.g., "$25", "$15-20")
5. For times, use 12-hour format (e.g., "8:00 PM", "2:00 PM")
6. For dates, use YYYY-MM-DD format. If no date is given, use null
7. Create a brief description (1-2 sentences) if none is provided
8. If the text contains multiple events, extract the first/main event only
9. Use null for any field that is not present in the text

Text to analyze:
{text}

Return ONLY a JSON object with these exact keys:
{{
  "eventName": "string",
  "address": "string or null",
  "startTime": "string or null",
  "date": "YYYY-MM-DD or null",
  "price": "string or null",
  "category": "string",
  "description": "string",
  "website": "string or null"
}}"""


class FieldExtractor:
    """
    Extracts candidate event records from raw text blobs.

    The model-assisted path is tried first when a completion client is
    configured; any failure there (network, timeout, non-JSON reply, schema
    mismatch) falls back to the rule-based extractor for the same blob.

    Example:
        >>> extractor = FieldExtractor()  # rules only
        >>> record = extractor.extract(RawBlob(text="Jazz Night at Blue Note - 8:00 PM - $25"))
        >>> record.price
        '$25'
    """

    def __init__(
        self,
        llm_client: Optional[BaseLLMClient] = None,
        rule_extractor: Optional[RuleBasedExtractor] = None,
        today: Optional[Callable[[], date]] = None,
        description_max_length: int = DEFAULT_DESCRIPTION_LENGTH,
        city_context: str = "New York, NY",
    ):
        """
        Initialize the field extractor.

        Args:
            llm_client: Completion client; None runs rule-based only
            rule_extractor: Fallback extractor (built from ``today`` if omitted)
            today: Clock for relative dates, injectable for tests
            description_max_length: Bound for the fallback description
            city_context: City named in the instruction prompt
        """
        self.llm_client = llm_client
        self.rules = rule_extractor or RuleBasedExtractor(
            date_parser=DateParser(today=today),
            classifier=CategoryClassifier(),
            description_max_length=description_max_length,
        )
        self.city_context = city_context

    @property
    def date_parser(self) -> DateParser:
        return self.rules.date_parser

    @property
    def is_llm_available(self) -> bool:
        return self.llm_client is not None and self.llm_client.is_available

    # =========================================================================
    # MAIN EXTRACTION METHOD
    # =========================================================================

    def extract(self, blob: RawBlob) -> Optional[CandidateRecord]:
        """
        Extract a candidate record from one blob.

        Returns:
            CandidateRecord, or None for generic content or when no event
            name can be recovered
        """
        phrase = self.generic_content_phrase(blob.text)
        if phrase:
            logger.info(f"Skipping generic content from '{blob.source}' (matched '{phrase}')")
            return None

        if self.llm_client is not None:
            try:
                return self.extract_with_model(blob)
            except Exception as e:
                logger.warning(
                    f"Model-assisted extraction failed for '{blob.source}', "
                    f"falling back to rules: {e}"
                )

        return self.rules.extract(blob)

    @staticmethod
    def generic_content_phrase(text: str) -> Optional[str]:
        """The first generic-content phrase contained in text, if any."""
        return find_phrase(text, get_generic_content_phrases())

    # =========================================================================
    # MODEL-ASSISTED PATH
    # =========================================================================

    def build_prompt(self, text: str) -> str:
        return EXTRACTION_PROMPT.format(
            categories=", ".join(EventCategory.values()),
            text=text,
        )

    def extract_with_model(self, blob: RawBlob) -> CandidateRecord:
        """
        Run the model-assisted path.

        Raises:
            ExtractionError: Client unavailable or completion unparseable
            Exception: Whatever the completion client raises
        """
        completion = self.llm_client.complete(
            SYSTEM_PROMPT.format(city=self.city_context),
            self.build_prompt(blob.text),
        )
        output = parse_extraction_output(completion)
        return self._to_candidate(output, blob)

    def _to_candidate(self, output: ExtractionOutput, blob: RawBlob) -> CandidateRecord:
        text = blob.text
        fields: Dict[str, Any] = {}
        warnings = []

        # Backfill missing fields from the rule chains
        if output.address:
            fields["address"] = output.address
        else:
            fields["address"] = self.rules.extract_address(text).value
            warnings.append("address_backfilled")

        if output.start_time:
            fields["start_time"] = output.start_time
        else:
            recovered_time = self.rules.extract_start_time(text)
            fields["start_time"] = recovered_time.value if recovered_time else None
            warnings.append("start_time_backfilled")

        parsed_date = self.date_parser.parse(output.date)
        if parsed_date is not None:
            fields["date"] = parsed_date.value
        else:
            fields["date"] = self.rules.extract_date(text).value
            warnings.append("date_backfilled")

        if output.price:
            fields["price"] = CurrencyParser.normalize_display(output.price)
        else:
            fields["price"] = self.rules.extract_price(text).value

        # Unknown labels pass through untouched for the validator to reject
        category = EventCategory.normalize(output.category)
        if category is not None:
            fields["category"] = category.value
        elif output.category:
            fields["category"] = output.category
        else:
            fields["category"] = self.rules.extract_category(text)

        fields["description"] = output.description or self.rules.extract_description(text)
        fields["website"] = output.website or self.rules.extract_website(text)

        return CandidateRecord(
            name=output.event_name,
            provenance=ExtractionMethod.MODEL_ASSISTED,
            unique_id=make_record_id(blob.source, text),
            source=blob.source,
            warnings=tuple(warnings),
            **fields,
        )


def create_field_extractor_from_config(
    config: Dict[str, Any],
    llm_client: Optional[BaseLLMClient] = None,
    today: Optional[Callable[[], date]] = None,
    city_context: str = "New York, NY",
) -> FieldExtractor:
    """
    Factory function to create FieldExtractor from config.

    Example config:
        extraction:
          use_llm: true
          description_max_length: 200
    """
    use_llm = config.get("use_llm", True)
    return FieldExtractor(
        llm_client=llm_client if use_llm else None,
        today=today,
        description_max_length=int(config.get("description_max_length", DEFAULT_DESCRIPTION_LENGTH)),
        city_context=city_context,
    )
