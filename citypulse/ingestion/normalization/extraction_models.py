"""
Output schema for model-assisted field extraction.

The text-completion service is asked for a single JSON object; this module
defines that object's shape and turns a raw completion into a validated
``ExtractionOutput``.
"""

import json
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from citypulse.ingestion.normalization.errors import ExtractionParseError

# =============================================================================
# EVENT FIELDS EXTRACTION
# =============================================================================


class ExtractionOutput(BaseModel):
    """Fields extracted from one blob by the text-completion service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_name: str = Field(alias="eventName", description="Title of the event")
    address: Optional[str] = Field(default=None, description="Street address or venue")
    start_time: Optional[str] = Field(
        default=None, alias="startTime", description="12-hour display time, e.g. '8:00 PM'"
    )
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    price: Optional[str] = Field(default=None, description="'Free' or display price")
    category: Optional[str] = Field(default=None, description="One category label")
    description: Optional[str] = Field(default=None, description="1-2 sentences")
    website: Optional[str] = Field(default=None, description="Event URL")

    @field_validator("event_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("eventName must not be empty")
        return v

    @field_validator(
        "address", "start_time", "date", "price", "category", "description", "website",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not v or v.lower() in ("null", "none"):
            return None
        return v


# =============================================================================
# COMPLETION PARSING
# =============================================================================

_FENCE = re.compile(r"```(?:json|JSON)?")


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers around a completion."""
    return _FENCE.sub("", text or "").strip()


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` span in text.

    Braces inside JSON string literals are ignored, so a description such as
    "Bring {friends}" does not cut the object short.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_extraction_output(completion: str) -> ExtractionOutput:
    """
    Parse a raw completion into ExtractionOutput.

    Raises:
        ExtractionParseError: No JSON object, invalid JSON or schema mismatch
    """
    cleaned = strip_code_fences(completion)
    payload = find_json_object(cleaned)
    if payload is None:
        raise ExtractionParseError("No JSON object in completion")

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f"Invalid JSON in completion: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionParseError("Completion JSON is not an object")

    try:
        return ExtractionOutput.model_validate(data)
    except ValidationError as e:
        raise ExtractionParseError(f"Completion does not match schema: {e}") from e
