"""
Record validation.

Decides whether a candidate record is a real, single, displayable event.
Rules run in a fixed order and the first error rejects the record; soft
signals (implausible dates, placeholder start times, missing city token)
are warnings only and never reject.

Rejection is a result, not an exception.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable

from citypulse.schemas.event import CandidateRecord, EventCategory
from citypulse.schemas.lexicon import (
    find_phrase,
    get_exact_placeholder_names,
    get_generic_content_phrases,
    get_locale_indicators,
    get_placeholder_descriptions,
    get_placeholder_names,
    get_placeholder_start_times,
)

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)

# Descriptions this short are never checked against placeholders
DESCRIPTION_PLACEHOLDER_MIN_LENGTH = 10


@dataclass(frozen=True)
class ValidationIssue:
    level: str  # "warning" or "error"
    code: str
    message: str
    field: str | None = None


@dataclass
class ValidationResult:
    ok: bool
    issues: list[ValidationIssue]

    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "warning"]

    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "error"]

    @property
    def rejection_code(self) -> str | None:
        errors = self.errors()
        return errors[0].code if errors else None


class RecordValidator:
    """
    Ordered rule set for candidate records.

    Rule codes (errors): missing_field, name_length, placeholder_name,
    generic_content, address_length, invalid_url, invalid_category,
    placeholder_description.

    Warning codes: no_locale_indicator, date_in_past, date_too_far,
    placeholder_start_time.
    """

    def __init__(
        self,
        name_min_length: int = 5,
        name_max_length: int = 200,
        address_max_length: int = 2000,
        max_days_ahead: int = 365,
        today: Callable[[], date] | None = None,
    ):
        self.name_min_length = name_min_length
        self.name_max_length = name_max_length
        self.address_max_length = address_max_length
        self.max_days_ahead = max_days_ahead
        self._today = today or date.today

    def validate(self, record: CandidateRecord) -> bool:
        return self.check(record).ok

    def check(self, record: CandidateRecord) -> ValidationResult:
        """Run all rules; stops at the first error."""
        issues: list[ValidationIssue] = []

        for rule in (
            self._check_required,
            self._check_name_length,
            self._check_placeholder_name,
            self._check_generic_content,
            self._check_address,
            self._check_url,
            self._check_category,
            self._check_description,
        ):
            found = rule(record)
            issues.extend(found)
            error = next((i for i in found if i.level == "error"), None)
            if error is not None:
                logger.info(
                    f"Rejected '{record.name}' [{error.code}]: {error.message}",
                    extra={"rule": error.code},
                )
                return ValidationResult(ok=False, issues=issues)

        issues.extend(self._soft_checks(record))
        for issue in issues:
            logger.debug(f"Warning for '{record.name}' [{issue.code}]: {issue.message}")
        return ValidationResult(ok=True, issues=issues)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_required(self, record: CandidateRecord) -> list[ValidationIssue]:
        for field in ("name", "address", "date", "start_time"):
            value = getattr(record, field)
            if value is None or (isinstance(value, str) and not value.strip()):
                return [
                    ValidationIssue("error", "missing_field", f"Missing {field}", field=field)
                ]
        return []

    def _check_name_length(self, record: CandidateRecord) -> list[ValidationIssue]:
        n = len(record.name)
        if n < self.name_min_length or n > self.name_max_length:
            return [
                ValidationIssue(
                    "error",
                    "name_length",
                    f"Name length {n} outside [{self.name_min_length}, {self.name_max_length}]",
                    field="name",
                )
            ]
        return []

    def _check_placeholder_name(self, record: CandidateRecord) -> list[ValidationIssue]:
        lowered = record.name.strip().lower()
        phrase = find_phrase(lowered, get_placeholder_names())
        if phrase is None and lowered in get_exact_placeholder_names():
            phrase = lowered
        if phrase:
            return [
                ValidationIssue(
                    "error", "placeholder_name", f"Name is a placeholder ('{phrase}')", field="name"
                )
            ]
        return []

    def _check_generic_content(self, record: CandidateRecord) -> list[ValidationIssue]:
        phrase = find_phrase(record.name, get_generic_content_phrases())
        if phrase:
            return [
                ValidationIssue(
                    "error",
                    "generic_content",
                    f"Name reads as generic content ('{phrase}')",
                    field="name",
                )
            ]
        return []

    def _check_address(self, record: CandidateRecord) -> list[ValidationIssue]:
        address = record.address or ""
        if not 1 <= len(address) <= self.address_max_length:
            return [
                ValidationIssue(
                    "error",
                    "address_length",
                    f"Address length {len(address)} outside [1, {self.address_max_length}]",
                    field="address",
                )
            ]
        if not find_phrase(address, get_locale_indicators()):
            return [
                ValidationIssue(
                    "warning",
                    "no_locale_indicator",
                    "Address names no city or borough",
                    field="address",
                )
            ]
        return []

    def _check_url(self, record: CandidateRecord) -> list[ValidationIssue]:
        if record.website and not URL_PATTERN.match(record.website.strip()):
            return [
                ValidationIssue("error", "invalid_url", "Website is not an http(s) URL", field="website")
            ]
        return []

    def _check_category(self, record: CandidateRecord) -> list[ValidationIssue]:
        if record.category not in EventCategory.values():
            return [
                ValidationIssue(
                    "error",
                    "invalid_category",
                    f"Unknown category '{record.category}'",
                    field="category",
                )
            ]
        return []

    def _check_description(self, record: CandidateRecord) -> list[ValidationIssue]:
        description = (record.description or "").strip().lower()
        if (
            len(description) > DESCRIPTION_PLACEHOLDER_MIN_LENGTH
            and description in get_placeholder_descriptions()
        ):
            return [
                ValidationIssue(
                    "error",
                    "placeholder_description",
                    "Description is a placeholder",
                    field="description",
                )
            ]
        return []

    # ------------------------------------------------------------------
    # Warnings
    # ------------------------------------------------------------------

    def _soft_checks(self, record: CandidateRecord) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        today = self._today()

        if record.date < today:
            issues.append(
                ValidationIssue("warning", "date_in_past", f"Date {record.date} is in the past", field="date")
            )
        elif record.date > today + timedelta(days=self.max_days_ahead):
            issues.append(
                ValidationIssue(
                    "warning",
                    "date_too_far",
                    f"Date {record.date} is more than {self.max_days_ahead} days ahead",
                    field="date",
                )
            )

        if record.start_time.strip().lower() in get_placeholder_start_times():
            issues.append(
                ValidationIssue(
                    "warning",
                    "placeholder_start_time",
                    f"Start time '{record.start_time}' is a placeholder",
                    field="start_time",
                )
            )
        return issues


def create_validator_from_config(
    config: dict[str, Any],
    today: Callable[[], date] | None = None,
) -> RecordValidator:
    """
    Factory function to create RecordValidator from config.

    Example config:
        validation:
          name_min_length: 5
          name_max_length: 200
    """
    return RecordValidator(
        name_min_length=int(config.get("name_min_length", 5)),
        name_max_length=int(config.get("name_max_length", 200)),
        address_max_length=int(config.get("address_max_length", 2000)),
        max_days_ahead=int(config.get("max_days_ahead", 365)),
        today=today,
    )
