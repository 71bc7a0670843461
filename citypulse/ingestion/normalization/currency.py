"""
Price recovery.

Finds the admission price in free-form event text and keeps it as display
text in its original currency (no conversion).
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from citypulse.schemas.event import Recovered

UNKNOWN_PRICE = "Unknown"
FREE_PRICE = "Free"


class CurrencyParser:
    """
    Recover and parse price strings.

    Does NOT convert currencies - keeps original values.
    """

    SYMBOL_TO_CODE = {
        "€": "EUR",
        "£": "GBP",
        "$": "USD",
    }

    # "$25", "$19.99", "$15-20", "$15 - $20", "€10"
    AMOUNT_PATTERN = re.compile(
        r"[$€£]\s?\d+(?:\.\d{2})?(?:\s*[-–]\s*[$€£]?\s?\d+(?:\.\d{2})?)?"
    )
    FREE_PATTERN = re.compile(r"\bfree\b", re.IGNORECASE)

    @classmethod
    def recover_price(cls, text: str) -> Recovered[str]:
        """
        Recover a display price from blob text.

        Order: a standalone "free" token, then the first currency amount,
        else "Unknown".

        Example:
            >>> CurrencyParser.recover_price("Live jazz - $25").value
            '$25'
        """
        if text and cls.FREE_PATTERN.search(text):
            return Recovered(FREE_PRICE, "free_token")

        match = cls.AMOUNT_PATTERN.search(text or "")
        if match:
            return Recovered(cls._tidy(match.group(0)), "currency_amount")

        return Recovered.default(UNKNOWN_PRICE)

    @classmethod
    def normalize_display(cls, price_str: str | None) -> str:
        """
        Canonical display text for a price reported by the model.

        "free"/"FREE" -> "Free", blank -> "Unknown", "25" -> "$25";
        anything else is kept as written.
        """
        if price_str is None or not str(price_str).strip():
            return UNKNOWN_PRICE
        price_str = str(price_str).strip()

        if cls._is_free(price_str):
            return FREE_PRICE
        if re.fullmatch(r"\d+(?:\.\d{2})?", price_str):
            return f"${price_str}"
        return price_str

    @classmethod
    def parse_price_string(cls, price_str: str) -> tuple[Decimal | None, Decimal | None, str]:
        """
        Parse a price string into (min_price, max_price, currency_code).

        Handles:
        - "$25" -> (25, None, "USD")
        - "$15-20" -> (15, 20, "USD")
        - "Free" -> (None, None, "")
        - "Unknown" -> (None, None, "")
        """
        if not price_str:
            return None, None, ""

        price_str = price_str.strip()
        if cls._is_free(price_str):
            return None, None, ""

        currency = cls.detect_currency(price_str)
        numbers = cls._extract_numbers(price_str)

        if not numbers:
            return None, None, currency
        if len(numbers) == 1:
            return numbers[0], None, currency
        return min(numbers), max(numbers), currency

    @classmethod
    def detect_currency(cls, price_str: str) -> str:
        """ISO currency code for the first symbol found, or empty string."""
        if not price_str:
            return ""
        for symbol, code in cls.SYMBOL_TO_CODE.items():
            if symbol in price_str:
                return code
        return ""

    @classmethod
    def _is_free(cls, price_str: str) -> bool:
        lowered = price_str.lower()
        return bool(cls.FREE_PATTERN.search(lowered)) or "no cover" in lowered

    @classmethod
    def _extract_numbers(cls, price_str: str) -> list[Decimal]:
        numbers = []
        for raw in re.findall(r"\d+(?:\.\d+)?", price_str):
            try:
                numbers.append(Decimal(raw))
            except InvalidOperation:
                continue
        return numbers

    @staticmethod
    def _tidy(amount: str) -> str:
        # "$15 - $20" -> "$15-$20", "$ 25" -> "$25"
        amount = re.sub(r"\s*[-–]\s*", "-", amount)
        return re.sub(r"([$€£])\s+", r"\1", amount)
