"""Exceptions raised inside the model-assisted extraction path."""


class ExtractionError(Exception):
    """Base class for extraction failures that trigger the rule-based fallback."""


class LLMUnavailableError(ExtractionError):
    """The text-completion service is not configured or cannot be reached."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ExtractionParseError(ExtractionError):
    """A completion could not be turned into an ExtractionOutput."""
