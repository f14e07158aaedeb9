"""Exception hierarchy for recipe extraction."""

from typing import Optional


class RecipeExtractionError(Exception):
    """Base class for every error raised by the extraction pipeline."""


class InvalidUrlError(RecipeExtractionError, ValueError):
    """The URL cannot be fetched (bad scheme, missing host, private address)."""


class FetchError(RecipeExtractionError):
    """Fetching a page failed after all retries were used."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        attempts: int = 0,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class BlockedResponseError(FetchError):
    """A single response was recognised as a bot-detection page."""

    def __init__(self, message: str, *, url: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message, url=url)
        self.status = status


class ScraperError(RecipeExtractionError):
    """A scraper failed; converted into a zero-confidence result by the caller."""


class NormalizationError(RecipeExtractionError):
    """A JSON-LD repair rule could not be applied."""


class AIExtractionError(RecipeExtractionError):
    """The generative fallback could not produce a result."""


class AIResponseParseError(AIExtractionError):
    """Generated text could not be decoded as JSON by any repair tier."""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ImageValidationError(RecipeExtractionError):
    """An image candidate failed validation."""
