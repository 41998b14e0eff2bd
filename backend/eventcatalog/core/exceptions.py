"""Custom exception classes for the ingestion pipeline."""

from typing import Iterable, Optional


class EventCatalogException(Exception):
    """Base exception for all event catalog errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(EventCatalogException):
    """Raised when a required credential or setting is missing."""


class ExtractionError(EventCatalogException):
    """Raised when the extraction service fails.

    Every failure is tagged with a status code and whether the caller
    may retry it.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class ExtractionTimeoutError(ExtractionError):
    """Raised when an extraction job does not finish before its deadline."""

    def __init__(self, message: str = "Extraction timed out"):
        super().__init__(message, status_code=408, retryable=True)


class ScraperBusyError(EventCatalogException):
    """Raised when a run is requested while another run is in progress."""

    def __init__(self):
        super().__init__("A scraper run is already in progress")


class UnknownPlatformError(EventCatalogException):
    """Raised when none of the requested platform ids are known."""

    def __init__(self, requested: Iterable[str], valid: Iterable[str]):
        self.requested = list(requested)
        self.valid = list(valid)
        super().__init__(
            f"Unknown platforms {self.requested}; valid platforms are {self.valid}"
        )
