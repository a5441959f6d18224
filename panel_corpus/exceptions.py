"""
Custom exception classes for granular error handling throughout the pipeline.
"""

from typing import Optional


class ScrapingError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(ScrapingError):
    """Raised when there are issues with configuration files or settings."""
    pass


class FetchError(ScrapingError):
    """Raised for network or HTTP failures while retrieving a document."""

    def __init__(self, url: str, message: str, retryable: bool = True):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.retryable = retryable


class RobotsBlockedError(FetchError):
    """Raised when a URL is blocked by robots.txt rules."""

    def __init__(self, url: str):
        super().__init__(url, "URL blocked by robots.txt", retryable=False)


class MalformedPageError(ScrapingError):
    """Raised when a selector returns an unexpected cardinality or position."""

    def __init__(self, url: Optional[str], reason: str):
        super().__init__(f"Malformed page {url or '<unknown>'}: {reason}")
        self.url = url
        self.reason = reason


class IdMismatchError(ScrapingError):
    """Raised when the listing id and the detail-page id disagree for a URL."""

    def __init__(self, url: str, listing_id: str, detail_id: Optional[str]):
        super().__init__(
            f"Id mismatch for {url}: listing says {listing_id!r}, detail page says {detail_id!r}"
        )
        self.url = url
        self.listing_id = listing_id
        self.detail_id = detail_id


class SchemaWidthError(ScrapingError):
    """Raised when a multi-valued field does not fit its numbered columns."""
    pass


class UnseenNgramError(ScrapingError):
    """Raised when statistics are requested for an n-gram never observed."""
    pass


class HarvestExhaustedError(ScrapingError):
    """Raised when no document at all could be retrieved during a run."""
    pass
