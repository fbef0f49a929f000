"""Exceptions raised by the export pipeline."""

from typing import Any, Optional


class ExportError(Exception):
    """Base class for all export failures."""


class ConfigurationError(ExportError):
    """Settings are missing or invalid."""


class AirtableAPIError(ExportError):
    """A request to the Airtable API failed and will not be retried.

    Attributes:
        status_code: HTTP status, or None for transport failures
        body: Decoded error payload returned by the API, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitedError(ExportError):
    """The remote answered 429. Consumed by the retry loop."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Rate limit exceeded for {url}")
        self.url = url


class ImageDownloadError(ExportError):
    """A single image could not be downloaded."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Error downloading image from {url}: {reason}")
        self.url = url
        self.reason = reason
