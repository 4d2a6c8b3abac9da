from __future__ import annotations


class RateDeskError(Exception):
    """Base class for acquisition and storage errors."""


class NetworkFailure(RateDeskError):
    """Timeout, connection error or non-2xx response from a source."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class ExtractionFailure(RateDeskError):
    """Expected pattern absent or below the required match count."""


class PersistenceFailure(RateDeskError):
    """Durable state could not be read or written."""
