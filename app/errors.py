"""Exceptions raised by the release radar pipeline."""

from __future__ import annotations


class RadarError(Exception):
    """Base exception for radar refresh failures."""


class TransientFetchError(RadarError):
    """A catalog request failed (network error, timeout or HTTP error)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(TransientFetchError):
    """The catalog provider answered with a throttling signal."""

    def __init__(self, retry_after: float | None = None):
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


class CatalogNotFoundError(TransientFetchError):
    """The requested catalog entry does not exist in the requested locale."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class MalformedResponseError(RadarError):
    """A catalog or oracle payload is missing the fields we rely on."""


class OracleError(RadarError):
    """The recommendation oracle failed or returned an unusable selection."""


class PersistenceError(RadarError):
    """Writing to the document store failed; nothing was committed."""
