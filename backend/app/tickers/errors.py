"""Ticker service error types."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Error classification codes."""

    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    MALFORMED_UPSTREAM = "malformed_upstream"
    STORE_UNAVAILABLE = "store_unavailable"
    CACHE_UNAVAILABLE = "cache_unavailable"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"


class TickerError(Exception):
    """Base exception with an error code and the HTTP status it maps to.

    Attributes:
        message: Human-readable error description.
        code: Structured error code for programmatic handling.
        status_code: HTTP status returned when this error reaches the API boundary.
    """

    code: ErrorCode = ErrorCode.UPSTREAM_UNAVAILABLE
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FetchError(TickerError):
    """Upstream source could not deliver usable data."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE
    status_code = 503


class TransientUpstreamError(FetchError):
    """Network failure, timeout or non-2xx response from the upstream source."""


class MalformedUpstreamResponse(FetchError):
    """Upstream answered, but the payload does not have the expected shape."""

    code = ErrorCode.MALFORMED_UPSTREAM
    status_code = 502


class DurableStoreError(TickerError):
    """The system of record failed. Always surfaced to the caller."""

    code = ErrorCode.STORE_UNAVAILABLE
    status_code = 503


class CacheStoreError(TickerError):
    """The cache store failed. Consumers degrade this to a cache miss."""

    code = ErrorCode.CACHE_UNAVAILABLE
    status_code = 503


class NotFoundError(TickerError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class ValidationError(TickerError):
    """Invalid caller input, with one entry per offending field."""

    code = ErrorCode.VALIDATION_FAILED
    status_code = 400

    def __init__(self, errors: list[dict[str, str]]) -> None:
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))
        self.errors = errors
