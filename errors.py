"""Exception types raised while fetching location and prayer data."""
from __future__ import annotations

from typing import Optional, Sequence


class PrayTimeError(Exception):
    """Base class for recoverable application errors."""


class FetchError(PrayTimeError):
    """A network request did not produce usable JSON."""


class FetchTimeout(FetchError):
    def __init__(self, url: str, timeout_ms: int) -> None:
        super().__init__(f"Request to {url} timed out after {timeout_ms} ms")
        self.url = url
        self.timeout_ms = timeout_ms


class FetchHttpError(FetchError):
    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {reason} for {url}".rstrip())
        self.url = url
        self.status_code = status_code
        self.reason = reason


class FetchExhausted(FetchError):
    """All retry attempts against a single URL failed."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(f"Failed to fetch {url} after {attempts} attempts: {last_error}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class AllEndpointsFailed(FetchError):
    def __init__(self, endpoints: Sequence[str], last_error: Optional[BaseException]) -> None:
        super().__init__(f"All endpoints failed. Last error: {last_error}")
        self.endpoints = list(endpoints)
        self.last_error = last_error


class InvalidLocationData(PrayTimeError):
    """Geolocation payload did not contain both a country and a city."""


class InvalidApiResponse(PrayTimeError):
    """Prayer-time service answered with a non-success code or no data."""
