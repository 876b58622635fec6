"""HTTP GET helpers with per-attempt timeouts, retries and endpoint fallback."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

import requests

from errors import AllEndpointsFailed, FetchError, FetchExhausted, FetchHttpError, FetchTimeout

LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "PrayTime/0.1",
    "Accept": "application/json",
}


class ResilientFetcher:
    """Fetches JSON documents, retrying with exponential backoff."""

    def __init__(
        self,
        headers: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._headers = dict(headers or DEFAULT_HEADERS)
        self._sleep = sleep

    def fetch_with_retry(
        self,
        url: str,
        max_attempts: int = 3,
        timeout_ms: int = 10_000,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        last_error: Optional[BaseException] = None
        for attempt in range(1, max_attempts + 1):
            try:
                return self._get_json(url, timeout_ms, params)
            except FetchError as exc:
                last_error = exc
            if attempt < max_attempts:
                delay = 2 ** (attempt - 1)
                LOGGER.warning(
                    "Attempt %d/%d failed for %s (%s); retrying in %ss",
                    attempt,
                    max_attempts,
                    url,
                    last_error,
                    delay,
                )
                self._sleep(delay)
        raise FetchExhausted(url, max_attempts, last_error)

    def try_multiple_endpoints(
        self,
        endpoints: Sequence[str],
        retries_per_endpoint: int = 2,
        timeout_ms: int = 10_000,
    ) -> Any:
        last_error: Optional[BaseException] = None
        for endpoint in endpoints:
            try:
                return self.fetch_with_retry(endpoint, max_attempts=retries_per_endpoint, timeout_ms=timeout_ms)
            except FetchExhausted as exc:
                LOGGER.warning("Endpoint %s failed: %s", endpoint, exc)
                last_error = exc
        raise AllEndpointsFailed(endpoints, last_error)

    def _get_json(self, url: str, timeout_ms: int, params: Optional[Mapping[str, Any]]) -> Any:
        LOGGER.debug("GET %s params=%s timeout=%sms", url, params, timeout_ms)
        try:
            response = requests.get(
                url,
                params=dict(params) if params else None,
                headers=self._headers,
                timeout=timeout_ms / 1000.0,
            )
        except requests.Timeout as exc:
            raise FetchTimeout(url, timeout_ms) from exc
        except requests.RequestException as exc:
            raise FetchError(f"Request to {url} failed: {exc}") from exc

        LOGGER.debug("Response status for %s: %s", url, response.status_code)
        if not 200 <= response.status_code < 300:
            raise FetchHttpError(url, response.status_code, response.reason or "")
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"Response from {url} is not valid JSON") from exc


def describe_error(error: BaseException) -> Dict[str, Any]:
    """Flatten an error chain into a loggable dict."""
    details: Dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
    last = getattr(error, "last_error", None)
    if last is not None:
        details["cause"] = describe_error(last)
    return details
