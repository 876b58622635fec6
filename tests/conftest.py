from datetime import datetime, timedelta
from typing import Any, List, Optional

import pytest
import pytz

from errors import AllEndpointsFailed, FetchExhausted
from expiring_cache import ExpiringCache, MemoryStore
from location import LOCATION_KEY


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set(self, hour: int, minute: int, second: int = 0) -> None:
        self.now = self.now.replace(hour=hour, minute=minute, second=second, microsecond=0)


class StubFetcher:
    """Stands in for ResilientFetcher; records every call."""

    def __init__(self, payload: Any = None, error: Optional[Exception] = None, geo_payload: Any = None) -> None:
        self.payload = payload
        self.error = error
        self.geo_payload = geo_payload
        self.geo_error: Optional[Exception] = None
        self.fetch_calls: List[dict] = []
        self.endpoint_calls: List[list] = []
        self.endpoint_timeouts: List[int] = []

    def fetch_with_retry(self, url, max_attempts=3, timeout_ms=10_000, params=None):
        self.fetch_calls.append({"url": url, "max_attempts": max_attempts, "timeout_ms": timeout_ms, "params": params})
        if self.error:
            raise self.error
        return self.payload

    def try_multiple_endpoints(self, endpoints, retries_per_endpoint=2, timeout_ms=10_000):
        self.endpoint_calls.append(list(endpoints))
        self.endpoint_timeouts.append(timeout_ms)
        if self.geo_error:
            raise self.geo_error
        return self.geo_payload


def aladhan_payload(
    gregorian: str = "19-10-2026",
    weekday: str = "Monday",
    timestamp: str = "1792368000",
    **timings: str,
) -> dict:
    base_timings = {
        "Fajr": "05:00 (+03)",
        "Sunrise": "06:30 (+03)",
        "Dhuhr": "13:00 (+03)",
        "Asr": "16:30 (+03)",
        "Sunset": "19:55 (+03)",
        "Maghrib": "20:00 (+03)",
        "Isha": "21:30 (+03)",
        "Imsak": "04:50 (+03)",
    }
    base_timings.update(timings)
    return {
        "code": 200,
        "status": "OK",
        "data": {
            "timings": base_timings,
            "date": {
                "timestamp": timestamp,
                "gregorian": {"date": gregorian, "weekday": {"en": weekday}},
            },
        },
    }


def exhausted(url: str = "https://example.invalid") -> FetchExhausted:
    return FetchExhausted(url, 3, ConnectionError("boom"))


def all_failed() -> AllEndpointsFailed:
    return AllEndpointsFailed(["https://a.invalid", "https://b.invalid"], exhausted())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(pytz.UTC.localize(datetime(2026, 10, 19, 10, 0, 0)))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cache(store: MemoryStore, clock: FakeClock) -> ExpiringCache:
    return ExpiringCache(store, clock, known_keys=(LOCATION_KEY,))
