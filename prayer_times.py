"""Fetching and caching of daily prayer times from the AlAdhan API."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

import pytz
from tzlocal import get_localzone_name

from errors import InvalidApiResponse, PrayTimeError
from expiring_cache import ExpiringCache
from http_fetch import ResilientFetcher, describe_error
from location import LocationResolver

LOGGER = logging.getLogger(__name__)

PRAYER_TIMES_KEY = "prayerTimesCache"
PRAYER_NAMES = ["Fajr", "Sunrise", "Dhuhr", "Asr", "Sunset", "Maghrib", "Isha"]
SENTINEL_TIME = "--:--"


def system_timezone() -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(get_localzone_name())
    except Exception:
        LOGGER.warning("Falling back to UTC for system timezone resolution")
        return pytz.UTC


def local_now() -> datetime:
    return datetime.now(system_timezone())


def clean_time_string(value: str) -> str:
    """``"05:32 (+03)"`` -> ``"05:32"``; the sentinel passes through."""
    text = str(value).strip()
    return text.split(" ")[0] if text else SENTINEL_TIME


@dataclass
class DateInfo:
    iso_date: str
    weekday: str
    timestamp: int
    gregorian: str = ""


@dataclass
class PrayerTimesResult:
    succeeded: bool
    status_text: str
    date: DateInfo
    timings: Dict[str, str] = field(default_factory=dict)
    code: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "status_text": self.status_text,
            "code": self.code,
            "date": {
                "iso_date": self.date.iso_date,
                "weekday": self.date.weekday,
                "timestamp": self.date.timestamp,
                "gregorian": self.date.gregorian,
            },
            "timings": dict(self.timings),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PrayerTimesResult":
        date_info = payload["date"]
        return cls(
            succeeded=bool(payload["succeeded"]),
            status_text=str(payload.get("status_text", "")),
            code=int(payload.get("code", 0)),
            date=DateInfo(
                iso_date=str(date_info["iso_date"]),
                weekday=str(date_info.get("weekday", "")),
                timestamp=int(date_info.get("timestamp", 0)),
                gregorian=str(date_info.get("gregorian", "")),
            ),
            timings={name: str(value) for name, value in payload["timings"].items()},
        )


def placeholder_result(now: datetime) -> PrayerTimesResult:
    """Renderable result used whenever fresh data cannot be obtained."""
    return PrayerTimesResult(
        succeeded=False,
        status_text="Error",
        code=0,
        date=DateInfo(
            iso_date=now.date().isoformat(),
            weekday=now.strftime("%A"),
            timestamp=int(now.timestamp()),
            gregorian=now.strftime("%d-%m-%Y"),
        ),
        timings={name: SENTINEL_TIME for name in PRAYER_NAMES},
    )


def parse_prayer_response(payload: Any, today: date) -> PrayerTimesResult:
    if not isinstance(payload, dict) or payload.get("code") != 200 or not payload.get("data"):
        status = payload.get("status") if isinstance(payload, dict) else None
        raise InvalidApiResponse(f"Invalid response from prayer times API: {status or 'Unknown error'}")

    data = payload["data"]
    date_data = data.get("date", {}) or {}
    gregorian = date_data.get("gregorian", {}) or {}
    raw_timings = data.get("timings", {}) or {}

    gregorian_text = str(gregorian.get("date") or "")
    try:
        iso_date = datetime.strptime(gregorian_text, "%d-%m-%Y").date().isoformat()
    except ValueError:
        LOGGER.debug("Unparseable gregorian date %r; using %s", gregorian_text, today)
        iso_date = today.isoformat()

    try:
        timestamp = int(float(date_data.get("timestamp")))
    except (TypeError, ValueError):
        raise InvalidApiResponse(f"Invalid timestamp in response: {date_data.get('timestamp')!r}") from None

    timings = {name: clean_time_string(raw_timings.get(name, SENTINEL_TIME)) for name in PRAYER_NAMES}
    return PrayerTimesResult(
        succeeded=True,
        status_text=str(payload.get("status", "OK")),
        code=200,
        date=DateInfo(
            iso_date=iso_date,
            weekday=str((gregorian.get("weekday", {}) or {}).get("en", "")),
            timestamp=timestamp,
            gregorian=gregorian_text,
        ),
        timings=timings,
    )


class PrayerTimeResolver:
    """Resolves today's timings, caching successful answers per calendar day."""

    def __init__(
        self,
        cache: ExpiringCache,
        fetcher: ResilientFetcher,
        location_resolver: LocationResolver,
        api_url: str,
        method: int = 14,
        ttl_hours: float = 24,
        retry_attempts: int = 3,
        timeout_ms: int = 10_000,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._locations = location_resolver
        self._api_url = api_url
        self._method = method
        self._ttl_hours = ttl_hours
        self._retry_attempts = retry_attempts
        self._timeout_ms = timeout_ms
        self._clock = clock

    def cache_key(self, day: Optional[date] = None) -> str:
        day = day or self._clock().date()
        return f"{PRAYER_TIMES_KEY}_{day.isoformat()}"

    def resolve(self) -> PrayerTimesResult:
        now = self._clock()
        key = self.cache_key(now.date())

        cached = self._cached_result(key)
        if cached:
            LOGGER.debug("Using cached prayer times for %s", key)
            return cached

        try:
            location = self._locations.resolve()
            params = {
                "city": location.city,
                "country": location.country,
                "method": self._method,
            }
            LOGGER.debug("Requesting prayer times by city with params=%s", params)
            payload = self._fetcher.fetch_with_retry(
                self._api_url,
                max_attempts=self._retry_attempts,
                timeout_ms=self._timeout_ms,
                params=params,
            )
            result = parse_prayer_response(payload, now.date())
        except PrayTimeError as exc:
            LOGGER.error("Error fetching prayer times: %s", describe_error(exc))
            return placeholder_result(now)

        LOGGER.info("Prayer times fetched for %s, %s (%s)", location.city, location.country, result.date.iso_date)
        self._cache.set(key, result.to_dict(), self._ttl_hours)
        return result

    def force_refresh(self) -> PrayerTimesResult:
        self._cache.delete(self.cache_key())
        return self.resolve()

    def _cached_result(self, key: str) -> Optional[PrayerTimesResult]:
        value = self._cache.get(key)
        if value is None:
            return None
        try:
            return PrayerTimesResult.from_dict(value)
        except (KeyError, TypeError, ValueError, AttributeError):
            LOGGER.warning("Discarding unreadable cached prayer times under %s", key)
            self._cache.delete(key)
            return None
