"""Detect the user's country and city from their public IP address."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from errors import InvalidLocationData, PrayTimeError
from expiring_cache import ExpiringCache
from http_fetch import ResilientFetcher, describe_error

LOGGER = logging.getLogger(__name__)

LOCATION_KEY = "location"


@dataclass(frozen=True)
class Location:
    country: str
    city: str

    def to_dict(self) -> Dict[str, str]:
        return {"country": self.country, "city": self.city}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Location":
        return cls(country=str(payload["country"]), city=str(payload["city"]))


def parse_location_response(payload: Dict[str, Any]) -> Location:
    """Accept either the ``country_name`` or the ``country`` response shape."""
    if not isinstance(payload, dict):
        raise InvalidLocationData(f"Unexpected geolocation payload: {payload!r}")
    country = payload.get("country_name") or payload.get("country") or ""
    city = payload.get("city") or ""
    if not country or not city:
        raise InvalidLocationData(f"Invalid location data received: country={country!r} city={city!r}")
    return Location(country=str(country), city=str(city))


class LocationResolver:
    """Resolves the current location, preferring a cached answer."""

    def __init__(
        self,
        cache: ExpiringCache,
        fetcher: ResilientFetcher,
        endpoints: Sequence[str],
        default_location: Location,
        ttl_hours: float = 24,
        retries_per_endpoint: int = 3,
        auto_detect: bool = True,
        timeout_ms: int = 10_000,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._endpoints = list(endpoints)
        self._default = default_location
        self._ttl_hours = ttl_hours
        self._retries = retries_per_endpoint
        self._auto_detect = auto_detect
        self._timeout_ms = timeout_ms

    @property
    def default_location(self) -> Location:
        return self._default

    def resolve(self) -> Location:
        if not self._auto_detect:
            LOGGER.debug("Automatic location disabled; using %s", self._default)
            return self._default

        cached = self._cached_location()
        if cached:
            LOGGER.debug("Using cached location %s", cached)
            return cached

        try:
            payload = self._fetcher.try_multiple_endpoints(self._endpoints, self._retries, self._timeout_ms)
            location = parse_location_response(payload)
        except PrayTimeError as exc:
            LOGGER.error("Failed to detect location, using default %s: %s", self._default, describe_error(exc))
            return self._default

        LOGGER.info("Detected location: %s, %s", location.city, location.country)
        self.remember(location)
        return location

    def force_refresh(self) -> Location:
        self._cache.delete(LOCATION_KEY)
        return self.resolve()

    def remember(self, location: Location) -> None:
        self._cache.set(LOCATION_KEY, location.to_dict(), self._ttl_hours)

    def _cached_location(self) -> Optional[Location]:
        value = self._cache.get(LOCATION_KEY)
        if value is None:
            return None
        try:
            return Location.from_dict(value)
        except (KeyError, TypeError):
            LOGGER.warning("Discarding unreadable cached location %r", value)
            self._cache.delete(LOCATION_KEY)
            return None
