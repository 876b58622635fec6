"""Application settings loaded from ``config.json`` with sensible defaults."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from location import Location

LOGGER = logging.getLogger(__name__)

ALADHAN_TIMINGS_BY_CITY_URL = "https://api.aladhan.com/v1/timingsByCity"
GEO_API_ENDPOINTS = [
    "https://ipapi.co/json/",
    "https://ipinfo.io/json",
    "https://ip-api.com/json",
]
# AlAdhan calculation method id sent with every timings request.
DEFAULT_METHOD = 14
DEFAULT_STATE_PATH = Path.home() / ".praytime" / "state.json"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    default_location: Location = field(default_factory=lambda: Location(country="Turkey", city="Istanbul"))
    auto_location: bool = True
    geo_endpoints: List[str] = field(default_factory=lambda: list(GEO_API_ENDPOINTS))
    prayer_api_url: str = ALADHAN_TIMINGS_BY_CITY_URL
    calculation_method: int = DEFAULT_METHOD
    cache_expiration_hours: float = 24
    retry_attempts: int = 3
    timeout_ms: int = 10_000
    notification_thresholds: Tuple[int, ...] = (30, 10)
    refresh_hour: int = 0
    refresh_minute: int = 5
    state_path: Path = DEFAULT_STATE_PATH
    log_level: str = "INFO"


def load_settings(path: Path) -> Settings:
    """Read settings from *path*; a missing file yields the defaults."""
    if not path.exists():
        LOGGER.debug("No config at %s; using defaults", path)
        return Settings()
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError):
        LOGGER.exception("Failed to read config %s; using defaults", path)
        return Settings()
    if not isinstance(payload, dict):
        LOGGER.warning("Config %s is not an object; using defaults", path)
        return Settings()
    LOGGER.debug("Loaded config keys: %s", list(payload.keys()))
    return settings_from_dict(payload)


def settings_from_dict(payload: Dict[str, Any]) -> Settings:
    settings = Settings()

    location = _location_from_config(payload.get("default_location"))
    if location:
        settings.default_location = location

    settings.auto_location = bool(payload.get("auto_location", settings.auto_location))

    endpoints = payload.get("geo_endpoints")
    if isinstance(endpoints, list) and endpoints:
        settings.geo_endpoints = [str(endpoint) for endpoint in endpoints]

    if payload.get("prayer_api_url"):
        settings.prayer_api_url = str(payload["prayer_api_url"])

    settings.calculation_method = _as_int(payload, "calculation_method", settings.calculation_method)
    settings.retry_attempts = max(1, _as_int(payload, "retry_attempts", settings.retry_attempts))
    settings.timeout_ms = max(1, _as_int(payload, "timeout_ms", settings.timeout_ms))
    settings.refresh_hour = _as_int(payload, "refresh_hour", settings.refresh_hour) % 24
    settings.refresh_minute = _as_int(payload, "refresh_minute", settings.refresh_minute) % 60

    hours = _as_float(payload, "cache_expiration_hours", settings.cache_expiration_hours)
    if hours > 0:
        settings.cache_expiration_hours = hours
    else:
        LOGGER.warning("Ignoring non-positive cache_expiration_hours=%s", hours)

    thresholds = payload.get("notification_thresholds")
    if isinstance(thresholds, list):
        try:
            settings.notification_thresholds = tuple(sorted({int(value) for value in thresholds}, reverse=True))
        except (TypeError, ValueError):
            LOGGER.warning("Invalid notification_thresholds %s; keeping defaults", thresholds)

    if payload.get("state_path"):
        settings.state_path = Path(str(payload["state_path"])).expanduser()

    if payload.get("log_level"):
        level = str(payload["log_level"]).upper()
        if level in LOG_LEVELS:
            settings.log_level = level
        else:
            LOGGER.warning("Unknown log_level %r; using %s", payload["log_level"], settings.log_level)

    return settings


def _location_from_config(value: Any) -> Optional[Location]:
    if not isinstance(value, dict):
        return None
    country = str(value.get("country") or "")
    city = str(value.get("city") or "")
    if not country or not city:
        LOGGER.warning("Ignoring incomplete default_location: %s", value)
        return None
    return Location(country=country, city=city)


def _as_int(payload: Dict[str, Any], key: str, default: int) -> int:
    if key not in payload:
        return default
    try:
        return int(payload[key])
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s=%r; using %s", key, payload[key], default)
        return default


def _as_float(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    try:
        return float(payload[key])
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s=%r; using %s", key, payload[key], default)
        return default
