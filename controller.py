"""Application context tying the resolvers, countdown and panel together."""
from __future__ import annotations

import logging
import queue
from datetime import datetime
from typing import Callable, Optional

from countdown import CountdownScheduler, CountdownState, PrayerEvent
from expiring_cache import ExpiringCache, JsonFileStore, KeyValueStore
from http_fetch import ResilientFetcher
from location import LOCATION_KEY, LocationResolver
from panel import Message, PanelBridge
from prayer_times import PrayerTimeResolver, PrayerTimesResult, local_now
from scheduler import PrayerScheduler, next_refresh_time
from settings import Settings

LOGGER = logging.getLogger(__name__)

REFRESH_FAILED_MESSAGE = "Unable to refresh prayer times. Please check your internet connection."
REFRESH_DONE_MESSAGE = "Prayer times updated."
CACHE_CLEARED_MESSAGE = "Cache cleared and prayer times refreshed."


class PrayTimeController:
    """Owns one instance of every component; there is no global state."""

    def __init__(
        self,
        cache: ExpiringCache,
        location_resolver: LocationResolver,
        prayer_resolver: PrayerTimeResolver,
        countdown: CountdownScheduler,
        panel: PanelBridge,
        scheduler: Optional[PrayerScheduler] = None,
        clock: Callable[[], datetime] = local_now,
        on_error: Optional[Callable[[str], None]] = None,
        on_info: Optional[Callable[[str], None]] = None,
        refresh_hour: int = 0,
        refresh_minute: int = 5,
    ) -> None:
        self.cache = cache
        self.location_resolver = location_resolver
        self.prayer_resolver = prayer_resolver
        self.countdown = countdown
        self.panel = panel
        self.scheduler = scheduler
        self._clock = clock
        self._on_error = on_error
        self._on_info = on_info
        self._refresh_hour = refresh_hour
        self._refresh_minute = refresh_minute
        self._auto_refresh: Callable[[], None] = self.load
        self.current: Optional[PrayerTimesResult] = None

    def set_auto_refresh(self, callback: Callable[[], None]) -> None:
        """Replace what the day-boundary job runs (e.g. to hop onto a worker thread)."""
        self._auto_refresh = callback

    def start(self) -> None:
        if self.scheduler:
            self.scheduler.start()
            self.countdown.start(self.scheduler)

    def shutdown(self) -> None:
        self.countdown.cancel()
        if self.scheduler:
            self.scheduler.shutdown()

    def load(self) -> PrayerTimesResult:
        """Resolve today's times, using the cache when it is still valid."""
        result = self.prayer_resolver.resolve()
        if not result.succeeded:
            LOGGER.warning("Background refresh produced no prayer times")
        self._install(result)
        return result

    def refresh(self, user_initiated: bool = False) -> PrayerTimesResult:
        result = self._force_refresh(user_initiated)
        if result.succeeded and user_initiated:
            self._notify(REFRESH_DONE_MESSAGE)
        return result

    def clear_cache_and_refresh(self) -> PrayerTimesResult:
        self.cache.clear(self.prayer_resolver.cache_key())
        result = self._force_refresh(user_initiated=True)
        if result.succeeded:
            self._notify(CACHE_CLEARED_MESSAGE)
        return result

    def _force_refresh(self, user_initiated: bool) -> PrayerTimesResult:
        LOGGER.info("Refreshing prayer times (user_initiated=%s)", user_initiated)
        result = self.prayer_resolver.force_refresh()
        if not result.succeeded:
            if user_initiated and self._on_error:
                self._on_error(REFRESH_FAILED_MESSAGE)
            else:
                LOGGER.warning("Refresh produced no prayer times")
        self._install(result)
        return result

    def _notify(self, message: str) -> None:
        LOGGER.info(message)
        if self._on_info:
            self._on_info(message)

    def _install(self, result: PrayerTimesResult) -> None:
        self.current = result
        self.countdown.install(result)
        self.countdown.tick()
        self.panel.update(result)
        if self.scheduler:
            next_run = next_refresh_time(self._clock(), self._refresh_hour, self._refresh_minute)
            self.scheduler.schedule_refresh(next_run, self._run_auto_refresh)

    def _run_auto_refresh(self) -> None:
        try:
            self._auto_refresh()
        except Exception:
            LOGGER.exception("Automatic refresh failed")


def build_controller(
    settings: Settings,
    send_to_panel: Callable[[Message], None],
    events: "queue.Queue[PrayerEvent]",
    on_display: Optional[Callable[[CountdownState], None]] = None,
    on_error: Optional[Callable[[str], None]] = None,
    on_info: Optional[Callable[[str], None]] = None,
    scheduler: Optional[PrayerScheduler] = None,
    store: Optional[KeyValueStore] = None,
    fetcher: Optional[ResilientFetcher] = None,
    clock: Callable[[], datetime] = local_now,
) -> PrayTimeController:
    store = store if store is not None else JsonFileStore(settings.state_path)
    fetcher = fetcher or ResilientFetcher()
    cache = ExpiringCache(store, clock, known_keys=(LOCATION_KEY,))

    location_resolver = LocationResolver(
        cache,
        fetcher,
        settings.geo_endpoints,
        settings.default_location,
        ttl_hours=settings.cache_expiration_hours,
        retries_per_endpoint=settings.retry_attempts,
        auto_detect=settings.auto_location,
        timeout_ms=settings.timeout_ms,
    )
    prayer_resolver = PrayerTimeResolver(
        cache,
        fetcher,
        location_resolver,
        settings.prayer_api_url,
        method=settings.calculation_method,
        ttl_hours=settings.cache_expiration_hours,
        retry_attempts=settings.retry_attempts,
        timeout_ms=settings.timeout_ms,
        clock=clock,
    )
    countdown = CountdownScheduler(
        events,
        clock=clock,
        on_display=on_display,
        thresholds=settings.notification_thresholds,
    )
    panel = PanelBridge(send_to_panel)
    controller = PrayTimeController(
        cache,
        location_resolver,
        prayer_resolver,
        countdown,
        panel,
        scheduler=scheduler,
        clock=clock,
        on_error=on_error,
        on_info=on_info,
        refresh_hour=settings.refresh_hour,
        refresh_minute=settings.refresh_minute,
    )
    panel.on_refresh(lambda: controller.refresh(user_initiated=True))
    countdown.on_stale(controller._run_auto_refresh)
    return controller
