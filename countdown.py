"""Next-prayer countdown and one-off "prayer approaching" events."""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from datetime import datetime, time as time_module, timedelta
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Optional, Set, Tuple

from prayer_times import SENTINEL_TIME, PrayerTimesResult, clean_time_string, local_now

if TYPE_CHECKING:
    from scheduler import PrayerScheduler

LOGGER = logging.getLogger(__name__)

# Sunrise and Sunset are solar markers, not prayers.
PRAYER_SEQUENCE = ["Fajr", "Dhuhr", "Asr", "Maghrib", "Isha"]

LOADING = "loading"
DONE = "done"
COUNTING = "counting"

APPROACHING = "approaching"
ARRIVED = "arrived"

ARRIVAL_WINDOW = timedelta(minutes=1)


@dataclass(frozen=True)
class NextPrayer:
    name: str
    time_of_day: str
    remaining_ms: int


@dataclass(frozen=True)
class CountdownState:
    kind: str
    text: str
    next_prayer: Optional[NextPrayer] = None


@dataclass(frozen=True)
class PrayerEvent:
    prayer: str
    minutes: int
    day: str
    kind: str = APPROACHING


def prayer_instant(now: datetime, time_of_day: str) -> Optional[datetime]:
    """Today's instant (in *now*'s timezone) for an ``HH:MM`` string."""
    text = clean_time_string(time_of_day)
    if text == SENTINEL_TIME:
        return None
    try:
        hours, minutes = (int(part) for part in text.split(":")[:2])
        clock_time = time_module(hour=hours, minute=minutes)
    except ValueError:
        LOGGER.debug("Skipping unparseable prayer time %r", time_of_day)
        return None

    naive = datetime.combine(now.date(), clock_time)
    tzinfo = now.tzinfo
    if tzinfo is not None and hasattr(tzinfo, "localize"):
        return tzinfo.localize(naive)
    return naive.replace(tzinfo=tzinfo)


def find_next_prayer(timings: Dict[str, str], now: datetime) -> Optional[NextPrayer]:
    for name in PRAYER_SEQUENCE:
        instant = prayer_instant(now, timings.get(name, SENTINEL_TIME))
        if instant is None:
            continue
        remaining_ms = (instant - now) // timedelta(milliseconds=1)
        if remaining_ms > 0:
            return NextPrayer(name=name, time_of_day=instant.strftime("%H:%M"), remaining_ms=remaining_ms)
    return None


def format_remaining(remaining_ms: int) -> str:
    total_seconds = max(0, remaining_ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class CountdownScheduler:
    """Evaluates the countdown once per tick and emits threshold events.

    Events are put on *events* (any ``queue.Queue``); whoever consumes them has
    no reference back to this object. Each ``(prayer, threshold)`` pair fires at
    most once per calendar day. When the installed result belongs to an earlier
    day, the next tick asks ``on_stale`` for a reload instead of counting down.
    """

    def __init__(
        self,
        events: "queue.Queue[PrayerEvent]",
        clock: Callable[[], datetime] = local_now,
        on_display: Optional[Callable[[CountdownState], None]] = None,
        thresholds: Iterable[int] = (30, 10),
    ) -> None:
        self._events = events
        self._clock = clock
        self._on_display = on_display
        self._on_stale: Optional[Callable[[], None]] = None
        self._thresholds = tuple(thresholds)
        self._lock = threading.Lock()
        self._result: Optional[PrayerTimesResult] = None
        self._notified: Set[Tuple[str, int]] = set()
        self._previous: Optional[Tuple[str, datetime]] = None
        self._last_state: Optional[CountdownState] = None
        self._evaluated_day: Optional[str] = None
        self._reload_requested_for: Optional[str] = None
        self._reload_pending = False
        self._scheduler: Optional["PrayerScheduler"] = None
        self._job_id: Optional[str] = None

    @property
    def last_state(self) -> Optional[CountdownState]:
        return self._last_state

    @property
    def notified(self) -> frozenset:
        with self._lock:
            return frozenset(self._notified)

    @property
    def running(self) -> bool:
        return self._job_id is not None

    def on_stale(self, callback: Callable[[], None]) -> None:
        self._on_stale = callback

    def install(self, result: Optional[PrayerTimesResult]) -> None:
        with self._lock:
            previous_day = self._result.date.iso_date if self._result else None
            new_day = result.date.iso_date if result else None
            if new_day != previous_day:
                LOGGER.debug("New prayer day %s installed; resetting notifications", new_day)
                self._notified.clear()
                self._previous = None
            self._result = result

    def evaluate(self, now: datetime) -> CountdownState:
        with self._lock:
            return self._evaluate(now)

    def tick(self) -> CountdownState:
        now = self._clock()
        with self._lock:
            state = self._evaluate(now)
            self._last_state = state
            reload_wanted = self._reload_pending
            self._reload_pending = False
        if self._on_display:
            self._on_display(state)
        if reload_wanted and self._on_stale:
            self._on_stale()
        return state

    def start(self, scheduler: "PrayerScheduler") -> None:
        self.cancel()
        self._scheduler = scheduler
        self.tick()
        self._job_id = scheduler.schedule_tick(self.tick, seconds=1)

    def cancel(self) -> None:
        if self._scheduler and self._job_id:
            self._scheduler.cancel_job(self._job_id)
        self._job_id = None

    def _evaluate(self, now: datetime) -> CountdownState:
        today = now.date().isoformat()
        if self._evaluated_day is not None and today != self._evaluated_day:
            LOGGER.debug("Day changed to %s; resetting notifications", today)
            self._notified.clear()
            self._previous = None
        self._evaluated_day = today

        result = self._result
        if result is not None and result.date.iso_date < today:
            if self._reload_requested_for != today:
                LOGGER.info("Installed prayer times are for %s; requesting times for %s", result.date.iso_date, today)
                self._reload_requested_for = today
                self._reload_pending = True
            self._previous = None
            return CountdownState(kind=LOADING, text="Loading prayer times...")

        if result is None or not result.succeeded:
            self._previous = None
            return CountdownState(kind=LOADING, text="Loading prayer times...")

        self._check_arrival(now, result.date.iso_date)

        next_prayer = find_next_prayer(result.timings, now)
        if next_prayer is None:
            self._previous = None
            return CountdownState(kind=DONE, text="All prayers completed for today")

        self._previous = (next_prayer.name, now + timedelta(milliseconds=next_prayer.remaining_ms))
        self._check_thresholds(next_prayer, result.date.iso_date)
        text = f"{next_prayer.name}: {next_prayer.time_of_day} ({format_remaining(next_prayer.remaining_ms)})"
        return CountdownState(kind=COUNTING, text=text, next_prayer=next_prayer)

    def _check_thresholds(self, next_prayer: NextPrayer, day: str) -> None:
        minutes_left = next_prayer.remaining_ms // 60_000
        for threshold in self._thresholds:
            key = (next_prayer.name, threshold)
            if threshold - 1 < minutes_left <= threshold and key not in self._notified:
                self._notified.add(key)
                LOGGER.info("%s in %d minutes", next_prayer.name, threshold)
                self._events.put(PrayerEvent(prayer=next_prayer.name, minutes=threshold, day=day))

    def _check_arrival(self, now: datetime, day: str) -> None:
        if self._previous is None:
            return
        name, instant = self._previous
        key = (name, 0)
        if instant <= now < instant + ARRIVAL_WINDOW and key not in self._notified:
            self._notified.add(key)
            LOGGER.info("Prayer time reached: %s", name)
            self._events.put(PrayerEvent(prayer=name, minutes=0, day=day, kind=ARRIVED))
