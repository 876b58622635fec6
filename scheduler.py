"""Timer jobs for the countdown tick and the daily refresh."""
from __future__ import annotations

import logging
from contextlib import suppress
from datetime import datetime, time as time_module, timedelta
from typing import Callable, Optional

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

LOGGER = logging.getLogger(__name__)


def next_refresh_time(reference: datetime, hour: int = 0, minute: int = 5) -> datetime:
    """Return the next ``hour:minute`` after *reference*, in its timezone."""
    if reference.tzinfo is None:
        reference = pytz.UTC.localize(reference)
    tzinfo = reference.tzinfo
    refresh_time = time_module(hour=hour, minute=minute)
    for day in (reference.date(), reference.date() + timedelta(days=1)):
        refresh_naive = datetime.combine(day, refresh_time)
        if hasattr(tzinfo, "localize"):
            candidate = tzinfo.localize(refresh_naive)
        else:
            candidate = refresh_naive.replace(tzinfo=tzinfo)
        if candidate > reference:
            return candidate
    return candidate


class PrayerScheduler:
    """Wrap APScheduler to run the 1 s tick and the one-off refresh job."""

    def __init__(self, timezone: str) -> None:
        self._scheduler = BackgroundScheduler(timezone=timezone)
        self._refresh_job_id: Optional[str] = None

    def start(self) -> None:
        if not self._scheduler.running:
            LOGGER.info("Starting background scheduler")
            self._scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler.running:
            LOGGER.info("Stopping background scheduler")
            self._scheduler.shutdown(wait=False)

    @property
    def timezone(self) -> str:
        tzinfo = self._scheduler.timezone
        zone = getattr(tzinfo, "zone", None)
        return str(zone or tzinfo)

    def schedule_tick(self, callback: Callable[[], object], seconds: float = 1) -> str:
        """Run *callback* every *seconds*; overlapping runs are skipped."""
        job = self._scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=seconds),
            max_instances=1,
            coalesce=True,
        )
        LOGGER.debug("Scheduled tick job %s every %ss", job.id, seconds)
        return job.id

    def cancel_job(self, job_id: str) -> None:
        with suppress(JobLookupError):
            self._scheduler.remove_job(job_id)
            LOGGER.debug("Cancelled job %s", job_id)

    def schedule_refresh(self, next_run: datetime, refresh_callback: Callable[[], None]) -> None:
        """Schedule a single refresh job, replacing any existing one."""
        if self._refresh_job_id:
            LOGGER.debug("Removing existing refresh job %s", self._refresh_job_id)
            self.cancel_job(self._refresh_job_id)
            self._refresh_job_id = None

        # A run missed while the machine slept still fires once on wake-up.
        job = self._scheduler.add_job(
            refresh_callback,
            trigger=DateTrigger(run_date=next_run),
            misfire_grace_time=None,
            coalesce=True,
        )
        LOGGER.info("Next automatic refresh at %s", next_run)
        self._refresh_job_id = job.id
