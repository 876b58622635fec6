"""Turns countdown events into user-facing notices."""
from __future__ import annotations

import logging
import queue
from typing import Callable, Tuple

from countdown import ARRIVED, PrayerEvent

LOGGER = logging.getLogger(__name__)


def message_for(event: PrayerEvent) -> Tuple[str, str]:
    """Return ``(title, body)`` for *event*."""
    if event.kind == ARRIVED:
        return (
            f"{event.prayer} - Time to Pray",
            f"It is now time for {event.prayer} prayer.",
        )
    return (
        f"{event.prayer} - {event.minutes} minutes",
        f"{event.prayer} prayer starts in {event.minutes} minutes.",
    )


class Notifier:
    """Consumes the event channel and shows each event exactly once."""

    def __init__(self, events: "queue.Queue[PrayerEvent]", show: Callable[[str, str], None]) -> None:
        self._events = events
        self._show = show

    def drain(self) -> int:
        shown = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return shown
            title, body = message_for(event)
            LOGGER.debug("Showing notification: %s", title)
            try:
                self._show(title, body)
            except Exception:
                LOGGER.exception("Failed to show notification %s", title)
            else:
                shown += 1
