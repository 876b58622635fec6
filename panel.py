"""Message bridge between the controller and the prayer-times panel."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from prayer_times import PrayerTimesResult

LOGGER = logging.getLogger(__name__)

READY = "ready"
REFRESH = "refresh"
UPDATE_PRAYER_TIMES = "updatePrayerTimes"

Message = Dict[str, Any]


class PanelBridge:
    """Queues outgoing messages until the panel reports that it is ready.

    Results can be posted from a worker thread while the panel's own messages
    arrive on the GUI thread, so the ready flag and queue share a lock.
    """

    def __init__(self, send: Callable[[Message], None], on_refresh: Optional[Callable[[], None]] = None) -> None:
        self._send = send
        self._on_refresh = on_refresh
        self._ready = False
        self._pending: List[Message] = []
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    def on_refresh(self, callback: Callable[[], None]) -> None:
        self._on_refresh = callback

    def post(self, message: Message) -> None:
        with self._lock:
            if self._ready:
                self._send(message)
                return
            LOGGER.debug("Panel not ready, queueing %s", message.get("command"))
            self._pending.append(message)

    def update(self, result: PrayerTimesResult) -> None:
        self.post({"command": UPDATE_PRAYER_TIMES, "prayerTimes": result.to_dict()})

    def handle(self, message: Message) -> None:
        command = message.get("command")
        LOGGER.debug("Panel message received: %s", command)
        if command == READY:
            with self._lock:
                if self._ready:
                    return
                self._ready = True
                pending, self._pending = self._pending, []
                LOGGER.debug("Panel ready, flushing %d queued messages", len(pending))
                for queued in pending:
                    self._send(queued)
        elif command == REFRESH:
            if self._on_refresh:
                self._on_refresh()
        else:
            LOGGER.warning("Ignoring unknown panel command %r", command)
