"""Key-value stores and a time-to-live cache layered on top of them."""
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

LOGGER = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store, mostly useful for tests."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """Durable store that keeps every key in a single JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            payload = self._read()
            payload[key] = value
            self._write(payload)

    def delete(self, key: str) -> None:
        with self._lock:
            payload = self._read()
            if key not in payload:
                return
            del payload[key]
            self._write(payload)

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError):
            LOGGER.warning("State file %s is unreadable; starting empty", self._path, exc_info=True)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, payload: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        tmp_path.replace(self._path)


class ExpiringCache:
    """Stores values with an expiry timestamp and drops them once stale.

    Entries are written as whole records ``{value, created_at_ms, expires_at_ms}``
    so a reader never sees a half-updated entry. The underlying store cannot
    enumerate keys, so :meth:`clear` only removes the logical keys it was told
    about.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime],
        known_keys: Iterable[str] = (),
    ) -> None:
        self._store = store
        self._clock = clock
        self._known_keys = tuple(known_keys)

    def _now_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)

    def set(self, key: str, value: Any, ttl_hours: float = 24) -> None:
        now = self._now_ms()
        entry = {
            "value": value,
            "created_at_ms": now,
            "expires_at_ms": now + int(ttl_hours * MS_PER_HOUR),
        }
        LOGGER.debug("Caching %s for %s hours", key, ttl_hours)
        self._store.set(key, entry)

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            LOGGER.debug("Cache miss for %s", key)
            return None
        if not isinstance(entry, dict) or "expires_at_ms" not in entry:
            LOGGER.warning("Discarding malformed cache entry %s", key)
            self.delete(key)
            return None
        if self._now_ms() >= entry["expires_at_ms"]:
            LOGGER.debug("Cache entry %s expired", key)
            self.delete(key)
            return None
        return entry.get("value")

    def delete(self, key: str) -> None:
        self._store.delete(key)

    def clear(self, *extra_keys: str) -> None:
        for key in self._known_keys + extra_keys:
            self.delete(key)
        LOGGER.info("Cleared cache keys: %s", ", ".join(self._known_keys + extra_keys))

    def is_expired(self, key: str) -> bool:
        entry = self._store.get(key)
        if not isinstance(entry, dict) or "expires_at_ms" not in entry:
            return True
        return self._now_ms() >= entry["expires_at_ms"]
