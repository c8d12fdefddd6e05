"""In-memory TTL cache for selections and recent stock results."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from stockwatch.logging_config import get_logger

LOGGER = get_logger(__name__)

SELECTION_TTL_S = 600
STOCK_STATUS_TTL_S = 300


class TTLCache:
    """Small thread-safe key/value store whose entries expire after a TTL."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float | None, Any]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None:
        expires_at = self._clock() + ttl_s if ttl_s is not None else None
        with self._lock:
            self._entries[key] = (expires_at, value)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def exists(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Domain helpers

    def cache_user_selection(self, subscriber_id: str, product_id: str) -> None:
        self.set(f"user_selection:{subscriber_id}", product_id, SELECTION_TTL_S)

    def get_user_selection(self, subscriber_id: str) -> str | None:
        return self.get(f"user_selection:{subscriber_id}")

    def cache_stock_status(self, item_id: str, status: Any, location_code: str | None = None) -> None:
        self.set(_stock_key(item_id, location_code), status, STOCK_STATUS_TTL_S)

    def get_stock_status(self, item_id: str, location_code: str | None = None) -> Any | None:
        return self.get(_stock_key(item_id, location_code))


def _stock_key(item_id: str, location_code: str | None) -> str:
    # Availability differs per delivery area.
    if location_code:
        return f"stock_status:{item_id}:{location_code}"
    return f"stock_status:{item_id}"
