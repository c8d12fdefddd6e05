"""Process-wide cooldown between restock notifications."""

from __future__ import annotations

import threading
import time
from typing import Callable


class NotificationGate:
    """Allow at most one notification per cooldown window, across all subscribers.

    ``clock`` returns seconds and defaults to :func:`time.monotonic`; tests pass
    a fake clock to step through the window.
    """

    def __init__(
        self,
        cooldown_minutes: float,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_minutes = cooldown_minutes
        self.enabled = enabled
        self._clock = clock
        self._last_sent: float | None = None
        self._lock = threading.Lock()

    @property
    def cooldown_ms(self) -> float:
        return self.cooldown_minutes * 60_000

    @property
    def last_sent(self) -> float | None:
        return self._last_sent

    def should_notify(self) -> bool:
        if not self.enabled:
            return False
        with self._lock:
            if self._last_sent is None:
                return True
            elapsed_ms = (self._clock() - self._last_sent) * 1000
            return elapsed_ms >= self.cooldown_ms

    def record_sent(self) -> None:
        with self._lock:
            self._last_sent = self._clock()
