"""Health monitoring for the stock check loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time
from pathlib import Path
from typing import Any


class HealthState(str, Enum):
    """Overall monitor health classification."""

    HEALTHY = "healthy"
    SUSPECT = "suspect"
    BLOCKED = "blocked"


@dataclass
class HealthMonitor:
    """Tracks consecutive failures and logs structured health events as JSON lines."""

    run_id: str
    log_path: Path
    error_threshold: tuple[int, int] = (3, 6)
    empty_threshold: tuple[int, int] = (3, 6)
    state: HealthState = field(init=False, default=HealthState.HEALTHY)

    def __post_init__(self) -> None:
        self.error_streak = 0
        self.empty_streak = 0
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _log(self, event_type: str, message: str, **details: Any) -> None:
        entry = {
            "ts": time.time(),
            "run_id": self.run_id,
            "state": self.state.value,
            "event": event_type,
            "message": message,
            "details": details,
        }
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def _evaluate_state(self) -> None:
        prev = self.state
        if self.error_streak >= self.error_threshold[1] or self.empty_streak >= self.empty_threshold[1]:
            self.state = HealthState.BLOCKED
        elif self.error_streak >= self.error_threshold[0] or self.empty_streak >= self.empty_threshold[0]:
            self.state = HealthState.SUSPECT
        else:
            self.state = HealthState.HEALTHY

        if self.state != prev:
            self._log(
                "state_change",
                f"{prev.value} -> {self.state.value}",
                error_streak=self.error_streak,
                empty_streak=self.empty_streak,
            )

    def record_check(self, *, item_url: str, in_stock: bool) -> None:
        """Record a check that completed without an error."""
        self.error_streak = 0
        if self.state != HealthState.HEALTHY:
            self._log("recovered", f"Recovered on {item_url}", in_stock=in_stock)
        self._evaluate_state()

    def record_check_error(self, *, item_url: str, reason: str) -> None:
        self.error_streak += 1
        self._log("check_error", reason, url=item_url, error_streak=self.error_streak)
        self._evaluate_state()

    def record_tick(self, *, checked: int) -> None:
        if checked:
            self.empty_streak = 0
        else:
            self.empty_streak += 1
            self._log("empty_tick", "No active tracking rows", empty_streak=self.empty_streak)
        self._evaluate_state()

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "error_streak": self.error_streak,
            "empty_streak": self.empty_streak,
        }
