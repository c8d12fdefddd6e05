from __future__ import annotations

import json

from stockwatch.health import HealthMonitor, HealthState


def test_error_streak_escalates_and_recovers(tmp_path) -> None:
    log_path = tmp_path / "health.log"
    monitor = HealthMonitor(run_id="run-1", log_path=log_path, error_threshold=(2, 3))

    monitor.record_check_error(item_url="https://shop.example/a", reason="timeout")
    assert monitor.state is HealthState.HEALTHY
    monitor.record_check_error(item_url="https://shop.example/a", reason="timeout")
    assert monitor.state is HealthState.SUSPECT
    monitor.record_check_error(item_url="https://shop.example/a", reason="timeout")
    assert monitor.state is HealthState.BLOCKED

    monitor.record_check(item_url="https://shop.example/a", in_stock=False)
    assert monitor.state is HealthState.HEALTHY

    events = [json.loads(line)["event"] for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert "state_change" in events
    assert "recovered" in events


def test_empty_ticks_are_tracked(tmp_path) -> None:
    monitor = HealthMonitor(run_id="run-2", log_path=tmp_path / "health.log", empty_threshold=(1, 2))

    monitor.record_tick(checked=0)
    assert monitor.state is HealthState.SUSPECT
    monitor.record_tick(checked=3)
    assert monitor.snapshot() == {"state": "healthy", "error_streak": 0, "empty_streak": 0}
