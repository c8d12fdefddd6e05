from __future__ import annotations

from stockwatch.alerts.gate import NotificationGate


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_first_notification_is_allowed() -> None:
    gate = NotificationGate(30, clock=FakeClock())

    assert gate.should_notify() is True
    assert gate.last_sent is None


def test_cooldown_blocks_until_full_window_elapsed() -> None:
    clock = FakeClock()
    gate = NotificationGate(30, clock=clock)
    gate.record_sent()

    clock.advance(30 * 60 - 1)
    assert gate.should_notify() is False

    clock.advance(1)
    assert gate.should_notify() is True


def test_disabled_gate_never_allows() -> None:
    gate = NotificationGate(30, enabled=False, clock=FakeClock())

    assert gate.should_notify() is False


def test_consecutive_approvals_respect_cooldown() -> None:
    clock = FakeClock()
    gate = NotificationGate(5, clock=clock)
    sent_at: list[float] = []

    for _ in range(200):
        if gate.should_notify():
            gate.record_sent()
            sent_at.append(clock())
        clock.advance(37)

    gaps_ms = [(later - earlier) * 1000 for earlier, later in zip(sent_at, sent_at[1:])]
    assert len(sent_at) > 1
    assert all(gap >= gate.cooldown_ms for gap in gaps_ms)
