from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from stockwatch.alerts.gate import NotificationGate
from stockwatch.cache import TTLCache
from stockwatch.health import HealthMonitor
from stockwatch.scheduler import JOB_ID, MonitoringScheduler
from stockwatch.storefront.monitor import StockStatus

MILK_URL = "https://shop.example/product/milk-1l"
CURD_URL = "https://shop.example/product/curd-400g"


class FakeMonitor:
    """Returns scripted results per URL; exceptions in the script are raised."""

    def __init__(self, results: dict[str, object]) -> None:
        self.results = results
        self.calls: list[tuple[str, str | None]] = []

    async def check(self, item_url: str, location_code: str | None = None) -> StockStatus:
        self.calls.append((item_url, location_code))
        result = self.results[item_url]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, StockStatus):
            return result
        return StockStatus(is_in_stock=bool(result), checked_at=datetime.now(timezone.utc))


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_message(self, subscriber_id: str, text: str) -> bool:
        self.sent.append((subscriber_id, text))
        return True


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeAPScheduler:
    def __init__(self) -> None:
        self.jobs: list[dict] = []
        self.started = False
        self.shutdown_called = False

    def start(self) -> None:
        self.started = True

    def add_job(self, func, trigger, **kwargs) -> None:
        self.jobs.append({"func": func, "trigger": trigger, **kwargs})

    def shutdown(self, wait: bool = True) -> None:
        self.shutdown_called = True


def _track(ledger, subscriber_id: str, item_id: str, url: str, last_status: bool | None) -> None:
    ledger.register_subscriber(subscriber_id)
    ledger.create_or_update_tracking(subscriber_id, item_id, item_id.title(), url)
    ledger.start_tracking(subscriber_id, item_id)
    if last_status is not None:
        ledger.update_stock_status(subscriber_id, item_id, last_status, datetime.now(timezone.utc))


def _scheduler(ledger, monitor, notifier, *, gate=None, **kwargs) -> MonitoringScheduler:
    return MonitoringScheduler(
        ledger,
        monitor,
        gate or NotificationGate(30, clock=FakeClock()),
        notifier,
        default_location="135001",
        interval_minutes=5,
        **kwargs,
    )


def test_restock_transition_sends_one_notification(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    notifier = FakeNotifier()
    gate = NotificationGate(30, clock=FakeClock())
    scheduler = _scheduler(ledger, FakeMonitor({MILK_URL: True}), notifier, gate=gate)

    report = asyncio.run(scheduler.run_tick())

    assert report.checked == 1
    assert report.notified == 1
    assert len(notifier.sent) == 1
    assert notifier.sent[0][0] == "42"
    assert "PRODUCT IS BACK IN STOCK!" in notifier.sent[0][1]
    assert ledger.get_tracking("42", "milk-1l").last_stock_status is True
    assert gate.last_sent is not None


def test_in_stock_to_in_stock_never_notifies(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=True)
    notifier = FakeNotifier()
    scheduler = _scheduler(ledger, FakeMonitor({MILK_URL: True}), notifier)

    async def two_ticks():
        await scheduler.run_tick()
        await scheduler.run_tick()

    asyncio.run(two_ticks())

    assert notifier.sent == []


def test_first_observation_does_not_notify(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=None)
    notifier = FakeNotifier()

    asyncio.run(_scheduler(ledger, FakeMonitor({MILK_URL: True}), notifier).run_tick())

    assert notifier.sent == []
    assert ledger.get_tracking("42", "milk-1l").last_stock_status is True


def test_row_with_notifications_disabled_is_skipped(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    ledger.set_notifications("42", "milk-1l", False)
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(ledger, FakeMonitor({MILK_URL: True}), notifier).run_tick())

    assert report.notified == 0
    assert notifier.sent == []


def test_gate_is_shared_across_subscribers(ledger) -> None:
    _track(ledger, "1", "milk-1l", MILK_URL, last_status=False)
    _track(ledger, "2", "milk-1l", MILK_URL, last_status=False)
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(ledger, FakeMonitor({MILK_URL: True}), notifier).run_tick())

    assert report.notified == 1
    assert [subscriber for subscriber, _ in notifier.sent] == ["1"]


def test_failing_row_does_not_abort_tick(ledger) -> None:
    _track(ledger, "42", "curd-400g", CURD_URL, last_status=False)
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    monitor = FakeMonitor(
        {
            CURD_URL: StockStatus.from_error("Timeout 30000ms exceeded"),
            MILK_URL: True,
        }
    )
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(ledger, monitor, notifier).run_tick())

    assert [url for url, _ in monitor.calls] == [CURD_URL, MILK_URL]
    assert report.errors == 1
    assert report.notified == 1
    assert ledger.get_tracking("42", "curd-400g").last_stock_status is False
    assert ledger.get_tracking("42", "milk-1l").last_stock_status is True


def test_raising_check_is_isolated(ledger) -> None:
    _track(ledger, "42", "curd-400g", CURD_URL, last_status=False)
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    monitor = FakeMonitor({CURD_URL: RuntimeError("browser crashed"), MILK_URL: False})

    report = asyncio.run(_scheduler(ledger, monitor, FakeNotifier()).run_tick())

    assert report.checked == 1
    assert report.errors == 1
    assert ledger.get_tracking("42", "milk-1l").last_checked_at is not None


def test_subscriber_location_overrides_default(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    _track(ledger, "7", "curd-400g", CURD_URL, last_status=False)
    ledger.set_location("42", "560001")
    monitor = FakeMonitor({MILK_URL: False, CURD_URL: False})

    asyncio.run(_scheduler(ledger, monitor, FakeNotifier()).run_tick())

    assert dict(monitor.calls) == {MILK_URL: "560001", CURD_URL: "135001"}


def test_tick_feeds_health_and_cache(ledger, tmp_path) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    health = HealthMonitor(run_id="t", log_path=tmp_path / "health.log")
    cache = TTLCache()
    scheduler = _scheduler(ledger, FakeMonitor({MILK_URL: False}), FakeNotifier(), health=health, cache=cache)

    asyncio.run(scheduler.run_tick())

    assert cache.get_stock_status("milk-1l", "135001").is_in_stock is False
    assert cache.get_stock_status("milk-1l", "560001") is None
    assert health.snapshot()["empty_streak"] == 0
    assert scheduler.last_report is not None


def test_same_item_and_location_is_loaded_once_per_tick(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    _track(ledger, "43", "milk-1l", MILK_URL, last_status=False)
    _track(ledger, "44", "milk-1l", MILK_URL, last_status=None)
    ledger.set_location("44", "560001")
    monitor = FakeMonitor({MILK_URL: True})
    notifier = FakeNotifier()
    scheduler = _scheduler(ledger, monitor, notifier, cache=TTLCache())

    report = asyncio.run(scheduler.run_tick())

    assert sorted(monitor.calls) == [(MILK_URL, "135001"), (MILK_URL, "560001")]
    assert report.checked == 3
    assert report.in_stock == 3
    assert {row.subscriber_id for row in ledger.get_tracking_by_item("milk-1l") if row.last_stock_status} == {"42", "43", "44"}


def test_results_from_an_earlier_tick_are_checked_again(ledger) -> None:
    _track(ledger, "42", "milk-1l", MILK_URL, last_status=False)
    cache = TTLCache()
    cache.cache_stock_status(
        "milk-1l",
        StockStatus(is_in_stock=False, checked_at=datetime.now(timezone.utc) - timedelta(minutes=1)),
        "135001",
    )
    monitor = FakeMonitor({MILK_URL: True})
    notifier = FakeNotifier()

    report = asyncio.run(_scheduler(ledger, monitor, notifier, cache=cache).run_tick())

    assert monitor.calls == [(MILK_URL, "135001")]
    assert report.notified == 1
    assert cache.get_stock_status("milk-1l", "135001").is_in_stock is True


def test_start_schedules_immediate_one_shot_tick(ledger) -> None:
    fake = FakeAPScheduler()
    scheduler = _scheduler(ledger, FakeMonitor({}), FakeNotifier(), scheduler=fake)

    scheduler.start()

    assert fake.started is True
    assert scheduler.running is True
    assert fake.jobs[0]["trigger"] == "date"
    assert fake.jobs[0]["id"] == JOB_ID
    assert fake.jobs[0]["run_date"] <= datetime.now(timezone.utc)

    scheduler.stop()
    assert fake.shutdown_called is True
    assert scheduler.running is False


def test_next_tick_is_scheduled_after_failure(ledger) -> None:
    class BrokenLedger:
        def get_active_tracking(self):
            raise RuntimeError("database is locked")

    fake = FakeAPScheduler()
    scheduler = _scheduler(BrokenLedger(), FakeMonitor({}), FakeNotifier(), scheduler=fake)
    scheduler.start()
    before = datetime.now(timezone.utc)

    asyncio.run(scheduler._run_and_reschedule())

    assert len(fake.jobs) == 2
    follow_up = fake.jobs[1]
    assert follow_up["trigger"] == "date"
    assert follow_up["run_date"] >= before + timedelta(minutes=5)


def test_no_reschedule_after_stop(ledger) -> None:
    fake = FakeAPScheduler()
    scheduler = _scheduler(ledger, FakeMonitor({}), FakeNotifier(), scheduler=fake)
    scheduler.start()
    scheduler.stop()

    asyncio.run(scheduler._run_and_reschedule())

    assert len(fake.jobs) == 1
