"""Periodic stock checks over every actively tracked item."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from stockwatch.alerts.gate import NotificationGate
from stockwatch.alerts.notifier import Notifier, format_restock_alert
from stockwatch.cache import TTLCache
from stockwatch.health import HealthMonitor
from stockwatch.logging_config import get_logger
from stockwatch.storage.ledger import TrackingLedger, TrackingRecord
from stockwatch.storefront.monitor import ItemMonitor, StockStatus

LOGGER = get_logger(__name__)

JOB_ID = "stock-tick"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TickReport:
    """Counters for one pass over the active tracking rows."""

    started_at: datetime = field(default_factory=_now_utc)
    finished_at: datetime | None = None
    checked: int = 0
    in_stock: int = 0
    notified: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data


class MonitoringScheduler:
    """Check every active row once per tick and alert on restocks.

    Ticks never overlap: the next tick is added as a one-shot job only after
    the current one has finished, whether it succeeded or failed.
    """

    def __init__(
        self,
        ledger: TrackingLedger,
        monitor: ItemMonitor,
        gate: NotificationGate,
        notifier: Notifier,
        *,
        default_location: str,
        interval_minutes: float = 5,
        health: HealthMonitor | None = None,
        cache: TTLCache | None = None,
        scheduler: Any | None = None,
    ) -> None:
        self._ledger = ledger
        self._monitor = monitor
        self._gate = gate
        self._notifier = notifier
        self.default_location = default_location
        self.interval_minutes = interval_minutes
        self._health = health
        self._cache = cache
        self._scheduler = scheduler
        self._running = False
        self.last_report: TickReport | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def health(self) -> HealthMonitor | None:
        return self._health

    def _resolve_location(self, subscriber_id: str, resolved: dict[str, str]) -> str:
        if subscriber_id in resolved:
            return resolved[subscriber_id]
        location = self.default_location
        try:
            subscriber = self._ledger.get_subscriber(subscriber_id)
        except Exception as exc:
            LOGGER.warning("Subscriber lookup failed for %s: %s", subscriber_id, exc)
            subscriber = None
        if subscriber and subscriber.get("location_code"):
            location = str(subscriber["location_code"])
        resolved[subscriber_id] = location
        return location

    async def _notify_restock(self, row: TrackingRecord, status: StockStatus) -> None:
        text = format_restock_alert(
            row.item_name,
            row.item_url,
            status,
            cooldown_minutes=self._gate.cooldown_minutes,
        )
        delivered = await asyncio.to_thread(self._notifier.send_message, row.subscriber_id, text)
        self._gate.record_sent()
        LOGGER.info(
            "Restock alert emitted | subscriber=%s | item=%s | delivered=%s",
            row.subscriber_id,
            row.item_id,
            delivered,
        )

    def _recent_status(self, row: TrackingRecord, location: str, since: datetime) -> StockStatus | None:
        if self._cache is None:
            return None
        status = self._cache.get_stock_status(row.item_id, location)
        # Only reuse results observed during the current tick.
        if status is None or status.checked_at < since:
            return None
        return status

    async def _process_row(self, row: TrackingRecord, report: TickReport, resolved: dict[str, str]) -> None:
        location = self._resolve_location(row.subscriber_id, resolved)
        status = self._recent_status(row, location, report.started_at)
        if status is not None:
            LOGGER.debug("Reusing tick result | item=%s | location=%s", row.item_id, location)
        else:
            status = await self._monitor.check(row.item_url, location)
            if status.error:
                if self._health is not None:
                    self._health.record_check_error(item_url=row.item_url, reason=status.error)
            else:
                if self._health is not None:
                    self._health.record_check(item_url=row.item_url, in_stock=status.is_in_stock)
                if self._cache is not None:
                    self._cache.cache_stock_status(row.item_id, status, location)
        report.checked += 1
        if status.error:
            report.errors += 1
        if status.is_in_stock:
            report.in_stock += 1

        self._ledger.update_stock_status(
            row.subscriber_id,
            row.item_id,
            status.is_in_stock,
            status.checked_at,
        )

        restocked = status.is_in_stock and row.last_stock_status is False
        if restocked and row.notification_enabled and self._gate.should_notify():
            await self._notify_restock(row, status)
            report.notified += 1
        elif restocked:
            LOGGER.info(
                "Restock suppressed | subscriber=%s | item=%s | notifications_enabled=%s",
                row.subscriber_id,
                row.item_id,
                row.notification_enabled,
            )

    async def run_tick(self) -> TickReport:
        """Check all active rows once; a failing row never aborts the batch."""

        report = TickReport()
        rows = self._ledger.get_active_tracking()
        LOGGER.info("Tick started | active_rows=%d", len(rows))

        resolved: dict[str, str] = {}
        for row in rows:
            try:
                await self._process_row(row, report, resolved)
            except Exception:
                report.errors += 1
                LOGGER.exception(
                    "Tracking row failed | subscriber=%s | item=%s",
                    row.subscriber_id,
                    row.item_id,
                )

        report.finished_at = _now_utc()
        if self._health is not None:
            self._health.record_tick(checked=report.checked)
        self.last_report = report
        LOGGER.info(
            "Tick finished | checked=%d in_stock=%d notified=%d errors=%d",
            report.checked,
            report.in_stock,
            report.notified,
            report.errors,
        )
        return report

    def _schedule_next(self, delay_s: float) -> None:
        run_date = _now_utc() + timedelta(seconds=delay_s)
        self._scheduler.add_job(
            self._run_and_reschedule,
            "date",
            run_date=run_date,
            id=JOB_ID,
            replace_existing=True,
            misfire_grace_time=None,
        )
        LOGGER.debug("Next tick scheduled for %s", run_date.isoformat())

    async def _run_and_reschedule(self) -> None:
        try:
            await self.run_tick()
        except Exception:
            LOGGER.exception("Monitoring tick failed")
        finally:
            if self._running:
                self._schedule_next(self.interval_minutes * 60)

    def start(self) -> None:
        """Start ticking; the first tick runs immediately. Must be called inside a running loop."""

        if self._running:
            return
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()
        self._running = True
        self._scheduler.start()
        self._schedule_next(0)
        LOGGER.info("Scheduler started with interval=%s minutes", self.interval_minutes)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        try:
            self._scheduler.shutdown(wait=False)
        finally:
            LOGGER.info("Scheduler stopped")
