"""FastAPI status API exposing tracking data and monitor health."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from stockwatch.logging_config import get_logger
from stockwatch.scheduler import MonitoringScheduler
from stockwatch.storage.ledger import TrackingLedger
from stockwatch.tracking import tracking_state

LOGGER = get_logger(__name__)


class TrackingOut(BaseModel):
    subscriber_id: str
    item_id: str
    item_name: str
    item_url: str
    is_tracking: bool
    notification_enabled: bool
    state: str
    last_checked_at: datetime | None = None
    last_stock_status: bool | None = None


def get_ledger(request: Request) -> TrackingLedger:
    """Dependency that returns the ledger bound to the app."""

    return request.app.state.ledger


def create_app(ledger: TrackingLedger, scheduler: MonitoringScheduler | None = None) -> FastAPI:
    app = FastAPI(title="StockWatch Status")
    app.state.ledger = ledger
    app.state.scheduler = scheduler

    @app.get("/healthz")
    def healthcheck() -> dict[str, str]:
        """Return application health information."""

        return {"status": "ok"}

    @app.get("/api/stats")
    def api_stats(ledger: TrackingLedger = Depends(get_ledger)) -> JSONResponse:
        """Return aggregate tracking counts."""

        return JSONResponse(content=ledger.get_tracking_statistics())

    @app.get("/api/tracking", response_model=list[TrackingOut])
    def api_tracking(
        subscriber_id: str | None = Query(default=None),
        item_id: str | None = Query(default=None),
        ledger: TrackingLedger = Depends(get_ledger),
    ) -> list[TrackingOut]:
        if subscriber_id:
            rows = ledger.get_subscriber_tracking(subscriber_id)
        elif item_id:
            rows = ledger.get_tracking_by_item(item_id)
        else:
            rows = ledger.get_active_tracking()
        return [
            TrackingOut(
                subscriber_id=row.subscriber_id,
                item_id=row.item_id,
                item_name=row.item_name,
                item_url=row.item_url,
                is_tracking=row.is_tracking,
                notification_enabled=row.notification_enabled,
                state=tracking_state(row).value,
                last_checked_at=row.last_checked_at,
                last_stock_status=row.last_stock_status,
            )
            for row in rows
        ]

    @app.get("/api/health")
    def api_health(request: Request) -> dict[str, Any]:
        sched: MonitoringScheduler | None = request.app.state.scheduler
        if sched is None:
            return {"scheduler": "not running", "last_tick": None, "health": None}
        report = sched.last_report
        health = sched.health.snapshot() if sched.health is not None else None
        return {
            "scheduler": "running" if sched.running else "stopped",
            "interval_minutes": sched.interval_minutes,
            "last_tick": report.as_dict() if report is not None else None,
            "health": health,
        }

    return app
