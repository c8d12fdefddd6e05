"""Session-scoped facade over the tracking tables."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator

from sqlalchemy.orm import Session

from stockwatch.logging_config import get_logger

from . import repo
from .models_sql import TrackedItem

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class TrackingRecord:
    """Detached snapshot of a tracked item row."""

    subscriber_id: str
    item_id: str
    item_name: str
    item_url: str
    is_tracking: bool
    notification_enabled: bool
    last_checked_at: datetime | None
    last_stock_status: bool | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: TrackedItem) -> "TrackingRecord":
        return cls(
            subscriber_id=row.subscriber_id,
            item_id=row.item_id,
            item_name=row.item_name,
            item_url=row.item_url,
            is_tracking=row.is_tracking,
            notification_enabled=row.notification_enabled,
            last_checked_at=row.last_checked_at,
            last_stock_status=row.last_stock_status,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class TrackingLedger:
    """Persist subscribers and their tracked items.

    Every method opens its own session and commits before returning, so the
    ledger can be shared by the scheduler, the CLI and the dashboard.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def register_subscriber(
        self,
        subscriber_id: str,
        *,
        username: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> None:
        with self._session() as session:
            repo.upsert_subscriber(
                session,
                subscriber_id,
                username=username,
                first_name=first_name,
                last_name=last_name,
            )
        LOGGER.info("Subscriber registered | id=%s", subscriber_id)

    def get_subscriber(self, subscriber_id: str) -> dict[str, str | None] | None:
        with self._session() as session:
            subscriber = repo.get_subscriber(session, subscriber_id)
            if subscriber is None:
                return None
            return {
                "location_code": subscriber.location_code,
                "display_name": subscriber.display_name,
            }

    def set_location(self, subscriber_id: str, location_code: str) -> bool:
        with self._session() as session:
            updated = repo.set_subscriber_location(session, subscriber_id, location_code)
        return updated is not None

    def create_or_update_tracking(
        self,
        subscriber_id: str,
        item_id: str,
        item_name: str,
        item_url: str,
    ) -> TrackingRecord:
        with self._session() as session:
            row = repo.upsert_tracking(session, subscriber_id, item_id, item_name, item_url)
            return TrackingRecord.from_row(row)

    def start_tracking(self, subscriber_id: str, item_id: str) -> bool:
        with self._session() as session:
            found = repo.set_tracking_flag(session, subscriber_id, item_id, True)
        if found:
            LOGGER.info("Tracking started | subscriber=%s | item=%s", subscriber_id, item_id)
        return found

    def stop_tracking(self, subscriber_id: str, item_id: str) -> bool:
        with self._session() as session:
            found = repo.set_tracking_flag(session, subscriber_id, item_id, False)
        if found:
            LOGGER.info("Tracking stopped | subscriber=%s | item=%s", subscriber_id, item_id)
        return found

    def set_notifications(self, subscriber_id: str, item_id: str, enabled: bool) -> bool:
        with self._session() as session:
            return repo.set_notification_flag(session, subscriber_id, item_id, enabled)

    def get_tracking(self, subscriber_id: str, item_id: str) -> TrackingRecord | None:
        with self._session() as session:
            row = repo.get_tracking(session, subscriber_id, item_id)
            return TrackingRecord.from_row(row) if row is not None else None

    def get_active_tracking(self) -> list[TrackingRecord]:
        with self._session() as session:
            return [TrackingRecord.from_row(row) for row in repo.list_active_tracking(session)]

    def update_stock_status(
        self,
        subscriber_id: str,
        item_id: str,
        is_in_stock: bool,
        checked_at: datetime,
    ) -> None:
        with self._session() as session:
            found = repo.record_stock_status(session, subscriber_id, item_id, is_in_stock, checked_at)
        if not found:
            LOGGER.warning(
                "Stock status for unknown tracking row | subscriber=%s | item=%s",
                subscriber_id,
                item_id,
            )

    def get_subscriber_tracking(self, subscriber_id: str) -> list[TrackingRecord]:
        with self._session() as session:
            rows = repo.list_subscriber_tracking(session, subscriber_id)
            return [TrackingRecord.from_row(row) for row in rows]

    def get_tracking_by_item(self, item_id: str) -> list[TrackingRecord]:
        with self._session() as session:
            return [TrackingRecord.from_row(row) for row in repo.list_tracking_by_item(session, item_id)]

    def get_tracking_statistics(self) -> dict[str, int]:
        with self._session() as session:
            return repo.tracking_statistics(session)
