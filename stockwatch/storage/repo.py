"""Repository helpers for interacting with persistent storage."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models_sql import Subscriber, TrackedItem


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def upsert_subscriber(
    session: Session,
    subscriber_id: str,
    *,
    username: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> Subscriber:
    now = _now_utc()
    subscriber = session.get(Subscriber, subscriber_id)
    if subscriber is None:
        subscriber = Subscriber(
            id=subscriber_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        session.add(subscriber)
    else:
        subscriber.username = username
        subscriber.first_name = first_name
        subscriber.last_name = last_name
        subscriber.is_active = True
        subscriber.updated_at = now
    session.flush()
    return subscriber


def get_subscriber(session: Session, subscriber_id: str) -> Subscriber | None:
    stmt = select(Subscriber).where(
        Subscriber.id == subscriber_id,
        Subscriber.is_active.is_(True),
    )
    return session.execute(stmt).scalar_one_or_none()


def set_subscriber_location(session: Session, subscriber_id: str, location_code: str) -> Subscriber | None:
    subscriber = session.get(Subscriber, subscriber_id)
    if subscriber is None:
        return None
    subscriber.location_code = location_code
    subscriber.updated_at = _now_utc()
    session.flush()
    return subscriber


def get_tracking(session: Session, subscriber_id: str, item_id: str) -> TrackedItem | None:
    stmt = select(TrackedItem).where(
        TrackedItem.subscriber_id == subscriber_id,
        TrackedItem.item_id == item_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def upsert_tracking(
    session: Session,
    subscriber_id: str,
    item_id: str,
    item_name: str,
    item_url: str,
) -> TrackedItem:
    """Create the tracking row or refresh its item details.

    Existing tracking flags and stock history are left untouched.
    """

    now = _now_utc()
    row = get_tracking(session, subscriber_id, item_id)
    if row is None:
        row = TrackedItem(
            subscriber_id=subscriber_id,
            item_id=item_id,
            item_name=item_name,
            item_url=item_url,
            is_tracking=False,
            notification_enabled=True,
            created_at=now,
            updated_at=now,
        )
        session.add(row)
    else:
        row.item_name = item_name
        row.item_url = item_url
        row.updated_at = now
    session.flush()
    return row


def set_tracking_flag(session: Session, subscriber_id: str, item_id: str, is_tracking: bool) -> bool:
    row = get_tracking(session, subscriber_id, item_id)
    if row is None:
        return False
    row.is_tracking = is_tracking
    row.updated_at = _now_utc()
    session.flush()
    return True


def set_notification_flag(session: Session, subscriber_id: str, item_id: str, enabled: bool) -> bool:
    row = get_tracking(session, subscriber_id, item_id)
    if row is None:
        return False
    row.notification_enabled = enabled
    row.updated_at = _now_utc()
    session.flush()
    return True


def record_stock_status(
    session: Session,
    subscriber_id: str,
    item_id: str,
    is_in_stock: bool,
    checked_at: datetime,
) -> bool:
    row = get_tracking(session, subscriber_id, item_id)
    if row is None:
        return False
    row.last_checked_at = checked_at
    row.last_stock_status = is_in_stock
    session.flush()
    return True


def list_active_tracking(session: Session) -> list[TrackedItem]:
    stmt = (
        select(TrackedItem)
        .where(TrackedItem.is_tracking.is_(True))
        .order_by(TrackedItem.id)
    )
    return list(session.execute(stmt).scalars())


def list_subscriber_tracking(session: Session, subscriber_id: str) -> list[TrackedItem]:
    stmt = (
        select(TrackedItem)
        .where(TrackedItem.subscriber_id == subscriber_id)
        .order_by(TrackedItem.updated_at.desc(), TrackedItem.id.desc())
    )
    return list(session.execute(stmt).scalars())


def list_tracking_by_item(session: Session, item_id: str) -> list[TrackedItem]:
    stmt = select(TrackedItem).where(
        TrackedItem.item_id == item_id,
        TrackedItem.is_tracking.is_(True),
    )
    return list(session.execute(stmt).scalars())


def tracking_statistics(session: Session) -> dict[str, int]:
    total_subscribers = session.execute(
        select(func.count()).select_from(Subscriber).where(Subscriber.is_active.is_(True))
    ).scalar_one()
    active_tracking = session.execute(
        select(func.count()).select_from(TrackedItem).where(TrackedItem.is_tracking.is_(True))
    ).scalar_one()
    total_tracking = session.execute(select(func.count()).select_from(TrackedItem)).scalar_one()
    return {
        "total_subscribers": int(total_subscribers),
        "active_tracking": int(active_tracking),
        "total_tracking": int(total_tracking),
    }
