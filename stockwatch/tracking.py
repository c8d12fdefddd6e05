"""Subscriber-facing tracking lifecycle: select, start, stop, relocate, check."""

from __future__ import annotations

import asyncio
from enum import Enum

from stockwatch.alerts.notifier import format_stock_status
from stockwatch.cache import TTLCache
from stockwatch.catalog import ProductCatalog
from stockwatch.errors import LocationValidationError
from stockwatch.geography import GeographyValidator, LocationCheck
from stockwatch.logging_config import get_logger
from stockwatch.normalizers import normalize_location_code
from stockwatch.storage.ledger import TrackingLedger, TrackingRecord
from stockwatch.storefront.monitor import ItemMonitor

LOGGER = get_logger(__name__)


class TrackingState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    NOTIFIED = "notified"


def tracking_state(row: TrackingRecord) -> TrackingState:
    """Derive the lifecycle state of *row* from its stored flags."""

    if not row.is_tracking:
        return TrackingState.INACTIVE
    if row.last_stock_status is True:
        return TrackingState.NOTIFIED
    return TrackingState.ACTIVE


class TrackingService:
    """Glue between subscriber actions, the catalog and the tracking ledger."""

    def __init__(
        self,
        ledger: TrackingLedger,
        catalog: ProductCatalog,
        *,
        cache: TTLCache | None = None,
        validator: GeographyValidator | None = None,
    ) -> None:
        self._ledger = ledger
        self._catalog = catalog
        self._cache = cache if cache is not None else TTLCache()
        self._validator = validator if validator is not None else GeographyValidator()

    def register_subscriber(
        self,
        subscriber_id: str,
        *,
        username: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> None:
        self._ledger.register_subscriber(
            subscriber_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
        )

    def select_item(self, subscriber_id: str, product_id: str) -> TrackingRecord:
        product = self._catalog.get(product_id)
        if product is None:
            raise KeyError(f"Unknown product: {product_id}")
        record = self._ledger.create_or_update_tracking(
            subscriber_id,
            product.product_id,
            product.name,
            product.url,
        )
        self._cache.cache_user_selection(subscriber_id, product.product_id)
        LOGGER.info("Item selected | subscriber=%s | item=%s", subscriber_id, product.product_id)
        return record

    def current_selection(self, subscriber_id: str) -> TrackingRecord | None:
        """Return the cached selection, else the most recently updated row."""

        product_id = self._cache.get_user_selection(subscriber_id)
        if product_id:
            record = self._ledger.get_tracking(subscriber_id, product_id)
            if record is not None:
                return record
        rows = self._ledger.get_subscriber_tracking(subscriber_id)
        return rows[0] if rows else None

    def start_tracking(self, subscriber_id: str, item_id: str) -> bool:
        return self._ledger.start_tracking(subscriber_id, item_id)

    def stop_tracking(self, subscriber_id: str, item_id: str) -> bool:
        return self._ledger.stop_tracking(subscriber_id, item_id)

    def set_notifications(self, subscriber_id: str, item_id: str, enabled: bool) -> bool:
        """Mute or unmute restock alerts for one row without touching tracking."""
        return self._ledger.set_notifications(subscriber_id, item_id, enabled)

    def set_location(self, subscriber_id: str, code: str) -> LocationCheck:
        """Validate *code* and store it for the subscriber.

        Raises :class:`LocationValidationError` for codes the validator rejects;
        nothing is stored in that case.
        """

        normalized = normalize_location_code(code) or ""
        check = self._validator.validate(normalized)
        if not check.is_valid:
            raise LocationValidationError(normalized, check.error)
        if not self._ledger.set_location(subscriber_id, normalized):
            raise KeyError(f"Unknown subscriber: {subscriber_id}")
        LOGGER.info("Location updated | subscriber=%s | code=%s", subscriber_id, normalized)
        return check

    async def set_location_async(self, subscriber_id: str, code: str) -> LocationCheck:
        return await asyncio.to_thread(self.set_location, subscriber_id, code)


async def check_now(
    monitor: ItemMonitor,
    item_url: str,
    location_code: str | None = None,
    *,
    item_name: str | None = None,
) -> str:
    """Run one check immediately and render it with any raw error visible."""

    status = await monitor.check(item_url, location_code)
    return format_stock_status(status, item_name or status.product_name or item_url, manual=True)
