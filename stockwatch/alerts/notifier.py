"""Telegram delivery and message formatting for stock alerts."""

from __future__ import annotations

import os
import time
from typing import Iterable

import requests

from stockwatch.logging_config import get_logger
from stockwatch.storefront.monitor import StockStatus

LOGGER = get_logger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class Notifier:
    """Send text messages to subscribers through the Telegram Bot API.

    Each message gets a single attempt. Delivery problems are logged and
    reported through the boolean return value; they are never raised to the
    caller and never retried inline.
    """

    def __init__(self, token: str | None = None, *, timeout_s: float = 8) -> None:
        self._telegram_token = token if token is not None else os.getenv("TELEGRAM_BOT_TOKEN")
        self._timeout_s = timeout_s
        self._last_send = 0.0

    @property
    def configured(self) -> bool:
        return bool(self._telegram_token)

    def send_message(self, subscriber_id: str, text: str) -> bool:
        if not self._telegram_token:
            LOGGER.debug("Alert (noop) to %s: %s", subscriber_id, text.replace("\n", " | "))
            return False
        try:
            self._send_telegram(subscriber_id, text)
        except Exception as exc:
            LOGGER.warning("Alert delivery failed for %s: %s", subscriber_id, exc)
            return False
        LOGGER.info("Alert delivered to %s", subscriber_id)
        return True

    def _throttle(self) -> None:
        elapsed = time.monotonic() - self._last_send
        if elapsed < 1:
            time.sleep(1 - elapsed)
        self._last_send = time.monotonic()

    def _send_telegram(self, chat_id: str, text: str) -> None:
        self._throttle()
        url = f"{TELEGRAM_API}/bot{self._telegram_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        response = requests.post(url, json=payload, timeout=self._timeout_s)
        if response.status_code >= 400:
            raise RuntimeError(f"HTTP {response.status_code}")


def _join(lines: Iterable[str | None]) -> str:
    return "\n".join(line for line in lines if line)


def format_restock_alert(
    item_name: str,
    item_url: str,
    status: StockStatus,
    *,
    cooldown_minutes: float | None = None,
) -> str:
    checked = status.checked_at.strftime("%Y-%m-%d %H:%M:%S UTC")
    return _join(
        [
            "PRODUCT IS BACK IN STOCK!",
            "",
            f"Product: {item_name}",
            "Status: In Stock",
            f"Price: {status.price}" if status.price else None,
            f"Checked: {checked}",
            "",
            f"Buy now: {item_url}",
            (
                f"Next alert in at least {cooldown_minutes:g} minutes."
                if cooldown_minutes is not None
                else None
            ),
        ]
    )


def format_stock_status(status: StockStatus, item_name: str, *, manual: bool = False) -> str:
    """Render *status* for a subscriber.

    Scheduled output hides errors behind "Out of Stock" plus the diagnostic
    note; manual checks show the raw error text.
    """

    if status.error and manual:
        return _join([f"Product: {item_name}", f"Check failed: {status.error}"])

    label = "In Stock" if status.is_in_stock else "Out of Stock"
    note = status.diagnostic_note or ("Stock could not be confirmed" if status.error else None)
    return _join(
        [
            f"Product: {item_name}",
            f"Status: {label}",
            f"Price: {status.price}" if status.price else None,
            f"Note: {note}" if note and not status.is_in_stock else None,
        ]
    )
