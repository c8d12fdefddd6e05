"""Single-item stock checks against a live product page."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from playwright.async_api import async_playwright
from tenacity import AsyncRetrying, stop_after_attempt, wait_random_exponential

from stockwatch.errors import PageLoadError
from stockwatch.logging_config import get_logger
from stockwatch.playwright_env import (
    apply_stealth,
    close_browser,
    context_kwargs,
    launch_browser,
    navigation_attempts,
    navigation_timeout_ms,
    resolve_user_agent,
    settle_delay_ms,
)
from stockwatch.storefront.classifier import OUT_OF_STOCK_LABEL, classify_markup
from stockwatch.storefront.modal import dismiss_location_modal

LOGGER = get_logger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StockStatus:
    """Outcome of one stock check. Never mutated after it is returned."""

    is_in_stock: bool
    checked_at: datetime
    price: str | None = None
    availability_label: str | None = None
    error: str | None = None
    diagnostic_note: str | None = None
    product_name: str | None = None

    @classmethod
    def from_error(cls, message: str, *, checked_at: datetime | None = None) -> "StockStatus":
        return cls(
            is_in_stock=False,
            checked_at=checked_at or _now_utc(),
            availability_label=OUT_OF_STOCK_LABEL,
            error=message,
        )


def describe_error(exc: BaseException) -> str:
    """Return a human readable cause for *exc*."""

    text = str(exc).strip()
    if not text:
        return exc.__class__.__name__
    first_line = text.splitlines()[0]
    return first_line


class ItemMonitor:
    """Load a product page in an isolated browser context and classify it.

    A single browser is shared across checks; each check gets its own context
    that is closed on every exit path. Pass *browser* to reuse an existing
    Playwright browser (or a test double); otherwise one is launched lazily.
    """

    def __init__(
        self,
        browser: Any | None = None,
        *,
        user_agent: str | None = None,
        timeout_ms: int | None = None,
        attempts: int | None = None,
        settle_ms: int | None = None,
    ) -> None:
        self._browser = browser
        self._owns_browser = browser is None
        self._playwright_cm: Any | None = None
        self._user_agent = user_agent or resolve_user_agent()
        self._timeout_ms = timeout_ms if timeout_ms is not None else navigation_timeout_ms()
        self._attempts = max(attempts if attempts is not None else navigation_attempts(), 1)
        self._settle_ms = settle_ms if settle_ms is not None else settle_delay_ms()
        self._launch_lock = asyncio.Lock()

    async def __aenter__(self) -> "ItemMonitor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _ensure_browser(self) -> Any:
        async with self._launch_lock:
            if self._browser is None:
                self._playwright_cm = async_playwright()
                playwright = await self._playwright_cm.start()
                try:
                    apply_stealth(playwright)
                    self._browser = await launch_browser(playwright)
                except Exception:
                    await self._playwright_cm.__aexit__(None, None, None)
                    self._playwright_cm = None
                    raise
                LOGGER.info("Browser launched for item checks")
            return self._browser

    async def close(self) -> None:
        """Close the browser when this monitor launched it."""

        if self._owns_browser and self._browser is not None:
            await close_browser(self._browser)
            self._browser = None
        if self._playwright_cm is not None:
            try:
                await self._playwright_cm.__aexit__(None, None, None)
            except Exception as exc:
                LOGGER.warning("Failed to stop Playwright: %s", exc)
            self._playwright_cm = None

    async def _navigate(self, page: Any, item_url: str, location_code: str | None) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_random_exponential(multiplier=0.5, max=5),
            reraise=True,
        ):
            with attempt:
                try:
                    await page.goto(item_url, wait_until="domcontentloaded", timeout=self._timeout_ms)
                except Exception as exc:
                    LOGGER.warning(
                        "Navigation attempt %d failed for %s: %s",
                        attempt.retry_state.attempt_number,
                        item_url,
                        describe_error(exc),
                    )
                    raise PageLoadError(
                        f"Navigation failed: {describe_error(exc)}",
                        url=item_url,
                        location_code=location_code,
                    ) from exc

        try:
            await page.wait_for_load_state("networkidle", timeout=self._timeout_ms)
        except Exception:
            LOGGER.debug("Network did not go idle for %s; continuing", item_url)

    async def check(self, item_url: str, location_code: str | None = None) -> StockStatus:
        """Return the current :class:`StockStatus` of *item_url*.

        Failures are reported through ``StockStatus.error`` instead of raising.
        """

        LOGGER.info("Checking stock | url=%s | location=%s", item_url, location_code or "default")
        context: Any | None = None
        try:
            browser = await self._ensure_browser()
            context = await browser.new_context(**context_kwargs(self._user_agent))
            page = await context.new_page()

            await self._navigate(page, item_url, location_code)
            if self._settle_ms > 0:
                await asyncio.sleep(self._settle_ms / 1000)

            outcome = await dismiss_location_modal(page, location_code)
            LOGGER.debug("Modal outcome for %s: %s", item_url, outcome.value)

            markup = await page.content()
            result = classify_markup(markup)
        except Exception as exc:
            message = describe_error(exc)
            LOGGER.warning("Stock check failed | url=%s | error=%s", item_url, message)
            return StockStatus.from_error(message)
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as exc:
                    LOGGER.warning("Failed to close context for %s: %s", item_url, exc)

        status = StockStatus(
            is_in_stock=result.in_stock,
            checked_at=_now_utc(),
            price=result.price,
            availability_label=result.availability_label,
            diagnostic_note=result.diagnostic_note,
            product_name=result.product_name,
        )
        LOGGER.info(
            "Stock result | url=%s | in_stock=%s | signal=%s",
            item_url,
            status.is_in_stock,
            result.signal,
        )
        return status
