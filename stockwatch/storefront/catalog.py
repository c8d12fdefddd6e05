"""Full-collection scraping for the storefront catalog."""

from __future__ import annotations

import asyncio
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import async_playwright

import stockwatch.selectors as selectors
from stockwatch.extractors.dom_utils import human_wait
from stockwatch.logging_config import get_logger
from stockwatch.normalizers import clean_text, product_id_from_url
from stockwatch.playwright_env import (
    apply_stealth,
    close_browser,
    context_kwargs,
    launch_browser,
    navigation_timeout_ms,
)
from stockwatch.storefront.modal import dismiss_location_modal

LOGGER = get_logger(__name__)

BASE_URL = "https://shop.amul.com"
COLLECTION_URL = f"{BASE_URL}/en/collection/power-of-protein"
GRID_TIMEOUT_MS = 15000
CATALOG_UPDATE_TIMEOUT_S = 5 * 60

# Checked in order; "buttermilk" must win over "milk" and "butter".
CATEGORY_KEYWORDS = (
    ("buttermilk", "Buttermilk"),
    ("milk", "Milk"),
    ("curd", "Curd"),
    ("paneer", "Paneer"),
    ("cheese", "Cheese"),
    ("ghee", "Ghee"),
    ("butter", "Butter"),
    ("protein", "Protein"),
    ("shake", "Shake"),
    ("whey", "Whey"),
)


@dataclass(frozen=True)
class CatalogProduct:
    """A product listed in the storefront collection."""

    product_id: str
    name: str
    url: str
    category: str
    description: str = ""
    price: str | None = None
    image_url: str | None = None


class SingleFlight:
    """Single-slot guard: one holder at a time, concurrent callers are turned away.

    Backed by a non-blocking :class:`threading.Lock` so the guarantee holds
    across threads as well as coroutines.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def claim(self) -> Iterator[bool]:
        """Yield True when the slot was claimed; the slot is released on exit."""

        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


def infer_category(name: str, url: str) -> str:
    lowered_name = name.lower()
    lowered_url = url.lower()
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in lowered_name or keyword in lowered_url:
            return category
    return "Other"


def parse_catalog_markup(markup: str, base_url: str = BASE_URL) -> list[CatalogProduct]:
    """Extract products from a rendered collection page.

    Cards without both a title and a product link are skipped. Nested card
    matches resolve to the same link and are de-duplicated by URL.
    """

    soup = BeautifulSoup(markup or "", "html.parser")
    products: list[CatalogProduct] = []
    seen_urls: set[str] = set()

    for card in soup.select(selectors.CATALOG_CARD):
        link = card.select_one(selectors.CATALOG_CARD_LINK)
        title = card.select_one(selectors.CATALOG_CARD_TITLE)
        if link is None or title is None:
            continue
        href = (link.get("href") or "").strip()
        name = clean_text(title.get_text(" ", strip=True))
        if not href or not name:
            continue

        url = href if href.startswith("http") else urljoin(base_url, href)
        if url in seen_urls:
            continue
        seen_urls.add(url)

        price_node = card.select_one(selectors.CATALOG_CARD_PRICE)
        price = clean_text(price_node.get_text(" ", strip=True)) if price_node else None
        image = card.select_one(selectors.CATALOG_CARD_IMAGE)
        image_url = (image.get("src") or "").strip() if image is not None else ""

        products.append(
            CatalogProduct(
                product_id=product_id_from_url(url),
                name=name,
                url=url,
                category=infer_category(name, url),
                description=name,
                price=price,
                image_url=image_url or None,
            )
        )

    return products


class CatalogScraper:
    """Scrape the collection page into :class:`CatalogProduct` rows.

    At most one scrape runs at a time; overlapping calls return ``[]`` without
    opening a browser.
    """

    def __init__(
        self,
        browser: Any | None = None,
        *,
        collection_url: str = COLLECTION_URL,
        location_code: str | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._browser = browser
        self.collection_url = collection_url
        self.location_code = location_code
        self._timeout_ms = timeout_ms if timeout_ms is not None else navigation_timeout_ms()
        self._guard = SingleFlight("catalog-scrape")

    @property
    def is_scraping(self) -> bool:
        return self._guard.busy

    async def scrape_products(self) -> list[CatalogProduct]:
        with self._guard.claim() as acquired:
            if not acquired:
                LOGGER.info("Catalog scrape already running; skipping")
                return []
            if self._browser is not None:
                return await self._scrape_with(self._browser)

            async with async_playwright() as playwright:
                apply_stealth(playwright)
                browser = await launch_browser(playwright)
                try:
                    return await self._scrape_with(browser)
                finally:
                    await close_browser(browser)
                    LOGGER.info("Catalog browser closed")

    async def _scrape_with(self, browser: Any) -> list[CatalogProduct]:
        context = await browser.new_context(**context_kwargs())
        try:
            page = await context.new_page()
            LOGGER.info("Loading collection %s", self.collection_url)
            await page.goto(self.collection_url, wait_until="domcontentloaded", timeout=self._timeout_ms)
            await human_wait(2000, 3000)
            await dismiss_location_modal(page, self.location_code)

            try:
                await page.wait_for_selector(selectors.CATALOG_CARD, timeout=GRID_TIMEOUT_MS)
            except Exception:
                LOGGER.warning("Product grid did not render on %s", self.collection_url)
            await human_wait(2000, 3000)

            products = parse_catalog_markup(await page.content())
        finally:
            try:
                await context.close()
            except Exception as exc:
                LOGGER.warning("Failed to close catalog context: %s", exc)

        LOGGER.info("Scraped %d products from the collection", len(products))
        return products

    async def update_catalog(self, timeout_s: float = CATALOG_UPDATE_TIMEOUT_S) -> list[CatalogProduct]:
        """Scrape the collection, giving up after *timeout_s* seconds."""

        try:
            return await asyncio.wait_for(self.scrape_products(), timeout=timeout_s)
        except asyncio.TimeoutError:
            LOGGER.error("Catalog update timed out after %s seconds", timeout_s)
            raise
