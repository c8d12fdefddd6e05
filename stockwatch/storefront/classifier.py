"""Stock classification for rendered product pages.

Classification runs an ordered list of independent signal predicates over the
page markup and stops at the first conclusive one. When nothing is conclusive
the page is reported out of stock: availability is only claimed on positive
evidence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from bs4 import BeautifulSoup

import stockwatch.selectors as selectors
from stockwatch.normalizers import clean_text

ENABLED_SENTINEL = "0"
SOLD_OUT_PHRASES = ("sold out",)
NOTIFY_ME_PHRASES = ("notify me",)
UNAVAILABLE_PHRASES = (
    "out of stock",
    "currently unavailable",
    "not available for delivery",
)
IN_STOCK_LABEL = "In Stock"
OUT_OF_STOCK_LABEL = "Out of Stock"
SOLD_OUT_LABEL = "Sold Out"
DEFAULT_NOTE = "No conclusive stock signal found; reporting out of stock"

_NON_VISIBLE_TAGS = {"script", "style", "noscript", "template"}


@dataclass(frozen=True)
class Signal:
    """A conclusive verdict produced by one predicate."""

    in_stock: bool
    label: str
    note: str


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one rendered page."""

    in_stock: bool
    availability_label: str
    diagnostic_note: str
    price: str | None = None
    product_name: str | None = None
    signal: str = "default"


Predicate = Callable[[BeautifulSoup], Signal | None]


def _text(node) -> str:
    return clean_text(node.get_text(" ", strip=True)) or ""


def _contains_phrase(text: str, phrases: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in phrases)


def _visible_text(soup: BeautifulSoup) -> str:
    root = soup.body or soup
    parts = [
        fragment
        for fragment in root.find_all(string=True)
        if fragment.parent is not None and fragment.parent.name not in _NON_VISIBLE_TAGS
    ]
    return clean_text(" ".join(parts)) or ""


def sold_out_banner(soup: BeautifulSoup) -> Signal | None:
    """Alert banner carrying a sold-out phrase."""

    for banner in soup.select(selectors.SOLD_OUT_ALERT):
        text = _text(banner)
        if _contains_phrase(text, SOLD_OUT_PHRASES):
            return Signal(False, SOLD_OUT_LABEL, f"Sold-out banner: {text}")
    return None


def _product_scopes(soup: BeautifulSoup) -> list:
    scopes = soup.select(selectors.PRODUCT_DETAIL)
    if scopes:
        return scopes
    control = soup.select_one(selectors.ADD_TO_CART)
    form = control.find_parent("form") if control is not None else None
    return [form] if form is not None else []


def notify_me_cta(soup: BeautifulSoup) -> Signal | None:
    """A "notify me" call-to-action only renders while the item is unavailable.

    Dedicated enquiry controls count anywhere on the page. Plain buttons and
    links count only inside the product detail area, so site-wide
    "notify me about new launches" links are ignored.
    """

    candidates = list(soup.select(selectors.NOTIFY_ME))
    for scope in _product_scopes(soup):
        candidates.extend(scope.find_all(["button", "a"]))
    for node in candidates:
        text = _text(node)
        if _contains_phrase(text, NOTIFY_ME_PHRASES):
            return Signal(False, OUT_OF_STOCK_LABEL, f"Notify-me control present: {text}")
    return None


def add_to_cart_state(soup: BeautifulSoup) -> Signal | None:
    """Read the primary add-to-cart control's ``disabled`` attribute.

    The sentinel value means enabled. Any other value, including a bare
    ``disabled``, means disabled. A missing attribute is not conclusive.
    """

    control = soup.select_one(selectors.ADD_TO_CART)
    if control is None:
        return None
    raw = control.get("disabled")
    if raw is None:
        return None
    value = str(raw).strip()
    if value == ENABLED_SENTINEL:
        return Signal(True, IN_STOCK_LABEL, f"Add-to-cart enabled (disabled={value!r})")
    return Signal(False, OUT_OF_STOCK_LABEL, f"Add-to-cart disabled (disabled={value!r})")


def unavailability_markers(soup: BeautifulSoup) -> Signal | None:
    """Generic out-of-stock classes or text fragments."""

    marker = soup.select_one(selectors.OUT_OF_STOCK_HINT)
    if marker is not None:
        return Signal(False, OUT_OF_STOCK_LABEL, f"Unavailability marker: <{marker.name} class={marker.get('class')}>")

    text = _visible_text(soup)
    lowered = text.lower()
    for phrase in UNAVAILABLE_PHRASES:
        if phrase in lowered:
            return Signal(False, OUT_OF_STOCK_LABEL, f"Unavailability text: {phrase!r}")
    return None


SIGNALS: tuple[tuple[str, Predicate], ...] = (
    ("sold_out_banner", sold_out_banner),
    ("notify_me_cta", notify_me_cta),
    ("add_to_cart_state", add_to_cart_state),
    ("unavailability_markers", unavailability_markers),
)


def extract_price(soup: BeautifulSoup) -> str | None:
    """Return the first price-looking text on the page."""

    for node in soup.select(selectors.PRICE):
        text = _text(node)
        if text and any(char.isdigit() for char in text):
            return text
    return None


def extract_product_name(soup: BeautifulSoup) -> str | None:
    for node in soup.select(selectors.PRODUCT_NAME):
        text = _text(node)
        if text:
            return text
    return None


def classify_soup(soup: BeautifulSoup) -> Classification:
    """Evaluate :data:`SIGNALS` in order over an already parsed page."""

    price = extract_price(soup)
    product_name = extract_product_name(soup)

    for name, predicate in SIGNALS:
        signal = predicate(soup)
        if signal is None:
            continue
        return Classification(
            in_stock=signal.in_stock,
            availability_label=signal.label,
            diagnostic_note=signal.note,
            price=price,
            product_name=product_name,
            signal=name,
        )

    return Classification(
        in_stock=False,
        availability_label=OUT_OF_STOCK_LABEL,
        diagnostic_note=DEFAULT_NOTE,
        price=price,
        product_name=product_name,
    )


def classify_markup(markup: str) -> Classification:
    """Classify rendered page markup into a stock state."""

    return classify_soup(BeautifulSoup(markup or "", "html.parser"))
