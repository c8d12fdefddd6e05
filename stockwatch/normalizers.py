"""Utility helpers for normalising scraped and user-entered text values."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")


def clean_text(value: str | None) -> str | None:
    """Collapse whitespace and return ``None`` for empty strings."""

    if value is None:
        return None
    collapsed = _WHITESPACE.sub(" ", value).strip()
    return collapsed or None


def normalize_location_code(value: str | None) -> str | None:
    """Strip spaces from a postal code; return ``None`` when nothing remains."""

    if value is None:
        return None
    compact = "".join(value.split())
    return compact or None


def product_id_from_url(url: str) -> str:
    """Derive a stable item identifier from a product URL slug."""

    path = url.split("?", 1)[0].rstrip("/")
    slug = path.rsplit("/", 1)[-1]
    return slug or path


__all__ = [
    "clean_text",
    "normalize_location_code",
    "product_id_from_url",
]
