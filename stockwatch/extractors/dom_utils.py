"""Helper utilities for safely interacting with rendered page content."""

from __future__ import annotations

import asyncio
import random
from typing import Any

from stockwatch.playwright_env import apply_wait_policy


async def human_wait(
    min_ms: int = 350,
    max_ms: int = 900,
    *,
    obey_policy: bool = True,
) -> None:
    """Sleep for a random, human-like interval between the provided bounds."""

    if min_ms < 0:
        min_ms = 0
    if max_ms < min_ms:
        max_ms = min_ms

    if obey_policy:
        min_ms, max_ms = apply_wait_policy(min_ms, max_ms)

    delay = random.uniform(min_ms / 1000, max_ms / 1000)
    await asyncio.sleep(delay)


async def first_visible_selector(
    page: Any,
    candidates: tuple[str, ...] | list[str],
    *,
    timeout_ms: int,
) -> str | None:
    """Return the first selector in *candidates* that becomes visible.

    Each candidate gets its own bounded wait; the list is tried once, in order.
    """

    for selector in candidates:
        try:
            handle = await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        except Exception:
            continue
        if handle is not None:
            return selector
    return None
