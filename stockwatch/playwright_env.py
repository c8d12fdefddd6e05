"""Centralised helpers for Playwright launch + anti-bot configuration."""

from __future__ import annotations

import os
import shlex
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

from playwright.async_api import Browser, BrowserContext, Playwright

_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@lru_cache(maxsize=1)
def headless_enabled() -> bool:
    """Return True if Playwright should run in headless mode."""

    return _as_bool(os.getenv("STOCKWATCH_HEADLESS"), True)


def stealth_enabled() -> bool:
    """Return True when stealth evasion scripts should be applied."""

    return _as_bool(os.getenv("STOCKWATCH_STEALTH"), True)


@lru_cache(maxsize=1)
def _stealth_instance():
    if not stealth_enabled():
        return None
    from playwright_stealth import Stealth

    lang_env = os.getenv("STOCKWATCH_LANGS") or "en-IN,en"
    langs = tuple(
        entry.strip()
        for entry in lang_env.split(",")
        if entry.strip()
    ) or ("en-IN", "en")

    return Stealth(
        navigator_languages_override=langs[:2],
        navigator_user_agent_override=resolve_user_agent(),
    )


def apply_stealth(playwright: Playwright) -> None:
    """Hook the provided Playwright object with stealth evasions when enabled."""

    instance = _stealth_instance()
    if instance is None:
        return
    try:
        instance.hook_playwright_context(playwright)
    except Exception:
        # Best-effort; fall back silently if Playwright internals change.
        pass


def resolve_user_agent() -> str:
    """Return the client identity string sent with every page load."""

    value = (os.getenv("USER_AGENT") or "").strip()
    return value or DEFAULT_USER_AGENT


def _proxy_config() -> dict[str, str] | None:
    raw = os.getenv("STOCKWATCH_PROXY")
    if not raw:
        return None
    parsed = urlparse(raw)
    if not parsed.scheme:
        return {"server": f"http://{raw}"}
    return {"server": raw}


def slow_mo_ms() -> int | None:
    value = _env_int("STOCKWATCH_SLOW_MO_MS", 0)
    return value if value > 0 else None


def navigation_timeout_ms() -> int:
    """Upper bound for a single page navigation."""

    return max(_env_int("STOCKWATCH_NAV_TIMEOUT_MS", 30000), 1000)


def navigation_attempts() -> int:
    """Number of navigation attempts per check before giving up."""

    return max(_env_int("STOCKWATCH_NAV_ATTEMPTS", 2), 1)


def settle_delay_ms() -> int:
    """Delay after navigation that lets client-side rendering finish."""

    return max(_env_int("STOCKWATCH_SETTLE_MS", 3000), 0)


def launch_kwargs() -> dict[str, Any]:
    """Return kwargs passed to chromium.launch."""

    args = [
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--disable-infobars",
        "--no-default-browser-check",
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--window-size=1440,960",
    ]
    extra_args = os.getenv("STOCKWATCH_CHROMIUM_ARGS")
    if extra_args:
        args.extend(shlex.split(extra_args))

    kwargs: dict[str, Any] = {
        "headless": headless_enabled(),
        "args": args,
    }

    channel = os.getenv("STOCKWATCH_BROWSER_CHANNEL")
    if channel:
        kwargs["channel"] = channel

    proxy = _proxy_config()
    if proxy:
        kwargs["proxy"] = proxy

    slow_mo = slow_mo_ms()
    if slow_mo:
        kwargs["slow_mo"] = slow_mo

    return kwargs


def context_kwargs(user_agent: str | None = None) -> dict[str, Any]:
    """Return kwargs for a fresh, isolated ``browser.new_context`` call."""

    kwargs: dict[str, Any] = {
        "viewport": {"width": 1440, "height": 900},
        "user_agent": user_agent or resolve_user_agent(),
        "storage_state": None,
    }
    if _as_bool(os.getenv("STOCKWATCH_IGNORE_HTTPS_ERRORS"), False):
        kwargs["ignore_https_errors"] = True
    return kwargs


async def launch_browser(playwright: Playwright) -> Browser:
    """Launch Chromium according to env overrides."""

    return await playwright.chromium.launch(**launch_kwargs())


async def close_browser(browser: Browser | None, context: BrowserContext | None = None) -> None:
    """Close the provided context and/or browser without raising."""

    if context is not None:
        try:
            await context.close()
        except Exception:
            pass

    if browser is not None:
        try:
            await browser.close()
        except Exception:
            pass


def apply_wait_policy(min_ms: int, max_ms: int) -> tuple[int, int]:
    """Apply global wait overrides + multiplier for human_wait() calls."""

    min_override = _env_int("STOCKWATCH_WAIT_MIN_MS", min_ms)
    max_override = _env_int("STOCKWATCH_WAIT_MAX_MS", max_ms)
    multiplier = max(_env_float("STOCKWATCH_WAIT_MULTIPLIER", 1.0), 0.0)

    scaled_min = int(min_override * multiplier)
    scaled_max = int(max_override * multiplier)
    if scaled_max < scaled_min:
        scaled_max = scaled_min
    return scaled_min, scaled_max
