"""Location-gating modal handling for storefront pages.

Some product pages cover their content with a postal-code prompt until a
delivery location is chosen. :func:`dismiss_location_modal` fills that prompt
and waits for it to go away. Pages without the prompt are common, so every
failure here is logged and swallowed; callers always continue to
classification.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import stockwatch.selectors as selectors
from stockwatch.extractors.dom_utils import first_visible_selector, human_wait
from stockwatch.logging_config import get_logger

LOGGER = get_logger(__name__)

DEFAULT_LOCATION_CODE = "135001"
PRIMARY_INPUT_TIMEOUT_MS = 3000
FALLBACK_INPUT_TIMEOUT_MS = 2000
SUGGESTION_TIMEOUT_MS = 2000
SUBMIT_CLICK_TIMEOUT_MS = 2000
MODAL_CLOSE_TIMEOUT_MS = 10000


class ModalOutcome(str, Enum):
    """Result of a modal dismissal attempt."""

    ABSENT = "absent"
    DISMISSED = "dismissed"
    FAILED = "failed"


_FOCUS_INPUT_JS = """
(selector) => {
  const input = document.querySelector(selector);
  if (!input) return false;
  const rect = input.getBoundingClientRect();
  input.dispatchEvent(new MouseEvent("click", {
    bubbles: true,
    cancelable: true,
    clientX: rect.left + rect.width / 2,
    clientY: rect.top + rect.height / 2,
  }));
  input.focus();
  return true;
}
"""

_SET_VALUE_JS = """
([selector, code]) => {
  const input = document.querySelector(selector);
  if (!input) return false;
  input.value = code;
  input.dispatchEvent(new Event("input", { bubbles: true }));
  input.dispatchEvent(new Event("change", { bubbles: true }));
  return true;
}
"""

_CLICK_SUGGESTION_JS = """
([itemSelector, nameSelector, code]) => {
  for (const item of document.querySelectorAll(itemSelector)) {
    const name = item.querySelector(nameSelector);
    const text = name && name.textContent ? name.textContent.trim() : "";
    if (text === code) {
      item.click();
      return true;
    }
  }
  return false;
}
"""

_MODAL_HIDDEN_JS = """
([inputSelector, containerSelector]) => {
  const input = document.querySelector(inputSelector);
  const modal = input ? input.closest(containerSelector) : null;
  if (!modal || !modal.isConnected) return true;
  const style = window.getComputedStyle(modal);
  if (style.display === "none" || style.visibility === "hidden") return true;
  return modal.getClientRects().length === 0;
}
"""


async def _find_location_input(page: Any) -> str | None:
    primary, *fallbacks = selectors.LOCATION_INPUT_STRATEGIES
    found = await first_visible_selector(page, (primary,), timeout_ms=PRIMARY_INPUT_TIMEOUT_MS)
    if found:
        return found
    return await first_visible_selector(page, fallbacks, timeout_ms=FALLBACK_INPUT_TIMEOUT_MS)


async def _choose_suggestion(page: Any, code: str) -> bool:
    """Click the suggestion whose text equals *code*; press Enter otherwise."""

    try:
        await page.wait_for_selector(
            selectors.LOCATION_SUGGESTION_READY,
            timeout=SUGGESTION_TIMEOUT_MS,
        )
        clicked = await page.evaluate(
            _CLICK_SUGGESTION_JS,
            [selectors.LOCATION_SUGGESTION_ITEM, selectors.LOCATION_SUGGESTION_NAME, code],
        )
    except Exception as exc:
        LOGGER.debug("Location suggestions did not render: %s", exc)
        clicked = False

    if clicked:
        LOGGER.info("Selected location suggestion %s", code)
        return True

    LOGGER.info("No clickable suggestion for %s; submitting with Enter", code)
    await page.keyboard.press("Enter")
    return False


async def _click_submit_control(page: Any) -> str | None:
    for selector in selectors.SUBMIT_CONTROLS:
        try:
            locator = page.locator(selector).first
            if not await locator.count():
                continue
            if not await locator.is_visible():
                continue
            await locator.click(timeout=SUBMIT_CLICK_TIMEOUT_MS)
        except Exception:
            continue
        return selector
    return None


async def dismiss_location_modal(page: Any, location_code: str | None = None) -> ModalOutcome:
    """Fill and close the location modal on *page* when one is present.

    Never raises: a missing input means no modal, and any later failure is
    logged before returning :attr:`ModalOutcome.FAILED`.
    """

    code = (location_code or "").strip() or DEFAULT_LOCATION_CODE

    try:
        input_selector = await _find_location_input(page)
        if input_selector is None:
            LOGGER.info("No location input found; assuming no modal")
            return ModalOutcome.ABSENT

        LOGGER.info("Location input found via %s", input_selector)
        await human_wait(800, 1200)

        await page.evaluate(_FOCUS_INPUT_JS, input_selector)
        await human_wait(300, 600)
        await page.evaluate(_SET_VALUE_JS, [input_selector, code])
        await human_wait(800, 1200)

        await _choose_suggestion(page, code)
        await human_wait(800, 1200)

        submitted_via = await _click_submit_control(page)
        if submitted_via:
            LOGGER.info("Clicked modal submit control %s", submitted_via)
            await human_wait(1500, 3000)

        await page.wait_for_function(
            _MODAL_HIDDEN_JS,
            arg=[input_selector, selectors.MODAL_CONTAINER],
            timeout=MODAL_CLOSE_TIMEOUT_MS,
        )
    except Exception as exc:
        LOGGER.warning("Location modal handling failed for %s: %s", code, exc)
        return ModalOutcome.FAILED

    LOGGER.info("Location modal closed for %s", code)
    return ModalOutcome.DISMISSED
