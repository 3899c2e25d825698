"""
Reusable DOM helpers for marketplace forms.

Dropdowns, toggles and lazily-rendered file inputs behave the same across
marketplaces; the pure matching and state functions here carry the logic so
it can be tested without a browser.
"""

import logging
import re
from typing import Any, Dict, Optional, Sequence

from browser.selectors import SelectorChain, is_visible

logger = logging.getLogger(__name__)

OPTION_SELECTOR = '[role="option"], [role="listbox"] li, .dropdown-item, [data-testid*="Option"]'
DROPDOWN_OPEN_DELAY_MS = 500
OPTION_LIST_TIMEOUT_MS = 3000
UPLOADER_RETRY_DELAY_MS = 1500

TOGGLE_STATE_JS = """
el => {
    const nested = el.querySelector ? el.querySelector('input[type="checkbox"], input[type="radio"]') : null;
    return {
        checked: typeof el.checked === 'boolean' ? el.checked : (nested ? nested.checked : null),
        ariaChecked: el.getAttribute('aria-checked'),
        ariaPressed: el.getAttribute('aria-pressed'),
        className: typeof el.className === 'string' ? el.className : '',
        dataState: el.getAttribute('data-state'),
    };
}
"""


def _normalize_text(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip().casefold()


def match_option(texts: Sequence[str], target: str, partial_match: bool = False) -> Optional[int]:
    """
    Index of the option matching target, or None.

    Exact mode compares whole normalized strings; partial mode returns the
    first option containing target. Both are case-insensitive.
    """
    wanted = _normalize_text(target)
    if not wanted:
        return None
    for index, text in enumerate(texts):
        candidate = _normalize_text(text)
        if candidate == wanted or (partial_match and wanted in candidate):
            return index
    return None


def toggle_state_from_attributes(attrs: Optional[Dict[str, Any]]) -> bool:
    """Collapse the different on/off signals toggles use into one boolean."""
    if not attrs:
        return False
    if attrs.get("checked") is True:
        return True
    if str(attrs.get("ariaChecked") or "").lower() == "true":
        return True
    if str(attrs.get("ariaPressed") or "").lower() == "true":
        return True
    if str(attrs.get("dataState") or "").lower() == "checked":
        return True
    classes = str(attrs.get("className") or "").split()
    return "checked" in classes


async def detect_toggle_state(element) -> bool:
    try:
        attrs = await element.evaluate(TOGGLE_STATE_JS)
    except Exception as e:
        logger.debug(f"Toggle state read failed: {e}")
        return False
    return toggle_state_from_attributes(attrs)


async def set_toggle(element, desired: bool) -> bool:
    """Click the toggle once if its state differs from desired. Returns whether it clicked."""
    current = await detect_toggle_state(element)
    if current == bool(desired):
        return False
    await element.click()
    return True


async def select_dropdown_option(
    page,
    trigger: SelectorChain,
    text: str,
    partial_match: bool = False,
    option_selector: str = OPTION_SELECTOR,
) -> bool:
    """Open a dropdown and click the option matching text. Never raises."""
    if not text:
        return False
    try:
        match = await trigger.resolve(page)
        if match is None:
            logger.debug(f"Dropdown {trigger.name} not found")
            return False

        await match.locator.click()
        await page.wait_for_timeout(DROPDOWN_OPEN_DELAY_MS)

        options = page.locator(option_selector)
        try:
            await options.first.wait_for(state="visible", timeout=OPTION_LIST_TIMEOUT_MS)
        except Exception:
            logger.debug(f"Dropdown {trigger.name}: option list never appeared")
            return False

        texts = await options.all_inner_texts()
        index = match_option(texts, text, partial_match)
        if index is None:
            logger.info(f"Dropdown {trigger.name}: no option matches {text!r}")
            await page.keyboard.press("Escape")
            return False

        await options.nth(index).click()
        return True
    except Exception as e:
        logger.warning(f"Dropdown {trigger.name} selection failed: {e}")
        return False


async def fill_text(page, chain: SelectorChain, value: Any) -> bool:
    """Fill the first visible match of chain. Returns False when absent."""
    match = await chain.resolve(page)
    if match is None:
        return False
    await match.locator.click()
    await match.locator.fill(str(value))
    return True


async def wait_for_file_input(page, inputs: SelectorChain, openers: SelectorChain):
    """
    Locate a file input, clicking an upload affordance once if none is
    rendered yet. Returns a locator or None.
    """
    match = await inputs.resolve(page)
    if match is not None:
        return match.locator

    opener = await openers.resolve(page)
    if opener is None:
        return None

    logger.debug(f"No file input yet; clicking {opener.selector!r}")
    await opener.locator.click()
    await page.wait_for_timeout(UPLOADER_RETRY_DELAY_MS)

    match = await inputs.resolve(page)
    return match.locator if match is not None else None


async def any_visible(page, selectors: Sequence[str]) -> Optional[str]:
    """First selector with a visible match, or None."""
    for selector in selectors:
        try:
            locator = page.locator(selector)
            if await locator.count() and await is_visible(locator.first):
                return selector
        except Exception:
            continue
    return None
