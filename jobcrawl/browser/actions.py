"""Reusable browser actions: navigation, waits, scroll, sleep, diagnostics.

Design rules:
  - Every suspension point is time-bounded (navigation, waits, scroll pauses).
  - Incremental scroll by offset, not a single jump to the bottom.
  - Delays are randomized; the floor is enforced in code.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from patchright.async_api import Error as PlaywrightError
from patchright.async_api import TimeoutError as PlaywrightTimeoutError

from jobcrawl.core.debug_store import LIST_FAILURE_KEY, DebugStore
from jobcrawl.core.errors import DiscoveryTimeout, NavigationFailure

logger = logging.getLogger(__name__)

MAX_SCROLL_PASSES = 15
SCROLL_OFFSET_PX = 1600
SCROLL_DELAY_FLOOR = 0.25
CONSENT_CLICK_TIMEOUT_MS = 5000


async def random_sleep(min_s: float, max_s: float) -> float:
    """Sleep for a random duration between min_s and max_s seconds.

    If max_s < min_s, max_s is raised to min_s. Returns the duration slept.
    """
    floor = max(min_s, 0.0)
    ceiling = max(max_s, floor)
    duration = random.uniform(floor, ceiling)
    await asyncio.sleep(duration)
    return duration


async def navigate(page: Any, url: str, *, timeout_ms: int) -> None:
    """Load a URL, waiting for DOMContentLoaded.

    Raises:
        NavigationFailure: on timeout or any navigation error.
    """
    try:
        response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        msg = f"Timed out loading {url}"
        raise NavigationFailure(msg, url=url) from e
    except PlaywrightError as e:
        msg = f"Failed to load {url}: {e}"
        raise NavigationFailure(msg, url=url) from e
    status = getattr(response, "status", None)
    if isinstance(status, int) and status >= 500:
        msg = f"Server error {status} loading {url}"
        raise NavigationFailure(msg, url=url)


async def wait_for_any(page: Any, selectors: tuple[str, ...], *, timeout_ms: int) -> str:
    """Wait until any of the selectors is attached; return the one that matched.

    Raises:
        DiscoveryTimeout: if none attaches within timeout_ms.
    """
    combined = ", ".join(selectors)
    try:
        await page.wait_for_selector(combined, state="attached", timeout=timeout_ms)
    except (PlaywrightTimeoutError, TimeoutError) as e:
        msg = f"No listing markers within {timeout_ms} ms"
        raise DiscoveryTimeout(msg, url=page.url) from e
    for selector in selectors:
        if await page.query_selector(selector) is not None:
            return selector
    return combined


async def dismiss_consent(page: Any, selectors: tuple[str, ...]) -> bool:
    """Click the first visible consent button. Never raises; False if none found."""
    for selector in selectors:
        try:
            el = await page.query_selector(selector)
            if el is None or not await el.is_visible():
                continue
            await el.click(timeout=CONSENT_CLICK_TIMEOUT_MS)
            logger.info("Accepted consent overlay via '%s'", selector)
            return True
        except Exception:
            logger.debug("Consent selector '%s' failed, trying next", selector, exc_info=True)
    logger.debug("No consent overlay found")
    return False


async def scroll_until_stable(
    page: Any,
    *,
    count: Callable[[], Awaitable[int]],
    target: int,
    max_passes: int = MAX_SCROLL_PASSES,
    offset_px: int = SCROLL_OFFSET_PX,
    scroll_delay_min: float = 0.5,
    scroll_delay_max: float = 1.5,
) -> int:
    """Scroll incrementally, re-counting after each pass.

    Stops when the count reaches ``target``, when two consecutive counts are
    equal (growth has plateaued), or after ``max_passes`` passes.

    Args:
        page: Browser page object (patchright Page or mock).
        count: Coroutine factory returning the current item count.
        target: Count at which scrolling is no longer useful.
        max_passes: Max scroll iterations before giving up.
        offset_px: Vertical distance per scroll pass.
        scroll_delay_min: Minimum pause after each scroll.
        scroll_delay_max: Maximum pause after each scroll.

    Returns:
        Final count observed.
    """
    scroll_delay_min = max(scroll_delay_min, SCROLL_DELAY_FLOOR)
    scroll_delay_max = max(scroll_delay_max, scroll_delay_min)

    current = await count()
    if current >= target:
        logger.debug("Target %d already met with %d items, not scrolling", target, current)
        return current

    for attempt in range(max_passes):
        await page.evaluate("(dy) => window.scrollBy(0, dy)", offset_px)
        await random_sleep(scroll_delay_min, scroll_delay_max)

        previous, current = current, await count()
        logger.debug(
            "Scroll pass %d/%d: %d items (prev: %d)",
            attempt + 1, max_passes, current, previous,
        )
        if current >= target:
            logger.debug("Reached target %d, stopping scroll", target)
            break
        if current == previous:
            logger.debug("Item count stable at %d, stopping scroll", current)
            break

    return current


async def capture_debug_artifacts(
    page: Any,
    store: DebugStore,
    key: str = LIST_FAILURE_KEY,
) -> list[str]:
    """Save the rendered HTML and a full-page screenshot. Best-effort.

    Returns the suffixes that were written (empty when both captures failed).
    """
    written: list[str] = []
    try:
        html = await page.content()
        store.save(key, html, ".html")
        written.append(".html")
    except Exception:
        logger.warning("Failed to capture page HTML for %s", key, exc_info=True)
    try:
        image = await page.screenshot(full_page=True)
        store.save(key, image, ".png")
        written.append(".png")
    except Exception:
        logger.warning("Failed to capture screenshot for %s", key, exc_info=True)
    return written
