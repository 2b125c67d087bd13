"""Browser session management using patchright.

Rules:
  - Single browser context per run; every task opens its own page from it.
  - Heavy sub-resources (images, media, fonts) are aborted at the context.
  - Stylesheets are never blocked: DOM probes rely on rendered layout.
"""

import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any

from patchright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from jobcrawl.core.config import BrowserConfig
from jobcrawl.core.errors import BrowserUnavailable

logger = logging.getLogger(__name__)


class BrowserSession:
    """Async context manager that owns one patchright browser + context.

    Usage::

        async with BrowserSession(config) as session:
            page = await session.new_page()
            await page.goto("https://...")
    """

    def __init__(self, config: BrowserConfig) -> None:
        self._config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @property
    def context(self) -> BrowserContext:
        """The shared context for this session. Raises if not entered."""
        if self._context is None:
            msg = "BrowserSession not entered, use 'async with'"
            raise RuntimeError(msg)
        return self._context

    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def new_page(self) -> Page:
        """Open a fresh page in the shared context."""
        if not self.is_connected():
            msg = "Browser is not connected"
            raise BrowserUnavailable(msg)
        return await self.context.new_page()

    async def __aenter__(self) -> "BrowserSession":
        pw = await async_playwright().start()
        self._playwright = pw
        self._browser = await pw.chromium.launch(headless=self._config.headless)

        context_args: dict[str, Any] = {}
        if self._config.user_agent:
            context_args["user_agent"] = self._config.user_agent
        self._context = await self._browser.new_context(**context_args)
        self._context.set_default_timeout(self._config.timeout_ms)
        self._context.set_default_navigation_timeout(self._config.navigation_timeout_ms)

        blocked = frozenset(self._config.blocked_resource_types)
        if blocked:
            await self._context.route("**/*", _make_route_handler(blocked))
            logger.info("Blocking resource types: %s", ", ".join(sorted(blocked)))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._context is not None:
            await _best_effort("context", self._context.close)
        if self._browser is not None:
            await _best_effort("browser", self._browser.close)
        if self._playwright is not None:
            await _best_effort("playwright", self._playwright.stop)


async def _best_effort(name: str, closer: Callable[[], Awaitable[None]]) -> None:
    try:
        await closer()
    except Exception:
        logger.warning("Failed to close %s", name, exc_info=True)


def should_block(resource_type: str, blocked: frozenset[str]) -> bool:
    """Return True if a request of this resource type should be aborted."""
    if resource_type == "stylesheet":
        return False
    return resource_type in blocked


def _make_route_handler(blocked: frozenset[str]) -> Any:
    async def _handle(route: Any) -> None:
        if should_block(route.request.resource_type, blocked):
            await route.abort()
        else:
            await route.continue_()

    return _handle
