"""Workable platform adapter: wires URL builder, extractors, and a loaded page."""

import logging
from collections.abc import Callable, Container
from datetime import datetime
from typing import Any
from urllib.parse import urljoin

from patchright.async_api import Error as PlaywrightError

from jobcrawl.browser.actions import dismiss_consent, scroll_until_stable, wait_for_any
from jobcrawl.core.config import CrawlConfig, SearchRequest
from jobcrawl.core.errors import DiscoveryTimeout
from jobcrawl.core.schemas import CrawlTask, DiscoveredLink, JobRecord
from jobcrawl.extraction.dom import DomExtractor
from jobcrawl.extraction.links import collect_detail_links
from jobcrawl.extraction.normalizer import normalize
from jobcrawl.extraction.structured import extract_structured
from jobcrawl.platforms.base import PlatformAdapter
from jobcrawl.platforms.workable.searcher import build_search_url, external_id_from_url
from jobcrawl.platforms.workable.selectors import (
    CONSENT_SELECTORS,
    DETAIL_MARKERS,
    DETAIL_URL_PATTERN,
    FIELD_PROBES,
    LISTING_MARKERS,
    NEXT_PAGE_BUTTON_SELECTORS,
    NEXT_PAGE_LINK_SELECTORS,
)

logger = logging.getLogger(__name__)


class WorkableAdapter(PlatformAdapter):
    """jobs.workable.com adapter.

    ``clock`` stamps ``scraped_at``; tests inject a fixed one.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._config = config
        self._clock = clock
        self._dom = DomExtractor(FIELD_PROBES, shadow_depth=config.shadow_depth)

    @property
    def platform_id(self) -> str:
        return "workable"

    def build_search_url(self, request: SearchRequest) -> str:
        return build_search_url(request)

    async def discover_links(
        self,
        page: Any,
        *,
        remaining: int,
        exclude: Container[str],
    ) -> list[DiscoveredLink]:
        """Wait for the listing, scroll until enough links (or a plateau), collect."""
        await dismiss_consent(page, CONSENT_SELECTORS)
        matched = await wait_for_any(page, LISTING_MARKERS, timeout_ms=self._config.listing_wait_ms)
        logger.debug("Listing rendered (marker '%s')", matched)

        async def _count() -> int:
            return len(await self._collect(page, exclude))

        await scroll_until_stable(
            page,
            count=_count,
            target=remaining,
            max_passes=self._config.max_scroll_passes,
            offset_px=self._config.scroll_offset_px,
            scroll_delay_min=self._config.scroll_delay_min,
            scroll_delay_max=self._config.scroll_delay_max,
        )
        links = await self._collect(page, exclude)
        logger.info("Listing %s: %d new detail links", page.url, len(links))
        return links

    async def next_page_url(self, page: Any) -> str | None:
        """Follow an href-style next link, else click a next button and wait for the URL."""
        current = page.url
        for selector in NEXT_PAGE_LINK_SELECTORS:
            el = await page.query_selector(selector)
            if el is None:
                continue
            href = await el.get_attribute("href")
            if not href:
                continue
            next_url = urljoin(current, href)
            if next_url != current:
                return next_url

        for selector in NEXT_PAGE_BUTTON_SELECTORS:
            el = await page.query_selector(selector)
            if el is None or not await el.is_enabled():
                continue
            try:
                await el.click()
                await page.wait_for_url(
                    lambda url: url != current, timeout=self._config.pagination_wait_ms,
                )
            except PlaywrightError:
                logger.info("Next page button did not navigate from %s", current)
                return None
            return page.url  # type: ignore[no-any-return]

        logger.info("No more pages after %s", current)
        return None

    async def extract_record(self, page: Any, task: CrawlTask) -> JobRecord:
        await dismiss_consent(page, CONSENT_SELECTORS)
        try:
            await wait_for_any(page, DETAIL_MARKERS, timeout_ms=self._config.detail_wait_ms)
        except DiscoveryTimeout:
            logger.debug("Detail markers missing on %s, extracting anyway", task.url)

        structured = await extract_structured(page, shadow_depth=self._config.shadow_depth)
        dom = await self._dom.extract_all(page)
        record = normalize(
            structured,
            dom,
            source_url=task.url,
            scraped_at=self._clock(),
            listing_title=task.title,
            external_id_hint=external_id_from_url(task.url),
        )
        if record.content_fields_empty():
            logger.warning("No fields resolved on %s, emitting sparse record", task.url)
        return record

    async def _collect(self, page: Any, exclude: Container[str]) -> list[DiscoveredLink]:
        return await collect_detail_links(
            page,
            DETAIL_URL_PATTERN,
            exclude=exclude,
            shadow_depth=self._config.shadow_depth,
        )
