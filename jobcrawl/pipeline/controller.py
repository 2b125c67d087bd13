"""Crawl controller: listing → detail state machine over a bounded worker pool.

Data flow:
  1. SEEDED          one LISTING task from the search URL
  2. LISTING_ACTIVE  navigate, discover links, claim up to the remaining budget,
                     enqueue DETAIL tasks (discovery order), maybe one more LISTING
  3. DETAIL_ACTIVE   navigate, extract, normalize, write to sink, count
  4. DONE            target reached or queue drained; FAILED if the browser is lost

Per-task failures never escape: retryable errors and timeouts are retried up
to ``max_retries`` and then abandoned (logged + written to the sink). A sink
that fails while recording an abandonment is logged and skipped.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

from patchright.async_api import Error as PlaywrightError

from jobcrawl.browser.actions import capture_debug_artifacts, navigate
from jobcrawl.core.config import CrawlConfig, SearchRequest
from jobcrawl.core.db import RecordSink
from jobcrawl.core.debug_store import DebugStore
from jobcrawl.core.errors import BrowserUnavailable, CrawlError, DiscoveryTimeout
from jobcrawl.core.schemas import CrawlPhase, CrawlSummary, CrawlTask, TaskKind
from jobcrawl.pipeline.state import CrawlState
from jobcrawl.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)

DEFAULT_NAVIGATION_TIMEOUT_MS = 120000


class PageSource(Protocol):
    """Anything that hands out fresh pages (BrowserSession or a test double)."""

    async def new_page(self) -> Any: ...
    def is_connected(self) -> bool: ...


class CrawlController:
    """Owns the queue, the workers, and the run-scoped state for one search.

    Usage::

        controller = CrawlController(request, adapter, session, sink, config=settings.crawl)
        summary = await controller.run()
    """

    def __init__(
        self,
        request: SearchRequest,
        adapter: PlatformAdapter,
        pages: PageSource,
        sink: RecordSink,
        *,
        config: CrawlConfig,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        debug_store: DebugStore | None = None,
    ) -> None:
        self._request = request
        self._adapter = adapter
        self._pages = pages
        self._sink = sink
        self._config = config
        self._navigation_timeout_ms = navigation_timeout_ms
        self._debug_store = debug_store

        self._state = CrawlState(request.target_count)
        self._queue: asyncio.Queue[CrawlTask] = asyncio.Queue()
        self._stop = asyncio.Event()
        self._phase = CrawlPhase.SEEDED
        self._fatal: BaseException | None = None
        self._listing_urls: set[str] = set()

    @property
    def state(self) -> CrawlState:
        return self._state

    @property
    def phase(self) -> CrawlPhase:
        return self._phase

    async def run(self) -> CrawlSummary:
        """Crawl until the target is met or the queue drains. Never raises per-task errors."""
        started_at = datetime.now()
        await self._state.reset()
        self._listing_urls.clear()
        self._stop.clear()
        self._fatal = None

        seed_url = self._adapter.build_search_url(self._request)
        self._set_phase(CrawlPhase.SEEDED)
        logger.info(
            "Searching '%s' on %s (target %d): %s",
            self._request.keyword, self._adapter.platform_id, self._state.target, seed_url,
        )
        self._enqueue_listing(seed_url)

        workers = [
            asyncio.create_task(self._worker(i), name=f"crawl-worker-{i}")
            for i in range(self._config.max_concurrency)
        ]
        try:
            await self._queue.join()
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        self._set_phase(CrawlPhase.FAILED if self._fatal is not None else CrawlPhase.DONE)
        summary = CrawlSummary(
            keyword=self._request.keyword,
            state=self._phase,
            target=self._state.target,
            collected=self._state.collected,
            enqueued=self._state.enqueued,
            failed=self._state.failed,
            listing_pages=len(self._listing_urls),
            started_at=started_at,
            finished_at=datetime.now(),
        )
        logger.info(
            "Crawl %s: %d/%d records collected (%d enqueued, %d failed, %d listing pages)",
            summary.state.value, summary.collected, summary.target,
            summary.enqueued, summary.failed, summary.listing_pages,
        )
        return summary

    # --- Worker pool ---

    async def _worker(self, worker_id: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                if self._stop.is_set():
                    logger.debug("Worker %d dropping %s %s (stopping)", worker_id, task.kind.value, task.url)
                    continue
                await self._run_task(task)
            except Exception:
                logger.exception("Worker %d failed on %s %s", worker_id, task.kind.value, task.url)
            finally:
                self._queue.task_done()

    async def _run_task(self, task: CrawlTask) -> None:
        try:
            await asyncio.wait_for(self._handle(task), timeout=self._config.task_timeout_s)
        except asyncio.TimeoutError:
            await self._retry_or_abandon(task, f"timed out after {self._config.task_timeout_s:g}s")
        except BrowserUnavailable as e:
            self._abort(e)
        except (CrawlError, PlaywrightError) as e:
            if not self._pages.is_connected():
                self._abort(e)
                return
            if isinstance(e, CrawlError) and not e.retryable:
                await self._abandon(task, str(e))
                return
            await self._retry_or_abandon(task, str(e))
        except Exception as e:
            if not self._pages.is_connected():
                self._abort(e)
                return
            logger.exception("Unexpected error in %s task %s", task.kind.value, task.url)
            await self._abandon(task, repr(e))

    async def _handle(self, task: CrawlTask) -> None:
        page = await self._pages.new_page()
        try:
            await navigate(page, task.url, timeout_ms=self._navigation_timeout_ms)
            if task.kind is TaskKind.LISTING:
                await self._handle_listing(page, task)
            else:
                await self._handle_detail(page, task)
        finally:
            await _close_page(page)

    # --- Handlers ---

    async def _handle_listing(self, page: Any, task: CrawlTask) -> None:
        self._set_phase(CrawlPhase.LISTING_ACTIVE)
        remaining = self._state.remaining_budget
        try:
            links = await self._adapter.discover_links(
                page, remaining=remaining, exclude=self._state.links,
            )
        except DiscoveryTimeout as e:
            logger.warning("Discovery failed on %s: %s", task.url, e)
            if self._debug_store is not None:
                await capture_debug_artifacts(page, self._debug_store)
            return

        claimed = await self._state.claim(links)
        for link in claimed:
            self._queue.put_nowait(CrawlTask(url=link.url, kind=TaskKind.DETAIL, title=link.title))
        logger.info(
            "Listing %s: %d links, %d enqueued (%d/%d)",
            task.url, len(links), len(claimed), self._state.enqueued, self._state.target,
        )

        if self._state.remaining_budget == 0:
            logger.debug("Budget fully enqueued, not paginating")
            return
        if len(self._listing_urls) >= self._config.max_listing_pages:
            logger.info("Listing page limit %d reached", self._config.max_listing_pages)
            return
        next_url = await self._adapter.next_page_url(page)
        if next_url is None:
            logger.info("Listing stream exhausted after %d pages", len(self._listing_urls))
            return
        self._enqueue_listing(next_url)

    async def _handle_detail(self, page: Any, task: CrawlTask) -> None:
        self._set_phase(CrawlPhase.DETAIL_ACTIVE)
        record = await self._adapter.extract_record(page, task)
        self._sink.write_record(record)
        reached = await self._state.record_collected()
        logger.info(
            "Collected %d/%d: %s", self._state.collected, self._state.target, record.title or task.url,
        )
        if reached:
            self._request_stop()

    # --- Queue helpers ---

    def _enqueue_listing(self, url: str) -> None:
        if url in self._listing_urls:
            logger.info("Listing %s already visited, not re-queuing", url)
            return
        self._listing_urls.add(url)
        self._queue.put_nowait(CrawlTask(url=url, kind=TaskKind.LISTING))

    async def _retry_or_abandon(self, task: CrawlTask, error: str) -> None:
        if self._stop.is_set():
            return
        if task.attempt < self._config.max_retries:
            retry = task.model_copy(update={"attempt": task.attempt + 1})
            logger.warning(
                "%s %s failed (%s); retry %d/%d",
                task.kind.value, task.url, error, retry.attempt, self._config.max_retries,
            )
            self._queue.put_nowait(retry)
            return
        await self._abandon(task, error)

    async def _abandon(self, task: CrawlTask, error: str) -> None:
        await self._state.record_failed()
        attempts = task.attempt + 1
        logger.error("Giving up on %s %s after %d attempts: %s", task.kind.value, task.url, attempts, error)
        try:
            self._sink.write_failure(task.url, task.kind.value, error, attempts)
        except Exception:
            logger.exception("Could not record failed request %s", task.url)

    def _request_stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Target of %d reached; draining queue", self._state.target)
            self._stop.set()

    def _abort(self, error: BaseException) -> None:
        if self._fatal is None:
            logger.error("Browser unavailable, aborting crawl: %s", error)
            self._fatal = error
        self._stop.set()

    def _set_phase(self, phase: CrawlPhase) -> None:
        if phase is not self._phase:
            logger.debug("Crawl phase %s -> %s", self._phase.value, phase.value)
            self._phase = phase


async def _close_page(page: Any) -> None:
    try:
        await page.close()
    except Exception:
        logger.debug("Failed to close page", exc_info=True)
