"""Run-scoped shared state: the detail-link set and the collected counter.

Both are mutated from concurrent tasks, so every update goes through one
``asyncio.Lock``. The state belongs to a single controller run.
"""

import asyncio
import logging
from collections.abc import Iterable

from jobcrawl.core.schemas import DiscoveredLink

logger = logging.getLogger(__name__)


class DetailLinkSet:
    """URLs already enqueued as DETAIL tasks. Only grows within a run."""

    def __init__(self) -> None:
        self._urls: set[str] = set()

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def add(self, url: str) -> bool:
        """Add a URL; False if it was already present."""
        if url in self._urls:
            return False
        self._urls.add(url)
        return True

    def clear(self) -> None:
        self._urls.clear()


class CrawlState:
    """Budget accounting for one run.

    Usage::

        state = CrawlState(target=50)
        claimed = await state.claim(links)   # at most the remaining budget
        ...
        done = await state.record_collected()
    """

    def __init__(self, target: int) -> None:
        self._target = target
        self._lock = asyncio.Lock()
        self.links = DetailLinkSet()
        self._collected = 0
        self._failed = 0

    @property
    def target(self) -> int:
        return self._target

    @property
    def enqueued(self) -> int:
        return len(self.links)

    @property
    def collected(self) -> int:
        return self._collected

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def remaining_budget(self) -> int:
        return max(0, self._target - self.enqueued)

    @property
    def target_reached(self) -> bool:
        return self._collected >= self._target

    async def reset(self) -> None:
        """Clear everything. Only called at run start."""
        async with self._lock:
            self.links.clear()
            self._collected = 0
            self._failed = 0

    async def claim(self, links: Iterable[DiscoveredLink]) -> list[DiscoveredLink]:
        """Atomically take unseen links, in order, up to the remaining budget."""
        claimed: list[DiscoveredLink] = []
        async with self._lock:
            for link in links:
                if self.enqueued >= self._target:
                    break
                if self.links.add(link.url):
                    claimed.append(link)
        if claimed:
            logger.debug("Claimed %d links (%d/%d enqueued)", len(claimed), self.enqueued, self._target)
        return claimed

    async def record_collected(self) -> bool:
        """Count one emitted record. Returns True once the target is reached."""
        async with self._lock:
            self._collected += 1
            return self._collected >= self._target

    async def record_failed(self) -> None:
        async with self._lock:
            self._failed += 1
