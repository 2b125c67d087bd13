"""Abstract base class for platform adapters."""

from abc import ABC, abstractmethod
from collections.abc import Container
from typing import Any

from jobcrawl.core.config import SearchRequest
from jobcrawl.core.schemas import CrawlTask, DiscoveredLink, JobRecord


class PlatformAdapter(ABC):
    """Base class that every job-board adapter must implement.

    The controller navigates; the adapter works on an already-loaded page.
    """

    @property
    @abstractmethod
    def platform_id(self) -> str:
        """Unique identifier for this platform (e.g. 'workable')."""

    @abstractmethod
    def build_search_url(self, request: SearchRequest) -> str:
        """First listing URL for a search."""

    @abstractmethod
    async def discover_links(
        self,
        page: Any,
        *,
        remaining: int,
        exclude: Container[str],
    ) -> list[DiscoveredLink]:
        """Collect detail links on a loaded listing page.

        Raises:
            DiscoveryTimeout: if the listing never renders.
        """

    @abstractmethod
    async def next_page_url(self, page: Any) -> str | None:
        """URL of the next listing page, or None when pagination is exhausted."""

    @abstractmethod
    async def extract_record(self, page: Any, task: CrawlTask) -> JobRecord:
        """Extract one record from a loaded detail page."""
