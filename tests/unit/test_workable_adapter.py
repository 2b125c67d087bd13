"""Tests for the Workable adapter against synthetic listing and detail pages."""

import asyncio
import json
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from patchright.async_api import Error as PlaywrightError
from patchright.async_api import TimeoutError as PlaywrightTimeoutError

from jobcrawl.browser.traversal import COLLECT_ANCHORS_JS, PROBE_JS, STRUCTURED_BLOCKS_JS, VISIBLE_TEXT_JS
from jobcrawl.core.config import CrawlConfig, SearchRequest
from jobcrawl.core.errors import DiscoveryTimeout
from jobcrawl.core.schemas import CrawlTask, TaskKind
from jobcrawl.platforms.workable.adapter import WorkableAdapter

_NOW = datetime(2024, 5, 1, 12, 0, 0)
_LISTING_URL = "https://jobs.workable.com/search?query=Administrator"
_DETAIL_URL = "https://jobs.workable.com/view/k9Qz3/systems-administrator"


class FakeFrame:
    """Answers the page-context scripts from canned data."""

    def __init__(
        self,
        url: str,
        *,
        anchors: list[list[dict[str, str]]] | None = None,
        blocks: list[str] | None = None,
        light: dict[str, Any] | None = None,
        text: str = "",
    ) -> None:
        self.url = url
        self.child_frames: list[Any] = []
        # One anchor snapshot per scroll pass; the last one repeats.
        self.anchors = anchors or [[]]
        self.scrolls = 0
        self.blocks = blocks or []
        self.light = light or {}
        self.text = text

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == COLLECT_ANCHORS_JS:
            return self.anchors[min(self.scrolls, len(self.anchors) - 1)]
        if script == STRUCTURED_BLOCKS_JS:
            return self.blocks
        if script == VISIBLE_TEXT_JS:
            return self.text
        if script == PROBE_JS:
            if arg["shadow"]:
                return None
            for i, probe in enumerate(arg["probes"]):
                value = self.light.get(probe["selector"])
                if isinstance(value, dict):
                    value = value.get(probe["attribute"] or probe["capture"])
                if value:
                    return {"index": i, "value": value}
            return None
        return None


def _page(frame: FakeFrame) -> MagicMock:
    page = MagicMock()
    page.url = frame.url
    page.main_frame = frame
    page.query_selector = AsyncMock(return_value=None)
    page.wait_for_selector = AsyncMock(return_value=None)

    async def _scroll(script: str, arg: Any = None) -> None:
        frame.scrolls += 1

    page.evaluate = AsyncMock(side_effect=_scroll)
    return page


def _adapter(**overrides: Any) -> WorkableAdapter:
    return WorkableAdapter(CrawlConfig(**overrides), clock=lambda: _NOW)


def _card(job_id: str, title: str) -> dict[str, str]:
    return {"href": f"https://jobs.workable.com/view/{job_id}/slug", "text": title}


# ---------------------------------------------------------------------------
# TestSearchUrl
# ---------------------------------------------------------------------------


class TestSearchUrl:
    def test_platform_id(self) -> None:
        assert _adapter().platform_id == "workable"

    def test_delegates_to_builder(self) -> None:
        request = SearchRequest.model_validate({"keyword": "Administrator", "postedDate": "7d"})
        url = _adapter().build_search_url(request)
        assert url == "https://jobs.workable.com/search?query=Administrator&day_range=7"


# ---------------------------------------------------------------------------
# TestDiscoverLinks
# ---------------------------------------------------------------------------


class TestDiscoverLinks:
    @pytest.fixture(autouse=True)
    def _patch_sleep(self) -> "pytest.Generator[None]":  # type: ignore[type-arg]
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            yield

    async def test_collects_in_page_order(self) -> None:
        frame = FakeFrame(
            _LISTING_URL,
            anchors=[[_card("a1", "Admin"), {"href": "/search?page=2", "text": "Next"}, _card("b2", "Ops")]],
        )
        links = await _adapter().discover_links(_page(frame), remaining=10, exclude=set())
        assert [(l.url, l.title) for l in links] == [
            ("https://jobs.workable.com/view/a1/slug", "Admin"),
            ("https://jobs.workable.com/view/b2/slug", "Ops"),
        ]

    async def test_scrolls_until_enough(self) -> None:
        snapshots = [
            [_card("a1", "A")],
            [_card("a1", "A"), _card("b2", "B")],
            [_card("a1", "A"), _card("b2", "B"), _card("c3", "C")],
        ]
        frame = FakeFrame(_LISTING_URL, anchors=snapshots)
        page = _page(frame)
        links = await _adapter().discover_links(page, remaining=3, exclude=set())
        assert len(links) == 3
        assert page.evaluate.await_count == 2

    async def test_no_scroll_when_budget_met(self) -> None:
        frame = FakeFrame(_LISTING_URL, anchors=[[_card("a1", "A"), _card("b2", "B")]])
        page = _page(frame)
        links = await _adapter().discover_links(page, remaining=1, exclude=set())
        assert len(links) == 2
        page.evaluate.assert_not_awaited()

    async def test_excluded_not_returned(self) -> None:
        frame = FakeFrame(_LISTING_URL, anchors=[[_card("a1", "A"), _card("b2", "B")]])
        links = await _adapter().discover_links(
            _page(frame), remaining=5, exclude={"https://jobs.workable.com/view/a1/slug"},
        )
        assert [l.url for l in links] == ["https://jobs.workable.com/view/b2/slug"]

    async def test_listing_never_renders(self) -> None:
        frame = FakeFrame(_LISTING_URL)
        page = _page(frame)
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 45000ms exceeded")
        with pytest.raises(DiscoveryTimeout):
            await _adapter().discover_links(page, remaining=5, exclude=set())

    async def test_empty_listing_is_empty(self) -> None:
        frame = FakeFrame(_LISTING_URL, anchors=[[]])
        assert await _adapter().discover_links(_page(frame), remaining=5, exclude=set()) == []


# ---------------------------------------------------------------------------
# TestNextPageUrl
# ---------------------------------------------------------------------------


def _selector_page(url: str, elements: dict[str, Any]) -> MagicMock:
    page = MagicMock()
    page.url = url

    async def _qs(selector: str) -> Any:
        return elements.get(selector)

    page.query_selector = AsyncMock(side_effect=_qs)
    page.wait_for_url = AsyncMock()
    return page


class TestNextPageUrl:
    async def test_rel_next_link(self) -> None:
        link = MagicMock()
        link.get_attribute = AsyncMock(return_value="/search?query=Administrator&page=2")
        page = _selector_page(_LISTING_URL, {'a[rel="next"]': link})
        assert await _adapter().next_page_url(page) == (
            "https://jobs.workable.com/search?query=Administrator&page=2"
        )

    async def test_link_to_self_ignored(self) -> None:
        link = MagicMock()
        link.get_attribute = AsyncMock(return_value=_LISTING_URL)
        page = _selector_page(_LISTING_URL, {'a[rel="next"]': link})
        assert await _adapter().next_page_url(page) is None

    async def test_button_click(self) -> None:
        button = MagicMock()
        button.is_enabled = AsyncMock(return_value=True)
        page = _selector_page(_LISTING_URL, {'button[aria-label="Next page"]': button})

        async def _click() -> None:
            page.url = f"{_LISTING_URL}&page=2"

        button.click = AsyncMock(side_effect=_click)
        assert await _adapter(pagination_wait_ms=2000).next_page_url(page) == f"{_LISTING_URL}&page=2"
        assert page.wait_for_url.await_args.kwargs["timeout"] == 2000

    async def test_disabled_button(self) -> None:
        button = MagicMock()
        button.is_enabled = AsyncMock(return_value=False)
        button.click = AsyncMock()
        page = _selector_page(_LISTING_URL, {'button[aria-label="Next page"]': button})
        assert await _adapter().next_page_url(page) is None
        button.click.assert_not_awaited()

    async def test_button_without_navigation(self) -> None:
        button = MagicMock()
        button.is_enabled = AsyncMock(return_value=True)
        button.click = AsyncMock()
        page = _selector_page(_LISTING_URL, {'button[aria-label="Next page"]': button})
        page.wait_for_url.side_effect = PlaywrightError("Timeout 15000ms exceeded")
        assert await _adapter().next_page_url(page) is None

    async def test_no_pagination(self) -> None:
        page = _selector_page(_LISTING_URL, {})
        assert await _adapter().next_page_url(page) is None


# ---------------------------------------------------------------------------
# TestExtractRecord
# ---------------------------------------------------------------------------


_POSTING = {
    "@context": "https://schema.org",
    "@type": "JobPosting",
    "title": "Systems Administrator",
    "hiringOrganization": {"@type": "Organization", "name": "Acme Corp"},
    "jobLocation": {"address": {"addressLocality": "Athens", "addressCountry": "Greece"}},
    "datePosted": "2024-04-28",
    "employmentType": "FULL_TIME",
    "description": "<p>Run our fleet.</p>",
}


def _task(title: str | None = None) -> CrawlTask:
    return CrawlTask(url=_DETAIL_URL, kind=TaskKind.DETAIL, title=title)


class TestExtractRecord:
    async def test_structured_only_page(self) -> None:
        frame = FakeFrame(_DETAIL_URL, blocks=[json.dumps(_POSTING)])
        record = await _adapter().extract_record(_page(frame), _task())
        assert record.source_url == _DETAIL_URL
        assert record.title == "Systems Administrator"
        assert record.company == "Acme Corp"
        assert record.location == "Athens, Greece"
        assert record.posted_date == "2024-04-28"
        assert record.employment_type == "Full-time"
        assert record.description_html == "<p>Run our fleet.</p>"
        assert record.external_id == "k9Qz3"
        assert record.scraped_at == _NOW

    async def test_dom_only_page(self) -> None:
        frame = FakeFrame(
            _DETAIL_URL,
            light={
                "h1": "Systems Administrator at Acme Corp",
                "h1 + ul > li": {"location": "Athens, Greece", "job-type": "Contract"},
                '[data-ui="job-description"]': {"html": "<p>Run our fleet.</p>", "text": "Run our fleet."},
            },
        )
        record = await _adapter().extract_record(_page(frame), _task())
        assert record.title == "Systems Administrator"
        assert record.company == "Acme Corp"
        assert record.location == "Athens, Greece"
        assert record.employment_type == "Contract"
        assert record.description_html == "<p>Run our fleet.</p>"
        assert record.description_text == "Run our fleet."

    async def test_structured_beats_dom(self) -> None:
        frame = FakeFrame(
            _DETAIL_URL,
            blocks=["{broken", json.dumps(_POSTING)],
            light={'[data-ui="job-title"]': "Sysadmin (DOM)", '[data-ui="job-type"]': "Part-time"},
        )
        record = await _adapter().extract_record(_page(frame), _task())
        assert record.title == "Systems Administrator"
        assert record.employment_type == "Full-time"

    async def test_neither_tier_uses_text_scan(self) -> None:
        frame = FakeFrame(_DETAIL_URL, text="This is a remote, full-time role.")
        record = await _adapter().extract_record(_page(frame), _task())
        assert record.employment_type == "Full-time"
        assert record.workplace_type == "Remote"
        assert record.title is None
        assert record.company is None

    async def test_listing_title_fallback(self) -> None:
        frame = FakeFrame(_DETAIL_URL)
        record = await _adapter().extract_record(_page(frame), _task(title="Admin (from card)"))
        assert record.title == "Admin (from card)"

    async def test_sparse_record_emitted(self) -> None:
        frame = FakeFrame("https://jobs.workable.com/other")
        page = _page(frame)
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 15000ms exceeded")
        task = CrawlTask(url="https://jobs.workable.com/other", kind=TaskKind.DETAIL)
        record = await _adapter().extract_record(page, task)
        assert record.source_url == "https://jobs.workable.com/other"
        assert record.content_fields_empty()
