"""Link collector: detail-page links on a listing page.

Read-only. Anchors come from the top document, its open shadow trees, and
same-origin nested frames. An empty result is a legitimate outcome.
"""

import logging
import re
from collections.abc import Container, Iterable
from typing import Any
from urllib.parse import urljoin, urlparse, urlunparse

from jobcrawl.browser.traversal import COLLECT_ANCHORS_JS, evaluate_each
from jobcrawl.core.schemas import DiscoveredLink

logger = logging.getLogger(__name__)


def canonical_url(href: str, base_url: str = "") -> str | None:
    """Absolute http(s) URL without query or fragment, or None."""
    href = href.strip()
    if not href:
        return None
    if base_url:
        href = urljoin(base_url, href)
    parsed = urlparse(href)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    path = parsed.path.rstrip("/") or "/"
    return urlunparse((parsed.scheme, parsed.netloc.lower(), path, "", "", ""))


def filter_detail_links(
    raw: Iterable[Any],
    pattern: re.Pattern[str],
    *,
    base_url: str = "",
    exclude: Container[str] = (),
) -> list[DiscoveredLink]:
    """Keep anchors that match the detail pattern, deduplicated in discovery order.

    ``raw`` items are ``{"href": ..., "text": ...}`` dicts as produced in page
    context. A later duplicate only contributes a title the first one lacked.
    """
    found: dict[str, str | None] = {}
    for item in raw:
        if not isinstance(item, dict):
            continue
        href = item.get("href")
        if not isinstance(href, str):
            continue
        url = canonical_url(href, base_url)
        if url is None or not pattern.search(url) or url in exclude:
            continue
        text = item.get("text")
        title = " ".join(text.split()) if isinstance(text, str) and text.strip() else None
        if url not in found:
            found[url] = title
        elif found[url] is None and title:
            found[url] = title
    return [DiscoveredLink(url=url, title=title) for url, title in found.items()]


async def collect_detail_links(
    page: Any,
    pattern: re.Pattern[str],
    *,
    exclude: Container[str] = (),
    shadow_depth: int = 2,
) -> list[DiscoveredLink]:
    """Scan every reachable document on the page for detail links."""
    batches = await evaluate_each(page, COLLECT_ANCHORS_JS, shadow_depth)
    raw = [item for batch in batches if isinstance(batch, list) for item in batch]
    links = filter_detail_links(raw, pattern, base_url=page.url, exclude=exclude)
    logger.debug("Collected %d detail links from %d anchors", len(links), len(raw))
    return links
