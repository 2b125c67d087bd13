"""Workable URL builder and detail-URL helpers.

Pure functions with no browser dependency.
"""

import re
from urllib.parse import quote, quote_plus, urlencode

from jobcrawl.core.config import PostedWithin, SearchRequest
from jobcrawl.platforms.workable.selectors import DETAIL_URL_PATTERN

SEARCH_BASE_URL = "https://jobs.workable.com/search"

DAY_RANGE_MAP: dict[PostedWithin, str] = {
    PostedWithin.DAY: "1",
    PostedWithin.WEEK: "7",
    PostedWithin.MONTH: "30",
}

# A location like "new-york" or "berlin" goes in the path; anything else is a query param.
LOCATION_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def build_search_url(request: SearchRequest) -> str:
    """Build the first listing URL for a search.

    Args:
        request: Validated search request.

    Returns:
        ``.../search[/<slug>]?query=<kw>[&location=<loc>][&day_range=<n>]``
    """
    base = SEARCH_BASE_URL
    params: dict[str, str] = {"query": request.keyword}

    location = request.location
    if location is not None:
        if LOCATION_SLUG_PATTERN.match(location):
            base = f"{base}/{quote(location)}"
        else:
            params["location"] = location

    day_range = DAY_RANGE_MAP.get(request.posted_within)
    if day_range is not None:
        params["day_range"] = day_range

    return f"{base}?{urlencode(params, quote_via=quote_plus)}"


def external_id_from_url(url: str) -> str | None:
    """Job id embedded in a detail URL, or None if the URL is not a detail page."""
    match = DETAIL_URL_PATTERN.search(url)
    if match is None:
        return None
    return match.group("view_id") or match.group("shortcode")
