"""Tests for the Workable search URL builder and detail-URL helpers."""

from urllib.parse import parse_qs, urlparse

import pytest

from jobcrawl.core.config import SearchRequest
from jobcrawl.platforms.workable.searcher import (
    DAY_RANGE_MAP,
    SEARCH_BASE_URL,
    build_search_url,
    external_id_from_url,
)


def _parse(url: str) -> dict[str, list[str]]:
    """Parse URL and return query params as dict."""
    return parse_qs(urlparse(url).query)


def _request(**kwargs: object) -> SearchRequest:
    defaults: dict[str, object] = {"keyword": "Administrator"}
    defaults.update(kwargs)
    return SearchRequest.model_validate(defaults)


# ---------------------------------------------------------------------------
# TestBuildSearchUrl
# ---------------------------------------------------------------------------


class TestBuildSearchUrl:
    """URL builder: keyword encoding, day_range, location placement."""

    def test_base_url(self) -> None:
        url = build_search_url(_request())
        assert url.startswith(f"{SEARCH_BASE_URL}?")

    def test_keyword_param(self) -> None:
        params = _parse(build_search_url(_request(keyword="Senior Python Engineer")))
        assert params["query"] == ["Senior Python Engineer"]

    def test_keyword_special_chars(self) -> None:
        url = build_search_url(_request(keyword="C++ Developer"))
        assert "C%2B%2B" in url

    @pytest.mark.parametrize(("posted", "expected"), [("24h", "1"), ("7d", "7"), ("30d", "30")])
    def test_day_range(self, posted: str, expected: str) -> None:
        params = _parse(build_search_url(_request(postedDate=posted)))
        assert params["day_range"] == [expected]

    def test_anytime_omits_day_range(self) -> None:
        params = _parse(build_search_url(_request(postedDate="anytime")))
        assert "day_range" not in params

    def test_default_omits_day_range(self) -> None:
        params = _parse(build_search_url(_request()))
        assert "day_range" not in params

    def test_slug_location_in_path(self) -> None:
        url = build_search_url(_request(location="new-york"))
        parsed = urlparse(url)
        assert parsed.path == "/search/new-york"
        assert "location" not in _parse(url)

    def test_single_word_slug(self) -> None:
        url = build_search_url(_request(location="berlin"))
        assert urlparse(url).path == "/search/berlin"

    def test_free_text_location_as_query(self) -> None:
        url = build_search_url(_request(location="New York, NY"))
        assert urlparse(url).path == "/search"
        assert _parse(url)["location"] == ["New York, NY"]

    def test_no_location(self) -> None:
        url = build_search_url(_request())
        assert urlparse(url).path == "/search"
        assert "location" not in _parse(url)

    def test_all_params(self) -> None:
        url = build_search_url(_request(location="london", postedDate="30d"))
        params = _parse(url)
        assert urlparse(url).path == "/search/london"
        assert params == {"query": ["Administrator"], "day_range": ["30"]}

    def test_day_range_map_complete(self) -> None:
        assert set(DAY_RANGE_MAP.values()) == {"1", "7", "30"}


# ---------------------------------------------------------------------------
# TestExternalIdFromUrl
# ---------------------------------------------------------------------------


class TestExternalIdFromUrl:
    def test_view_url(self) -> None:
        url = "https://jobs.workable.com/view/abc123XYZ/remote-administrator"
        assert external_id_from_url(url) == "abc123XYZ"

    def test_apply_shortcode_url(self) -> None:
        url = "https://apply.workable.com/acme/j/5F2B1A9C0D"
        assert external_id_from_url(url) == "5F2B1A9C0D"

    def test_non_detail_url(self) -> None:
        assert external_id_from_url("https://jobs.workable.com/search?query=x") is None

    def test_other_host(self) -> None:
        assert external_id_from_url("https://example.com/view/abc123") is None
