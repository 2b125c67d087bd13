"""Structured-data extractor: JobPosting metadata from ld+json blocks.

Malformed blocks are skipped, never fatal. The first block that declares a
JobPosting (directly, in an array, under ``mainEntity``, or in ``@graph``)
wins.
"""

import html
import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from jobcrawl.browser.traversal import STRUCTURED_BLOCKS_JS, evaluate_each
from jobcrawl.core.schemas import RecordFragment

logger = logging.getLogger(__name__)

JOB_POSTING_TYPE = "JobPosting"

_TAG_LIKE = re.compile(r"<\s*/?\s*[a-zA-Z][^>]*>")
_ESCAPED_TAG = re.compile(r"&lt;\s*/?\s*[a-zA-Z]")


def looks_like_markup(text: str | None) -> bool:
    """True if text contains something shaped like an HTML tag."""
    if not text:
        return False
    return _TAG_LIKE.search(text) is not None


async def extract_structured(page: Any, *, shadow_depth: int = 2) -> RecordFragment | None:
    """Read every ld+json block reachable from the page and parse the first posting."""
    batches = await evaluate_each(page, STRUCTURED_BLOCKS_JS, shadow_depth)
    texts = [t for batch in batches if isinstance(batch, list) for t in batch if isinstance(t, str)]
    logger.debug("Found %d structured-data blocks", len(texts))
    return parse_structured_blocks(texts)


def parse_structured_blocks(texts: Iterable[str]) -> RecordFragment | None:
    """Parse raw block texts and map the first JobPosting into a fragment."""
    for i, text in enumerate(texts):
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed structured block #%d", i)
            continue
        posting = find_job_posting(data)
        if posting is not None:
            return fragment_from_posting(posting)
    return None


def find_job_posting(data: Any) -> dict[str, Any] | None:
    """Depth-first search for a node whose @type names a JobPosting."""
    if isinstance(data, list):
        for item in data:
            found = find_job_posting(item)
            if found is not None:
                return found
        return None
    if not isinstance(data, dict):
        return None
    if _is_job_posting(data.get("@type")):
        return data
    for key in ("mainEntity", "@graph"):
        if key in data:
            found = find_job_posting(data[key])
            if found is not None:
                return found
    return None


def fragment_from_posting(posting: dict[str, Any]) -> RecordFragment:
    return RecordFragment(
        title=_text(posting.get("title")),
        company=_organization_name(posting.get("hiringOrganization")),
        location=_location(posting.get("jobLocation")),
        posted_date=_text(posting.get("datePosted")),
        employment_type=_employment_type(posting.get("employmentType")),
        workplace_type=_workplace_type(posting.get("jobLocationType")),
        valid_through=_text(posting.get("validThrough")),
        external_id=_identifier(posting.get("identifier")),
        description=_description(posting.get("description")),
    )


# --- Private helpers ---


def _is_job_posting(type_value: Any) -> bool:
    if isinstance(type_value, str):
        return type_value == JOB_POSTING_TYPE
    if isinstance(type_value, list):
        return JOB_POSTING_TYPE in type_value
    return False


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _description(value: Any) -> str | None:
    text = _text(value)
    if text is None:
        return None
    # Some boards ship entity-escaped markup ("&lt;p&gt;...").
    if not looks_like_markup(text) and _ESCAPED_TAG.search(text):
        text = html.unescape(text)
    return text


def _organization_name(value: Any) -> str | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        return _text(value.get("name"))
    return _text(value)


def _location(value: Any) -> str | None:
    places = value if isinstance(value, list) else [value]
    for place in places:
        location = _place_text(place)
        if location:
            return location
    return None


def _place_text(place: Any) -> str | None:
    if isinstance(place, str):
        return _text(place)
    if not isinstance(place, dict):
        return None
    address = place.get("address", place)
    if isinstance(address, str):
        return _text(address)
    if not isinstance(address, dict):
        return None
    country = address.get("addressCountry")
    if isinstance(country, dict):
        country = country.get("name")
    parts = [
        _text(address.get("addressLocality")),
        _text(address.get("addressRegion")),
        _text(country),
    ]
    joined = ", ".join(p for p in parts if p)
    return joined or None


def _employment_type(value: Any) -> str | None:
    values = value if isinstance(value, list) else [value]
    labels: list[str] = []
    for v in values:
        label = _employment_label(_text(v))
        if label and label not in labels:
            labels.append(label)
    return ", ".join(labels) if labels else None


def _employment_label(text: str | None) -> str | None:
    """Render schema.org tokens (FULL_TIME) as labels (Full-time); keep free text."""
    if text is None:
        return None
    if re.fullmatch(r"[A-Z]+(?:_[A-Z]+)*", text):
        return text.replace("_", "-").capitalize()
    return text


def _workplace_type(value: Any) -> str | None:
    values = value if isinstance(value, list) else [value]
    if any(isinstance(v, str) and v.upper() == "TELECOMMUTE" for v in values):
        return "Remote"
    return None


def _identifier(value: Any) -> str | None:
    if isinstance(value, list):
        for item in value:
            found = _identifier(item)
            if found:
                return found
        return None
    if isinstance(value, dict):
        return _text(value.get("value"))
    return _text(value)
