"""Field normalizer: merges the structured and DOM tiers into a JobRecord.

Precedence per field: structured value → DOM value → None.
Description: structured markup as-is → DOM HTML block → plain text wrapped
in <p>. Pure and deterministic; ``scraped_at`` is supplied by the caller.
"""

import html
from datetime import datetime

from jobcrawl.core.schemas import (
    DomResults,
    FieldKind,
    JobRecord,
    RecordFragment,
    clean_block,
    clean_text,
)
from jobcrawl.extraction.structured import looks_like_markup


def first_present(*candidates: str | None) -> str | None:
    """Return the first candidate that is non-empty after cleaning."""
    for candidate in candidates:
        value = clean_text(candidate)
        if value is not None:
            return value
    return None


def build_description_html(
    structured: str | None,
    dom_html: str | None,
    dom_text: str | None,
) -> str | None:
    structured = clean_block(structured)
    if structured is not None and looks_like_markup(structured):
        return structured
    dom_html = clean_block(dom_html)
    if dom_html is not None:
        return dom_html
    plain = structured or clean_block(dom_text)
    if plain is None:
        return None
    return f"<p>{html.escape(plain)}</p>"


def normalize(
    structured: RecordFragment | None,
    dom: DomResults,
    *,
    source_url: str,
    scraped_at: datetime,
    listing_title: str | None = None,
    external_id_hint: str | None = None,
) -> JobRecord:
    """Merge both tiers into one record.

    Args:
        structured: Structured-tier fragment, or None when no block qualified.
        dom: DOM-tier values keyed by field kind (missing keys mean None).
        source_url: Detail page URL.
        scraped_at: Timestamp to stamp on the record.
        listing_title: Title carried from the listing card (last-resort title).
        external_id_hint: Id parsed from the URL (last-resort external id).
    """
    s = structured or RecordFragment()

    def d(kind: FieldKind) -> str | None:
        return dom.get(kind)

    structured_text = None
    if s.description is not None and not looks_like_markup(s.description):
        structured_text = s.description

    return JobRecord(
        source_url=source_url,
        title=first_present(s.title, d(FieldKind.TITLE), listing_title),
        company=first_present(s.company, d(FieldKind.COMPANY)),
        location=first_present(s.location, d(FieldKind.LOCATION)),
        posted_date=first_present(s.posted_date, d(FieldKind.POSTED_DATE)),
        employment_type=first_present(s.employment_type, d(FieldKind.EMPLOYMENT_TYPE)),
        workplace_type=first_present(s.workplace_type, d(FieldKind.WORKPLACE_TYPE)),
        valid_through=first_present(s.valid_through, d(FieldKind.VALID_THROUGH)),
        external_id=first_present(s.external_id, external_id_hint),
        description_html=build_description_html(
            s.description, d(FieldKind.DESCRIPTION_HTML), d(FieldKind.DESCRIPTION_TEXT),
        ),
        description_text=clean_block(d(FieldKind.DESCRIPTION_TEXT)) or structured_text,
        scraped_at=scraped_at,
    )
