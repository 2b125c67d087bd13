"""Workable DOM selector constants with fallbacks.

Ordered by stability: data-ui > structural > class names.
Each constant is a tuple so callers iterate until a match is found.
"""

import re

from jobcrawl.core.schemas import FieldKind
from jobcrawl.extraction.dom import Capture, Probe, ProbeTable

# --- Detail page URL convention ---
# jobs.workable.com/view/<id>/<slug>  or  apply.workable.com/<company>/j/<shortcode>
DETAIL_URL_PATTERN = re.compile(
    r"^https?://(?:jobs|apply)\.workable\.com/(?:view/(?P<view_id>[A-Za-z0-9]+)"
    r"|[^/]+/j/(?P<shortcode>[A-Za-z0-9]+))",
)

# --- Listing page is rendered ---
LISTING_MARKERS: tuple[str, ...] = (
    'a[data-ui="job-card-title"]',
    '[data-ui="job-card"]',
    'ul > li a[href*="/view/"]',
    '[data-ui="no-results"]',
)

# --- Detail page is rendered ---
DETAIL_MARKERS: tuple[str, ...] = (
    '[data-ui="job-title"]',
    "h1",
    'script[type="application/ld+json"]',
)

# --- Cookie / consent overlays ---
CONSENT_SELECTORS: tuple[str, ...] = (
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    'button[data-ui="cookie-consent-accept"]',
    "#onetrust-accept-btn-handler",
    'button:has-text("Accept all")',
)

# --- Pagination ---
NEXT_PAGE_LINK_SELECTORS: tuple[str, ...] = (
    'a[rel="next"]',
    'a[aria-label="Next page"]',
)

NEXT_PAGE_BUTTON_SELECTORS: tuple[str, ...] = (
    'button[aria-label="Next page"]',
)

# --- Detail page fields ---
_DETAIL_META_ITEM = "h1 + ul > li"

FIELD_PROBES: ProbeTable = {
    FieldKind.TITLE: (
        Probe(selector='[data-ui="job-title"]'),
        Probe(selector="h1"),
        Probe(selector=".job-title"),
    ),
    FieldKind.COMPANY: (
        Probe(selector='[data-ui="job-company"]'),
        Probe(selector='[data-ui="company-name"]'),
        Probe(selector=".job-company"),
    ),
    FieldKind.LOCATION: (
        Probe(selector='[data-ui="job-location"]'),
        Probe(selector=_DETAIL_META_ITEM, capture=Capture.ICON_LABEL, attribute="location"),
        Probe(selector=".job-location"),
    ),
    FieldKind.POSTED_DATE: (
        Probe(selector='[data-ui="job-posted"]', capture=Capture.DATETIME),
        Probe(selector='[data-ui="job-date"]', capture=Capture.DATETIME),
        Probe(selector="time", capture=Capture.DATETIME),
        Probe(selector=".job-date"),
    ),
    FieldKind.EMPLOYMENT_TYPE: (
        Probe(selector='[data-ui="job-type"]'),
        Probe(selector=_DETAIL_META_ITEM, capture=Capture.ICON_LABEL, attribute="job-type"),
        Probe(selector=".job-type"),
    ),
    FieldKind.WORKPLACE_TYPE: (
        Probe(selector='[data-ui="job-workplace"]'),
        Probe(selector=_DETAIL_META_ITEM, capture=Capture.ICON_LABEL, attribute="workplace"),
    ),
    FieldKind.VALID_THROUGH: (
        Probe(selector='[data-ui="job-deadline"]', capture=Capture.DATETIME),
    ),
    FieldKind.DESCRIPTION_HTML: (
        Probe(selector='[data-ui="job-description"]', capture=Capture.HTML),
        Probe(selector='[data-ui="job-content"]', capture=Capture.HTML),
        Probe(selector="div.job__description", capture=Capture.HTML),
        Probe(selector=".job-description", capture=Capture.HTML),
    ),
    FieldKind.DESCRIPTION_TEXT: (
        Probe(selector='[data-ui="job-description"]'),
        Probe(selector='[data-ui="job-content"]'),
        Probe(selector="div.job__description"),
        Probe(selector=".job-description"),
    ),
}
