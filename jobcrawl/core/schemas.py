"""Core data models for the crawler."""

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_WHITESPACE_RUN = re.compile(r"\s+")

# Fields that hold one line of text; internal whitespace runs are collapsed.
_SINGLE_LINE_FIELDS = (
    "title",
    "company",
    "location",
    "posted_date",
    "employment_type",
    "workplace_type",
    "valid_through",
    "external_id",
)


def clean_text(value: Any) -> str | None:
    """Collapse whitespace and trim. Empty or missing → None."""
    if value is None:
        return None
    text = _WHITESPACE_RUN.sub(" ", str(value)).strip()
    return text or None


def clean_block(value: Any) -> str | None:
    """Trim a multi-line block (HTML or text) without touching its interior."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class TaskKind(str, Enum):
    LISTING = "LISTING"
    DETAIL = "DETAIL"


class CrawlTask(BaseModel):
    """One unit of work on the queue.

    Frozen; a retry is a copy with ``attempt`` bumped.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    kind: TaskKind
    title: str | None = None
    attempt: int = 0


class DiscoveredLink(BaseModel):
    """A detail-page link found on a listing page."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str | None = None


class FieldKind(str, Enum):
    """Fields the DOM tier knows how to probe for."""

    TITLE = "title"
    COMPANY = "company"
    LOCATION = "location"
    POSTED_DATE = "posted_date"
    EMPLOYMENT_TYPE = "employment_type"
    WORKPLACE_TYPE = "workplace_type"
    VALID_THROUGH = "valid_through"
    DESCRIPTION_HTML = "description_html"
    DESCRIPTION_TEXT = "description_text"


DomResults = dict[FieldKind, str | None]


class RecordFragment(BaseModel):
    """Fields recovered from an embedded structured-metadata block."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    company: str | None = None
    location: str | None = None
    posted_date: str | None = None
    employment_type: str | None = None
    workplace_type: str | None = None
    valid_through: str | None = None
    external_id: str | None = None
    description: str | None = None


class JobRecord(BaseModel):
    """The output unit: one normalized job posting.

    Frozen. Everything except ``source_url`` and ``scraped_at`` is nullable;
    empty strings never survive validation.
    """

    model_config = ConfigDict(frozen=True)

    source_url: str
    title: str | None = None
    company: str | None = None
    location: str | None = None
    posted_date: str | None = None
    employment_type: str | None = None
    workplace_type: str | None = None
    valid_through: str | None = None
    external_id: str | None = None
    description_html: str | None = None
    description_text: str | None = None
    scraped_at: datetime = Field(default_factory=datetime.now)

    @field_validator(*_SINGLE_LINE_FIELDS, mode="before")
    @classmethod
    def _clean_single_line(cls, v: Any) -> str | None:
        return clean_text(v)

    @field_validator("description_html", "description_text", mode="before")
    @classmethod
    def _clean_blocks(cls, v: Any) -> str | None:
        return clean_block(v)

    @field_validator("source_url")
    @classmethod
    def _source_url_required(cls, v: str) -> str:
        if not v.strip():
            msg = "source_url must not be empty"
            raise ValueError(msg)
        return v.strip()

    def content_fields_empty(self) -> bool:
        """True when no tier produced anything (only url + timestamp set)."""
        data = self.model_dump(exclude={"source_url", "scraped_at"})
        return all(v is None for v in data.values())


class CrawlPhase(str, Enum):
    SEEDED = "SEEDED"
    LISTING_ACTIVE = "LISTING_ACTIVE"
    DETAIL_ACTIVE = "DETAIL_ACTIVE"
    DONE = "DONE"
    FAILED = "FAILED"


class CrawlSummary(BaseModel):
    """Summary of a single crawl run."""

    keyword: str
    state: CrawlPhase
    target: int
    collected: int
    enqueued: int
    failed: int
    listing_pages: int
    started_at: datetime
    finished_at: datetime
