"""Configuration models, YAML settings loader, and task-input reader."""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from jobcrawl.core.errors import FatalConfigurationError

logger = logging.getLogger(__name__)

MIN_TARGET_COUNT = 1
MAX_TARGET_COUNT = 500
DEFAULT_TARGET_COUNT = 50


class PostedWithin(str, Enum):
    """Recency filter for the search listing."""

    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"
    ANYTIME = "anytime"


class SearchRequest(BaseModel):
    """What to search for and how many records to collect.

    Accepts the task-input field names (``postedDate``, ``resultsWanted``)
    as aliases. ``target_count`` is clamped, never rejected.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    keyword: str
    location: str | None = None
    posted_within: PostedWithin = Field(default=PostedWithin.ANYTIME, alias="postedDate")
    target_count: int = Field(default=DEFAULT_TARGET_COUNT, alias="resultsWanted")

    @field_validator("keyword")
    @classmethod
    def keyword_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "keyword must not be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("location")
    @classmethod
    def blank_location_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("posted_within", mode="before")
    @classmethod
    def posted_within_default(cls, v: Any) -> Any:
        if v is None or v == "":
            return PostedWithin.ANYTIME
        return v

    @field_validator("target_count", mode="before")
    @classmethod
    def target_count_default(cls, v: Any) -> Any:
        return DEFAULT_TARGET_COUNT if v is None else v

    @field_validator("target_count")
    @classmethod
    def clamp_target_count(cls, v: int) -> int:
        return min(max(v, MIN_TARGET_COUNT), MAX_TARGET_COUNT)


class BrowserConfig(BaseModel):
    """Browser session configuration."""

    headless: bool = True
    timeout_ms: int = Field(default=30000, ge=1000)
    navigation_timeout_ms: int = Field(default=120000, ge=1000)
    blocked_resource_types: list[str] = Field(
        default_factory=lambda: ["image", "media", "font"],
    )
    user_agent: str | None = None

    @field_validator("blocked_resource_types")
    @classmethod
    def stylesheets_never_blocked(cls, v: list[str]) -> list[str]:
        types = [t.lower().strip() for t in v if t.strip()]
        if "stylesheet" in types:
            msg = "stylesheet requests must not be blocked (hidden content breaks DOM probes)"
            raise ValueError(msg)
        return types


class CrawlConfig(BaseModel):
    """Worker pool, retry, and scroll policy."""

    max_concurrency: int = Field(default=4, ge=1, le=16)
    max_retries: int = Field(default=3, ge=0, le=10)
    task_timeout_s: float = Field(default=240.0, gt=0)
    max_scroll_passes: int = Field(default=15, ge=1, le=50)
    scroll_offset_px: int = Field(default=1600, ge=100)
    scroll_delay_min: float = Field(default=0.5, ge=0.0)
    scroll_delay_max: float = Field(default=1.5, ge=0.0)
    listing_wait_ms: int = Field(default=45000, ge=1000)
    detail_wait_ms: int = Field(default=15000, ge=1000)
    pagination_wait_ms: int = Field(default=15000, ge=1000)
    shadow_depth: int = Field(default=2, ge=0, le=5)
    max_listing_pages: int = Field(default=50, ge=1)


class StorageConfig(BaseModel):
    """Record sink and debug store locations."""

    database_path: str = "data/jobs.db"
    debug_dir: str = "data/debug"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @model_validator(mode="after")
    def task_timeout_outlasts_listing_load(self) -> "Settings":
        """A task must outlive its own page load plus the listing marker wait."""
        floor_s = (self.browser.navigation_timeout_ms + self.crawl.listing_wait_ms) / 1000
        if self.crawl.task_timeout_s <= floor_s:
            msg = (
                f"crawl.task_timeout_s ({self.crawl.task_timeout_s:g}) must exceed "
                f"navigation_timeout_ms + listing_wait_ms ({floor_s:g}s)"
            )
            raise ValueError(msg)
        return self

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


def load_task_input(path: str | Path) -> dict[str, Any]:
    """Read a task-input file (JSON, or YAML by extension) into a dict."""
    path = Path(path)
    if not path.exists():
        msg = f"Input file not found: {path}"
        raise FatalConfigurationError(msg)
    text = path.read_text()
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        msg = f"Input file {path} is not valid: {e}"
        raise FatalConfigurationError(msg) from e
    if not isinstance(data, dict):
        msg = f"Input file {path} must hold an object"
        raise FatalConfigurationError(msg)
    return data


def build_search_request(raw: dict[str, Any]) -> SearchRequest:
    """Validate task input into a SearchRequest.

    Raises:
        FatalConfigurationError: on a missing keyword or any invalid value.
    """
    try:
        request = SearchRequest.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid task input: {e}"
        raise FatalConfigurationError(msg) from e
    logger.debug("Search request: %s", request.model_dump())
    return request
