"""Tests for core schemas: JobRecord, CrawlTask, text cleaning helpers."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from jobcrawl.core.schemas import (
    CrawlTask,
    JobRecord,
    RecordFragment,
    TaskKind,
    clean_block,
    clean_text,
)

_URL = "https://jobs.workable.com/view/abc"


class TestCleanText:
    def test_collapses_whitespace(self) -> None:
        assert clean_text("  Systems \n\t Administrator ") == "Systems Administrator"

    def test_empty_is_none(self) -> None:
        assert clean_text("") is None
        assert clean_text(" \n ") is None
        assert clean_text(None) is None

    def test_non_string(self) -> None:
        assert clean_text(42) == "42"


class TestCleanBlock:
    def test_keeps_interior(self) -> None:
        assert clean_block("\n<p>a</p>\n\n<p>b</p>\n") == "<p>a</p>\n\n<p>b</p>"

    def test_empty_is_none(self) -> None:
        assert clean_block("   ") is None
        assert clean_block(None) is None


class TestJobRecord:
    def test_only_url_required(self) -> None:
        r = JobRecord(source_url=_URL)
        assert r.title is None
        assert r.description_html is None
        assert isinstance(r.scraped_at, datetime)
        assert r.content_fields_empty()

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValidationError):
            JobRecord(source_url="  ")

    def test_empty_strings_become_none(self) -> None:
        r = JobRecord(source_url=_URL, title="", company="   ", description_text="\n")
        assert r.title is None
        assert r.company is None
        assert r.description_text is None
        assert r.content_fields_empty()

    def test_single_line_fields_cleaned(self) -> None:
        r = JobRecord(source_url=_URL, location=" Athens,\n  Greece ")
        assert r.location == "Athens, Greece"
        assert not r.content_fields_empty()

    def test_frozen(self) -> None:
        r = JobRecord(source_url=_URL)
        with pytest.raises(ValidationError):
            r.title = "x"  # type: ignore[misc]

    def test_json_round_trip(self) -> None:
        r = JobRecord(source_url=_URL, title="Admin", scraped_at=datetime(2024, 5, 1, 12, 0))
        assert JobRecord.model_validate_json(r.model_dump_json()) == r


class TestCrawlTask:
    def test_retry_copy(self) -> None:
        task = CrawlTask(url=_URL, kind=TaskKind.DETAIL, title="Admin")
        retry = task.model_copy(update={"attempt": task.attempt + 1})
        assert retry.attempt == 1
        assert retry.title == "Admin"
        assert task.attempt == 0

    def test_kind_values(self) -> None:
        assert TaskKind("LISTING") is TaskKind.LISTING


class TestRecordFragment:
    def test_all_optional(self) -> None:
        f = RecordFragment()
        assert f.model_dump() == dict.fromkeys(RecordFragment.model_fields)
