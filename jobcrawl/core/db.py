"""SQLite record sink: job records, failed requests, and crawl run tracking."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Protocol

from jobcrawl.core.schemas import CrawlSummary, JobRecord

logger = logging.getLogger(__name__)

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    source_url       TEXT NOT NULL UNIQUE,
    title            TEXT,
    company          TEXT,
    location         TEXT,
    posted_date      TEXT,
    employment_type  TEXT,
    workplace_type   TEXT,
    valid_through    TEXT,
    external_id      TEXT,
    description_html TEXT,
    description_text TEXT,
    scraped_at       TEXT NOT NULL
);
"""

_FAILED_REQUESTS_TABLE = """
CREATE TABLE IF NOT EXISTS failed_requests (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    url        TEXT NOT NULL,
    kind       TEXT NOT NULL,
    error      TEXT NOT NULL,
    attempts   INTEGER NOT NULL,
    failed_at  TEXT NOT NULL
);
"""

_CRAWL_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS crawl_runs (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    keyword        TEXT NOT NULL,
    state          TEXT NOT NULL,
    target         INTEGER NOT NULL,
    collected      INTEGER NOT NULL,
    enqueued       INTEGER NOT NULL,
    failed         INTEGER NOT NULL,
    listing_pages  INTEGER NOT NULL,
    started_at     TEXT NOT NULL,
    finished_at    TEXT NOT NULL
);
"""

_RECORD_COLUMNS = (
    "source_url",
    "title",
    "company",
    "location",
    "posted_date",
    "employment_type",
    "workplace_type",
    "valid_through",
    "external_id",
    "description_html",
    "description_text",
    "scraped_at",
)


class RecordSink(Protocol):
    """Where finished records and abandoned requests go."""

    def write_record(self, record: JobRecord) -> bool: ...
    def write_failure(self, url: str, kind: str, error: str, attempts: int) -> None: ...


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOBS_TABLE)
    conn.execute(_FAILED_REQUESTS_TABLE)
    conn.execute(_CRAWL_RUNS_TABLE)
    conn.commit()
    return conn


def insert_record(conn: sqlite3.Connection, record: JobRecord) -> bool:
    """Insert a record, or refresh the stored row if the source_url was scraped before.

    Returns True if a new row was inserted, False if an existing row was updated.
    """
    data = record.model_dump()
    data["scraped_at"] = record.scraped_at.isoformat()
    existing = conn.execute(
        "SELECT 1 FROM jobs WHERE source_url = ?", (record.source_url,),
    ).fetchone()
    placeholders = ", ".join("?" for _ in _RECORD_COLUMNS)
    updates = ", ".join(f"{c} = excluded.{c}" for c in _RECORD_COLUMNS if c != "source_url")
    conn.execute(
        f"INSERT INTO jobs ({', '.join(_RECORD_COLUMNS)}) VALUES ({placeholders}) "
        f"ON CONFLICT(source_url) DO UPDATE SET {updates}",
        tuple(data[c] for c in _RECORD_COLUMNS),
    )
    conn.commit()
    return existing is None


def insert_failed_request(
    conn: sqlite3.Connection,
    url: str,
    kind: str,
    error: str,
    attempts: int,
) -> None:
    """Record a request that was abandoned after its retries ran out."""
    conn.execute(
        """
        INSERT INTO failed_requests (url, kind, error, attempts, failed_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (url, kind, error, attempts, datetime.now().isoformat()),
    )
    conn.commit()


def insert_crawl_run(conn: sqlite3.Connection, summary: CrawlSummary) -> int:
    """Record a finished crawl run. Returns the row ID."""
    cursor = conn.execute(
        """
        INSERT INTO crawl_runs
            (keyword, state, target, collected, enqueued, failed, listing_pages,
             started_at, finished_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            summary.keyword,
            summary.state.value,
            summary.target,
            summary.collected,
            summary.enqueued,
            summary.failed,
            summary.listing_pages,
            summary.started_at.isoformat(),
            summary.finished_at.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def fetch_records(conn: sqlite3.Connection) -> list[JobRecord]:
    """Load every stored record in insertion order."""
    rows = conn.execute(
        f"SELECT {', '.join(_RECORD_COLUMNS)} FROM jobs ORDER BY id",
    ).fetchall()
    return [JobRecord.model_validate(dict(row)) for row in rows]


def export_records_json(records: list[JobRecord]) -> str:
    """Export records as a JSON string."""
    return json.dumps([r.model_dump(mode="json") for r in records], indent=2)


class SqliteRecordSink:
    """RecordSink backed by a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def write_record(self, record: JobRecord) -> bool:
        inserted = insert_record(self._conn, record)
        if not inserted:
            logger.info("Refreshed previously stored record: %s", record.source_url)
        return inserted

    def write_failure(self, url: str, kind: str, error: str, attempts: int) -> None:
        insert_failed_request(self._conn, url, kind, error, attempts)
