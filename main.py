"""CLI entry point for the job-board crawler."""

import argparse
import asyncio
import logging
import sys
from typing import Any

from jobcrawl.browser.session import BrowserSession
from jobcrawl.core.config import Settings, SearchRequest, build_search_request, load_task_input
from jobcrawl.core.db import (
    SqliteRecordSink,
    export_records_json,
    fetch_records,
    init_db,
    insert_crawl_run,
)
from jobcrawl.core.debug_store import DebugStore
from jobcrawl.core.errors import FatalConfigurationError
from jobcrawl.core.schemas import CrawlPhase, CrawlSummary
from jobcrawl.pipeline.controller import CrawlController
from jobcrawl.platforms.workable.adapter import WorkableAdapter

logger = logging.getLogger(__name__)


def _add_common(parser: argparse.ArgumentParser, *, suppress: bool = False) -> None:
    def _help(text: str) -> str:
        return argparse.SUPPRESS if suppress else text

    parser.add_argument(
        "--config",
        default=None,
        help=_help("Path to settings YAML file (default: built-in settings)"),
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help=_help("Enable verbose (DEBUG) logging"),
    )


def _add_crawl_args(parser: argparse.ArgumentParser, *, suppress: bool = False) -> None:
    def _help(text: str) -> str:
        return argparse.SUPPRESS if suppress else text

    parser.add_argument("--input", help=_help("Task input file (JSON or YAML)"))
    parser.add_argument("--keyword", help=_help("Search keyword (overrides input file)"))
    parser.add_argument("--location", help=_help("Location filter (slug or free text)"))
    parser.add_argument(
        "--posted-date",
        choices=["24h", "7d", "30d", "anytime"],
        help=_help("Only jobs posted within this window"),
    )
    parser.add_argument(
        "--results-wanted",
        type=int,
        help=_help("Number of records to collect (clamped to 1-500, default 50)"),
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help=_help("Show what would be done without launching a browser"),
    )
    parser.add_argument(
        "--export",
        choices=["json"],
        help=_help("Print collected records in this format after the run"),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job-board crawler - collect job postings from search results",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- crawl subcommand (default) ---
    crawl_parser = subparsers.add_parser("crawl", help="Run a crawl")
    _add_common(crawl_parser)
    _add_crawl_args(crawl_parser)

    # --- export subcommand ---
    export_parser = subparsers.add_parser("export", help="Print stored records as JSON")
    _add_common(export_parser)

    # --- backward compat: top-level flags for crawl ---
    _add_common(parser, suppress=True)
    _add_crawl_args(parser, suppress=True)

    args = parser.parse_args(argv)

    # Default to crawl when no subcommand given
    if args.command is None:
        args.command = "crawl"

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str | None) -> Settings:
    if path is None:
        return Settings()
    return Settings.from_yaml(path)


def request_from_args(args: argparse.Namespace) -> SearchRequest:
    """Merge the input file (if any) with command-line overrides.

    Raises:
        FatalConfigurationError: if the keyword is missing or input is invalid.
    """
    raw: dict[str, Any] = load_task_input(args.input) if args.input else {}
    overrides = {
        "keyword": args.keyword,
        "location": args.location,
        "postedDate": args.posted_date,
        "resultsWanted": args.results_wanted,
    }
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return build_search_request(raw)


def dry_run(settings: Settings, request: SearchRequest) -> None:
    """Print what would happen without actually crawling."""
    adapter = WorkableAdapter(settings.crawl)
    print(f"[DRY RUN] Search URL: {adapter.build_search_url(request)}")
    print(f"[DRY RUN] Target records: {request.target_count}")
    print(f"  Concurrency: {settings.crawl.max_concurrency}")
    print(f"  Retries per task: {settings.crawl.max_retries}")
    print(f"  Scroll passes per listing: {settings.crawl.max_scroll_passes}")
    print(f"  Blocked resource types: {settings.browser.blocked_resource_types}")
    print(f"  Database: {settings.storage.database_path}")
    print("[DRY RUN] Would write 0 records (no browser in dry-run)")


async def run(settings: Settings, request: SearchRequest, export_format: str | None) -> CrawlSummary:
    """Run one crawl with a real browser."""
    conn = init_db(settings.storage.database_path)
    sink = SqliteRecordSink(conn)
    adapter = WorkableAdapter(settings.crawl)

    try:
        async with BrowserSession(settings.browser) as session:
            controller = CrawlController(
                request,
                adapter,
                session,
                sink,
                config=settings.crawl,
                navigation_timeout_ms=settings.browser.navigation_timeout_ms,
                debug_store=DebugStore(settings.storage.debug_dir),
            )
            summary = await controller.run()

        insert_crawl_run(conn, summary)
        print(f"\nCrawl {summary.state.value.lower()}: {summary.collected} records collected "
              f"({summary.enqueued} enqueued, {summary.failed} failed).")

        if export_format == "json":
            print(export_records_json(fetch_records(conn)))
    finally:
        conn.close()
    return summary


def cmd_export(settings: Settings) -> None:
    conn = init_db(settings.storage.database_path)
    try:
        print(export_records_json(fetch_records(conn)))
    finally:
        conn.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "export":
        cmd_export(settings)
        return

    try:
        request = request_from_args(args)
    except FatalConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        dry_run(settings, request)
        return

    summary = asyncio.run(run(settings, request, args.export))
    if summary.state is CrawlPhase.FAILED:
        sys.exit(2)


if __name__ == "__main__":
    main()
