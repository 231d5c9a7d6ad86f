"""CLI entry point for the LinkedIn jobs scraper."""

import argparse
import asyncio
import json
import logging
import sys

from jobs_scraper.core.config import Settings
from jobs_scraper.core.db import init_db
from jobs_scraper.core.errors import ScraperError
from jobs_scraper.core.events import Event
from jobs_scraper.core.schemas import JobRecord, Metrics
from jobs_scraper.pipeline.job_store import JobStore
from jobs_scraper.pipeline.orchestrator import LinkedInScraper
from jobs_scraper.pipeline.planner import plan_queries
from jobs_scraper.platforms.linkedin.searcher import build_url


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="LinkedIn jobs scraper - extract job listings with an authenticated session",
    )
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan queries and print search URLs without launching a browser",
    )
    parser.add_argument(
        "--export",
        choices=["json"],
        help="Export scraped records to format (json)",
    )
    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Neither skip already-seen jobs nor save new ones",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def dry_run(settings: Settings) -> None:
    """Print what would be scraped without opening a browser."""
    queries = plan_queries(settings.queries, settings.options)
    print(f"[DRY RUN] {len(queries)} queries configured")

    for query in queries:
        options = query.options
        print(f"[DRY RUN] '{query.keyword}': limit {options.limit}, page offset {options.page_offset}")
        for location in options.locations:
            print(f"  {location}: {build_url(query.keyword, location, options)}")

    print("[DRY RUN] Would scrape 0 jobs (no browser in dry-run)")


async def run(settings: Settings, export_format: str | None, use_store: bool = True) -> int:
    """Run the scraper with a real browser. Returns the number of records."""
    conn = init_db(settings.database.path) if use_store else None
    store = JobStore(conn) if conn is not None else None

    records: list[JobRecord] = []
    snapshots: list[Metrics] = []
    invalid_sessions = 0

    def on_data(record: JobRecord) -> None:
        records.append(record)
        if store is not None and record.job_id:
            store.save(record)

    def on_invalid_session() -> None:
        nonlocal invalid_sessions
        invalid_sessions += 1

    scraper = LinkedInScraper(settings.browser, store=store)
    scraper.on(Event.DATA, on_data)
    scraper.on(Event.METRICS, snapshots.append)
    scraper.on(Event.INVALID_SESSION, on_invalid_session)

    try:
        await scraper.run(settings.queries, settings.options)
    finally:
        await scraper.close()
        if conn is not None:
            conn.close()

    print(f"\nScrape complete: {len(records)} jobs.")
    if snapshots:
        last = snapshots[-1]
        print(
            f"  Last run: {last.processed} processed, {last.failed} failed, "
            f"{last.missed} missed, {last.skipped} skipped",
        )
    if invalid_sessions:
        print(f"  Session reported invalid {invalid_sessions} time(s) - refresh your li_at cookie")

    if export_format == "json" and records:
        print(f"\n{export_records_json(records)}")

    return len(records)


def export_records_json(records: list[JobRecord]) -> str:
    """Export scraped records as a JSON string."""
    data = [record.model_dump(mode="json") for record in records]
    return json.dumps(data, indent=2)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.dry_run:
            dry_run(settings)
        else:
            asyncio.run(run(settings, args.export, use_store=not args.no_store))
    except ScraperError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
