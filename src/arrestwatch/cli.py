"""Command line entry point for ArrestWatch scraper runs."""

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional

from arrestwatch.browser_config import BrowserConfig
from arrestwatch.config import ScraperInput, settings
from arrestwatch.constants import SUPPORTED_SOURCES
from arrestwatch.errors import ConfigurationError
from arrestwatch.logging_config import setup_logging
from arrestwatch.runner import ScraperRun

# Input fields that can be overridden from the command line
OVERRIDE_FIELDS = (
    "source",
    "county",
    "results_per_page",
    "page_start",
    "page_end",
    "max_concurrency",
    "min_delay_ms",
    "max_request_retries",
    "empty_page_retries",
    "storage_dir",
    "arcgis_url",
    "webhook_url",
    "webhook_auth_token",
)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="arrestwatch",
        description="Crawl florida.arrests.org listings or ingest Miami-Dade bookings"
    )
    parser.add_argument(
        "--input", type=str, metavar="FILE",
        help="JSON input file (camelCase keys, like an actor INPUT.json)"
    )
    parser.add_argument(
        "--source", choices=SUPPORTED_SOURCES, default=None,
        help="Data source (default: florida_arrests)"
    )
    parser.add_argument("--county", type=int, help="County id (default: 8)")
    parser.add_argument("--results-per-page", type=int, help="Results per listing page (default: 56)")
    parser.add_argument("--page-start", type=int, help="First page to fetch (default: 1)")
    parser.add_argument("--page-end", type=int, help="Last page to fetch (default: run until empty)")
    parser.add_argument("--max-concurrency", type=int, help="Parallel browser sessions (default: 3)")
    parser.add_argument("--min-delay-ms", type=int, help="Minimum delay before each request (default: 750)")
    parser.add_argument("--max-request-retries", type=int, help="Retries per page (default: 3)")
    parser.add_argument("--empty-page-retries", type=int, help="Retries for a page with no records (default: 1)")
    parser.add_argument("--storage-dir", type=str, help="Storage root (default: storage)")
    parser.add_argument("--arcgis-url", type=str, help="ArcGIS FeatureServer layer URL (miami_dade)")
    parser.add_argument("--webhook-url", type=str, help="POST run records here when finished")
    parser.add_argument("--webhook-auth-token", type=str, help="Bearer token for the webhook")
    parser.add_argument(
        "--emit-webhook", action="store_true", default=None,
        help="Send the completion webhook"
    )
    parser.add_argument(
        "--headless", action="store_true",
        help="Run the browser headless (more likely to be challenged)"
    )
    parser.add_argument(
        "--log-level", type=str, default=settings.LOG_LEVEL,
        help="Log level (default: INFO)"
    )
    parser.add_argument("--log-file", type=str, default=settings.LOG_FILE, help="Also log to this file")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ScraperInput:
    """Input file (or ARRESTWATCH_* environment), then command line overrides."""
    base = ScraperInput.from_file(args.input) if args.input else ScraperInput.from_env()

    overrides = {
        name: getattr(args, name)
        for name in OVERRIDE_FIELDS
        if getattr(args, name, None) is not None
    }
    if args.emit_webhook:
        overrides["emit_webhook"] = True

    if not overrides:
        return base
    return ScraperInput.load({**base.model_dump(), **overrides})


async def run(args: argparse.Namespace) -> dict:
    config = build_config(args)
    browser_config = BrowserConfig(headless=args.headless)
    scraper_run = ScraperRun(config, browser_config=browser_config, run_id=settings.RUN_ID)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(scraper_run.stop()))

    try:
        return await scraper_run.execute()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main(argv: Optional[list[str]] = None) -> int:
    """Run a scrape and print its summary as JSON."""
    args = parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        summary = asyncio.run(run(args))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(summary, indent=2, default=str))
    return 1 if summary.get("failed_requests") else 0


if __name__ == "__main__":
    sys.exit(main())
