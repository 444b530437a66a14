"""Arrest listing scraper for florida.arrests.org and Miami-Dade bookings."""

__version__ = "0.1.0"

from arrestwatch.config import ScraperInput, settings
from arrestwatch.browser_config import BrowserConfig
from arrestwatch.models import (
    FetchRequest,
    PageClassification,
    CandidateRecord,
    OutputRecord,
    CrawlState,
)
from arrestwatch.errors import (
    ArrestWatchError,
    ConfigurationError,
    RetryableRequestError,
    ChallengeBlockedError,
    EmptyPageError,
)
from arrestwatch.document import SoupDocument
from arrestwatch.extractor import (
    ExtractionPipeline,
    ClassBasedStrategy,
    HeuristicScanStrategy,
    extract_candidates,
)
from arrestwatch.dedup import dedupe, RunDeduplicator
from arrestwatch.pagination import PaginationController, PaginationPhase
from arrestwatch.output_manager import OutputManager
from arrestwatch.crawler import ArrestCrawler
from arrestwatch.runner import run_scraper

__all__ = [
    "__version__",
    "ScraperInput",
    "settings",
    "BrowserConfig",
    "FetchRequest",
    "PageClassification",
    "CandidateRecord",
    "OutputRecord",
    "CrawlState",
    "ArrestWatchError",
    "ConfigurationError",
    "RetryableRequestError",
    "ChallengeBlockedError",
    "EmptyPageError",
    "SoupDocument",
    "ExtractionPipeline",
    "ClassBasedStrategy",
    "HeuristicScanStrategy",
    "extract_candidates",
    "dedupe",
    "RunDeduplicator",
    "PaginationController",
    "PaginationPhase",
    "OutputManager",
    "ArrestCrawler",
    "run_scraper",
]
