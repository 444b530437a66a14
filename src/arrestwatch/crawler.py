"""
Listing crawler for florida.arrests.org.

A bounded pool of asyncio workers takes FetchRequests from the queue.
Each request runs through one page handler with its own browser session:

    throttle -> navigate -> settle challenge -> extract -> dedupe
             -> persist -> decide next page

Pages that stay behind a challenge, or come back empty while the empty
page policy still allows a retry, retire their session and are retried
with a fresh one. Retries go to the front of the queue with exponential
backoff. Once the retry budget is spent the page is recorded as failed
and its pagination line ends.
"""

import asyncio
import logging
import random
import time
from datetime import datetime
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from arrestwatch.browser_config import BrowserConfig
from arrestwatch.config import ScraperInput
from arrestwatch.constants import (
    EXPONENTIAL_BACKOFF_BASE,
    MAX_BACKOFF_DELAY_SECONDS,
    SOURCE_FLORIDA_ARRESTS,
)
from arrestwatch.dedup import RunDeduplicator, dedupe
from arrestwatch.document import SoupDocument
from arrestwatch.errors import (
    ChallengeBlockedError,
    ConfigurationError,
    EmptyPageError,
)
from arrestwatch.extractor import ExtractionPipeline
from arrestwatch.infrastructure.rate_limiter import RequestThrottle, ThrottleConfig
from arrestwatch.infrastructure.request_queue import RequestQueue
from arrestwatch.infrastructure.session_pool import SessionPool
from arrestwatch.models import FetchRequest, OutputRecord
from arrestwatch.output_manager import OutputManager
from arrestwatch.pagination import PageAction, PaginationController
from arrestwatch.utils.challenge_handler import ChallengeResolver
from arrestwatch.utils.human_simulator import HumanSimulator

logger = logging.getLogger(__name__)


class ArrestCrawler:
    """
    Crawls one county's listing pages until pagination terminates.

    Usage:
        crawler = ArrestCrawler(ScraperInput(county=8), OutputManager())
        summary = await crawler.run()
    """

    def __init__(
        self,
        config: ScraperInput,
        output: OutputManager,
        session_pool: Optional[SessionPool] = None,
        throttle: Optional[RequestThrottle] = None,
        resolver: Optional[ChallengeResolver] = None,
        browser_config: Optional[BrowserConfig] = None,
        pipeline: Optional[ExtractionPipeline] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize crawler.

        Args:
            config: Validated run input
            output: Storage for records and debug artifacts
            session_pool: Browser sessions; a SessionPool is created if omitted
            throttle: Pre-request pacing; built from min_delay_ms if omitted
            resolver: Challenge handling; built with its own simulator if omitted
            browser_config: Browser settings for the default session pool
            pipeline: Extraction strategies; the default pipeline if omitted
            rng: Random source for pointer jitter and backoff jitter
        """
        self.config = config
        self.output = output
        self.browser_config = browser_config or BrowserConfig()
        self._rng = rng or random.Random()

        self._owns_pool = session_pool is None
        self.session_pool = session_pool or SessionPool(
            size=config.max_concurrency,
            browser_config=self.browser_config,
        )
        self.throttle = throttle or RequestThrottle(
            ThrottleConfig.from_min_delay_ms(config.min_delay_ms)
        )
        self.resolver = resolver or ChallengeResolver(
            HumanSimulator(rng=self._rng),
            network_idle_timeout_ms=self.browser_config.network_idle_timeout_ms,
        )
        self.pipeline = pipeline or ExtractionPipeline()

        self.controller = PaginationController(
            county=config.county,
            results_per_page=config.results_per_page,
            page_start=config.page_start,
            page_end=config.page_end,
            empty_page_retries=config.empty_page_retries,
        )
        self.queue = RequestQueue()
        self.deduplicator = RunDeduplicator()
        self.failed_requests: dict[int, dict[str, Any]] = {}
        self._fatal_error: Optional[BaseException] = None
        self._stop_requested = False

    # =========================================================================
    # Run loop
    # =========================================================================

    async def run(self) -> dict[str, Any]:
        """
        Crawl until the pagination line terminates or the queue is drained.

        Returns:
            Run summary dict

        Raises:
            ConfigurationError: If a worker hit an unrecoverable error
        """
        logger.info(
            f"Starting ArrestWatch Florida Scraper "
            f"(county={self.config.county}, pageStart={self.config.page_start}, "
            f"pageEnd={self.config.page_end})"
        )
        if self.config.include_detail_pages:
            logger.warning("includeDetailPages is not implemented; only listing pages are crawled")

        if not self.session_pool.is_started:
            await self.session_pool.start()

        await self.queue.add(self.controller.start())
        workers = [
            asyncio.create_task(self._worker(worker_id))
            for worker_id in range(self.config.max_concurrency)
        ]

        try:
            await self.queue.join()
        finally:
            await self.queue.close()
            await asyncio.gather(*workers, return_exceptions=True)
            if self._owns_pool:
                await self.session_pool.stop()

        if self._fatal_error is not None:
            raise self._fatal_error

        summary = self.summary()
        logger.info(
            f"Crawl finished: {summary['records_emitted']} records from "
            f"{len(summary['pages_fetched'])} page fetches ({summary['stop_reason']})"
        )
        return summary

    async def request_stop(self) -> None:
        """Stop taking new requests; in-flight pages finish."""
        if self._stop_requested:
            return
        self._stop_requested = True
        logger.warning("Stop requested, draining request queue")
        await self.queue.drain()

    async def _worker(self, worker_id: int) -> None:
        while True:
            request = await self.queue.get()
            if request is None:
                logger.debug(f"Worker {worker_id} exiting")
                return
            try:
                await self._process_request(request)
            finally:
                self.queue.task_done()

    async def _process_request(self, request: FetchRequest) -> None:
        started = time.monotonic()
        try:
            async with self.session_pool.acquire() as session:
                try:
                    await asyncio.wait_for(
                        self._handle_request(request, session),
                        timeout=self.config.request_handler_timeout_secs,
                    )
                except (asyncio.TimeoutError, PlaywrightError):
                    session.retire()
                    raise
            self.throttle.record_outcome(time.monotonic() - started, success=True)

        except ConfigurationError as e:
            logger.error(f"Unrecoverable error on page {request.page_number}: {e}")
            self._fatal_error = e
            await self.queue.drain()

        except ChallengeBlockedError as e:
            self.throttle.record_outcome(time.monotonic() - started, success=False, blocked=True)
            await self._handle_request_error(request, e)

        except asyncio.TimeoutError:
            self.throttle.record_outcome(time.monotonic() - started, success=False)
            timeout_error = TimeoutError(
                f"Page handler exceeded {self.config.request_handler_timeout_secs}s"
            )
            await self._handle_request_error(request, timeout_error)

        except Exception as e:
            self.throttle.record_outcome(time.monotonic() - started, success=False)
            await self._handle_request_error(request, e)

    # =========================================================================
    # Page handler
    # =========================================================================

    async def _handle_request(self, request: FetchRequest, session) -> None:
        page = session.page

        await self.throttle.wait()
        logger.info(f"Processing {request.url}")

        await page.goto(request.url, timeout=self.browser_config.navigation_timeout_ms)
        self.controller.on_fetched(request)

        check = await self.resolver.settle(page)
        if check.is_blocked:
            self.controller.on_blocked(request)
            logger.error("Request blocked by challenge (challenge persists). Retiring session.")
            session.retire()
            raise ChallengeBlockedError(
                f"Blocked on page {request.page_number}, retrying with new session",
                page_number=request.page_number,
            )
        self.controller.on_usable(request)

        document = SoupDocument(await page.content(), base_url=page.url)
        result = self.pipeline.extract(document)
        candidates = dedupe(result.records)
        decision = self.controller.decide(request, len(candidates))

        if not candidates:
            logger.warning(f"No records found on page {request.page_number}.")
            await self._save_debug_artifacts(page, request)
            if decision.action == PageAction.RETRY:
                session.retire()
                raise EmptyPageError(
                    f"Empty page {request.page_number}, retrying with new session",
                    page_number=request.page_number,
                )
            return

        fresh = self.deduplicator.filter_new(candidates)
        for candidate in fresh:
            record = OutputRecord.from_candidate(candidate, county_id=request.county)
            self.output.push_record(record.to_dict())
        self.controller.record_emitted(len(fresh))
        logger.info(
            f"Found {len(candidates)} records on page {request.page_number} "
            f"({len(fresh)} new, strategy={result.strategy})."
        )

        if decision.action == PageAction.ADVANCE:
            logger.info(f"Enqueuing page {decision.next_request.page_number}")
            await self.queue.add(decision.next_request)

    async def _save_debug_artifacts(self, page, request: FetchRequest) -> None:
        try:
            screenshot = await page.screenshot(full_page=True)
            html = await page.content()
            self.output.save_debug_artifacts(request.page_number, screenshot, html)
        except (PlaywrightError, OSError) as e:
            logger.error(f"Failed to save debug artifacts for page {request.page_number}: {e}")

    # =========================================================================
    # Retry handling
    # =========================================================================

    def _calculate_backoff_delay(self, retry_count: int) -> float:
        """Calculate exponential backoff delay with jitter.

        Args:
            retry_count: Number of retries already attempted (0-indexed)

        Returns:
            Delay in seconds before the retry is queued
        """
        delay = self.config.retry_backoff_seconds * (EXPONENTIAL_BACKOFF_BASE ** retry_count)
        delay = min(delay, MAX_BACKOFF_DELAY_SECONDS)
        # Jitter (±25%) so concurrent retries don't land together
        jitter = delay * self._rng.uniform(-0.25, 0.25)
        return delay + jitter

    async def _handle_request_error(self, request: FetchRequest, error: Exception) -> None:
        """Re-queue the same page, or record it as failed once retries run out."""
        if self.queue.is_drained:
            logger.info(f"Not retrying page {request.page_number}: queue drained")
            return
        if self.controller.finished:
            self._record_failure(request, error)
            return

        if request.retry_count < self.config.max_request_retries:
            backoff_delay = self._calculate_backoff_delay(request.retry_count)
            logger.info(
                f"Will retry page {request.page_number} "
                f"({request.retry_count + 1}/{self.config.max_request_retries}) "
                f"after {backoff_delay:.1f}s: {error}"
            )
            if backoff_delay > 0:
                await asyncio.sleep(backoff_delay)

            self.controller.on_retry(request)
            await self.queue.add(request.for_retry(), forefront=True, retry=True)
        else:
            self._record_failure(request, error)
            self.controller.on_failed(request)

    def _record_failure(self, request: FetchRequest, error: Exception) -> None:
        self.failed_requests[request.page_number] = {
            "url": request.url,
            "page_number": request.page_number,
            "error": str(error)[:500],
            "error_type": type(error).__name__,
            "retries": request.retry_count,
            "failed_at": datetime.now().isoformat(),
        }
        logger.warning(
            f"Page {request.page_number} permanently failed after "
            f"{request.retry_count} retries: {error}"
        )

    def summary(self) -> dict[str, Any]:
        state = self.controller.state
        return {
            "source": SOURCE_FLORIDA_ARRESTS,
            "county": self.config.county,
            "last_page": state.current_page,
            "pages_fetched": list(state.pages_fetched),
            "records_emitted": state.emitted_count,
            "failed_requests": list(self.failed_requests.values()),
            "stop_reason": self.controller.stop_reason
            or ("stopped" if self._stop_requested else None),
            "throttle_delay_seconds": self.throttle.current_delay,
        }
