"""
Pagination control for one county listing.

The controller walks pages in strictly increasing order. It owns a
CrawlState, which is passed in explicitly and never shared between runs,
and it moves through explicit phases:

    IDLE -> FETCHING -> CLASSIFYING -> EXTRACTING -> DECIDING
                              |                          |
                           BLOCKED                 FETCHING(page+1)
                              |                    or TERMINAL
                       FETCHING(page)

Any failure before DECIDING sends a retry back to FETCHING for the same
page. Exhausted retries end the line in TERMINAL.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from arrestwatch.constants import (
    DEFAULT_EMPTY_PAGE_RETRIES,
    DEFAULT_PAGE_START,
    FLORIDA_ARRESTS_BASE_URL,
)
from arrestwatch.models import CrawlState, FetchRequest

logger = logging.getLogger(__name__)


class PaginationPhase(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    DECIDING = "deciding"
    BLOCKED = "blocked"
    TERMINAL = "terminal"


_TRANSITIONS: dict[PaginationPhase, set[PaginationPhase]] = {
    PaginationPhase.IDLE: {PaginationPhase.FETCHING, PaginationPhase.TERMINAL},
    PaginationPhase.FETCHING: {
        PaginationPhase.CLASSIFYING,
        PaginationPhase.FETCHING,
        PaginationPhase.TERMINAL,
    },
    PaginationPhase.CLASSIFYING: {
        PaginationPhase.EXTRACTING,
        PaginationPhase.BLOCKED,
        PaginationPhase.FETCHING,
        PaginationPhase.TERMINAL,
    },
    PaginationPhase.BLOCKED: {PaginationPhase.FETCHING, PaginationPhase.TERMINAL},
    PaginationPhase.EXTRACTING: {
        PaginationPhase.DECIDING,
        PaginationPhase.FETCHING,
        PaginationPhase.TERMINAL,
    },
    PaginationPhase.DECIDING: {PaginationPhase.FETCHING, PaginationPhase.TERMINAL},
    PaginationPhase.TERMINAL: set(),
}


class PageAction(Enum):
    ADVANCE = "advance"
    RETRY = "retry"
    STOP = "stop"


@dataclass(frozen=True)
class PageDecision:
    """What to do after a page has been extracted."""

    action: PageAction
    next_request: Optional[FetchRequest] = None
    reason: str = ""


def should_continue(page_number: int, record_count: int, page_end: Optional[int]) -> bool:
    """Continue to page+1 when the page had records and page_end is not reached."""
    return record_count > 0 and (page_end is None or page_number < page_end)


class PaginationController:
    """
    Decides which listing page to fetch next.

    Usage:
        controller = PaginationController(county=8, results_per_page=56)
        request = controller.start()
        ...
        decision = controller.decide(request, record_count=len(records))
    """

    def __init__(
        self,
        county: int,
        results_per_page: int,
        page_start: int = DEFAULT_PAGE_START,
        page_end: Optional[int] = None,
        empty_page_retries: int = DEFAULT_EMPTY_PAGE_RETRIES,
        base_url: str = FLORIDA_ARRESTS_BASE_URL,
        state: Optional[CrawlState] = None,
    ):
        if page_start < 1:
            raise ValueError(f"page_start must be >= 1, got {page_start}")
        if page_end is not None and page_end < page_start:
            raise ValueError(f"page_end ({page_end}) must be >= page_start ({page_start})")

        self.county = county
        self.results_per_page = results_per_page
        self.page_start = page_start
        self.page_end = page_end
        self.empty_page_retries = empty_page_retries
        self.base_url = base_url
        self.state = state if state is not None else CrawlState()
        self._phase = PaginationPhase.IDLE
        self.stop_reason: Optional[str] = None

    @property
    def phase(self) -> PaginationPhase:
        return self._phase

    @property
    def finished(self) -> bool:
        return self._phase == PaginationPhase.TERMINAL

    def _transition(self, target: PaginationPhase) -> None:
        if target not in _TRANSITIONS[self._phase]:
            raise RuntimeError(
                f"Invalid pagination transition {self._phase.value} -> {target.value}"
            )
        self._phase = target

    def _terminate(self, reason: str) -> None:
        self._transition(PaginationPhase.TERMINAL)
        self.stop_reason = reason
        logger.info(f"Pagination for county {self.county} finished: {reason}")

    def start(self) -> FetchRequest:
        """First request of the line."""
        self._transition(PaginationPhase.FETCHING)
        self.state.current_page = self.page_start
        return FetchRequest(
            county=self.county,
            page_number=self.page_start,
            results_per_page=self.results_per_page,
            base_url=self.base_url,
        )

    def on_fetched(self, request: FetchRequest) -> None:
        self._transition(PaginationPhase.CLASSIFYING)
        self.state.pages_fetched.append(request.page_number)

    def on_blocked(self, request: FetchRequest) -> FetchRequest:
        """Page is a challenge; the same page must be fetched again."""
        self._transition(PaginationPhase.BLOCKED)
        logger.warning(f"Page {request.page_number} blocked by challenge")
        return request.for_retry()

    def on_usable(self, request: FetchRequest) -> None:
        self._transition(PaginationPhase.EXTRACTING)

    def on_retry(self, request: FetchRequest) -> None:
        """A retry of the current page is about to be queued."""
        self._transition(PaginationPhase.FETCHING)

    def should_continue(self, page_number: int, record_count: int) -> bool:
        return should_continue(page_number, record_count, self.page_end)

    def decide(self, request: FetchRequest, record_count: int) -> PageDecision:
        """
        Decide what follows an extracted page.

        Args:
            request: The request that was just extracted
            record_count: Unique candidates found on the page

        Returns:
            PageDecision to advance, retry the same page, or stop
        """
        self._transition(PaginationPhase.DECIDING)

        if record_count > 0:
            self.state.consecutive_empty_pages = 0
            if not self.should_continue(request.page_number, record_count):
                self._terminate(f"reached page_end {self.page_end}")
                return PageDecision(PageAction.STOP, reason="page_end")

            next_request = request.next_page()
            if next_request.page_number <= self.state.current_page:
                raise RuntimeError(
                    f"Page {next_request.page_number} does not advance past "
                    f"{self.state.current_page}"
                )
            self.state.current_page = next_request.page_number
            self._transition(PaginationPhase.FETCHING)
            return PageDecision(PageAction.ADVANCE, next_request=next_request, reason="records")

        self.state.consecutive_empty_pages += 1
        if self.state.consecutive_empty_pages <= self.empty_page_retries:
            logger.warning(
                f"Page {request.page_number} empty "
                f"({self.state.consecutive_empty_pages}/{self.empty_page_retries} retries)"
            )
            self._transition(PaginationPhase.FETCHING)
            return PageDecision(PageAction.RETRY, next_request=request.for_retry(), reason="empty")

        self._terminate(f"page {request.page_number} returned no records")
        return PageDecision(PageAction.STOP, reason="empty")

    def record_emitted(self, count: int) -> None:
        self.state.emitted_count += count

    def on_failed(self, request: FetchRequest) -> None:
        """Retry budget exhausted; the line ends here."""
        self.state.failed_pages.append(request.page_number)
        if not self.finished:
            self._terminate(
                f"page {request.page_number} failed after {request.retry_count} retries"
            )
