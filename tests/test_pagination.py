"""Tests for the pagination controller."""

import pytest

from arrestwatch.models import CrawlState, FetchRequest
from arrestwatch.pagination import (
    PageAction,
    PaginationController,
    PaginationPhase,
    should_continue,
)


def run_page(controller: PaginationController, request: FetchRequest, record_count: int):
    controller.on_fetched(request)
    controller.on_usable(request)
    return controller.decide(request, record_count)


class TestFetchRequest:
    """Tests for request identity and URLs."""

    def test_url_template(self):
        """The listing URL carries county, page and results."""
        request = FetchRequest(county=8, page_number=3, results_per_page=56)
        assert request.url == "https://florida.arrests.org/index.php?county=8&page=3&results=56"

    def test_retry_keeps_identity(self):
        """A retry is the same page with one more attempt."""
        request = FetchRequest(county=8, page_number=2, results_per_page=56)
        retry = request.for_retry()
        assert retry.identity == request.identity
        assert retry.retry_count == 1

    def test_page_number_must_be_positive(self):
        """Page numbers start at 1."""
        with pytest.raises(ValueError):
            FetchRequest(county=8, page_number=0, results_per_page=56)


class TestShouldContinue:
    """Tests for the continuation predicate."""

    @pytest.mark.parametrize(
        "page,count,page_end,expected",
        [
            (1, 10, None, True),
            (1, 0, None, False),
            (1, 10, 2, True),
            (2, 10, 2, False),
            (5, 1, 3, False),
        ],
    )
    def test_predicate(self, page, count, page_end, expected):
        """record_count > 0 and (page_end is None or page < page_end)."""
        assert should_continue(page, count, page_end) is expected


class TestPaginationController:
    """Tests for phase transitions and decisions."""

    def test_start(self):
        """start() issues the first page and enters FETCHING."""
        controller = PaginationController(county=8, results_per_page=56, page_start=4)
        request = controller.start()
        assert request.page_number == 4
        assert controller.phase == PaginationPhase.FETCHING
        assert controller.state.current_page == 4

    def test_advances_until_page_end(self):
        """Pages advance by one and stop at page_end."""
        controller = PaginationController(county=8, results_per_page=56, page_end=2)
        request = controller.start()

        decision = run_page(controller, request, 10)
        assert decision.action == PageAction.ADVANCE
        assert decision.next_request.page_number == 2

        decision = run_page(controller, decision.next_request, 10)
        assert decision.action == PageAction.STOP
        assert controller.finished
        assert controller.state.pages_fetched == [1, 2]

    def test_page_numbers_strictly_increase(self):
        """Issued page numbers are strictly increasing."""
        controller = PaginationController(county=8, results_per_page=56, page_end=5)
        request = controller.start()
        issued = [request.page_number]
        while True:
            decision = run_page(controller, request, 3)
            if decision.action != PageAction.ADVANCE:
                break
            request = decision.next_request
            issued.append(request.page_number)
        assert issued == [1, 2, 3, 4, 5]

    def test_empty_page_terminates_after_retry_budget(self):
        """An empty page is retried empty_page_retries times, then stops."""
        controller = PaginationController(county=8, results_per_page=56, empty_page_retries=1)
        request = controller.start()

        decision = run_page(controller, request, 0)
        assert decision.action == PageAction.RETRY
        assert decision.next_request.page_number == 1
        assert controller.state.consecutive_empty_pages == 1

        controller.on_retry(request)
        decision = run_page(controller, decision.next_request, 0)
        assert decision.action == PageAction.STOP
        assert controller.finished
        assert controller.state.current_page == 1

    def test_empty_page_without_retries(self):
        """With no empty retries the first empty page ends the line."""
        controller = PaginationController(county=8, results_per_page=56, empty_page_retries=0)
        decision = run_page(controller, controller.start(), 0)
        assert decision.action == PageAction.STOP
        assert controller.stop_reason == "page 1 returned no records"

    def test_records_reset_empty_counter(self):
        """A non-empty retry resets the empty counter and advances."""
        controller = PaginationController(county=8, results_per_page=56, empty_page_retries=1)
        request = controller.start()
        run_page(controller, request, 0)
        controller.on_retry(request)
        decision = run_page(controller, request.for_retry(), 7)
        assert decision.action == PageAction.ADVANCE
        assert controller.state.consecutive_empty_pages == 0

    def test_blocked_excursion_returns_to_same_page(self):
        """BLOCKED goes back to FETCHING for the same page."""
        controller = PaginationController(county=8, results_per_page=56)
        request = controller.start()
        controller.on_fetched(request)
        retry = controller.on_blocked(request)
        assert controller.phase == PaginationPhase.BLOCKED
        assert retry.page_number == 1

        controller.on_retry(retry)
        assert controller.phase == PaginationPhase.FETCHING
        assert controller.state.current_page == 1

    def test_on_failed_terminates(self):
        """Exhausted retries end the line and record the page."""
        controller = PaginationController(county=8, results_per_page=56)
        request = controller.start()
        controller.on_failed(request)
        assert controller.finished
        assert controller.state.failed_pages == [1]

    def test_invalid_transition(self):
        """Extracting before fetching is rejected."""
        controller = PaginationController(county=8, results_per_page=56)
        with pytest.raises(RuntimeError):
            controller.on_usable(FetchRequest(county=8, page_number=1, results_per_page=56))

    def test_state_is_passed_explicitly(self):
        """The controller mutates the state object it is given."""
        state = CrawlState()
        controller = PaginationController(county=8, results_per_page=56, state=state)
        controller.start()
        controller.record_emitted(5)
        assert state.current_page == 1
        assert state.emitted_count == 5

    def test_page_end_before_start_rejected(self):
        """page_end must not precede page_start."""
        with pytest.raises(ValueError):
            PaginationController(county=8, results_per_page=56, page_start=3, page_end=2)
