"""Tests for record deduplication."""

from arrestwatch.dedup import RunDeduplicator, dedup_key, dedupe
from arrestwatch.models import CandidateRecord


def make_record(name: str, detail_url=None, booking: str = "") -> CandidateRecord:
    return CandidateRecord(person_name=name, booking_text=booking, detail_url=detail_url)


class TestDedupKey:
    """Tests for the dedup key rule."""

    def test_detail_url_preferred(self):
        """detail_url is the key when present."""
        record = make_record("DOE, JOHN", detail_url="https://florida.arrests.org/a/1")
        assert dedup_key(record) == "https://florida.arrests.org/a/1"

    def test_name_when_detail_missing_or_empty(self):
        """person_name is the key when detail_url is None or empty."""
        assert dedup_key(make_record("DOE, JOHN")) == "DOE, JOHN"
        assert dedup_key(make_record("DOE, JOHN", detail_url="")) == "DOE, JOHN"

    def test_key_ignores_other_fields(self):
        """Only detail_url and person_name affect the key."""
        a = make_record("DOE, JOHN", booking="01/01/2024")
        b = make_record("DOE, JOHN", booking="02/02/2024")
        assert dedup_key(a) == dedup_key(b)


class TestDedupe:
    """Tests for per-page dedupe."""

    def test_shared_detail_url_collapses(self):
        """Five candidates with two sharing a detail link become four."""
        records = [
            make_record("A", "https://x/1"),
            make_record("B", "https://x/2"),
            make_record("B AGAIN", "https://x/2"),
            make_record("C", "https://x/3"),
            make_record("D", "https://x/4"),
        ]
        unique = dedupe(records)
        assert len(unique) == 4
        assert [r.person_name for r in unique] == ["A", "B", "C", "D"]

    def test_first_seen_wins(self):
        """The first record for a key is kept, in order."""
        records = [make_record("X", booking="first"), make_record("X", booking="second")]
        assert dedupe(records)[0].booking_text == "first"

    def test_idempotent(self):
        """dedupe(dedupe(x)) == dedupe(x)."""
        records = [make_record(n, u) for n, u in [("A", None), ("A", None), ("B", "u"), ("C", "u")]]
        once = dedupe(records)
        assert dedupe(once) == once

    def test_empty(self):
        """Empty input gives empty output."""
        assert dedupe([]) == []


class TestRunDeduplicator:
    """Tests for run-wide uniqueness."""

    def test_filters_across_pages(self):
        """A record repeated on the next page is not emitted twice."""
        run = RunDeduplicator()
        page1 = run.filter_new([make_record("A", "u1"), make_record("B", "u2")])
        page2 = run.filter_new([make_record("B", "u2"), make_record("C", "u3")])

        assert [r.person_name for r in page1] == ["A", "B"]
        assert [r.person_name for r in page2] == ["C"]
        assert len(run) == 3
        assert "u2" in run

    def test_retried_page_emits_nothing_new(self):
        """Re-processing the same page adds no records."""
        run = RunDeduplicator()
        records = [make_record("A"), make_record("B")]
        run.filter_new(records)
        assert run.filter_new(records) == []
