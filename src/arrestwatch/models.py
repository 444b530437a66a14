"""Data models for arrest listing crawls."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from arrestwatch.constants import (
    FLORIDA_ARRESTS_BASE_URL,
    FLORIDA_ARRESTS_SOURCE,
    FLORIDA_STATE_CODE,
    REQUEST_KIND_LISTING,
)


@dataclass(frozen=True)
class FetchRequest:
    """One listing page to fetch. Identity is (county, page_number)."""

    county: int
    page_number: int
    results_per_page: int
    request_kind: str = REQUEST_KIND_LISTING
    base_url: str = FLORIDA_ARRESTS_BASE_URL
    retry_count: int = 0

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")

    @property
    def identity(self) -> tuple[int, int]:
        return (self.county, self.page_number)

    @property
    def url(self) -> str:
        return (
            f"{self.base_url}?county={self.county}"
            f"&page={self.page_number}&results={self.results_per_page}"
        )

    def for_retry(self) -> "FetchRequest":
        """Same page, one more attempt on the retry budget."""
        return replace(self, retry_count=self.retry_count + 1)

    def next_page(self) -> "FetchRequest":
        """Fresh request for the following page."""
        return replace(self, page_number=self.page_number + 1, retry_count=0)


@dataclass(frozen=True)
class PageClassification:
    """Whether a rendered page is a challenge interstitial or real content."""

    is_challenge: bool
    is_usable: bool

    @classmethod
    def blocked(cls) -> "PageClassification":
        return cls(is_challenge=True, is_usable=False)

    @classmethod
    def usable(cls) -> "PageClassification":
        return cls(is_challenge=False, is_usable=True)


@dataclass
class CandidateRecord:
    """An arrest entry extracted heuristically, before deduplication."""

    person_name: str
    booking_text: str = ""
    charges_preview: list[str] = field(default_factory=list)
    image_url: str = ""
    detail_url: Optional[str] = None
    bond_text: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        """detail_url when present and non-empty, else person_name."""
        return self.detail_url or self.person_name


@dataclass
class OutputRecord:
    """A candidate record stamped with source metadata for persistence."""

    candidate: CandidateRecord
    county_id: int
    source: str = FLORIDA_ARRESTS_SOURCE
    state: str = FLORIDA_STATE_CODE
    scraped_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_candidate(cls, candidate: CandidateRecord, county_id: int) -> "OutputRecord":
        return cls(candidate=candidate, county_id=county_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the field names of the published output format."""
        return {
            "source": self.source,
            "state": self.state,
            "county_id": self.county_id,
            "person_name": self.candidate.person_name,
            "booking_datetime_text": self.candidate.booking_text,
            "charges_preview": list(self.candidate.charges_preview),
            "image_url": self.candidate.image_url,
            "detail_url": self.candidate.detail_url,
            "bond_text": self.candidate.bond_text,
            "scraped_at": self.scraped_at.isoformat(),
        }


@dataclass
class CrawlState:
    """Run-scoped pagination state, owned by one PaginationController."""

    current_page: int = 0
    emitted_count: int = 0
    consecutive_empty_pages: int = 0
    pages_fetched: list[int] = field(default_factory=list)
    failed_pages: list[int] = field(default_factory=list)
