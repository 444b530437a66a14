"""
Heuristic arrest record extraction.

Listing pages have no stable, documented markup, so records are found by
shape rather than by schema: a card is any container that holds a mugshot
image, mentions a four-digit number (a loose date signal) and is short
enough to be a single entry rather than a page wrapper.

Strategies are tried in order and the first one that yields records wins:

    ClassBasedStrategy     known card classes (.profile-card, .search-result, .tile)
    HeuristicScanStrategy  every <div> on the page

Both apply the same acceptance test and field parser, so they differ only
in which containers they look at.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from arrestwatch.constants import (
    CARD_SELECTOR,
    CHARGE_SELECTOR,
    CONTAINER_SELECTOR,
    MAX_CARD_TEXT_LENGTH,
    NAME_SELECTOR,
    UNKNOWN_NAME,
)
from arrestwatch.document import Document, resolve_url
from arrestwatch.models import CandidateRecord

logger = logging.getLogger(__name__)


YEAR_LIKE = re.compile(r"\d{4}")
# Leading run of uppercase letters and whitespace, e.g. "DOE JOHN" in "DOE JOHN\nArrested..."
LEADING_UPPERCASE_NAME = re.compile(r"^([A-Z\s]+)")
ARRESTED_LABEL = re.compile(r"Arrested:?\s*(.*)", re.IGNORECASE)
LOOSE_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")
BOND_AMOUNT = re.compile(r"Bond:?\s*(\$[\d,]+)", re.IGNORECASE)


# =============================================================================
# Card acceptance and parsing
# =============================================================================

def _first(document: Document, selector: str, root: Any) -> Optional[Any]:
    matches = document.query_all(selector, root)
    return matches[0] if matches else None


def accepts_container(document: Document, node: Any) -> bool:
    """
    Check whether a container looks like a single arrest card.

    A card must contain an image with a src, have visible text containing
    a four-digit run, and have at most MAX_CARD_TEXT_LENGTH characters of
    visible text.
    """
    image = _first(document, "img", node)
    if image is None or not document.attr(image, "src"):
        return False

    text = document.text(node)
    if not YEAR_LIKE.search(text):
        return False
    return len(text) <= MAX_CARD_TEXT_LENGTH


def parse_person_name(document: Document, node: Any, text: str) -> str:
    title = _first(document, NAME_SELECTOR, node)
    if title is not None:
        name = document.text(title).strip()
        if name:
            return name

    match = LEADING_UPPERCASE_NAME.match(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return UNKNOWN_NAME


def parse_booking_text(text: str) -> str:
    """Raw booking date/time text; never parsed into a datetime here."""
    match = ARRESTED_LABEL.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    match = LOOSE_DATE.search(text)
    return match.group(0) if match else ""


def parse_bond_text(text: str) -> Optional[str]:
    match = BOND_AMOUNT.search(text)
    return match.group(1) if match else None


def parse_card(document: Document, node: Any) -> CandidateRecord:
    """Derive a CandidateRecord from an accepted container."""
    text = document.text(node)
    image = _first(document, "img", node)
    link = _first(document, "a", node)

    detail_url = None
    if link is not None:
        detail_url = resolve_url(document, document.attr(link, "href")) or None

    return CandidateRecord(
        person_name=parse_person_name(document, node, text),
        booking_text=parse_booking_text(text),
        charges_preview=[
            document.text(charge) for charge in document.query_all(CHARGE_SELECTOR, node)
        ],
        image_url=resolve_url(document, document.attr(image, "src")),
        detail_url=detail_url,
        bond_text=parse_bond_text(text),
    )


# =============================================================================
# Strategies
# =============================================================================

class ExtractionStrategy(ABC):
    """Chooses which containers on a page are considered as cards."""

    name: str = "base"

    @abstractmethod
    def select_containers(self, document: Document) -> Sequence[Any]:
        """Containers to test, in document order."""

    def accepted_containers(self, document: Document) -> list[Any]:
        return [
            node for node in self.select_containers(document)
            if accepts_container(document, node)
        ]

    def extract(self, document: Document) -> list[CandidateRecord]:
        """Candidate records for every accepted container."""
        return [parse_card(document, node) for node in self.accepted_containers(document)]


class ClassBasedStrategy(ExtractionStrategy):
    """Containers carrying one of the known card classes."""

    name = "class_based"

    def __init__(self, selector: str = CARD_SELECTOR):
        self.selector = selector

    def select_containers(self, document: Document) -> Sequence[Any]:
        return document.query_all(self.selector)


class HeuristicScanStrategy(ExtractionStrategy):
    """Every generic container on the page."""

    name = "heuristic_scan"

    def __init__(self, selector: str = CONTAINER_SELECTOR):
        self.selector = selector

    def select_containers(self, document: Document) -> Sequence[Any]:
        return document.query_all(self.selector)


# =============================================================================
# Pipeline
# =============================================================================

@dataclass
class ExtractionResult:
    """Records found on a page and the strategy that found them."""

    records: list[CandidateRecord] = field(default_factory=list)
    strategy: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.records


class ExtractionPipeline:
    """Runs strategies in order and keeps the first non-empty result."""

    def __init__(self, strategies: Optional[Sequence[ExtractionStrategy]] = None):
        self.strategies = list(strategies) if strategies else [
            ClassBasedStrategy(),
            HeuristicScanStrategy(),
        ]

    def extract(self, document: Document) -> ExtractionResult:
        for strategy in self.strategies:
            records = strategy.extract(document)
            if records:
                logger.debug(f"Strategy {strategy.name} produced {len(records)} candidates")
                return ExtractionResult(records=records, strategy=strategy.name)
        return ExtractionResult()


def extract_candidates(document: Document) -> list[CandidateRecord]:
    """Candidate records from the default strategy pipeline."""
    return ExtractionPipeline().extract(document).records
