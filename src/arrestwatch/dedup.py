"""Deduplication of candidate records.

The container heuristic can match nested or overlapping elements that
describe the same entry, so every page is reduced to one record per key
before anything is persisted.
"""

import logging
from typing import Iterable

from arrestwatch.models import CandidateRecord

logger = logging.getLogger(__name__)


def dedup_key(record: CandidateRecord) -> str:
    """detail_url when present and non-empty, otherwise person_name."""
    return record.dedup_key


def dedupe(records: Iterable[CandidateRecord]) -> list[CandidateRecord]:
    """Keep the first record seen for each key, preserving order."""
    seen: set[str] = set()
    unique: list[CandidateRecord] = []
    for record in records:
        key = dedup_key(record)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


class RunDeduplicator:
    """Tracks keys across all pages of one run.

    Listings shift while a crawl is running, so the same arrest can show up
    at the bottom of page N and the top of page N+1. A retried page can also
    repeat records already written.
    """

    def __init__(self):
        self._seen: set[str] = set()

    def filter_new(self, records: Iterable[CandidateRecord]) -> list[CandidateRecord]:
        """Records whose key has not been emitted earlier in this run."""
        fresh: list[CandidateRecord] = []
        for record in dedupe(records):
            key = dedup_key(record)
            if key in self._seen:
                continue
            self._seen.add(key)
            fresh.append(record)
        return fresh

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: str) -> bool:
        return key in self._seen
