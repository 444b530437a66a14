"""
Pending request queue.

Requests are deduplicated by identity (county, page_number): a page is
delivered at most once unless it is explicitly re-added as a retry.
Retries go to the front so a blocked page is fetched again before anything
newer.
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from arrestwatch.models import FetchRequest

logger = logging.getLogger(__name__)


class RequestQueue:
    """
    Async FIFO of FetchRequests with identity dedup and front-of-queue retries.

    Usage:
        queue = RequestQueue()
        await queue.add(request)
        request = await queue.get()
        try:
            ...
        finally:
            queue.task_done()
    """

    def __init__(self):
        self._pending: Deque[FetchRequest] = deque()
        self._seen: set[tuple[int, int]] = set()
        self._condition = asyncio.Condition()
        self._unfinished = 0
        self._all_done = asyncio.Event()
        self._all_done.set()
        self._drained = False

    async def add(
        self,
        request: FetchRequest,
        forefront: bool = False,
        retry: bool = False,
    ) -> bool:
        """
        Enqueue a request.

        Args:
            request: Request to add
            forefront: Put it at the front of the queue
            retry: Allow re-adding an identity that was already delivered

        Returns:
            True if the request was queued
        """
        async with self._condition:
            if self._drained:
                logger.debug(f"Queue drained, dropping page {request.page_number}")
                return False
            if request.identity in self._seen and not retry:
                logger.debug(f"Duplicate request for page {request.page_number} ignored")
                return False

            self._seen.add(request.identity)
            if forefront:
                self._pending.appendleft(request)
            else:
                self._pending.append(request)
            self._unfinished += 1
            self._all_done.clear()
            self._condition.notify()
            return True

    async def get(self) -> Optional[FetchRequest]:
        """
        Take the next request, waiting until one is available.

        Returns:
            The next request, or None once the queue has been drained
        """
        async with self._condition:
            await self._condition.wait_for(lambda: self._pending or self._drained)
            if self._drained:
                return None
            return self._pending.popleft()

    def task_done(self) -> None:
        """Mark a request returned by get() as fully handled."""
        if self._unfinished <= 0:
            raise ValueError("task_done() called more times than requests were added")
        self._unfinished -= 1
        if self._unfinished == 0:
            self._all_done.set()

    async def join(self) -> None:
        """Wait until every added request has been handled."""
        await self._all_done.wait()

    async def drain(self) -> int:
        """
        Drop all pending requests and refuse new ones.

        Workers blocked in get() wake up and receive None.

        Returns:
            Number of pending requests that were dropped
        """
        async with self._condition:
            dropped = len(self._pending)
            self._pending.clear()
            self._drained = True
            self._unfinished -= dropped
            if self._unfinished <= 0:
                self._unfinished = 0
                self._all_done.set()
            self._condition.notify_all()
        if dropped:
            logger.warning(f"Request queue drained, {dropped} pending request(s) dropped")
        return dropped

    async def close(self) -> None:
        """Wake idle workers once no more work will arrive."""
        async with self._condition:
            self._drained = True
            self._condition.notify_all()

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def is_drained(self) -> bool:
        return self._drained

    @property
    def is_finished(self) -> bool:
        return self._unfinished == 0

    @property
    def handled_identities(self) -> set[tuple[int, int]]:
        return set(self._seen)
