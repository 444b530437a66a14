"""
Browser session pool.

A session is one browser context: its own cookies, storage and
fingerprint surface. A session that is blocked by a challenge, or keeps
failing, is retired: the context is closed and a fresh one takes its slot.
Retired sessions are never handed out again.

Cookies are not carried over between sessions, so a blocked clearance
cookie never follows the crawl into a new identity.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from arrestwatch.browser_config import BrowserConfig

logger = logging.getLogger(__name__)


class SessionHealth(Enum):
    """Session health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    RETIRED = "retired"


@dataclass
class PoolStatus:
    """Current status of the session pool."""
    total_size: int
    available: int
    in_use: int
    healthy: int
    degraded: int
    unhealthy: int
    retired_total: int
    total_requests: int
    total_errors: int
    uptime_seconds: float


@dataclass
class SessionMetrics:
    """Metrics for one session."""
    session_id: int
    created_at: datetime
    requests_handled: int = 0
    errors: int = 0
    last_used: Optional[datetime] = None
    health: SessionHealth = SessionHealth.HEALTHY

    @property
    def error_rate(self) -> float:
        if self.requests_handled == 0:
            return 0.0
        return self.errors / self.requests_handled

    def record_success(self) -> None:
        self.requests_handled += 1
        self.last_used = datetime.now()

    def record_error(self) -> None:
        self.requests_handled += 1
        self.errors += 1
        self.last_used = datetime.now()
        if self.health == SessionHealth.RETIRED:
            return
        if self.error_rate > 0.5:
            self.health = SessionHealth.UNHEALTHY
        elif self.error_rate > 0.2:
            self.health = SessionHealth.DEGRADED


class Session:
    """A browser context and the page it is currently serving."""

    def __init__(self, session_id: int, context: Any, page: Any, metrics: SessionMetrics):
        self.id = session_id
        self.context = context
        self.page = page
        self.metrics = metrics

    def retire(self) -> None:
        """Mark this identity as bad; it is closed and replaced on release."""
        if self.metrics.health != SessionHealth.RETIRED:
            logger.info(f"Retiring session {self.id}")
        self.metrics.health = SessionHealth.RETIRED

    @property
    def is_retired(self) -> bool:
        return self.metrics.health == SessionHealth.RETIRED


class SessionPool:
    """
    Pool of browser contexts used as crawl identities.

    Usage:
        pool = SessionPool(size=3, browser_config=BrowserConfig())
        await pool.start()
        async with pool.acquire() as session:
            await session.page.goto(url)
        await pool.stop()
    """

    # Requests served before a context is replaced anyway
    MAX_REQUESTS_PER_SESSION = 50
    # Error rate that forces replacement
    ERROR_RATE_RETIRE_THRESHOLD = 0.3

    def __init__(
        self,
        size: int = 3,
        browser_config: Optional[BrowserConfig] = None,
        browser: Any = None,
    ):
        """
        Initialize session pool.

        Args:
            size: Number of sessions kept open
            browser_config: Launch and context settings
            browser: Already launched browser to use instead of launching one
        """
        self.size = size
        self.browser_config = browser_config or BrowserConfig()

        self._playwright = None
        self._browser = browser
        self._owns_browser = browser is None
        self._contexts: dict[int, Any] = {}
        self._metrics: dict[int, SessionMetrics] = {}
        # None marks a slot whose context still has to be opened
        self._available: asyncio.Queue[Optional[int]] = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._started = False
        self._start_time: Optional[datetime] = None
        self._total_requests = 0
        self._total_errors = 0
        self._retired_total = 0
        self._next_session_id = 0

    async def start(self) -> None:
        """Launch the browser (unless one was given) and open all sessions."""
        if self._started:
            return

        if self._browser is None:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self.browser_config.browser_type)
            self._browser = await launcher.launch(
                headless=self.browser_config.headless,
                args=self.browser_config.launch_args,
            )

        self._start_time = datetime.now()
        for _ in range(self.size):
            await self._create_session()

        self._started = True
        logger.info(
            f"Session pool started with {self.size} sessions "
            f"({self.browser_config.browser_type}, headless={self.browser_config.headless})"
        )

    async def stop(self) -> None:
        """Close all sessions and, if owned, the browser."""
        if not self._started:
            return

        for session_id, context in list(self._contexts.items()):
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing session {session_id}: {e}")

        self._contexts.clear()
        self._metrics.clear()

        if self._owns_browser:
            if self._browser:
                try:
                    await self._browser.close()
                except PlaywrightError as e:
                    logger.warning(f"Error closing browser: {e}")
                self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None

        self._started = False
        logger.info("Session pool stopped")

    async def _open_session(self) -> int:
        """Open a context and register it; the caller decides where its id goes."""
        context = await self._browser.new_context(**self.browser_config.context_options())
        context.set_default_timeout(self.browser_config.navigation_timeout_ms)

        session_id = self._next_session_id
        self._next_session_id += 1

        self._contexts[session_id] = context
        self._metrics[session_id] = SessionMetrics(
            session_id=session_id,
            created_at=datetime.now(),
        )

        logger.debug(f"Created session {session_id}")
        return session_id

    async def _create_session(self) -> int:
        session_id = await self._open_session()
        await self._available.put(session_id)
        return session_id

    async def _replace_session(self, session_id: int) -> Optional[int]:
        """
        Close a session's context and open a fresh one in its place.

        If the new context cannot be opened the slot is queued empty and
        the next acquire() opens it.
        """
        async with self._lock:
            old_context = self._contexts.pop(session_id, None)
            self._metrics.pop(session_id, None)
            self._retired_total += 1

            if old_context:
                try:
                    await old_context.close()
                except PlaywrightError as e:
                    logger.warning(f"Error closing session {session_id}: {e}")

            try:
                new_id = await self._create_session()
            except PlaywrightError as e:
                logger.error(f"Could not replace session {session_id}: {e}")
                await self._available.put(None)
                return None

            logger.info(f"Replaced session {session_id} -> {new_id}")
            return new_id

    async def _take_slot(self) -> int:
        """Wait for a free slot, opening a session if the slot is empty."""
        session_id = await self._available.get()
        if session_id is not None:
            return session_id

        try:
            return await self._open_session()
        except BaseException:
            # Hand the empty slot back so the pool keeps its size
            self._available.put_nowait(None)
            raise

    def _needs_replacement(self, metrics: SessionMetrics) -> bool:
        return (
            metrics.health in (SessionHealth.RETIRED, SessionHealth.UNHEALTHY)
            or metrics.requests_handled >= self.MAX_REQUESTS_PER_SESSION
            or metrics.error_rate > self.ERROR_RATE_RETIRE_THRESHOLD
        )

    @asynccontextmanager
    async def acquire(self):
        """
        Acquire a session with a fresh page.

        Usage:
            async with pool.acquire() as session:
                await session.page.goto(url)

        Yields:
            Session

        Raises:
            PlaywrightError: If an empty slot's context cannot be opened
        """
        if not self._started:
            raise RuntimeError("Session pool not started. Call start() first.")

        session_id = await self._take_slot()
        context = self._contexts[session_id]
        metrics = self._metrics[session_id]

        try:
            page = await context.new_page()
            self._total_requests += 1
            session = Session(session_id, context, page, metrics)

            try:
                yield session
                metrics.record_success()
            except Exception:
                metrics.record_error()
                self._total_errors += 1
                raise
            finally:
                try:
                    await page.close()
                except PlaywrightError as e:
                    logger.debug(f"Error closing page of session {session_id}: {e}")
        finally:
            if self._needs_replacement(metrics):
                await self._replace_session(session_id)
            else:
                await self._available.put(session_id)

    def check_health(self, session_id: int) -> SessionHealth:
        metrics = self._metrics.get(session_id)
        if not metrics:
            return SessionHealth.RETIRED
        return metrics.health

    def get_status(self) -> PoolStatus:
        """Get current pool status."""
        healthy = sum(1 for m in self._metrics.values() if m.health == SessionHealth.HEALTHY)
        degraded = sum(1 for m in self._metrics.values() if m.health == SessionHealth.DEGRADED)
        unhealthy = sum(1 for m in self._metrics.values() if m.health == SessionHealth.UNHEALTHY)

        uptime = 0.0
        if self._start_time:
            uptime = (datetime.now() - self._start_time).total_seconds()

        return PoolStatus(
            total_size=len(self._contexts),
            available=self._available.qsize(),
            in_use=self.size - self._available.qsize() if self._started else 0,
            healthy=healthy,
            degraded=degraded,
            unhealthy=unhealthy,
            retired_total=self._retired_total,
            total_requests=self._total_requests,
            total_errors=self._total_errors,
            uptime_seconds=uptime,
        )

    @property
    def available_count(self) -> int:
        return self._available.qsize()

    @property
    def is_started(self) -> bool:
        return self._started
