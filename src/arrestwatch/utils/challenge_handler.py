"""
Bot-mitigation challenge detection and interactive remediation.

Challenge interstitials usually come back with a 2xx status or an
application-level 403 page, so the HTTP status says nothing about whether
the listing was served. Classification is content based: the document
title and the rendered markup.

When a challenge title is showing, the resolver makes a bounded number of
remediation passes. Each pass moves the pointer, waits, and presses. Then
it looks in every frame for a checkbox-like element and presses it. After
each pass it checks the title again. If a page is still blocked after
that, it is not usable, and the caller must rotate the session and retry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from arrestwatch.constants import (
    CHALLENGE_CHECKBOX_SELECTOR,
    CHALLENGE_CONTENT_MARKERS,
    CHALLENGE_TITLE_MARKERS,
    MAX_REMEDIATION_ATTEMPTS,
    NETWORK_IDLE_TIMEOUT_MS,
)
from arrestwatch.models import PageClassification
from arrestwatch.utils.human_simulator import HumanSimulator

logger = logging.getLogger(__name__)


# =============================================================================
# Detection
# =============================================================================

def has_challenge_title(title: Optional[str]) -> bool:
    """True when the title matches a challenge interstitial (case as rendered)."""
    if not title:
        return False
    return any(marker in title for marker in CHALLENGE_TITLE_MARKERS)


def has_challenge_markup(content: Optional[str]) -> bool:
    """True when challenge script markers are present in the page markup."""
    if not content:
        return False
    return any(marker in content for marker in CHALLENGE_CONTENT_MARKERS)


def classify_page(title: Optional[str], content: Optional[str]) -> PageClassification:
    """Classify a rendered page as blocked or usable."""
    if has_challenge_title(title) or has_challenge_markup(content):
        return PageClassification.blocked()
    return PageClassification.usable()


# =============================================================================
# Results
# =============================================================================

@dataclass
class RemediationResult:
    """Outcome of the bounded remediation loop."""

    attempts: int = 0
    resolved: bool = False
    checkbox_presses: int = 0
    pointer_targets: list[tuple[float, float]] = field(default_factory=list)
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempts": self.attempts,
            "resolved": self.resolved,
            "checkbox_presses": self.checkbox_presses,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class ChallengeCheckResult:
    """Final classification of a page plus any remediation that ran."""

    classification: PageClassification
    remediation: Optional[RemediationResult] = None

    @property
    def is_blocked(self) -> bool:
        return not self.classification.is_usable


# =============================================================================
# Resolver
# =============================================================================

class ChallengeResolver:
    """
    Classifies a loaded page and attempts interactive remediation.

    Usage:
        resolver = ChallengeResolver(HumanSimulator(rng=random.Random(1)))
        result = await resolver.settle(page)
        if result.is_blocked:
            session.retire()
    """

    def __init__(
        self,
        simulator: Optional[HumanSimulator] = None,
        max_attempts: int = MAX_REMEDIATION_ATTEMPTS,
        network_idle_timeout_ms: int = NETWORK_IDLE_TIMEOUT_MS,
        checkbox_selector: str = CHALLENGE_CHECKBOX_SELECTOR,
    ):
        self.simulator = simulator or HumanSimulator()
        self.max_attempts = max_attempts
        self.network_idle_timeout_ms = network_idle_timeout_ms
        self.checkbox_selector = checkbox_selector

    async def wait_for_network_idle(self, page) -> bool:
        """Wait for network idle; a timeout is logged and tolerated."""
        try:
            await page.wait_for_load_state("networkidle", timeout=self.network_idle_timeout_ms)
            return True
        except PlaywrightTimeoutError as e:
            logger.warning(f"Wait load state warning: {e}")
            return False

    async def classify(self, page) -> PageClassification:
        title = await page.title()
        content = await page.content()
        return classify_page(title, content)

    async def remediate(self, page) -> RemediationResult:
        """
        Run up to max_attempts remediation passes, stopping on the first success.

        Args:
            page: Playwright page showing a challenge

        Returns:
            RemediationResult describing what was attempted
        """
        result = RemediationResult()

        for attempt in range(1, self.max_attempts + 1):
            result.attempts = attempt

            target = await self.simulator.jitter_pointer(page)
            result.pointer_targets.append(target)
            await self.simulator.settle(page)
            await self.simulator.press_release(page)

            result.checkbox_presses += await self._press_challenge_checkboxes(page)

            if not has_challenge_title(await page.title()):
                logger.info(f"Challenge appeared to resolve after {attempt} attempt(s).")
                result.resolved = True
                break

        if not result.resolved:
            logger.warning(f"Challenge persists after {result.attempts} remediation attempts")
        return result

    async def _press_challenge_checkboxes(self, page) -> int:
        """Press the centre of the first checkbox-like element in each frame."""
        presses = 0
        for frame in page.frames:
            try:
                checkbox = await frame.query_selector(self.checkbox_selector)
                if not checkbox:
                    continue
                box = await checkbox.bounding_box()
                if not box:
                    continue
                logger.info("Found potential challenge checkbox. Clicking...")
                await self.simulator.press_box_center(page, box)
                presses += 1
            except PlaywrightError as e:
                # Cross-origin or detached frames are expected here
                logger.debug(f"Skipping frame during challenge scan: {e}")
        return presses

    async def settle(self, page) -> ChallengeCheckResult:
        """
        Wait for the page, remediate a challenge if shown, and classify.

        Args:
            page: Playwright page after navigation

        Returns:
            ChallengeCheckResult with the final classification
        """
        await self.wait_for_network_idle(page)

        remediation = None
        try:
            if has_challenge_title(await page.title()):
                logger.warning("Challenge detected. Initiating interaction...")
                remediation = await self.remediate(page)
        except PlaywrightError as e:
            logger.warning(f"Challenge interaction warning: {e}")

        classification = await self.classify(page)
        return ChallengeCheckResult(classification=classification, remediation=remediation)
