"""
Human-like pointer interaction for challenge remediation.

Features:
- Pointer movement to a random point inside a bounded viewport region
- Randomized settle wait after movement (1-3s)
- Press-release gestures with a configurable hold time
- Pressing the centre of an element bounding box
- Injectable random source so tests can seed it
- Fast mode for skipping all waits
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional, Tuple

from arrestwatch.constants import (
    BLIND_PRESS_HOLD_MS,
    CHECKBOX_HOLD_MAX_MS,
    CHECKBOX_HOLD_MIN_MS,
    POINTER_REGION_ORIGIN,
    POINTER_REGION_SPAN,
    SETTLE_WAIT_MAX_MS,
    SETTLE_WAIT_MIN_MS,
)

logger = logging.getLogger(__name__)


@dataclass
class HumanSimulatorConfig:
    """Configuration for human-like pointer simulation."""

    # Pointer region (top-left origin and width/height span, in px)
    region_x: int = POINTER_REGION_ORIGIN[0]
    region_y: int = POINTER_REGION_ORIGIN[1]
    region_width: int = POINTER_REGION_SPAN[0]
    region_height: int = POINTER_REGION_SPAN[1]

    # Wait after moving the pointer
    min_settle_ms: int = SETTLE_WAIT_MIN_MS
    max_settle_ms: int = SETTLE_WAIT_MAX_MS

    # Hold for the blind press after jitter
    blind_hold_ms: int = BLIND_PRESS_HOLD_MS

    # Hold when pressing a located element
    min_hold_ms: int = CHECKBOX_HOLD_MIN_MS
    max_hold_ms: int = CHECKBOX_HOLD_MAX_MS

    # Intermediate pointer steps per move
    mouse_move_steps: int = 5

    # Skip all waits when True
    fast_mode: bool = False


class HumanSimulator:
    """
    Simulates human-like pointer interactions on a Playwright page.

    Usage:
        simulator = HumanSimulator(rng=random.Random(7))

        x, y = await simulator.jitter_pointer(page)
        await simulator.settle(page)
        await simulator.press_release(page)
    """

    def __init__(
        self,
        config: Optional[HumanSimulatorConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the human simulator.

        Args:
            config: Configuration options. Uses defaults if not provided.
            rng: Random source; seed it for reproducible sequences.
        """
        self.config = config or HumanSimulatorConfig()
        self._rng = rng or random.Random()

    def pointer_target(self) -> Tuple[float, float]:
        """Random point inside the configured pointer region."""
        x = self.config.region_x + self._rng.random() * self.config.region_width
        y = self.config.region_y + self._rng.random() * self.config.region_height
        return x, y

    def settle_duration_ms(self) -> float:
        return self._rng.uniform(self.config.min_settle_ms, self.config.max_settle_ms)

    def hold_duration_ms(self) -> float:
        return self._rng.uniform(self.config.min_hold_ms, self.config.max_hold_ms)

    async def jitter_pointer(self, page) -> Tuple[float, float]:
        """
        Move the pointer to a random point in the region.

        Args:
            page: Playwright page object

        Returns:
            The (x, y) target the pointer was moved to
        """
        x, y = self.pointer_target()
        await page.mouse.move(x, y, steps=self.config.mouse_move_steps)
        logger.debug(f"Pointer moved to ({x:.0f}, {y:.0f})")
        return x, y

    async def settle(self, page) -> float:
        """
        Wait a randomized interval on the page clock.

        Returns:
            Wait duration in milliseconds (0 in fast mode)
        """
        if self.config.fast_mode:
            return 0.0
        duration = self.settle_duration_ms()
        await page.wait_for_timeout(duration)
        return duration

    async def press_release(self, page, hold_ms: Optional[float] = None) -> float:
        """
        Press and release the primary button at the current pointer position.

        Args:
            page: Playwright page object
            hold_ms: Hold time; defaults to the blind press hold

        Returns:
            Hold duration in milliseconds
        """
        hold = self.config.blind_hold_ms if hold_ms is None else hold_ms
        await page.mouse.down()
        if not self.config.fast_mode:
            await page.wait_for_timeout(hold)
        await page.mouse.up()
        return hold

    async def press_box_center(self, page, box: dict) -> Tuple[float, float]:
        """
        Move to the centre of a bounding box and press with a randomized hold.

        Args:
            page: Playwright page object
            box: Bounding box dict with x, y, width and height

        Returns:
            The (x, y) point that was pressed
        """
        x = box["x"] + box["width"] / 2
        y = box["y"] + box["height"] / 2
        await page.mouse.move(x, y, steps=self.config.mouse_move_steps)
        await self.press_release(page, hold_ms=self.hold_duration_ms())
        return x, y


def create_human_simulator(
    fast_mode: bool = False,
    seed: Optional[int] = None,
) -> HumanSimulator:
    """
    Create a configured HumanSimulator instance.

    Args:
        fast_mode: Skip all waits (for testing)
        seed: Optional seed for the random source

    Returns:
        Configured HumanSimulator instance
    """
    config = HumanSimulatorConfig(fast_mode=fast_mode)
    return HumanSimulator(config, rng=random.Random(seed))
