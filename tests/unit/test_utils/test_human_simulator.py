"""Unit tests for HumanSimulator."""

import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from arrestwatch.utils.human_simulator import (
    HumanSimulator,
    HumanSimulatorConfig,
    create_human_simulator,
)


@pytest.fixture
def page():
    page = MagicMock()
    page.mouse.move = AsyncMock()
    page.mouse.down = AsyncMock()
    page.mouse.up = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    return page


class TestHumanSimulatorConfig:
    """Tests for HumanSimulatorConfig."""

    def test_default_config(self):
        """Test the default pointer region and waits."""
        config = HumanSimulatorConfig()

        assert (config.region_x, config.region_y) == (100, 200)
        assert (config.region_width, config.region_height) == (200, 200)
        assert config.min_settle_ms == 1000
        assert config.max_settle_ms == 3000
        assert config.blind_hold_ms == 50
        assert config.fast_mode is False


class TestHumanSimulator:
    """Tests for HumanSimulator."""

    def test_pointer_targets_stay_in_region(self):
        """Test that every target lies in x [100, 300), y [200, 400)."""
        simulator = HumanSimulator(rng=random.Random(3))
        for _ in range(200):
            x, y = simulator.pointer_target()
            assert 100 <= x < 300
            assert 200 <= y < 400

    def test_seeded_rng_is_reproducible(self):
        """Test that the same seed yields the same targets."""
        first = HumanSimulator(rng=random.Random(11))
        second = HumanSimulator(rng=random.Random(11))
        assert [first.pointer_target() for _ in range(5)] == [
            second.pointer_target() for _ in range(5)
        ]

    def test_settle_and_hold_bounds(self):
        """Test the randomized wait and hold ranges."""
        simulator = HumanSimulator(rng=random.Random(5))
        for _ in range(100):
            assert 1000 <= simulator.settle_duration_ms() <= 3000
            assert 50 <= simulator.hold_duration_ms() <= 150

    @pytest.mark.asyncio
    async def test_jitter_pointer_moves_mouse(self, page):
        """Test that jitter moves the pointer to the returned target."""
        simulator = HumanSimulator(rng=random.Random(1))
        x, y = await simulator.jitter_pointer(page)
        page.mouse.move.assert_awaited_once_with(x, y, steps=5)

    @pytest.mark.asyncio
    async def test_settle_waits_on_page_clock(self, page):
        """Test that settle() waits through the page."""
        simulator = HumanSimulator(rng=random.Random(1))
        duration = await simulator.settle(page)
        page.wait_for_timeout.assert_awaited_once_with(duration)

    @pytest.mark.asyncio
    async def test_press_release(self, page):
        """Test the blind press holds for the configured time."""
        simulator = HumanSimulator()
        hold = await simulator.press_release(page)

        assert hold == 50
        page.mouse.down.assert_awaited_once()
        page.mouse.up.assert_awaited_once()
        page.wait_for_timeout.assert_awaited_once_with(50)

    @pytest.mark.asyncio
    async def test_press_box_center(self, page):
        """Test pressing the centre of a bounding box."""
        simulator = create_human_simulator(fast_mode=True, seed=2)
        point = await simulator.press_box_center(page, {"x": 10, "y": 20, "width": 30, "height": 40})

        assert point == (25, 40)
        page.mouse.move.assert_awaited_once_with(25, 40, steps=5)
        page.mouse.down.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fast_mode_skips_waits(self, page):
        """Test that fast mode never waits on the page."""
        simulator = create_human_simulator(fast_mode=True)
        assert await simulator.settle(page) == 0.0
        await simulator.press_release(page)
        page.wait_for_timeout.assert_not_awaited()
