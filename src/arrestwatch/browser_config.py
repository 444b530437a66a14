"""
Browser configuration for Playwright-based listing crawls.

This module provides a validated Pydantic configuration model for the
browser sessions used by the crawler, plus a headless preset for
environments without a display.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from arrestwatch.constants import (
    DESKTOP_VIEWPORT_HEIGHT,
    DESKTOP_VIEWPORT_WIDTH,
    NETWORK_IDLE_TIMEOUT_MS,
)


# Flags every session browser is launched with
DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--start-maximized",
]


class BrowserConfig(BaseModel):
    """
    Configuration for the browser sessions behind the crawler.

    Headful by default: the challenge scores headless browsers worse, so
    containers run it under a virtual display.
    """

    model_config = ConfigDict(validate_assignment=True)

    headless: bool = Field(
        default=False,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for crawling"
    )

    navigation_timeout_ms: int = Field(
        default=60000,
        description="Timeout for page.goto in milliseconds",
        ge=1000,
        le=300000
    )

    network_idle_timeout_ms: int = Field(
        default=NETWORK_IDLE_TIMEOUT_MS,
        description="Bounded wait for network idle after navigation",
        ge=0,
        le=300000
    )

    viewport_width: int = Field(default=DESKTOP_VIEWPORT_WIDTH, ge=320)
    viewport_height: int = Field(default=DESKTOP_VIEWPORT_HEIGHT, ge=240)

    launch_args: List[str] = Field(
        default_factory=lambda: list(DEFAULT_LAUNCH_ARGS),
        description="Browser launch arguments"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent; the browser default is used when None"
    )

    def context_options(self) -> dict:
        """Keyword arguments for browser.new_context()."""
        options: dict = {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "ignore_https_errors": True,
        }
        if self.user_agent:
            options["user_agent"] = self.user_agent
        return options


HEADLESS_CONFIG = BrowserConfig(headless=True)
"""
Headless preset for hosts without a display server.

More likely to be challenged; use it for local debugging.
"""
