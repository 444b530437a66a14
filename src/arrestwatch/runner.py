"""Run orchestration: pick the source, run it, export, notify."""

import logging
from typing import Any, Optional

from arrestwatch.browser_config import BrowserConfig
from arrestwatch.config import ScraperInput
from arrestwatch.constants import (
    FLORIDA_ARRESTS_SOURCE,
    MIAMI_DADE_SOURCE,
    SOURCE_FLORIDA_ARRESTS,
    SOURCE_MIAMI_DADE,
)
from arrestwatch.crawler import ArrestCrawler
from arrestwatch.errors import ConfigurationError
from arrestwatch.external.miami_dade import MiamiDadeIngestor
from arrestwatch.output_manager import OutputManager
from arrestwatch.webhook import WebhookNotifier

logger = logging.getLogger(__name__)


class ScraperRun:
    """
    One run of a configured source.

    Kept as an object so a signal handler can reach the active crawler
    and ask it to stop.
    """

    def __init__(
        self,
        config: ScraperInput,
        output: Optional[OutputManager] = None,
        browser_config: Optional[BrowserConfig] = None,
        run_id: Optional[str] = None,
    ):
        self.config = config
        self.output = output or OutputManager(config.storage_dir, run_id=run_id)
        self.browser_config = browser_config
        self.crawler: Optional[ArrestCrawler] = None
        self.ingestor: Optional[MiamiDadeIngestor] = None

    async def execute(self) -> dict[str, Any]:
        """
        Run the source, export OUTPUT.jsonl and send the webhook.

        Returns:
            Run summary dict

        Raises:
            ConfigurationError: For an unknown source or missing source settings
        """
        logger.info(f"Run {self.output.run_id} input: {self.config.to_dict()}")

        if self.config.source == SOURCE_FLORIDA_ARRESTS:
            self.crawler = ArrestCrawler(
                self.config, self.output, browser_config=self.browser_config
            )
            summary = await self.crawler.run()
            webhook_source, webhook_county = FLORIDA_ARRESTS_SOURCE, self.config.county
        elif self.config.source == SOURCE_MIAMI_DADE:
            if not self.config.arcgis_url:
                raise ConfigurationError("ArcGIS FeatureServer URL is required for this source.")
            self.ingestor = MiamiDadeIngestor(self.config.arcgis_url, self.output)
            summary = await self.ingestor.run()
            webhook_source, webhook_county = MIAMI_DADE_SOURCE, None
        else:
            raise ConfigurationError(f"Unknown data source: {self.config.source}")

        self.output.finalize()

        if self.config.emit_webhook and self.config.webhook_url:
            notifier = WebhookNotifier(self.config.webhook_url, self.config.webhook_auth_token)
            summary["webhook_sent"] = await notifier.send(
                webhook_source, webhook_county, self.output.run_id, self.output.records()
            )
        elif self.config.emit_webhook:
            logger.warning("emitWebhook is set but webhookUrl is missing; skipping webhook")

        summary["run_id"] = self.output.run_id
        return summary

    async def stop(self) -> None:
        """Ask the active source to wind down; its partial output is still finalized."""
        if self.crawler is not None:
            await self.crawler.request_stop()
        if self.ingestor is not None:
            self.ingestor.request_stop()


async def run_scraper(
    config: ScraperInput,
    output: Optional[OutputManager] = None,
    browser_config: Optional[BrowserConfig] = None,
) -> dict[str, Any]:
    """Run the configured source and return its summary."""
    return await ScraperRun(config, output=output, browser_config=browser_config).execute()
