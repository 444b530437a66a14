"""Tests for run input and browser configuration."""

import json
from unittest.mock import patch

import pytest

from arrestwatch.browser_config import DEFAULT_LAUNCH_ARGS, BrowserConfig
from arrestwatch.config import ScraperInput
from arrestwatch.errors import ConfigurationError


class TestScraperInput:
    """Tests for ScraperInput."""

    def test_defaults(self):
        """Defaults match the actor input schema."""
        config = ScraperInput()
        assert config.source == "florida_arrests"
        assert config.county == 8
        assert config.results_per_page == 56
        assert config.page_start == 1
        assert config.page_end is None
        assert config.max_concurrency == 3
        assert config.min_delay_ms == 750
        assert config.max_request_retries == 3
        assert config.empty_page_retries == 1
        assert config.request_handler_timeout_secs == 180

    def test_camel_case_aliases(self):
        """Actor-style camelCase keys are accepted."""
        config = ScraperInput.load({
            "county": 52,
            "resultsPerPage": 14,
            "pageStart": 2,
            "pageEnd": 4,
            "emitWebhook": True,
            "webhookUrl": "https://hooks.example/x",
            "webhookAuthToken": "t",
        })
        assert config.county == 52
        assert config.results_per_page == 14
        assert config.page_end == 4
        assert config.emit_webhook is True
        assert config.webhook_auth_token == "t"

    def test_zero_page_end_means_unbounded(self):
        """pageEnd of 0 or empty means run until empty."""
        assert ScraperInput.load({"pageEnd": 0}).page_end is None
        assert ScraperInput.load({"pageEnd": ""}).page_end is None

    def test_page_end_before_start(self):
        """pageEnd below pageStart is a configuration error."""
        with pytest.raises(ConfigurationError):
            ScraperInput.load({"pageStart": 5, "pageEnd": 2})

    def test_unknown_source(self):
        """Unknown sources are rejected."""
        with pytest.raises(ConfigurationError):
            ScraperInput.load({"source": "broward"})

    def test_invalid_numbers(self):
        """Non-positive counts are rejected."""
        with pytest.raises(ConfigurationError):
            ScraperInput.load({"maxConcurrency": 0})
        with pytest.raises(ConfigurationError):
            ScraperInput.load({"minDelayMs": -1})

    def test_from_file(self, tmp_path):
        """INPUT.json files load through the aliases."""
        path = tmp_path / "INPUT.json"
        path.write_text(json.dumps({"county": 10, "includeDetailPages": True}))
        config = ScraperInput.from_file(str(path))
        assert config.county == 10
        assert config.include_detail_pages is True

    def test_from_file_missing(self, tmp_path):
        """A missing input file is a configuration error."""
        with pytest.raises(ConfigurationError):
            ScraperInput.from_file(str(tmp_path / "nope.json"))

    def test_from_env(self):
        """ARRESTWATCH_* variables populate fields."""
        env = {"ARRESTWATCH_COUNTY": "11", "ARRESTWATCH_PAGE_END": "3", "ARRESTWATCH_EMIT_WEBHOOK": "true"}
        with patch.dict("os.environ", env, clear=True):
            config = ScraperInput.from_env()
        assert config.county == 11
        assert config.page_end == 3
        assert config.emit_webhook is True

    def test_to_dict_masks_token(self):
        """The webhook token never appears in logged input."""
        config = ScraperInput(webhook_auth_token="secret")
        assert config.to_dict()["webhook_auth_token"] == "***"


class TestBrowserConfig:
    """Tests for BrowserConfig."""

    def test_defaults(self):
        """Headful chromium with the sandbox flags and a desktop viewport."""
        config = BrowserConfig()
        assert config.headless is False
        assert config.browser_type == "chromium"
        assert config.launch_args == DEFAULT_LAUNCH_ARGS
        assert "--no-sandbox" in config.launch_args

    def test_context_options(self):
        """Context options carry the viewport and optional user agent."""
        options = BrowserConfig(user_agent="UA/1.0").context_options()
        assert options["viewport"] == {"width": 1920, "height": 1080}
        assert options["user_agent"] == "UA/1.0"
        assert "user_agent" not in BrowserConfig().context_options()

    def test_validation(self):
        """Out of range timeouts are rejected."""
        with pytest.raises(ValueError):
            BrowserConfig(navigation_timeout_ms=10)
