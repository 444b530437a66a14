from dotenv import load_dotenv
from pathlib import Path
from typing import Any, Optional
import json
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from arrestwatch.constants import (
    DEFAULT_COUNTY,
    DEFAULT_EMPTY_PAGE_RETRIES,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_REQUEST_RETRIES,
    DEFAULT_MIN_DELAY_MS,
    DEFAULT_PAGE_START,
    DEFAULT_REQUEST_HANDLER_TIMEOUT_SECONDS,
    DEFAULT_RESULTS_PER_PAGE,
    DEFAULT_STORAGE_DIR,
    INITIAL_BACKOFF_DELAY_SECONDS,
    SOURCE_FLORIDA_ARRESTS,
    SUPPORTED_SOURCES,
)
from arrestwatch.errors import ConfigurationError

load_dotenv()  # Loads variables from .env file


ENV_PREFIX = "ARRESTWATCH_"


class Settings:
    """
    Process-level settings loaded from environment variables.
    """
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")
    RUN_ID = os.getenv("ARRESTWATCH_RUN_ID")


settings = Settings()


class ScraperInput(BaseModel):
    """
    Run input.

    Field aliases are camelCase so an actor-style ``INPUT.json`` can be
    loaded unchanged; snake_case names work too.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source: str = Field(default=SOURCE_FLORIDA_ARRESTS)
    county: int = Field(default=DEFAULT_COUNTY, ge=1)
    results_per_page: int = Field(default=DEFAULT_RESULTS_PER_PAGE, alias="resultsPerPage", ge=1)
    page_start: int = Field(default=DEFAULT_PAGE_START, alias="pageStart", ge=1)
    page_end: Optional[int] = Field(default=None, alias="pageEnd")
    include_detail_pages: bool = Field(default=False, alias="includeDetailPages")
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, alias="maxConcurrency", ge=1)
    min_delay_ms: int = Field(default=DEFAULT_MIN_DELAY_MS, alias="minDelayMs", ge=0)

    emit_webhook: bool = Field(default=False, alias="emitWebhook")
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")
    webhook_auth_token: Optional[str] = Field(default=None, alias="webhookAuthToken")

    # Fetch layer
    max_request_retries: int = Field(
        default=DEFAULT_MAX_REQUEST_RETRIES, alias="maxRequestRetries", ge=0
    )
    empty_page_retries: int = Field(
        default=DEFAULT_EMPTY_PAGE_RETRIES, alias="emptyPageRetries", ge=0
    )
    retry_backoff_seconds: float = Field(
        default=INITIAL_BACKOFF_DELAY_SECONDS, alias="retryBackoffSeconds", ge=0
    )
    request_handler_timeout_secs: float = Field(
        default=DEFAULT_REQUEST_HANDLER_TIMEOUT_SECONDS, alias="requestHandlerTimeoutSecs", gt=0
    )

    storage_dir: str = Field(default=DEFAULT_STORAGE_DIR, alias="storageDir")

    # Miami-Dade ingestion
    arcgis_url: Optional[str] = Field(default=None, alias="arcgisUrl")

    @field_validator("source")
    @classmethod
    def _known_source(cls, value: str) -> str:
        if value not in SUPPORTED_SOURCES:
            raise ValueError(
                f"unknown source '{value}', expected one of {', '.join(SUPPORTED_SOURCES)}"
            )
        return value

    @field_validator("page_end", mode="before")
    @classmethod
    def _blank_page_end(cls, value: Any) -> Any:
        # Actor inputs send 0 or "" for "run until empty"
        if value in ("", 0, None):
            return None
        return value

    @model_validator(mode="after")
    def _page_range(self) -> "ScraperInput":
        if self.page_end is not None and self.page_end < self.page_start:
            raise ValueError(
                f"pageEnd ({self.page_end}) must be >= pageStart ({self.page_start})"
            )
        return self

    @classmethod
    def load(cls, data: dict) -> "ScraperInput":
        """Validate raw input, raising ConfigurationError on bad values."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid input: {e}") from e

    @classmethod
    def from_file(cls, path: str) -> "ScraperInput":
        """Load input from a JSON file.

        Args:
            path: Path to a JSON input file

        Returns:
            ScraperInput with values from the file
        """
        file_path = Path(path)
        if not file_path.exists():
            raise ConfigurationError(f"Input file not found: {path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Input file {path} is not valid JSON: {e}") from e

        return cls.load(data)

    @classmethod
    def from_env(cls) -> "ScraperInput":
        """Load input from environment variables.

        Variables are the field names upper-cased with an ARRESTWATCH_
        prefix, e.g. ARRESTWATCH_PAGE_END=5. Empty values are ignored.
        """
        data = {}
        for field_name in cls.model_fields:
            env_value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
            if env_value:
                data[field_name] = env_value
        return cls.load(data)

    def to_dict(self) -> dict:
        """Input as a dict with the auth token masked, for logging."""
        data = self.model_dump()
        if data.get("webhook_auth_token"):
            data["webhook_auth_token"] = "***"
        return data
