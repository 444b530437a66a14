"""Exception hierarchy for the ArrestWatch scraper."""

from typing import Optional


class ArrestWatchError(Exception):
    """Base class for all scraper errors."""


class ConfigurationError(ArrestWatchError):
    """Raised for invalid input that makes the whole run meaningless.

    This is the only error allowed to abort a run.
    """


class RetryableRequestError(ArrestWatchError):
    """A page failed in a way a fresh session might fix.

    The fetch layer re-enqueues the same request (same page number) and
    counts the attempt against its retry budget.
    """

    def __init__(self, message: str, page_number: Optional[int] = None):
        self.message = message
        self.page_number = page_number
        super().__init__(message)


class ChallengeBlockedError(RetryableRequestError):
    """The page is still a bot-mitigation challenge after remediation."""


class EmptyPageError(RetryableRequestError):
    """The page produced zero records and gets an identity-rotated retry."""


class ArcGISError(ArrestWatchError):
    """The ArcGIS FeatureServer returned an error payload."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.message = message
        self.code = code
        super().__init__(f"ArcGIS Error: {message}")
