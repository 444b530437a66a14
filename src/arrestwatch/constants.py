# src/arrestwatch/constants.py
"""Centralized constants for the ArrestWatch scraper.

This module contains the fixed strings, selectors and numeric limits shared
across modules. For user-configurable values, see config.py and
browser_config.py.
"""

# =============================================================================
# Source Constants
# =============================================================================

# Listing endpoint for florida.arrests.org
FLORIDA_ARRESTS_BASE_URL = "https://florida.arrests.org/index.php"

# Values stamped onto every output record
FLORIDA_ARRESTS_SOURCE = "florida.arrests.org"
FLORIDA_STATE_CODE = "FL"

# Supported data sources for the runner
SOURCE_FLORIDA_ARRESTS = "florida_arrests"
SOURCE_MIAMI_DADE = "miami_dade"
SUPPORTED_SOURCES = (SOURCE_FLORIDA_ARRESTS, SOURCE_MIAMI_DADE)

# Only listing pages are crawled; detail pages are not
REQUEST_KIND_LISTING = "listing"


# =============================================================================
# Input Defaults
# =============================================================================

DEFAULT_COUNTY = 8
DEFAULT_RESULTS_PER_PAGE = 56
DEFAULT_PAGE_START = 1
DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_MIN_DELAY_MS = 750

# Fetch-layer retry budget per request (matches the crawler default of 3)
DEFAULT_MAX_REQUEST_RETRIES = 3

# Identity-rotated retries granted to a page that produced zero records
DEFAULT_EMPTY_PAGE_RETRIES = 1

# Upper bound for one page handler run, challenge remediation included
DEFAULT_REQUEST_HANDLER_TIMEOUT_SECONDS = 180

# Base for exponential backoff calculation
EXPONENTIAL_BACKOFF_BASE = 2

# Initial backoff delay in seconds
INITIAL_BACKOFF_DELAY_SECONDS = 2.0

# Maximum backoff delay in seconds (cap for exponential growth)
MAX_BACKOFF_DELAY_SECONDS = 30.0


# =============================================================================
# Challenge Detection Constants
# =============================================================================

# Document titles served by the bot-mitigation interstitial
CHALLENGE_TITLE_MARKERS = ("Just a moment", "Attention Required")

# Markup that only appears while the challenge script is active
CHALLENGE_CONTENT_MARKERS = ("challenge-platform",)

# Elements inside any frame that look like the challenge checkbox
CHALLENGE_CHECKBOX_SELECTOR = (
    'input[type="checkbox"], label.ctp-checkbox-label, #challenge-stage div'
)

# Remediation passes attempted while a challenge title persists
MAX_REMEDIATION_ATTEMPTS = 3

# Pointer jitter region: x in [100, 300), y in [200, 400)
POINTER_REGION_ORIGIN = (100, 200)
POINTER_REGION_SPAN = (200, 200)

# Randomized wait after pointer movement (milliseconds)
SETTLE_WAIT_MIN_MS = 1000
SETTLE_WAIT_MAX_MS = 3000

# Hold time for the blind press-release gesture (milliseconds)
BLIND_PRESS_HOLD_MS = 50

# Randomized hold time when pressing a located checkbox (milliseconds)
CHECKBOX_HOLD_MIN_MS = 50
CHECKBOX_HOLD_MAX_MS = 150

# Network-idle wait before classification (milliseconds)
NETWORK_IDLE_TIMEOUT_MS = 30000


# =============================================================================
# Extraction Constants
# =============================================================================

# Known card classes used by arrests.org templates
CARD_SELECTOR = ".profile-card, .search-result, .tile"

# Generic container scanned by the heuristic strategy
CONTAINER_SELECTOR = "div"

# Nested title-like elements holding the person name
NAME_SELECTOR = ".title, h4, strong"

# Nested elements holding one charge each
CHARGE_SELECTOR = "li, .charge"

# Containers with more visible text than this are page wrappers, not cards
MAX_CARD_TEXT_LENGTH = 500

# Fallback name when neither a title element nor an uppercase run is found
UNKNOWN_NAME = "Unknown"


# =============================================================================
# Storage Constants
# =============================================================================

# Key-value store key for the bulk JSONL export
OUTPUT_KEY = "OUTPUT.jsonl"

# Key-value store keys used by the Miami-Dade ingestion path
STATE_KEY = "STATE"
LATENCY_METRIC_KEY = "LATENCY_METRIC"

DEFAULT_STORAGE_DIR = "storage"


# =============================================================================
# Miami-Dade ArcGIS Constants
# =============================================================================

MIAMI_DADE_SOURCE = "miami_dade_arcgis"
MIAMI_DADE_FACILITY = "Miami-Dade Waiting/Jail"
ARCGIS_BATCH_SIZE = 100
ARCGIS_BATCH_DELAY_SECONDS = 1.0
ARCGIS_TIMEOUT_SECONDS = 60.0


# =============================================================================
# Viewport and Display Constants
# =============================================================================

DESKTOP_VIEWPORT_WIDTH = 1920
DESKTOP_VIEWPORT_HEIGHT = 1080
