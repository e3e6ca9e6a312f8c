# src/seo_audit/constants.py
"""Centralized constants for the SEO audit pipeline.

This module contains key names, enumerated values and magic numbers used
across multiple modules. For user-configurable values, see config.py
(Config and AnalysisThresholds).
"""

# =============================================================================
# Storage Key Scheme
# =============================================================================

# Prefix for job records (job:<id>)
JOB_KEY_PREFIX = "job:"

# List of job ids waiting to be processed
QUEUE_KEY = "audit:queue"

# List of job ids currently being processed
PROCESSING_QUEUE_KEY = "audit:processing"

# Environment prefix for AnalysisThresholds overrides
THRESHOLD_ENV_PREFIX = "SEO_THRESHOLD_"


# =============================================================================
# Job Lifecycle
# =============================================================================

JOB_TYPE_SITE_AUDIT = "site_audit"
JOB_TYPE_PAGE_AUDIT = "page_audit"
JOB_TYPES = (JOB_TYPE_SITE_AUDIT, JOB_TYPE_PAGE_AUDIT)

STATUS_QUEUED = "queued"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
JOB_STATUSES = (STATUS_QUEUED, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)

# Progress milestones written by the worker
SITE_AUDIT_PROGRESS = {"crawl": 10, "analyze": 40, "report": 80}
PAGE_AUDIT_PROGRESS = {"crawl": 10, "analyze": 50, "report": 80}


# =============================================================================
# Crawler Constants
# =============================================================================

DEFAULT_MAX_PAGES_TO_CRAWL = 100
DEFAULT_CRAWL_DEPTH = 3
DEFAULT_CRAWL_TIMEOUT_MS = 30000
DEFAULT_USER_AGENT = "SEO-Audit-Bot/1.0"

# robots.txt and sitemap requests use a shorter timeout than pages
ROBOTS_TIMEOUT_SECONDS = 5.0

# Maximum number of URLs taken from a sitemap when seeding the frontier
MAX_SITEMAP_URLS = 500

# Page record status values
PAGE_STATUS_OK = "ok"
PAGE_STATUS_ERROR = "error"
PAGE_STATUS_SKIPPED = "skipped"

# Viewport used by the headless fetch strategy
BROWSER_VIEWPORT_WIDTH = 1280
BROWSER_VIEWPORT_HEIGHT = 800


# =============================================================================
# Worker Constants
# =============================================================================

DEFAULT_PROCESSING_INTERVAL_MS = 10000
DEFAULT_BATCH_SIZE = 5
DEFAULT_JOB_TIMEOUT_MS = 600000


# =============================================================================
# Analysis Constants
# =============================================================================

CATEGORY_META = "meta"
CATEGORY_CONTENT = "content"
CATEGORY_TECHNICAL = "technical"
CATEGORIES = (CATEGORY_META, CATEGORY_CONTENT, CATEGORY_TECHNICAL)

IMPACT_HIGH = "high"
IMPACT_MEDIUM = "medium"
IMPACT_LOW = "low"

# Sort order for impact levels (lower sorts first)
IMPACT_ORDER = {IMPACT_HIGH: 0, IMPACT_MEDIUM: 1, IMPACT_LOW: 2}

# Number of most frequent issue types kept in a site analysis
TOP_ISSUES_COUNT = 10

# Example page URLs attached to each aggregated recommendation
MAX_EXAMPLE_PAGES = 5

# Issues listed per page in report page details
MAX_PAGE_DETAIL_ISSUES = 5

# Recommendations included in the prioritized report section
MAX_PRIORITIZED_RECOMMENDATIONS = 10

# Health labels keyed by minimum overall score (checked in order)
HEALTH_THRESHOLDS = (
    (90, "excellent"),
    (70, "good"),
    (50, "fair"),
    (30, "poor"),
)
HEALTH_CRITICAL = "critical"


# =============================================================================
# CLI Constants
# =============================================================================

# Store backend for CLI runs when STORE_BACKEND is unset (must outlive the process)
CLI_STORE_BACKEND = "sqlite"
