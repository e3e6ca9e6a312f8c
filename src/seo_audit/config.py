from dotenv import load_dotenv
from dataclasses import asdict, dataclass, fields
from typing import Optional
from pathlib import Path
import json
import logging
import os

from seo_audit.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CRAWL_DEPTH,
    DEFAULT_CRAWL_TIMEOUT_MS,
    DEFAULT_JOB_TIMEOUT_MS,
    DEFAULT_MAX_PAGES_TO_CRAWL,
    DEFAULT_PROCESSING_INTERVAL_MS,
    DEFAULT_USER_AGENT,
    JOB_KEY_PREFIX,
    PROCESSING_QUEUE_KEY,
    QUEUE_KEY,
    THRESHOLD_ENV_PREFIX,
)

load_dotenv()

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Config:
    """Configuration for the audit pipeline."""
    # Store
    store_backend: str = "memory"  # 'memory' or 'sqlite'
    store_path: str = "seo_audit.db"

    # Crawler defaults (overridable per job through options)
    max_pages: int = DEFAULT_MAX_PAGES_TO_CRAWL
    max_depth: int = DEFAULT_CRAWL_DEPTH
    crawl_timeout_ms: int = DEFAULT_CRAWL_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT

    # Worker / queue
    processing_interval_ms: int = DEFAULT_PROCESSING_INTERVAL_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    job_timeout_ms: int = DEFAULT_JOB_TIMEOUT_MS

    # Key scheme
    job_prefix: str = JOB_KEY_PREFIX
    queue_key: str = QUEUE_KEY
    processing_queue_key: str = PROCESSING_QUEUE_KEY

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            store_backend=os.getenv("STORE_BACKEND", "memory"),
            store_path=os.getenv("STORE_PATH", "seo_audit.db"),
            max_pages=_env_int("MAX_PAGES_PER_CRAWL", DEFAULT_MAX_PAGES_TO_CRAWL),
            max_depth=_env_int("CRAWL_DEPTH", DEFAULT_CRAWL_DEPTH),
            crawl_timeout_ms=_env_int("CRAWL_TIMEOUT", DEFAULT_CRAWL_TIMEOUT_MS),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            processing_interval_ms=_env_int(
                "JOB_PROCESSING_INTERVAL", DEFAULT_PROCESSING_INTERVAL_MS
            ),
            batch_size=_env_int("BATCH_SIZE", DEFAULT_BATCH_SIZE),
            job_timeout_ms=_env_int("JOB_TIMEOUT", DEFAULT_JOB_TIMEOUT_MS),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
        )


@dataclass
class AnalysisThresholds:
    """Configurable thresholds for the page analyzers."""

    # Meta
    title_min: int = 10
    title_max: int = 60
    meta_description_min: int = 50
    meta_description_max: int = 160

    # Content
    thin_content_max_headings: int = 1
    thin_content_min_images: int = 2
    thin_content_min_links: int = 5
    lazy_load_threshold: int = 3  # Flag when more images than this load eagerly
    generic_link_threshold: int = 2  # Flag when more generic links than this
    external_link_ratio: float = 0.5

    # Technical
    max_url_length: int = 100
    slow_page_ms: int = 3000
    ttfb_ms: int = 600
    dom_content_loaded_ms: int = 2500

    def _apply(self, name: str, raw) -> None:
        """Set a threshold from a raw env/JSON value; bad values are ignored."""
        if isinstance(raw, bool):
            return
        current = getattr(self, name)
        try:
            value = int(raw) if isinstance(current, int) else float(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid threshold {name}={raw!r}")
            return
        setattr(self, name, value)

    @classmethod
    def from_env(cls, prefix: str = THRESHOLD_ENV_PREFIX) -> "AnalysisThresholds":
        """Build thresholds with ``<prefix><FIELD>`` environment overrides.

        e.g. SEO_THRESHOLD_SLOW_PAGE_MS=4000
        """
        thresholds = cls()
        for item in fields(cls):
            raw = os.getenv(prefix + item.name.upper())
            if raw is not None:
                thresholds._apply(item.name, raw)
        return thresholds

    @classmethod
    def from_file(cls, path: str) -> "AnalysisThresholds":
        """Build thresholds from a JSON file.

        The file may hold the values at top level or under a ``thresholds``
        key (the layout written by save_to_file). A missing file gives the
        defaults.
        """
        thresholds = cls()
        file_path = Path(path)
        if not file_path.exists():
            return thresholds

        data = json.loads(file_path.read_text(encoding="utf-8"))
        values = data.get("thresholds", data)
        for item in fields(cls):
            if item.name in values:
                thresholds._apply(item.name, values[item.name])
        return thresholds

    def to_dict(self) -> dict:
        return asdict(self)

    def save_to_file(self, path: str) -> None:
        Path(path).write_text(
            json.dumps({"thresholds": self.to_dict()}, indent=2), encoding="utf-8"
        )


default_thresholds = AnalysisThresholds()
