"""SEO Audit - asynchronous site audit pipeline."""

__version__ = "0.1.0"

from seo_audit.analyzer import SiteAnalyzer
from seo_audit.config import AnalysisThresholds, Config
from seo_audit.crawler import CrawlPolicy, SiteCrawler
from seo_audit.job_queue import JobQueue
from seo_audit.report_generator import ReportGenerator
from seo_audit.service import AuditService
from seo_audit.store import InMemoryStore, SqliteStore, get_store
from seo_audit.worker import AuditWorker

__all__ = [
    "AnalysisThresholds",
    "AuditService",
    "AuditWorker",
    "Config",
    "CrawlPolicy",
    "InMemoryStore",
    "JobQueue",
    "ReportGenerator",
    "SiteAnalyzer",
    "SiteCrawler",
    "SqliteStore",
    "get_store",
]
