"""Data models for the SEO audit pipeline."""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Optional, Union

from seo_audit.constants import (
    MAX_EXAMPLE_PAGES,
    PAGE_STATUS_OK,
    STATUS_QUEUED,
)


# ============================================================================
# Job Models
# ============================================================================

@dataclass
class Job:
    """One audit request with lifecycle status, progress and results."""

    id: str
    type: str
    status: str = STATUS_QUEUED
    progress: int = 0
    params: dict = field(default_factory=dict)
    results: Optional[dict] = None
    created: int = 0  # epoch milliseconds
    updated: int = 0
    started: Optional[int] = None
    completed: Optional[int] = None
    error: Optional[dict] = None
    message: Optional[str] = None

    @property
    def url(self) -> Optional[str]:
        return self.params.get("url")

    @property
    def options(self) -> dict:
        return self.params.get("options") or {}

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        """Build a Job from a stored record, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# ============================================================================
# Crawl Models
# ============================================================================

@dataclass(frozen=True)
class SeoData:
    """SEO-specific head markup extracted from a page."""

    canonical: Optional[str] = None
    robots: Optional[str] = None
    og_tags: dict = field(default_factory=dict)
    twitter_tags: dict = field(default_factory=dict)
    structured_data: list = field(default_factory=list)
    hreflang: list = field(default_factory=list)
    amp_link: Optional[str] = None
    viewport: Optional[str] = None


@dataclass(frozen=True)
class PageRecord:
    """Immutable snapshot of one crawled page."""

    id: str
    url: str
    depth: int = 0
    status: str = PAGE_STATUS_OK  # ok / error / skipped
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    h1: Optional[str] = None
    headings: dict = field(default_factory=dict)  # h1..h6 -> [{text, id}]
    links: list = field(default_factory=list)  # [{url, text, rel, target, is_external}]
    images: list = field(default_factory=list)  # [{src, alt, width, height, loading}]
    seo_data: SeoData = field(default_factory=SeoData)
    metrics: dict = field(default_factory=dict)  # ttfb, dom_content_loaded (ms)
    load_time_ms: Optional[int] = None
    redirect: Optional[str] = None  # Final URL when the request was redirected
    redirect_status: Optional[int] = None  # Status of the first redirect hop
    crawled_at: str = field(default_factory=lambda: datetime.now().isoformat())
    error: Optional[dict] = None

    def heading_count(self) -> int:
        return sum(len(self.headings.get(f"h{level}", [])) for level in range(1, 7))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CrawlResult:
    """Result of crawling a website."""

    base_url: str
    pages_visited: int = 0
    duration_ms: int = 0
    pages: dict[str, PageRecord] = field(default_factory=dict)
    sitemap_urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "base_url": self.base_url,
            "pages_visited": self.pages_visited,
            "duration_ms": self.duration_ms,
            "pages": {page_id: page.to_dict() for page_id, page in self.pages.items()},
            "sitemap_urls": list(self.sitemap_urls),
        }


# ============================================================================
# Analysis Models
# ============================================================================

@dataclass
class Issue:
    """A detected rubric violation."""

    type: str
    message: str
    impact: str
    category: Optional[str] = None
    details: Any = None

    def to_dict(self) -> dict:
        data = {
            "type": self.type,
            "message": self.message,
            "impact": self.impact,
            "category": self.category,
        }
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class Recommendation:
    """Remediation guidance paired with an Issue."""

    type: str
    message: str
    impact: str
    category: Optional[str] = None
    details: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "type": self.type,
            "message": self.message,
            "impact": self.impact,
            "category": self.category,
        }
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class AnalyzerResult:
    """Result of one analyzer run against one page."""

    issues: list[Issue] = field(default_factory=list)
    score: int = 0
    max_score: int = 0
    recommendations: list[Recommendation] = field(default_factory=list)
    percentage: int = 100

    def to_dict(self) -> dict:
        return {
            "issues": [issue.to_dict() for issue in self.issues],
            "score": self.score,
            "max_score": self.max_score,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "percentage": self.percentage,
        }


@dataclass
class PageAnalysis:
    """Combined meta/content/technical analysis of one page."""

    url: str
    timestamp: str
    scores: dict[str, int]
    categories: dict[str, AnalyzerResult] = field(default_factory=dict)
    issues: list[Issue] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)

    skipped = False

    @property
    def issue_count(self) -> int:
        return len(self.issues)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "timestamp": self.timestamp,
            "scores": dict(self.scores),
            "categories": {
                name: result.to_dict() for name, result in self.categories.items()
            },
            "issues": [issue.to_dict() for issue in self.issues],
            "issue_count": self.issue_count,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
        }


@dataclass
class SkippedPage:
    """A crawled page excluded from analysis."""

    url: str
    reason: str  # error / status_<code> / redirect / not_html

    skipped = True

    def to_dict(self) -> dict:
        return {"url": self.url, "skipped": True, "reason": self.reason}


@dataclass
class SiteRecommendation:
    """A recommendation deduplicated across every page it applies to."""

    type: str
    message: str
    impact: str
    category: str
    details: Optional[str] = None
    pages: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.pages)

    @property
    def affected_pages(self) -> int:
        return self.count

    @property
    def example_pages(self) -> list[str]:
        return self.pages[:MAX_EXAMPLE_PAGES]

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "impact": self.impact,
            "category": self.category,
            "details": self.details,
            "pages": list(self.pages),
            "count": self.count,
            "affected_pages": self.affected_pages,
            "example_pages": self.example_pages,
        }


@dataclass
class SiteAnalysis:
    """Aggregated analysis of every page in a crawl."""

    base_url: str
    timestamp: str
    crawl_stats: dict = field(default_factory=dict)
    scores: dict[str, int] = field(default_factory=dict)
    pages: dict[str, Union[PageAnalysis, SkippedPage]] = field(default_factory=dict)
    total_issues: int = 0
    issue_type_counts: dict[str, int] = field(default_factory=dict)
    top_issues: list[dict] = field(default_factory=list)
    recommendations: list[SiteRecommendation] = field(default_factory=list)

    def analyzed_pages(self) -> list[PageAnalysis]:
        return [page for page in self.pages.values() if not page.skipped]

    def to_dict(self) -> dict:
        return {
            "base_url": self.base_url,
            "timestamp": self.timestamp,
            "crawl_stats": dict(self.crawl_stats),
            "scores": dict(self.scores),
            "pages": {page_id: page.to_dict() for page_id, page in self.pages.items()},
            "total_issues": self.total_issues,
            "issue_type_counts": dict(self.issue_type_counts),
            "top_issues": [dict(item) for item in self.top_issues],
            "recommendations": [rec.to_dict() for rec in self.recommendations],
        }
