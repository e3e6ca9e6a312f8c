"""Page and site analysis: runs the analyzer set and aggregates findings."""

import asyncio
import dataclasses
import logging
from collections import Counter
from datetime import datetime
from typing import Optional, Union

from seo_audit.analyzers import (
    BaseAnalyzer,
    ContentAnalyzer,
    MetaAnalyzer,
    TechnicalAnalyzer,
    percentage,
    round_half_up,
)
from seo_audit.config import AnalysisThresholds
from seo_audit.constants import (
    CATEGORIES,
    IMPACT_ORDER,
    PAGE_STATUS_ERROR,
    PAGE_STATUS_SKIPPED,
    TOP_ISSUES_COUNT,
)
from seo_audit.models import (
    CrawlResult,
    PageAnalysis,
    PageRecord,
    Recommendation,
    SiteAnalysis,
    SiteRecommendation,
    SkippedPage,
)

logger = logging.getLogger(__name__)


def impact_rank(impact: str) -> int:
    return IMPACT_ORDER.get(impact, len(IMPACT_ORDER))


def sort_recommendations(recommendations: list[Recommendation]) -> list[Recommendation]:
    """Stable sort by impact: high, then medium, then low."""
    return sorted(recommendations, key=lambda rec: impact_rank(rec.impact))


def skip_reason(page: PageRecord) -> Optional[str]:
    """Why a crawled page is excluded from analysis, or None to analyze it."""
    if page.status == PAGE_STATUS_ERROR:
        return "error"
    if page.status_code and page.status_code >= 400:
        return f"status_{page.status_code}"
    if page.status == PAGE_STATUS_SKIPPED and page.redirect:
        return "redirect"
    if page.status == PAGE_STATUS_SKIPPED:
        return "not_html"
    # A missing Content-Type header does not make a page non-HTML
    if page.content_type and "text/html" not in page.content_type:
        return "not_html"
    return None


class SiteAnalyzer:
    """Scores pages with the meta, content and technical analyzers.

    The three analyzers are independent and read-only over a frozen page
    record, so they run concurrently in worker threads.
    """

    def __init__(
        self,
        thresholds: Optional[AnalysisThresholds] = None,
        analyzers: Optional[dict[str, BaseAnalyzer]] = None,
    ):
        """Initialize the analyzer set.

        Args:
            thresholds: Rubric thresholds shared by every analyzer
            analyzers: Optional mapping of category to analyzer, replacing the
                built-in set
        """
        self.analyzers = analyzers or {
            "meta": MetaAnalyzer(thresholds),
            "content": ContentAnalyzer(thresholds),
            "technical": TechnicalAnalyzer(thresholds),
        }

    async def analyze_page(self, page: PageRecord, options: Optional[dict] = None) -> PageAnalysis:
        """Run every analyzer against one page and combine their results."""
        logger.debug(f"Starting analysis for page {page.url}")

        names = list(self.analyzers)
        results = await asyncio.gather(*(
            asyncio.to_thread(self.analyzers[name].analyze, page, options)
            for name in names
        ))
        categories = dict(zip(names, results))

        issues = []
        recommendations = []
        for name, result in categories.items():
            issues.extend(dataclasses.replace(issue, category=name) for issue in result.issues)
            recommendations.extend(dataclasses.replace(rec, category=name) for rec in result.recommendations)

        total_score = sum(result.score for result in results)
        total_max = sum(result.max_score for result in results)

        scores = {"overall": percentage(total_score, total_max)}
        scores.update({name: result.percentage for name, result in categories.items()})

        analysis = PageAnalysis(
            url=page.url,
            timestamp=datetime.now().isoformat(),
            scores=scores,
            categories=categories,
            issues=issues,
            recommendations=sort_recommendations(recommendations),
        )

        logger.debug(
            f"Completed analysis for page {page.url}: "
            f"overall={scores['overall']}, issues={analysis.issue_count}"
        )
        return analysis

    async def analyze_site(
        self, crawl_result: CrawlResult, options: Optional[dict] = None
    ) -> SiteAnalysis:
        """Analyze every crawled page and aggregate the site-wide picture."""
        logger.info(
            f"Starting site-wide analysis for {crawl_result.base_url} "
            f"({len(crawl_result.pages)} page(s))"
        )

        page_results: dict[str, Union[PageAnalysis, SkippedPage]] = {}
        to_analyze: dict[str, PageRecord] = {}

        for page_id, page in crawl_result.pages.items():
            reason = skip_reason(page)
            if reason:
                page_results[page_id] = SkippedPage(url=page.url, reason=reason)
            else:
                page_results[page_id] = None  # placeholder keeps crawl order
                to_analyze[page_id] = page

        analyses = await asyncio.gather(*(
            self.analyze_page(page, options) for page in to_analyze.values()
        ))
        page_results.update(zip(to_analyze, analyses))

        site_analysis = self.aggregate(crawl_result, page_results)
        logger.info(
            f"Completed site-wide analysis for {crawl_result.base_url}: "
            f"overall={site_analysis.scores['overall']}, issues={site_analysis.total_issues}"
        )
        return site_analysis

    def aggregate(
        self,
        crawl_result: CrawlResult,
        page_results: dict[str, Union[PageAnalysis, SkippedPage]],
    ) -> SiteAnalysis:
        """Pool per-page results into site scores, issues and recommendations."""
        analyzed = [result for result in page_results.values() if not result.skipped]
        count = len(analyzed)

        scores = {}
        for key in ("overall",) + CATEGORIES:
            total = sum(result.scores.get(key, 0) for result in analyzed)
            scores[key] = round_half_up(total / count) if count else 0

        issue_type_counts = Counter()
        total_issues = 0
        for result in analyzed:
            for issue in result.issues:
                issue_type_counts[issue.type] += 1
                total_issues += 1

        # Counter.most_common keeps first-seen order for equal counts
        top_issues = [
            {"type": issue_type, "count": n}
            for issue_type, n in issue_type_counts.most_common(TOP_ISSUES_COUNT)
        ]

        merged: dict[tuple[str, str], SiteRecommendation] = {}
        for result in analyzed:
            for rec in result.recommendations:
                key = (rec.category, rec.type)
                if key not in merged:
                    merged[key] = SiteRecommendation(
                        type=rec.type,
                        message=rec.message,
                        impact=rec.impact,
                        category=rec.category,
                        details=rec.details,
                    )
                merged[key].pages.append(result.url)

        recommendations = sorted(
            merged.values(), key=lambda rec: (impact_rank(rec.impact), -rec.count)
        )

        return SiteAnalysis(
            base_url=crawl_result.base_url,
            timestamp=datetime.now().isoformat(),
            crawl_stats={
                "pages_visited": crawl_result.pages_visited,
                "crawl_duration_ms": crawl_result.duration_ms,
                "pages_analyzed": count,
                "pages_skipped": len(page_results) - count,
            },
            scores=scores,
            pages=page_results,
            total_issues=total_issues,
            issue_type_counts=dict(issue_type_counts),
            top_issues=top_issues,
            recommendations=recommendations,
        )
