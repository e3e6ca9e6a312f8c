"""Site report generation: executive summary, priorities and HTML rendering."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from seo_audit.constants import (
    CATEGORIES,
    HEALTH_CRITICAL,
    HEALTH_THRESHOLDS,
    IMPACT_HIGH,
    IMPACT_ORDER,
    MAX_PAGE_DETAIL_ISSUES,
    MAX_PRIORITIZED_RECOMMENDATIONS,
)
from seo_audit.models import SiteAnalysis

logger = logging.getLogger(__name__)

REPORT_TYPE = "seo_audit"


def health_status(score: int) -> str:
    """Map an overall score to a health label."""
    for minimum, label in HEALTH_THRESHOLDS:
        if score >= minimum:
            return label
    return HEALTH_CRITICAL


class ReportGenerator:
    """Builds the structured site report and renders it to HTML."""

    def __init__(self, template_dir: Optional[str] = None):
        """Initialize report generator.

        Args:
            template_dir: Directory containing Jinja2 templates. Defaults to
                the templates shipped with the package.
        """
        template_path = Path(template_dir) if template_dir else Path(__file__).parent / "templates"

        self.env = Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters['format_number'] = self._format_number
        self.env.filters['title_case'] = self._title_case

    def _format_number(self, value):
        """Format number with thousand separators."""
        try:
            return "{:,}".format(int(value))
        except (ValueError, TypeError):
            return value

    def _title_case(self, value):
        return str(value).replace("_", " ").capitalize()

    def generate_report(
        self,
        site_analysis: SiteAnalysis,
        report_id: Optional[str] = None,
        include_details: bool = True,
    ) -> dict:
        """Generate the complete report for one site analysis.

        Args:
            site_analysis: Aggregated analysis of the crawl
            report_id: Identifier stored on the report (usually the job id)
            include_details: Whether to add the issue breakdown and page details

        Returns:
            JSON-serializable report dictionary. It carries the full site
            analysis (``pages``, ``total_issues``, ``top_issues``,
            ``recommendations``) next to the executive summary.
        """
        logger.debug(f"Generating report for {site_analysis.base_url}")
        analysis = site_analysis.to_dict()

        report = {
            "id": report_id,
            "type": REPORT_TYPE,
            "timestamp": datetime.now().isoformat(),
            "base_url": analysis["base_url"],
            "audit_target": {
                "base_url": site_analysis.base_url,
                "scanned": site_analysis.crawl_stats.get("pages_visited", 0),
            },
            "summary": self.generate_summary(site_analysis),
            "scores": analysis["scores"],
            "crawl_stats": analysis["crawl_stats"],
            "total_issues": analysis["total_issues"],
            "issue_type_counts": analysis["issue_type_counts"],
            "top_issues": analysis["top_issues"],
            "prioritized_recommendations": self.prioritized_recommendations(site_analysis),
            "recommendations": analysis["recommendations"],
            # page id -> page analysis or skip record
            "pages": analysis["pages"],
        }

        if include_details:
            report["details"] = {
                "issue_breakdown": self.issue_breakdown(site_analysis),
                "page_details": self.page_details(site_analysis),
            }

        logger.debug(
            f"Report generation complete: {len(report['prioritized_recommendations'])} recommendation(s)"
        )
        return report

    def generate_summary(self, analysis: SiteAnalysis) -> dict:
        status = health_status(analysis.scores.get("overall", 0))
        return {
            "health_status": status,
            "overall_score": analysis.scores.get("overall", 0),
            "total_issues": analysis.total_issues,
            "critical_issue_count": self.count_issues_by_impact(analysis, IMPACT_HIGH),
            "text": self.summary_text(analysis, status),
            "top_strengths": self.top_strengths(analysis),
            "top_weaknesses": self.top_weaknesses(analysis),
            "category_scores": {name: analysis.scores.get(name, 0) for name in CATEGORIES},
        }

    def prioritized_recommendations(self, analysis: SiteAnalysis) -> list[dict]:
        """Top recommendations, already ordered by impact and prevalence."""
        return [
            {
                "id": f"{rec.category}_{rec.type}",
                "title": rec.message,
                "description": rec.details or "",
                "impact": rec.impact,
                "category": rec.category,
                "affected_pages": rec.affected_pages,
                "examples": rec.example_pages,
            }
            for rec in analysis.recommendations[:MAX_PRIORITIZED_RECOMMENDATIONS]
        ]

    def issue_breakdown(self, analysis: SiteAnalysis) -> dict:
        by_category = {
            name: {impact: 0 for impact in IMPACT_ORDER} | {"total": 0}
            for name in CATEGORIES
        }
        by_impact = {impact: 0 for impact in IMPACT_ORDER}

        for page in analysis.analyzed_pages():
            for issue in page.issues:
                if issue.impact in by_impact:
                    by_impact[issue.impact] += 1
                counts = by_category.get(issue.category)
                if counts is not None:
                    if issue.impact in counts:
                        counts[issue.impact] += 1
                    counts["total"] += 1

        return {
            "by_category": by_category,
            "by_impact": by_impact,
            "most_common_issues": [dict(item) for item in analysis.top_issues],
        }

    def page_details(self, analysis: SiteAnalysis) -> list[dict]:
        """Per-page summaries, worst score first, skipped pages last."""
        analyzed = []
        skipped = []

        for page in analysis.pages.values():
            if page.skipped:
                skipped.append({"url": page.url, "skipped": True, "reason": page.reason})
                continue
            analyzed.append({
                "url": page.url,
                "score": page.scores.get("overall", 0),
                "issue_count": page.issue_count,
                "categories": {name: page.scores.get(name, 0) for name in CATEGORIES},
                "top_issues": [
                    {
                        "type": issue.type,
                        "message": issue.message,
                        "impact": issue.impact,
                        "category": issue.category,
                    }
                    for issue in page.issues[:MAX_PAGE_DETAIL_ISSUES]
                ],
            })

        analyzed.sort(key=lambda detail: detail["score"])
        return analyzed + skipped

    def count_issues_by_impact(self, analysis: SiteAnalysis, impact: str) -> int:
        return sum(
            1
            for page in analysis.analyzed_pages()
            for issue in page.issues
            if issue.impact == impact
        )

    def _category_scores(self, analysis: SiteAnalysis) -> list[tuple[str, int]]:
        return [(name, analysis.scores.get(name, 0)) for name in CATEGORIES]

    def summary_text(self, analysis: SiteAnalysis, status: str) -> str:
        score = analysis.scores.get("overall", 0)
        page_count = analysis.crawl_stats.get("pages_visited", 0)
        critical = self.count_issues_by_impact(analysis, IMPACT_HIGH)

        text = (
            f"The SEO health of {analysis.base_url} is {status} with an overall score of {score}/100. "
            f"The audit analyzed {page_count} pages and found {analysis.total_issues} issues, "
            f"including {critical} critical issues that should be addressed promptly. "
        )

        category, category_score = min(self._category_scores(analysis), key=lambda item: item[1])
        text += (
            f"{category.capitalize()}-related factors received the lowest score ({category_score}/100) "
            f"and present the greatest opportunity for improvement. "
        )

        if analysis.recommendations:
            text += (
                f"This report provides {len(analysis.recommendations)} actionable recommendations "
                f"prioritized by their potential impact on your SEO performance."
            )
        else:
            text += "No specific recommendations were identified."
        return text

    def top_strengths(self, analysis: SiteAnalysis) -> list[str]:
        strengths = []

        if analysis.scores.get("overall", 0) >= 80:
            strengths.append("Strong overall SEO health")

        for category, score in self._category_scores(analysis):
            if score >= 90:
                strengths.append(f"Excellent {category} optimization ({score}/100)")
            elif score >= 80:
                strengths.append(f"Strong {category} practices ({score}/100)")

        critical = self.count_issues_by_impact(analysis, IMPACT_HIGH)
        if critical == 0:
            strengths.append("No critical SEO issues detected")
        elif critical <= 2:
            strengths.append("Few critical SEO issues")

        if not strengths:
            strengths.append("Website has potential for SEO improvement")
        return strengths[:3]

    def top_weaknesses(self, analysis: SiteAnalysis) -> list[str]:
        weaknesses = []

        if analysis.scores.get("overall", 0) < 50:
            weaknesses.append("Poor overall SEO health")

        lowest = sorted(self._category_scores(analysis), key=lambda item: item[1])[:2]
        for category, score in lowest:
            if score < 40:
                weaknesses.append(f"Critical issues with {category} ({score}/100)")
            elif score < 60:
                weaknesses.append(f"Poor {category} optimization ({score}/100)")
            elif score < 75:
                weaknesses.append(f"{category} needs improvement ({score}/100)")

        critical = self.count_issues_by_impact(analysis, IMPACT_HIGH)
        if critical > 10:
            weaknesses.append(f"Large number of critical SEO issues ({critical})")
        elif critical > 5:
            weaknesses.append(f"Several critical SEO issues ({critical})")

        if analysis.top_issues and analysis.top_issues[0]["count"] > 5:
            top = analysis.top_issues[0]
            weaknesses.append(f"Widespread issue: {top['type']} ({top['count']} instances)")

        if not weaknesses:
            weaknesses.append("Some opportunities for SEO improvement")
        return weaknesses[:3]

    def render_html(self, report: dict) -> str:
        """Render a generated report with the packaged HTML template."""
        template = self.env.get_template("report.html")
        return template.render(
            report=report,
            generated_at=datetime.now().strftime("%Y-%m-%d %H:%M"),
        )

    def save_html(self, report: dict, output_path: str) -> None:
        """Render a report and write it to output_path."""
        html = self.render_html(report)
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(html, encoding="utf-8")
        logger.info(f"HTML report written to {path}")
