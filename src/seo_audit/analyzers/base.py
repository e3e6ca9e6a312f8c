"""Common scoring machinery for the page analyzers."""

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional

from seo_audit.config import AnalysisThresholds, default_thresholds
from seo_audit.constants import IMPACT_HIGH, PAGE_STATUS_ERROR
from seo_audit.exceptions import AnalysisError
from seo_audit.models import AnalyzerResult, Issue, PageRecord, Recommendation

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (round() is banker's)."""
    return int(math.floor(value + 0.5))


def percentage(score: int, max_score: int) -> int:
    if max_score <= 0:
        return 100
    return round_half_up(100 * score / max_score)


class BaseAnalyzer(ABC):
    """Runs a fixed sequence of checks against one page record.

    Each check adds its weight to ``max_score`` and, on a violation, records
    one issue with a paired recommendation through ``_flag``. The final score
    is ``max_score`` minus the number of issues, floored at zero.
    """

    category: str = ""

    def __init__(self, thresholds: Optional[AnalysisThresholds] = None):
        self.thresholds = thresholds or default_thresholds

    @abstractmethod
    def _run_checks(self, page: PageRecord, result: AnalyzerResult, options: dict) -> None:
        """Run every check, mutating result."""

    def analyze(self, page: PageRecord, options: Optional[dict] = None) -> AnalyzerResult:
        """Analyze one page.

        Args:
            page: Crawled page record
            options: Analysis options (currently unused by the built-in checks)

        Returns:
            AnalyzerResult. Any exception raised by a check is converted into
            a single high-impact ``error`` issue with a zero score.
        """
        result = AnalyzerResult()
        try:
            if page.status == PAGE_STATUS_ERROR:
                raise AnalysisError(f"Page {page.url} could not be fetched")
            self._run_checks(page, result, options or {})
        except Exception as e:
            logger.error(f"Error during {self.category} analysis for {page.url}: {e}")
            return AnalyzerResult(
                issues=[Issue(
                    type="error",
                    message=f"Error during {self.category} analysis: {e}",
                    impact=IMPACT_HIGH,
                    category=self.category,
                )],
                score=0,
                max_score=1,
                percentage=0,
            )

        result.score = max(0, result.max_score - len(result.issues))
        result.percentage = percentage(result.score, result.max_score)

        logger.debug(
            f"{self.category.capitalize()} analysis for {page.url}: "
            f"{result.score}/{result.max_score}, {len(result.issues)} issue(s)"
        )
        return result

    def _flag(
        self,
        result: AnalyzerResult,
        issue_type: str,
        message: str,
        impact: str,
        recommendation: str,
        why: str,
        details: Any = None,
    ) -> None:
        """Record one issue and its paired recommendation."""
        result.issues.append(Issue(
            type=issue_type,
            message=message,
            impact=impact,
            category=self.category,
            details=details,
        ))
        result.recommendations.append(Recommendation(
            type=issue_type,
            message=recommendation,
            impact=impact,
            category=self.category,
            details=why,
        ))
