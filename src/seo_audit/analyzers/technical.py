"""HTTP status, redirect, URL hygiene, speed and mobile checks."""

import logging
import re
from urllib.parse import urlparse

from seo_audit.constants import CATEGORY_TECHNICAL, IMPACT_HIGH, IMPACT_LOW, IMPACT_MEDIUM
from seo_audit.models import AnalyzerResult, PageRecord
from seo_audit.analyzers.base import BaseAnalyzer

logger = logging.getLogger(__name__)

PERMANENT_REDIRECT_CODES = (301, 308)
SPECIAL_CHARS = re.compile(r"[^\w\-./]", re.ASCII)


class TechnicalAnalyzer(BaseAnalyzer):
    """Checks transport and URL-level signals of one page."""

    category = CATEGORY_TECHNICAL

    def _run_checks(self, page: PageRecord, result: AnalyzerResult, options: dict) -> None:
        self._check_http_status(page, result)
        self._check_redirects(page, result)
        self._check_url(page, result)
        self._check_page_speed(page, result)
        self._check_mobile_friendliness(page, result)

    def _check_http_status(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 1
        status = page.status_code

        if not status:
            self._flag(
                result, "unknown_status",
                "Page status code is unknown", IMPACT_HIGH,
                "Investigate why the page status code could not be determined",
                "A proper HTTP status code is essential for search engines to understand how to handle the page.",
            )
        elif status >= 400:
            self._flag(
                result, "error_status",
                f"Page returned error status code {status}", IMPACT_HIGH,
                f"Fix the {status} error on this page",
                "Error pages are not indexed by search engines and create a poor user experience.",
                {"status_code": status},
            )
        elif 300 <= status < 400:
            pass  # reported by _check_redirects
        elif status != 200:
            self._flag(
                result, "non_standard_status",
                f"Page returned non-standard status code {status}", IMPACT_MEDIUM,
                f"Review why the page is returning status code {status}",
                "Non-standard status codes may cause unexpected behavior with search engines.",
                {"status_code": status},
            )

    def _check_redirects(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 1
        status = page.status_code or 0

        if 300 <= status < 400:
            self._flag(
                result, "redirect",
                f"Page is a {status} redirect", IMPACT_MEDIUM,
                "Update internal links to point directly to the destination URL",
                "Redirects add additional page load time and reduce the SEO value passed to the destination page.",
                {"status_code": status, "redirect_to": page.redirect or "Unknown destination"},
            )

        redirect_status = page.redirect_status or status
        if page.redirect and redirect_status not in PERMANENT_REDIRECT_CODES:
            self._flag(
                result, "non_permanent_redirect",
                f"Page uses a temporary redirect ({redirect_status}) instead of a permanent redirect",
                IMPACT_MEDIUM,
                "Change temporary redirects to permanent (301) redirects for SEO value",
                "Permanent redirects (301) pass more SEO value to the destination URL than temporary redirects.",
                {"status_code": redirect_status, "redirect_to": page.redirect},
            )

    def _check_url(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 2
        try:
            parsed = urlparse(page.url)
        except ValueError as e:
            logger.warning(f"Error parsing URL {page.url}: {e}")
            return
        path = parsed.path

        if len(page.url) > self.thresholds.max_url_length:
            self._flag(
                result, "url_too_long",
                "URL is too long", IMPACT_LOW,
                "Consider shortening the URL",
                "Shorter URLs are easier to share, remember, and are generally preferred for SEO.",
                {"url": page.url, "length": len(page.url)},
            )

        if parsed.query:
            self._flag(
                result, "url_has_parameters",
                "URL contains query parameters", IMPACT_LOW,
                "Consider using URL rewriting for cleaner URLs without parameters",
                "URLs with parameters may cause duplicate content issues and are less user-friendly.",
                {"parameters": f"?{parsed.query}"},
            )

        if any(char.isupper() for char in path):
            self._flag(
                result, "url_uppercase",
                "URL contains uppercase letters", IMPACT_LOW,
                "Convert URLs to lowercase",
                "Mixed-case URLs can create duplicate content issues as some servers treat them as different URLs.",
                {"pathname": path},
            )

        if SPECIAL_CHARS.search(path):
            self._flag(
                result, "url_special_chars",
                "URL contains special characters", IMPACT_LOW,
                "Remove special characters from URLs",
                "Special characters in URLs can cause encoding issues and are less user-friendly.",
                {"pathname": path},
            )

        if "//" in path:
            self._flag(
                result, "url_multiple_slashes",
                "URL contains multiple consecutive slashes", IMPACT_LOW,
                "Fix URLs with multiple consecutive slashes",
                "Multiple slashes in URLs can create duplicate content issues as they might be treated as different URLs.",
                {"pathname": path},
            )

    def _check_page_speed(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 3
        load_time = page.load_time_ms

        if load_time and load_time > self.thresholds.slow_page_ms:
            self._flag(
                result, "slow_page_load",
                f"Page load time is slow ({round(load_time)}ms)", IMPACT_HIGH,
                f"Improve page load time to under {self.thresholds.slow_page_ms / 1000:g} seconds",
                "Slow page load times negatively impact user experience and SEO.",
                {"load_time_ms": load_time},
            )

        metrics = page.metrics or {}
        ttfb = metrics.get("ttfb")
        if ttfb and ttfb > self.thresholds.ttfb_ms:
            self._flag(
                result, "high_ttfb",
                f"Time to First Byte (TTFB) is high ({ttfb}ms)", IMPACT_MEDIUM,
                "Improve server response time to reduce TTFB",
                "High TTFB indicates server performance issues that can impact both user experience and SEO.",
                {"ttfb": ttfb},
            )

        dom_content_loaded = metrics.get("dom_content_loaded")
        if dom_content_loaded and dom_content_loaded > self.thresholds.dom_content_loaded_ms:
            self._flag(
                result, "slow_dom_content_loaded",
                f"DOM Content Loaded time is slow ({dom_content_loaded}ms)", IMPACT_MEDIUM,
                "Optimize critical rendering path to improve content loading time",
                "Slow DOM content loading impacts how quickly users can see and interact with your page.",
                {"dom_content_loaded": dom_content_loaded},
            )

    def _check_mobile_friendliness(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 1

        if not page.seo_data.viewport:
            self._flag(
                result, "potentially_not_mobile_friendly",
                "Page may not be mobile-friendly", IMPACT_HIGH,
                "Ensure the page is mobile-friendly with responsive design",
                "Mobile-friendliness is a major ranking factor for mobile search results.",
            )
