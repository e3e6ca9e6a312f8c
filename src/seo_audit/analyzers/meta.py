"""Title, description, canonical, robots and social meta checks."""

from urllib.parse import urlparse

from seo_audit.constants import CATEGORY_META, IMPACT_HIGH, IMPACT_LOW, IMPACT_MEDIUM
from seo_audit.models import AnalyzerResult, PageRecord
from seo_audit.analyzers.base import BaseAnalyzer

GENERIC_TITLE_FRAGMENTS = ("untitled", "new page")
GENERIC_TITLES = ("Home",)
GENERIC_DESCRIPTION_FRAGMENTS = ("welcome to", "this is a website")
REQUIRED_OG_TAGS = ("og:title", "og:description", "og:image", "og:url")


class MetaAnalyzer(BaseAnalyzer):
    """Checks head metadata: title, description, canonical and social tags."""

    category = CATEGORY_META

    def _run_checks(self, page: PageRecord, result: AnalyzerResult, options: dict) -> None:
        self._check_title(page, result)
        self._check_description(page, result)
        self._check_canonical(page, result)
        self._check_robots_meta(page, result)
        self._check_open_graph(page, result)
        self._check_twitter_card(page, result)

    def _check_title(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 3
        title = page.title

        if not title:
            self._flag(
                result, "missing_title",
                "Page is missing a title tag", IMPACT_HIGH,
                "Add a title tag to the page",
                "Title tags are crucial for SEO and are displayed in search results.",
            )
            return

        details = {"title": title, "length": len(title)}
        if len(title) < self.thresholds.title_min:
            self._flag(
                result, "title_too_short",
                f"Page title is too short (less than {self.thresholds.title_min} characters)",
                IMPACT_MEDIUM,
                "Expand the page title to be more descriptive",
                "Short titles may not provide enough context for search engines and users.",
                details,
            )
        elif len(title) > self.thresholds.title_max:
            self._flag(
                result, "title_too_long",
                f"Page title is too long (more than {self.thresholds.title_max} characters)",
                IMPACT_LOW,
                f"Consider shortening the page title to under {self.thresholds.title_max} characters",
                "Long titles may be truncated in search results, potentially hiding important information.",
                details,
            )

        lowered = title.lower()
        if any(fragment in lowered for fragment in GENERIC_TITLE_FRAGMENTS) or title in GENERIC_TITLES:
            self._flag(
                result, "generic_title",
                "Page has a generic or default title", IMPACT_MEDIUM,
                "Replace the generic title with a descriptive one",
                "Generic titles don't help users or search engines understand what the page is about.",
                {"title": title},
            )

    def _check_description(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 3
        description = page.description

        if not description:
            self._flag(
                result, "missing_meta_description",
                "Page is missing a meta description", IMPACT_MEDIUM,
                "Add a meta description to the page",
                "Meta descriptions are often shown in search results and influence click-through rates.",
            )
            return

        details = {"description": description, "length": len(description)}
        if len(description) < self.thresholds.meta_description_min:
            self._flag(
                result, "description_too_short",
                f"Meta description is too short (less than {self.thresholds.meta_description_min} characters)",
                IMPACT_LOW,
                "Expand the meta description to be more descriptive",
                "Short descriptions may not provide enough information to attract clicks from search results.",
                details,
            )
        elif len(description) > self.thresholds.meta_description_max:
            self._flag(
                result, "description_too_long",
                f"Meta description is too long (more than {self.thresholds.meta_description_max} characters)",
                IMPACT_LOW,
                f"Consider shortening the meta description to under {self.thresholds.meta_description_max} characters",
                "Long descriptions may be truncated in search results, potentially hiding important information.",
                details,
            )

        lowered = description.lower()
        if any(fragment in lowered for fragment in GENERIC_DESCRIPTION_FRAGMENTS):
            self._flag(
                result, "generic_description",
                "Meta description is generic", IMPACT_MEDIUM,
                "Replace the generic meta description with a specific one",
                "Generic descriptions don't entice users to click through from search results.",
                {"description": description},
            )

    def _check_canonical(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 2
        canonical = page.seo_data.canonical

        if not canonical:
            self._flag(
                result, "missing_canonical",
                "Page is missing a canonical tag", IMPACT_LOW,
                "Add a canonical tag to the page",
                "Canonical tags help prevent duplicate content issues by specifying the preferred URL version.",
            )
            return

        try:
            parsed = urlparse(canonical)
            valid = parsed.scheme in ("http", "https") and bool(parsed.netloc)
        except ValueError:
            valid = False

        if not valid:
            self._flag(
                result, "invalid_canonical",
                "Canonical URL is invalid", IMPACT_MEDIUM,
                "Fix the invalid canonical URL",
                "Invalid canonical URLs can confuse search engines and negate the benefits of canonicalization.",
                {"canonical": canonical},
            )
        elif canonical.rstrip("/") != page.url.rstrip("/"):
            self._flag(
                result, "non_self_canonical",
                "Canonical URL points to a different page", IMPACT_MEDIUM,
                "Review the canonical tag to ensure it's intentionally pointing to another URL",
                "When a page canonicalizes to a different URL, it indicates that the current URL is not the preferred version.",
                {"page_url": page.url, "canonical": canonical},
            )

    def _check_robots_meta(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 1
        robots = page.seo_data.robots
        if not robots:
            return

        value = robots.lower()
        if "noindex" in value or "none" in value:
            self._flag(
                result, "noindex",
                "Page has noindex directive", IMPACT_HIGH,
                "Review if the noindex directive is intentional",
                "Pages with noindex will not be included in search results.",
                {"robots": robots},
            )
        if "nofollow" in value or "none" in value:
            self._flag(
                result, "nofollow",
                "Page has nofollow directive", IMPACT_MEDIUM,
                "Review if the nofollow directive is intentional",
                "Pages with nofollow won't pass link equity to other pages they link to.",
                {"robots": robots},
            )

    def _check_open_graph(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 1
        og_tags = page.seo_data.og_tags or {}
        missing = [tag for tag in REQUIRED_OG_TAGS if not og_tags.get(tag)]

        if missing:
            self._flag(
                result, "missing_og_tags",
                "Page is missing important Open Graph tags", IMPACT_LOW,
                f"Add the following Open Graph tags: {', '.join(missing)}",
                "Open Graph tags improve how content appears when shared on social media platforms.",
                {"missing_tags": missing},
            )

    def _check_twitter_card(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 1
        twitter_tags = page.seo_data.twitter_tags or {}

        if not twitter_tags.get("twitter:card"):
            self._flag(
                result, "missing_twitter_card",
                "Page is missing Twitter card markup", IMPACT_LOW,
                "Add Twitter card markup to the page",
                "Twitter cards help content look better when shared on Twitter.",
            )
