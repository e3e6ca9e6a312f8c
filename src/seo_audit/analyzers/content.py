"""Heading, content, image and link checks."""

import re

from seo_audit.constants import CATEGORY_CONTENT, IMPACT_HIGH, IMPACT_LOW, IMPACT_MEDIUM
from seo_audit.models import AnalyzerResult, PageRecord
from seo_audit.analyzers.base import BaseAnalyzer

GENERIC_LINK_TEXT = re.compile(
    r"click here|read more|learn more|more info|details|link|download", re.IGNORECASE
)

# Characters of the title/H1 compared when checking they match
TITLE_PREFIX_LENGTH = 10


class ContentAnalyzer(BaseAnalyzer):
    """Checks on-page structure: headings, thin content, images and links."""

    category = CATEGORY_CONTENT

    def _run_checks(self, page: PageRecord, result: AnalyzerResult, options: dict) -> None:
        self._check_headings(page, result)
        self._check_content(page, result)
        self._check_images(page, result)
        self._check_links(page, result)

    def _check_headings(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 3
        h1s = page.headings.get("h1", [])

        if not page.h1 or not h1s:
            self._flag(
                result, "missing_h1",
                "Page is missing an H1 heading", IMPACT_HIGH,
                "Add an H1 heading to the page",
                "The H1 heading is a crucial element for both SEO and accessibility.",
            )
        elif len(h1s) > 1:
            self._flag(
                result, "multiple_h1",
                f"Page has multiple H1 headings ({len(h1s)})", IMPACT_MEDIUM,
                "Keep only one H1 heading on the page",
                "Multiple H1 headings can confuse users and search engines about the main topic of the page.",
                {"h1s": [h["text"] for h in h1s]},
            )

        if page.h1 and page.title:
            h1 = page.h1.lower()
            title = page.title.lower()
            if title[:TITLE_PREFIX_LENGTH] not in h1 and h1[:TITLE_PREFIX_LENGTH] not in title:
                self._flag(
                    result, "h1_different_from_title",
                    "H1 heading is significantly different from title", IMPACT_MEDIUM,
                    "Make the H1 heading consistent with the page title",
                    "The H1 and title should be aligned to reinforce the main topic of the page.",
                    {"h1": page.h1, "title": page.title},
                )

        levels = [level for level in range(1, 7) if page.headings.get(f"h{level}")]
        if any(later - earlier > 1 for earlier, later in zip(levels, levels[1:])):
            self._flag(
                result, "skipped_heading_level",
                "Page has skipped heading levels (e.g., H1 to H3 without H2)", IMPACT_LOW,
                "Fix heading hierarchy to follow a proper sequence",
                "Proper heading hierarchy is important for accessibility and helps establish content structure.",
                {"heading_levels": levels},
            )

    def _check_content(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 2

        # Headings, images and links stand in for a body-text measurement
        heading_count = page.heading_count()
        image_count = len(page.images)
        link_count = len(page.links)

        if (
            heading_count <= self.thresholds.thin_content_max_headings
            and image_count < self.thresholds.thin_content_min_images
            and link_count < self.thresholds.thin_content_min_links
        ):
            self._flag(
                result, "thin_content",
                "Page appears to have thin content", IMPACT_HIGH,
                "Add more valuable content to the page",
                "Thin content provides little value to users and typically performs poorly in search results.",
                {"headings": heading_count, "images": image_count, "links": link_count},
            )

        if not page.seo_data.structured_data:
            self._flag(
                result, "missing_structured_data",
                "Page has no structured data", IMPACT_MEDIUM,
                "Add relevant structured data to the page",
                "Structured data helps search engines understand your content and can enable rich results.",
            )

    def _check_images(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 2
        images = page.images
        if not images:
            return

        missing_alt = [img for img in images if not img.get("alt")]
        if missing_alt:
            self._flag(
                result, "images_missing_alt",
                f"{len(missing_alt)} image(s) missing alt text", IMPACT_MEDIUM,
                "Add descriptive alt text to all images",
                "Alt text is essential for accessibility and provides contextual information for search engines.",
                {"count": len(missing_alt), "images": [img.get("src") for img in missing_alt]},
            )

        missing_dimensions = [img for img in images if not img.get("width") or not img.get("height")]
        if missing_dimensions:
            self._flag(
                result, "images_missing_dimensions",
                f"{len(missing_dimensions)} image(s) missing width/height attributes", IMPACT_LOW,
                "Add width and height attributes to images",
                "Specifying image dimensions helps prevent layout shifts during page load.",
                {"count": len(missing_dimensions), "images": [img.get("src") for img in missing_dimensions]},
            )

        eager = [img for img in images if img.get("loading") != "lazy"]
        if len(eager) > self.thresholds.lazy_load_threshold:
            self._flag(
                result, "images_not_lazy_loaded",
                f"{len(eager)} image(s) not using lazy loading", IMPACT_LOW,
                'Add loading="lazy" attribute to images not visible in the initial viewport',
                "Lazy loading improves initial page load time by deferring off-screen images.",
                {"count": len(eager)},
            )

    def _check_links(self, page: PageRecord, result: AnalyzerResult) -> None:
        result.max_score += 3
        links = page.links

        if not links:
            self._flag(
                result, "no_links",
                "Page has no links", IMPACT_MEDIUM,
                "Add relevant internal and external links to the page",
                "Links help users navigate your site and help search engines discover and understand page relationships.",
            )
            return

        empty = [link for link in links if not (link.get("text") or "").strip()]
        if empty:
            self._flag(
                result, "empty_link_text",
                f"{len(empty)} link(s) have empty or missing link text", IMPACT_MEDIUM,
                "Add descriptive text to all links",
                "Links without descriptive text are problematic for accessibility and provide less SEO value.",
                {"count": len(empty), "links": [link["url"] for link in empty]},
            )

        generic = [
            link for link in links
            if link.get("text") and GENERIC_LINK_TEXT.search(link["text"].strip())
        ]
        if len(generic) > self.thresholds.generic_link_threshold:
            self._flag(
                result, "generic_link_text",
                f'{len(generic)} link(s) use generic text like "click here" or "read more"', IMPACT_LOW,
                "Replace generic link text with descriptive text",
                "Descriptive link text helps users and search engines understand where a link will take them.",
                {
                    "count": len(generic),
                    "examples": [{"text": link["text"], "url": link["url"]} for link in generic[:5]],
                },
            )

        external = [link for link in links if link.get("is_external")]
        ratio = len(external) / len(links)
        if external and ratio > self.thresholds.external_link_ratio:
            self._flag(
                result, "excessive_external_links",
                f"Page has a high ratio of external links ({len(external)} of {len(links)})", IMPACT_MEDIUM,
                "Consider reducing the number of external links",
                "Too many external links can dilute the value of your page and send users away from your site.",
                {"external_count": len(external), "total_count": len(links), "ratio": round(ratio, 2)},
            )
