"""Breadth-first site crawler producing immutable page records."""

import json
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urldefrag, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from seo_audit.config import Config
from seo_audit.constants import (
    DEFAULT_CRAWL_DEPTH,
    DEFAULT_CRAWL_TIMEOUT_MS,
    DEFAULT_MAX_PAGES_TO_CRAWL,
    DEFAULT_USER_AGENT,
    MAX_SITEMAP_URLS,
    PAGE_STATUS_ERROR,
    PAGE_STATUS_OK,
    PAGE_STATUS_SKIPPED,
)
from seo_audit.exceptions import FetchError
from seo_audit.fetcher import BrowserFetcher, FetchResponse, HttpFetcher
from seo_audit.models import CrawlResult, PageRecord, SeoData
from seo_audit.robots import RobotsRules, parse_sitemap_xml

logger = logging.getLogger(__name__)

# Per-job crawl options and the types they accept
CRAWL_OPTION_TYPES = {
    "max_pages": int,
    "max_depth": int,
    "timeout_ms": int,
    "user_agent": str,
    "follow_redirects": bool,
    "ignore_robots_txt": bool,
    "render_js": bool,
    "use_sitemap": bool,
}

Fetcher = Union[HttpFetcher, BrowserFetcher]


def normalize_url(url: str) -> str:
    """Drop the fragment from a URL."""
    return urldefrag(url.strip()).url


@dataclass
class CrawlPolicy:
    """Limits and switches for one crawl."""

    max_pages: int = DEFAULT_MAX_PAGES_TO_CRAWL
    max_depth: int = DEFAULT_CRAWL_DEPTH
    timeout_ms: int = DEFAULT_CRAWL_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT
    follow_redirects: bool = True
    ignore_robots_txt: bool = False
    render_js: bool = False
    use_sitemap: bool = False

    @classmethod
    def from_options(
        cls, options: Optional[dict] = None, config: Optional[Config] = None
    ) -> "CrawlPolicy":
        """Resolve per-job options over configured defaults.

        Args:
            options: Job options (keys from CRAWL_OPTION_TYPES); unknown keys
                are ignored
            config: Source of default limits; falls back to Config()

        Returns:
            CrawlPolicy for the job
        """
        config = config or Config()
        options = options or {}
        policy = cls(
            max_pages=config.max_pages,
            max_depth=config.max_depth,
            timeout_ms=config.crawl_timeout_ms,
            user_agent=config.user_agent,
        )
        for name in CRAWL_OPTION_TYPES:
            if options.get(name) is not None:
                setattr(policy, name, options[name])
        return policy


@dataclass
class CrawlState:
    """Frontier and visited-set owned by a single crawl invocation."""

    policy: CrawlPolicy
    seed_url: str
    base_hostname: str
    frontier: deque = field(default_factory=deque)
    visited: set[str] = field(default_factory=set)
    pages: dict[str, PageRecord] = field(default_factory=dict)
    robots: Optional[RobotsRules] = None
    sitemap_urls: list[str] = field(default_factory=list)

    @classmethod
    def for_seed(cls, seed_url: str, policy: CrawlPolicy) -> "CrawlState":
        state = cls(
            policy=policy,
            seed_url=seed_url,
            base_hostname=urlparse(seed_url).hostname or "",
        )
        state.frontier.append((seed_url, 0))
        return state

    def should_crawl(self, url: str, depth: int) -> bool:
        """Check, in order: visited, depth, host, scheme, robots rules."""
        if url in self.visited:
            return False
        if depth > self.policy.max_depth:
            return False

        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            logger.warning(f"Invalid URL encountered: {url}")
            return False

        if hostname != self.base_hostname:
            return False
        if parsed.scheme not in ("http", "https"):
            return False
        if self.robots is not None and not self.policy.ignore_robots_txt:
            return self.robots.is_allowed(url, self.policy.user_agent)
        return True

    def enqueue(self, url: str, depth: int) -> bool:
        url = normalize_url(url)
        if self.should_crawl(url, depth):
            self.frontier.append((url, depth))
            return True
        return False


def _text(tag) -> str:
    return tag.get_text(" ", strip=True) if tag else ""


def _first_meta(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    return tag.get("content") if tag else None


def extract_seo_data(soup: BeautifulSoup, page_url: str) -> SeoData:
    """Collect canonical, robots, social and structured data markup."""
    canonical_tag = soup.find("link", rel="canonical")
    canonical = urljoin(page_url, canonical_tag["href"]) if canonical_tag and canonical_tag.get("href") else None

    og_tags = {}
    for meta in soup.find_all("meta", property=True):
        if meta["property"].startswith("og:"):
            og_tags[meta["property"]] = meta.get("content", "")

    twitter_tags = {}
    for meta in soup.find_all("meta", attrs={"name": lambda x: x and x.startswith("twitter:")}):
        twitter_tags[meta["name"]] = meta.get("content", "")

    structured_data = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            structured_data.append(json.loads(script.string or ""))
        except ValueError:
            structured_data.append({"error": "Invalid JSON"})

    hreflang = [
        {"href": urljoin(page_url, link.get("href", "")), "hreflang": link.get("hreflang")}
        for link in soup.find_all("link", rel="alternate", hreflang=True)
    ]

    amp_tag = soup.find("link", rel="amphtml")

    return SeoData(
        canonical=canonical,
        robots=_first_meta(soup, name="robots"),
        og_tags=og_tags,
        twitter_tags=twitter_tags,
        structured_data=structured_data,
        hreflang=hreflang,
        amp_link=urljoin(page_url, amp_tag["href"]) if amp_tag and amp_tag.get("href") else None,
        viewport=_first_meta(soup, name="viewport"),
    )


def extract_page_record(
    page_id: str, url: str, depth: int, response: FetchResponse
) -> PageRecord:
    """Parse an HTML response into a full PageRecord."""
    soup = BeautifulSoup(response.text, "html.parser")
    page_url = response.final_url
    page_host = urlparse(page_url).hostname

    headings = {}
    for level in range(1, 7):
        headings[f"h{level}"] = [
            {"text": _text(tag), "id": tag.get("id")}
            for tag in soup.find_all(f"h{level}")
        ]

    links = []
    for anchor in soup.find_all("a", href=True):
        absolute_url = urljoin(page_url, anchor["href"])
        try:
            link_host = urlparse(absolute_url).hostname
        except ValueError:
            continue
        rel = anchor.get("rel")
        links.append({
            "url": absolute_url,
            "text": _text(anchor),
            "rel": " ".join(rel) if isinstance(rel, list) else rel,
            "target": anchor.get("target"),
            "is_external": link_host != page_host,
        })

    images = [
        {
            "src": urljoin(page_url, img["src"]) if img.get("src") else None,
            "alt": img.get("alt") or None,
            "width": img.get("width") or None,
            "height": img.get("height") or None,
            "loading": img.get("loading"),
        }
        for img in soup.find_all("img")
    ]

    title_tag = soup.find("title")
    redirected = response.final_url != url

    return PageRecord(
        id=page_id,
        url=url,
        depth=depth,
        status=PAGE_STATUS_OK,
        status_code=response.status_code,
        content_type=response.content_type,
        title=title_tag.get_text(strip=True) if title_tag else None,
        description=_first_meta(soup, name="description"),
        h1=headings["h1"][0]["text"] if headings["h1"] else None,
        headings=headings,
        links=links,
        images=images,
        seo_data=extract_seo_data(soup, page_url),
        metrics=response.metrics,
        load_time_ms=response.load_time_ms,
        redirect=response.final_url if redirected else None,
        redirect_status=response.redirect_status if redirected else None,
    )


class SiteCrawler:
    """Crawls one site breadth-first within a CrawlPolicy.

    Each call to crawl() owns a fresh CrawlState, so a crawler instance can be
    reused. Page fetches are issued one at a time.
    """

    def __init__(
        self,
        policy: Optional[CrawlPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        page_fetcher: Optional[Fetcher] = None,
    ):
        """Initialize the crawler.

        Args:
            policy: Crawl limits and switches
            transport: Optional httpx transport for every HTTP request
            page_fetcher: Optional fetcher used for pages instead of the one
                chosen by ``policy.render_js``
        """
        self.policy = policy or CrawlPolicy()
        self.transport = transport
        self.page_fetcher = page_fetcher

    async def crawl(self, start_url: str) -> CrawlResult:
        """Crawl a site starting at start_url.

        Args:
            start_url: Seed URL

        Returns:
            CrawlResult with every page record keyed by page id
        """
        start = time.perf_counter()
        seed_url = normalize_url(start_url)
        state = CrawlState.for_seed(seed_url, self.policy)
        parsed = urlparse(seed_url)
        base_url = f"{parsed.scheme}://{parsed.netloc}"

        logger.info(
            f"Starting crawl of {seed_url} "
            f"(max_pages={self.policy.max_pages}, max_depth={self.policy.max_depth})"
        )

        http = HttpFetcher(
            user_agent=self.policy.user_agent,
            timeout_ms=self.policy.timeout_ms,
            follow_redirects=self.policy.follow_redirects,
            transport=self.transport,
        )
        fetcher = self.page_fetcher or self._make_page_fetcher(http)

        try:
            if not self.policy.ignore_robots_txt:
                await self._load_robots_txt(state, http, base_url)
            if self.policy.use_sitemap:
                await self._seed_from_sitemaps(state, http, base_url)

            while state.frontier and len(state.visited) < self.policy.max_pages:
                url, depth = state.frontier.popleft()
                if not state.should_crawl(url, depth):
                    continue
                state.visited.add(url)
                await self._crawl_page(state, fetcher, url, depth)
        finally:
            if fetcher is not http:
                await fetcher.close()
            await http.close()

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"Crawl completed in {duration_ms}ms: {len(state.visited)} page(s) visited")

        return CrawlResult(
            base_url=base_url,
            pages_visited=len(state.visited),
            duration_ms=duration_ms,
            pages=state.pages,
            sitemap_urls=state.sitemap_urls,
        )

    def _make_page_fetcher(self, http: HttpFetcher) -> Fetcher:
        if self.policy.render_js:
            return BrowserFetcher(
                user_agent=self.policy.user_agent,
                timeout_ms=self.policy.timeout_ms,
            )
        return http

    async def _load_robots_txt(
        self, state: CrawlState, http: HttpFetcher, base_url: str
    ) -> None:
        """Load robots.txt; a missing or unreachable file means no rules."""
        robots_url = f"{base_url}/robots.txt"
        content = await http.fetch_text(robots_url)
        if content is None:
            return

        state.robots = RobotsRules.parse(content)
        state.sitemap_urls = list(state.robots.sitemaps)
        logger.info(f"Loaded robots.txt from {robots_url}")

        if not state.robots.is_allowed(state.seed_url, self.policy.user_agent):
            logger.warning(f"robots.txt blocks crawling of {state.seed_url}")

    async def _seed_from_sitemaps(
        self, state: CrawlState, http: HttpFetcher, base_url: str
    ) -> None:
        """Seed same-host sitemap URLs at depth 1, following one index level."""
        sitemaps = list(state.sitemap_urls) or [f"{base_url}/sitemap.xml"]
        page_urls: list[str] = []

        for sitemap_url in sitemaps:
            content = await http.fetch_text(sitemap_url)
            if content is None:
                continue
            urls, children = parse_sitemap_xml(content)
            page_urls.extend(urls)
            for child_url in children:
                child_content = await http.fetch_text(child_url)
                if child_content is not None:
                    page_urls.extend(parse_sitemap_xml(child_content)[0])
            if sitemap_url not in state.sitemap_urls:
                state.sitemap_urls.append(sitemap_url)

        seeded = 0
        for url in page_urls:
            if seeded >= MAX_SITEMAP_URLS:
                break
            if state.enqueue(url, 1):
                seeded += 1

        if seeded:
            logger.info(f"Seeded {seeded} URL(s) from sitemap")

    async def _crawl_page(
        self, state: CrawlState, fetcher: Fetcher, url: str, depth: int
    ) -> None:
        """Fetch one page, record it and enqueue its internal links."""
        page_id = uuid.uuid4().hex
        logger.debug(f"Crawling page: {url} (depth {depth})")

        try:
            response = await fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"Error crawling {url}: {e.message}")
            state.pages[page_id] = PageRecord(
                id=page_id,
                url=url,
                depth=depth,
                status=PAGE_STATUS_ERROR,
                error={"message": e.message},
            )
            return

        if response.is_redirect:
            # Redirects reach here only when they are not followed
            target = urljoin(url, response.location)
            state.pages[page_id] = PageRecord(
                id=page_id,
                url=url,
                depth=depth,
                status=PAGE_STATUS_SKIPPED,
                status_code=response.status_code,
                content_type=response.content_type,
                load_time_ms=response.load_time_ms,
                metrics=response.metrics,
                redirect=target,
                redirect_status=response.status_code,
            )
            state.enqueue(target, depth + 1)
            return

        if not response.is_html or response.status_code >= 400:
            logger.debug(
                f"Skipping content extraction for {url} "
                f"(status {response.status_code}, type {response.content_type})"
            )
            state.pages[page_id] = PageRecord(
                id=page_id,
                url=url,
                depth=depth,
                status=PAGE_STATUS_SKIPPED,
                status_code=response.status_code,
                content_type=response.content_type,
                load_time_ms=response.load_time_ms,
                metrics=response.metrics,
            )
            return

        record = extract_page_record(page_id, url, depth, response)
        state.pages[page_id] = record

        queued = 0
        for link in record.links:
            if not link["is_external"] and state.enqueue(link["url"], depth + 1):
                queued += 1

        logger.debug(
            f"Completed crawling page: {url} "
            f"(status {record.status_code}, {len(record.links)} links, {queued} queued)"
        )
