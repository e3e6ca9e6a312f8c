"""Tests for the site crawler."""

import httpx
import pytest

from conftest import html_page, make_site_transport
from seo_audit.config import Config
from seo_audit.crawler import (
    CrawlPolicy,
    CrawlState,
    SiteCrawler,
    extract_page_record,
    normalize_url,
)
from seo_audit.fetcher import FetchResponse

BASE = "https://example.com"


def pages_by_url(result):
    return {page.url: page for page in result.pages.values()}


async def crawl(routes, start=f"{BASE}/", calls=None, **options):
    policy = CrawlPolicy(**options)
    crawler = SiteCrawler(policy, transport=make_site_transport(routes, calls))
    return await crawler.crawl(start)


class TestCrawlPolicy:
    """Test cases for resolving crawl options."""

    def test_defaults_from_config(self):
        """Test configured limits are the defaults."""
        config = Config(max_pages=7, max_depth=2, crawl_timeout_ms=1000, user_agent="Bot/2")
        policy = CrawlPolicy.from_options({}, config)

        assert policy.max_pages == 7
        assert policy.max_depth == 2
        assert policy.timeout_ms == 1000
        assert policy.user_agent == "Bot/2"
        assert policy.follow_redirects is True

    def test_options_override_config(self):
        """Test per-job options win over configuration."""
        policy = CrawlPolicy.from_options(
            {"max_pages": 3, "ignore_robots_txt": True, "max_depth": None, "unknown": 1},
            Config(max_depth=4),
        )

        assert policy.max_pages == 3
        assert policy.ignore_robots_txt is True
        assert policy.max_depth == 4


class TestCrawlState:
    """Test cases for frontier admission."""

    def test_should_crawl(self):
        """Test the visited, depth, host and scheme checks."""
        state = CrawlState.for_seed(f"{BASE}/", CrawlPolicy(max_depth=1))
        state.visited.add(f"{BASE}/seen")

        assert state.should_crawl(f"{BASE}/new", 1)
        assert not state.should_crawl(f"{BASE}/seen", 0)
        assert not state.should_crawl(f"{BASE}/deep", 2)
        assert not state.should_crawl("https://other.com/", 0)
        assert not state.should_crawl("https://sub.example.com/", 0)
        assert not state.should_crawl("ftp://example.com/file", 0)

    def test_enqueue_normalizes_fragment(self):
        """Test fragments are dropped before the visited check."""
        state = CrawlState.for_seed(f"{BASE}/", CrawlPolicy())
        state.visited.add(f"{BASE}/page")

        assert not state.enqueue(f"{BASE}/page#section", 1)
        assert state.enqueue(f"{BASE}/other#top", 1)
        assert state.frontier[-1] == (f"{BASE}/other", 1)

    def test_normalize_url(self):
        """Test fragment removal."""
        assert normalize_url(" https://example.com/a#b ") == "https://example.com/a"


class TestPageExtraction:
    """Test cases for turning HTML into a page record."""

    def test_extract_page_record(self):
        """Test title, meta, headings, links, images and SEO markup."""
        html = html_page(
            head="""
                <link rel="canonical" href="/products">
                <meta name="robots" content="index, follow">
                <meta property="og:title" content="Widgets">
                <meta name="twitter:card" content="summary">
                <link rel="alternate" hreflang="de" href="/de/products">
                <script type="application/ld+json">{"@type": "Product"}</script>
                <script type="application/ld+json">{not json</script>
            """,
            body="""
                <h1 id="top">Widgets</h1>
                <h2>Range</h2>
                <a href="/about" rel="nofollow">About us</a>
                <a href="https://other.com/" target="_blank">Partner</a>
                <img src="/w.png" alt="Widget" width="10" height="10" loading="lazy">
                <img src="/x.png">
            """,
        )
        response = FetchResponse(
            url=f"{BASE}/products",
            final_url=f"{BASE}/products",
            status_code=200,
            headers={"content-type": "text/html"},
            text=html,
            load_time_ms=120,
            ttfb_ms=40,
        )

        page = extract_page_record("id-1", f"{BASE}/products", 1, response)

        assert page.title == "Widgets for Every Workshop"
        assert page.description.startswith("Hand-made widgets")
        assert page.h1 == "Widgets"
        assert page.headings["h1"] == [{"text": "Widgets", "id": "top"}]
        assert page.heading_count() == 2
        assert page.links[0] == {
            "url": f"{BASE}/about",
            "text": "About us",
            "rel": "nofollow",
            "target": None,
            "is_external": False,
        }
        assert page.links[1]["is_external"] is True
        assert page.images[0]["alt"] == "Widget"
        assert page.images[1] == {
            "src": f"{BASE}/x.png", "alt": None, "width": None, "height": None, "loading": None,
        }
        assert page.seo_data.canonical == f"{BASE}/products"
        assert page.seo_data.robots == "index, follow"
        assert page.seo_data.og_tags == {"og:title": "Widgets"}
        assert page.seo_data.twitter_tags == {"twitter:card": "summary"}
        assert page.seo_data.structured_data == [{"@type": "Product"}, {"error": "Invalid JSON"}]
        assert page.seo_data.hreflang == [{"href": f"{BASE}/de/products", "hreflang": "de"}]
        assert page.seo_data.viewport is not None
        assert page.metrics == {"ttfb": 40}
        assert page.load_time_ms == 120
        assert page.redirect is None


class TestSiteCrawler:
    """Test cases for SiteCrawler against a mock site."""

    @pytest.mark.asyncio
    async def test_crawls_internal_links_only(self, simple_site):
        """Test every internal page is visited once and externals are not."""
        calls = []
        result = await crawl(simple_site, calls=calls)
        pages = pages_by_url(result)

        assert set(pages) == {f"{BASE}/", f"{BASE}/a", f"{BASE}/b", f"{BASE}/c"}
        assert result.pages_visited == 4
        assert result.base_url == BASE
        assert not any("other.com" in url for url in calls)
        assert pages[f"{BASE}/c"].depth == 2
        assert all(page.status == "ok" for page in pages.values())

    @pytest.mark.asyncio
    async def test_breadth_first_order(self, simple_site):
        """Test pages are recorded level by level."""
        result = await crawl(simple_site)
        urls = [page.url for page in result.pages.values()]
        assert urls == [f"{BASE}/", f"{BASE}/a", f"{BASE}/b", f"{BASE}/c"]

    @pytest.mark.asyncio
    async def test_max_pages(self, simple_site):
        """Test the page limit stops the crawl."""
        result = await crawl(simple_site, max_pages=1)

        assert result.pages_visited == 1
        assert [page.url for page in result.pages.values()] == [f"{BASE}/"]

    @pytest.mark.asyncio
    async def test_max_depth(self, simple_site):
        """Test links beyond the depth limit are not followed."""
        result = await crawl(simple_site, max_depth=1)
        assert f"{BASE}/c" not in pages_by_url(result)

    @pytest.mark.asyncio
    async def test_fetch_error_is_recorded(self):
        """Test a network failure yields an error record and the crawl goes on."""
        routes = {
            "/": html_page(body='<a href="/broken">Broken</a><a href="/fine">Fine</a>'),
            "/broken": httpx.ConnectError("connection refused"),
            "/fine": html_page(),
        }
        result = await crawl(routes)
        pages = pages_by_url(result)

        broken = pages[f"{BASE}/broken"]
        assert broken.status == "error"
        assert "connection refused" in broken.error["message"]
        assert broken.status_code is None
        assert pages[f"{BASE}/fine"].status == "ok"

    @pytest.mark.asyncio
    async def test_error_status_is_skipped(self):
        """Test a 4xx page is recorded without content extraction."""
        routes = {"/": html_page(body='<a href="/gone">Gone</a>')}
        result = await crawl(routes)

        gone = pages_by_url(result)[f"{BASE}/gone"]
        assert gone.status == "skipped"
        assert gone.status_code == 404
        assert gone.title is None

    @pytest.mark.asyncio
    async def test_non_html_is_skipped(self):
        """Test non-HTML responses are recorded but not parsed."""
        routes = {
            "/": html_page(body='<a href="/brochure.pdf">Brochure</a>'),
            "/brochure.pdf": (200, {"content-type": "application/pdf"}, "%PDF-1.4"),
        }
        result = await crawl(routes)

        pdf = pages_by_url(result)[f"{BASE}/brochure.pdf"]
        assert pdf.status == "skipped"
        assert pdf.content_type == "application/pdf"
        assert pdf.links == []

    @pytest.mark.asyncio
    async def test_robots_disallow(self):
        """Test disallowed paths are never fetched."""
        calls = []
        routes = {
            "/robots.txt": (200, {"content-type": "text/plain"}, "User-agent: *\nDisallow: /private\n"),
            "/": html_page(body='<a href="/private/a">Private</a><a href="/public">Public</a>'),
            "/public": html_page(),
            "/private/a": html_page(),
        }
        result = await crawl(routes, calls=calls)
        pages = pages_by_url(result)

        assert f"{BASE}/public" in pages
        assert f"{BASE}/private/a" not in pages
        assert f"{BASE}/private/a" not in calls

    @pytest.mark.asyncio
    async def test_ignore_robots_txt(self):
        """Test robots.txt is neither fetched nor applied when ignored."""
        calls = []
        routes = {
            "/robots.txt": (200, {"content-type": "text/plain"}, "User-agent: *\nDisallow: /\n"),
            "/": html_page(),
        }
        result = await crawl(routes, calls=calls, ignore_robots_txt=True)

        assert f"{BASE}/" in pages_by_url(result)
        assert f"{BASE}/robots.txt" not in calls

    @pytest.mark.asyncio
    async def test_robots_blocking_seed(self):
        """Test a seed disallowed by robots.txt yields an empty crawl."""
        routes = {
            "/robots.txt": (200, {"content-type": "text/plain"}, "User-agent: *\nDisallow: /\n"),
            "/": html_page(),
        }
        result = await crawl(routes)

        assert result.pages == {}
        assert result.pages_visited == 0

    @pytest.mark.asyncio
    async def test_followed_redirect(self):
        """Test a followed redirect records the final URL and first hop status."""
        routes = {
            "/old": (302, {"location": "/new"}, ""),
            "/new": html_page(),
        }
        result = await crawl(routes, start=f"{BASE}/old")

        page = pages_by_url(result)[f"{BASE}/old"]
        assert page.status == "ok"
        assert page.status_code == 200
        assert page.redirect == f"{BASE}/new"
        assert page.redirect_status == 302

    @pytest.mark.asyncio
    async def test_unfollowed_redirect(self):
        """Test an unfollowed redirect is recorded and its target crawled."""
        routes = {
            "/old": (301, {"location": "/new"}, ""),
            "/new": html_page(),
        }
        result = await crawl(routes, start=f"{BASE}/old", follow_redirects=False)
        pages = pages_by_url(result)

        old = pages[f"{BASE}/old"]
        assert old.status == "skipped"
        assert old.status_code == 301
        assert old.redirect == f"{BASE}/new"
        assert old.redirect_status == 301
        assert pages[f"{BASE}/new"].depth == 1

    @pytest.mark.asyncio
    async def test_sitemap_seeding(self):
        """Test sitemap URLs are crawled even when nothing links to them."""
        sitemap = f"""<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
            <url><loc>{BASE}/orphan</loc></url>
            <url><loc>https://other.com/elsewhere</loc></url>
        </urlset>"""
        routes = {
            "/robots.txt": (200, {"content-type": "text/plain"}, f"Sitemap: {BASE}/pages.xml\n"),
            "/pages.xml": (200, {"content-type": "application/xml"}, sitemap),
            "/": html_page(),
            "/orphan": html_page(),
        }
        result = await crawl(routes, use_sitemap=True)
        pages = pages_by_url(result)

        assert pages[f"{BASE}/orphan"].depth == 1
        assert "https://other.com/elsewhere" not in pages
        assert result.sitemap_urls == [f"{BASE}/pages.xml"]

    @pytest.mark.asyncio
    async def test_sitemap_fallback_location(self):
        """Test /sitemap.xml is tried when robots.txt names no sitemap."""
        routes = {
            "/sitemap.xml": (
                200,
                {"content-type": "application/xml"},
                f"<urlset><url><loc>{BASE}/orphan</loc></url></urlset>",
            ),
            "/": html_page(),
            "/orphan": html_page(),
        }
        result = await crawl(routes, use_sitemap=True)
        assert f"{BASE}/orphan" in pages_by_url(result)

    @pytest.mark.asyncio
    async def test_without_sitemap_option(self):
        """Test sitemaps are not read unless requested."""
        calls = []
        routes = {"/": html_page(), "/sitemap.xml": (200, {}, "<urlset/>")}
        await crawl(routes, calls=calls)
        assert f"{BASE}/sitemap.xml" not in calls

    @pytest.mark.asyncio
    async def test_custom_page_fetcher(self, simple_site):
        """Test an injected page fetcher replaces HTTP page fetches."""

        class StubFetcher:
            def __init__(self):
                self.closed = False

            async def fetch(self, url):
                return FetchResponse(
                    url=url, final_url=url, status_code=200,
                    headers={"content-type": "text/html"}, text=html_page(),
                )

            async def close(self):
                self.closed = True

        fetcher = StubFetcher()
        crawler = SiteCrawler(
            CrawlPolicy(), transport=make_site_transport({}), page_fetcher=fetcher,
        )
        result = await crawler.crawl(f"{BASE}/")

        assert result.pages_visited == 1
        assert fetcher.closed
