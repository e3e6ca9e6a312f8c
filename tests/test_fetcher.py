"""Tests for the HTTP fetch strategy."""

import httpx
import pytest

from conftest import html_page, make_site_transport
from seo_audit.exceptions import FetchError
from seo_audit.fetcher import FetchResponse, HttpFetcher

BASE = "https://example.com"


class TestFetchResponse:
    """Test cases for FetchResponse helpers."""

    def test_redirect_and_html_flags(self):
        """Test redirect detection needs both a 3xx status and a location."""
        redirect = FetchResponse(url=BASE, final_url=BASE, status_code=301, headers={"location": "/new"})
        bare_304 = FetchResponse(url=BASE, final_url=BASE, status_code=304)
        page = FetchResponse(
            url=BASE, final_url=BASE, status_code=200,
            headers={"content-type": "Text/HTML; charset=utf-8"},
        )

        assert redirect.is_redirect
        assert not bare_304.is_redirect
        assert page.is_html
        assert not redirect.is_html

    def test_metrics(self):
        """Test only measured timings are reported."""
        response = FetchResponse(url=BASE, final_url=BASE, status_code=200, ttfb_ms=12)
        assert response.metrics == {"ttfb": 12}


class TestHttpFetcher:
    """Test cases for HttpFetcher."""

    @pytest.mark.asyncio
    async def test_fetch(self):
        """Test a plain page fetch."""
        fetcher = HttpFetcher(transport=make_site_transport({"/": html_page()}))
        response = await fetcher.fetch(f"{BASE}/")
        await fetcher.close()

        assert response.status_code == 200
        assert response.is_html
        assert "<title>" in response.text
        assert response.ttfb_ms is not None
        assert response.load_time_ms >= response.ttfb_ms
        assert response.redirect_chain == []

    @pytest.mark.asyncio
    async def test_sends_user_agent(self):
        """Test the configured User-Agent header is sent."""
        seen = {}

        def handler(request):
            seen["user_agent"] = request.headers["user-agent"]
            return httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html></html>")

        fetcher = HttpFetcher(user_agent="TestBot/1.0", transport=httpx.MockTransport(handler))
        await fetcher.fetch(f"{BASE}/")
        await fetcher.close()

        assert seen["user_agent"] == "TestBot/1.0"

    @pytest.mark.asyncio
    async def test_redirect_chain(self):
        """Test followed redirects record every hop and the first status."""
        routes = {
            "/a": (308, {"location": "/b"}, ""),
            "/b": (302, {"location": "/c"}, ""),
            "/c": html_page(),
        }
        fetcher = HttpFetcher(transport=make_site_transport(routes))
        response = await fetcher.fetch(f"{BASE}/a")
        await fetcher.close()

        assert response.final_url == f"{BASE}/c"
        assert response.redirect_chain == [f"{BASE}/a", f"{BASE}/b"]
        assert response.redirect_status == 308

    @pytest.mark.asyncio
    async def test_timeout_becomes_fetch_error(self):
        """Test timeouts are reported as FetchError."""
        fetcher = HttpFetcher(
            timeout_ms=1500,
            transport=make_site_transport({"/": httpx.ReadTimeout("timed out")}),
        )
        with pytest.raises(FetchError, match="Timeout after 1500ms"):
            await fetcher.fetch(f"{BASE}/")
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_fetch_text(self):
        """Test auxiliary fetches return the body only for a 200."""
        routes = {
            "/robots.txt": (200, {"content-type": "text/plain"}, "User-agent: *"),
            "/down.txt": httpx.ConnectError("refused"),
        }
        fetcher = HttpFetcher(transport=make_site_transport(routes))

        assert await fetcher.fetch_text(f"{BASE}/robots.txt") == "User-agent: *"
        assert await fetcher.fetch_text(f"{BASE}/missing.txt") is None
        assert await fetcher.fetch_text(f"{BASE}/down.txt") is None
        await fetcher.close()
