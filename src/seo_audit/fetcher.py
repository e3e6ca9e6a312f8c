"""Page fetch strategies: plain HTTP via httpx and optional headless Playwright."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from seo_audit.constants import (
    BROWSER_VIEWPORT_HEIGHT,
    BROWSER_VIEWPORT_WIDTH,
    DEFAULT_CRAWL_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
    ROBOTS_TIMEOUT_SECONDS,
)
from seo_audit.exceptions import FetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchResponse:
    """Everything the crawler needs from one page request."""

    url: str
    final_url: str
    status_code: int
    headers: dict = field(default_factory=dict)  # lower-cased names
    text: str = ""
    load_time_ms: int = 0
    ttfb_ms: Optional[int] = None
    dom_content_loaded_ms: Optional[int] = None
    redirect_chain: list[str] = field(default_factory=list)
    redirect_status: Optional[int] = None

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def is_html(self) -> bool:
        return "text/html" in (self.content_type or "").lower()

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400 and bool(self.location)

    @property
    def metrics(self) -> dict:
        metrics = {}
        if self.ttfb_ms is not None:
            metrics["ttfb"] = self.ttfb_ms
        if self.dom_content_loaded_ms is not None:
            metrics["dom_content_loaded"] = self.dom_content_loaded_ms
        return metrics


class HttpFetcher:
    """Fetch pages with a shared httpx.AsyncClient.

    The body is streamed so time-to-first-byte (response headers received)
    and total load time can be measured separately.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_ms: int = DEFAULT_CRAWL_TIMEOUT_MS,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the fetcher.

        Args:
            user_agent: User-Agent header sent with every request
            timeout_ms: Per-request timeout in milliseconds
            follow_redirects: Whether 3xx responses are followed
            transport: Optional httpx transport (e.g. MockTransport in tests)
        """
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.follow_redirects = follow_redirects
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
                },
                timeout=self.timeout_ms / 1000,
                follow_redirects=self.follow_redirects,
                transport=self.transport,
            )
        return self._client

    async def fetch(self, url: str) -> FetchResponse:
        """Fetch one page.

        Raises:
            FetchError: On network failure or timeout.
        """
        client = self._get_client()
        start = time.perf_counter()

        try:
            async with client.stream("GET", url) as response:
                ttfb_ms = int((time.perf_counter() - start) * 1000)
                await response.aread()
                load_time_ms = int((time.perf_counter() - start) * 1000)

                history = list(response.history)
                return FetchResponse(
                    url=url,
                    final_url=str(response.url),
                    status_code=response.status_code,
                    headers={k.lower(): v for k, v in response.headers.items()},
                    text=response.text,
                    load_time_ms=load_time_ms,
                    ttfb_ms=ttfb_ms,
                    redirect_chain=[str(r.url) for r in history],
                    redirect_status=history[0].status_code if history else None,
                )
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout after {self.timeout_ms}ms fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching {url}: {e}", url=url) from e

    async def fetch_text(
        self, url: str, timeout: float = ROBOTS_TIMEOUT_SECONDS
    ) -> Optional[str]:
        """Fetch a small auxiliary resource (robots.txt, sitemap).

        Returns:
            The body for a 200 response, otherwise None. Network errors also
            yield None; the caller carries on without the resource.
        """
        client = self._get_client()
        try:
            response = await client.get(url, timeout=timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch {url}: {e}")
            return None

        if response.status_code != 200:
            logger.info(f"No resource at {url} (status: {response.status_code})")
            return None
        return response.text

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class BrowserFetcher:
    """Render pages with headless Chromium through Playwright.

    Playwright is an optional dependency and is only imported when the first
    page is fetched. Redirects are always followed by the browser.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_ms: int = DEFAULT_CRAWL_TIMEOUT_MS,
    ):
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None

    async def _launch(self) -> None:
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "playwright is required for JavaScript rendering. "
                "Install it with: pip install 'seo-audit[browser]' && playwright install chromium"
            )

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True)
        self._context = await self._browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": BROWSER_VIEWPORT_WIDTH, "height": BROWSER_VIEWPORT_HEIGHT},
        )
        logger.debug("Headless browser launched")

    async def fetch(self, url: str) -> FetchResponse:
        """Navigate to url and capture the rendered DOM and timing metrics.

        Raises:
            FetchError: On navigation failure or timeout.
        """
        from playwright.async_api import Error as PlaywrightError

        if self._context is None:
            await self._launch()

        page = await self._context.new_page()
        start = time.perf_counter()
        try:
            response = await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
            load_time_ms = int((time.perf_counter() - start) * 1000)
            if response is None:
                raise FetchError(f"No response received for {url}", url=url)

            timing = await page.evaluate(
                """() => {
                    const t = window.performance && window.performance.timing;
                    if (!t) return {};
                    return {
                        ttfb: t.responseStart - t.navigationStart,
                        dom_content_loaded: t.domContentLoadedEventEnd - t.navigationStart,
                    };
                }"""
            )
            html = await page.content()

            redirect_chain = []
            first_redirect = None
            request = response.request.redirected_from
            while request is not None:
                redirect_chain.insert(0, request.url)
                first_redirect = request
                request = request.redirected_from

            redirect_status = None
            if first_redirect is not None:
                first_response = await first_redirect.response()
                redirect_status = first_response.status if first_response else None

            return FetchResponse(
                url=url,
                final_url=page.url,
                status_code=response.status,
                headers={k.lower(): v for k, v in response.headers.items()},
                text=html,
                load_time_ms=load_time_ms,
                ttfb_ms=timing.get("ttfb"),
                dom_content_loaded_ms=timing.get("dom_content_loaded"),
                redirect_chain=redirect_chain,
                redirect_status=redirect_status,
            )
        except PlaywrightError as e:
            raise FetchError(f"Browser error fetching {url}: {e}", url=url) from e
        finally:
            await page.close()

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.debug("Headless browser closed")
