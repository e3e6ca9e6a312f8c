"""Shared fixtures for the audit pipeline tests."""

import httpx
import pytest

from seo_audit.config import Config
from seo_audit.exceptions import StoreUnavailable
from seo_audit.job_queue import JobQueue
from seo_audit.models import PageRecord, SeoData
from seo_audit.store import InMemoryStore

BASE = "https://example.com"


def html_page(
    title="Widgets for Every Workshop",
    description="Hand-made widgets, gadgets and tools shipped worldwide from our small workshop.",
    body="",
    head="",
):
    """Build a small HTML document."""
    return f"""<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <meta name="description" content="{description}">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    {head}
</head>
<body>
{body}
</body>
</html>"""


def make_site_transport(routes: dict, calls: list = None) -> httpx.MockTransport:
    """MockTransport serving a fake site.

    Args:
        routes: Path (with query, if any) mapped to an HTML string, a
            ``(status, headers, body)`` tuple or an exception instance to raise.
            Unknown paths return 404.
        calls: Optional list receiving every requested URL
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))

        path = request.url.raw_path.decode()
        route = routes.get(path)
        if route is None:
            return httpx.Response(404, headers={"content-type": "text/html"}, content=b"Not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, str):
            return httpx.Response(
                200,
                headers={"content-type": "text/html; charset=utf-8"},
                content=route.encode(),
            )

        status, headers, body = route
        return httpx.Response(status, headers=headers, content=body.encode())

    return httpx.MockTransport(handler)


class FlakyStore(InMemoryStore):
    """In-memory store whose pop_start fails after a number of good calls."""

    def __init__(self, good_pops: int):
        super().__init__()
        self.good_pops = good_pops
        self.pops = 0

    async def pop_start(self, key, count=1):
        self.pops += 1
        if self.pops > self.good_pops:
            raise StoreUnavailable("store connection lost")
        return await super().pop_start(key, count)


def make_page(**overrides) -> PageRecord:
    """A page record that passes every rubric check unless overridden."""
    url = overrides.pop("url", f"{BASE}/products/widgets")
    seo_data = overrides.pop("seo_data", None) or SeoData(
        canonical=url,
        og_tags={
            "og:title": "Widgets",
            "og:description": "Hand-made widgets",
            "og:image": f"{BASE}/widget.png",
            "og:url": url,
        },
        twitter_tags={"twitter:card": "summary"},
        structured_data=[{"@type": "Product"}],
        viewport="width=device-width, initial-scale=1",
    )
    fields = {
        "id": "page-1",
        "url": url,
        "status_code": 200,
        "content_type": "text/html; charset=utf-8",
        "title": "Widgets for Every Workshop",
        "description": "Hand-made widgets, gadgets and tools shipped worldwide from our small workshop.",
        "h1": "Widgets for Every Workshop",
        "headings": {
            "h1": [{"text": "Widgets for Every Workshop", "id": None}],
            "h2": [{"text": "Our range", "id": None}],
        },
        "links": [
            {"url": f"{BASE}/about", "text": "About the workshop", "rel": None, "target": None, "is_external": False},
        ],
        "images": [
            {"src": f"{BASE}/widget.png", "alt": "A widget", "width": "200", "height": "100", "loading": "lazy"},
        ],
        "seo_data": seo_data,
        "metrics": {"ttfb": 120},
        "load_time_ms": 450,
    }
    fields.update(overrides)
    return PageRecord(**fields)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def queue(store):
    return JobQueue(store)


@pytest.fixture
def config():
    return Config(batch_size=2, processing_interval_ms=50, job_timeout_ms=5000)


@pytest.fixture
def good_page():
    return make_page()


@pytest.fixture
def simple_site():
    """Home links to /a, /b and an external host; /a links to /c."""
    return {
        "/": html_page(body="""
            <h1>Widgets for Every Workshop</h1>
            <a href="/a">Page A</a>
            <a href="/b">Page B</a>
            <a href="#top">Top</a>
            <a href="https://other.com/x">Elsewhere</a>
            <a href="mailto:hello@example.com">Mail us</a>
        """),
        "/a": html_page(title="Page A of the workshop", body='<h1>Page A</h1><a href="/c">Page C</a>'),
        "/b": html_page(title="Page B of the workshop", body="<h1>Page B</h1>"),
        "/c": html_page(title="Page C of the workshop", body='<h1>Page C</h1><a href="/">Home</a>'),
    }
