"""
Shared helpers for the network-free test modules.

Fetcher tests use real requests.Response objects whose body is a real
urllib3 HTTPResponse over an in-memory buffer, so streaming, decoding and
Content-Encoding handling run exactly as they would against a socket.
"""

import io

import pytest
import requests
from requests.structures import CaseInsensitiveDict
from urllib3.response import HTTPResponse

from sitemap_suite.errors import FetchError

SAMPLE_URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url>
    <loc>https://example.com/</loc>
    <lastmod>2024-01-01</lastmod>
    <changefreq>daily</changefreq>
    <priority>1.0</priority>
  </url>
  <url>
    <loc>https://example.com/about</loc>
    <lastmod>2024-02-15</lastmod>
    <priority>0.5</priority>
  </url>
</urlset>
"""

SAMPLE_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://example.com/sitemap-a.xml</loc><lastmod>2024-03-01</lastmod></sitemap>
  <sitemap><loc>https://example.com/sitemap-b.xml</loc></sitemap>
</sitemapindex>
"""


def urlset(*locs: str) -> str:
    body = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{body}</urlset>'


def make_response(body: bytes = b"", status: int = 200, headers=None,
                  url: str = "https://example.com/sitemap.xml") -> requests.Response:
    headers = dict(headers or {})
    raw = HTTPResponse(
        body=io.BytesIO(body),
        headers=headers,
        status=status,
        preload_content=False,
        decode_content=True,
        enforce_content_length=False,
    )
    response = requests.Response()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers)
    response.raw = raw
    response.url = url
    return response


class FakeFetcher:
    """Serves canned bodies (or raises canned errors) keyed by URL."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def fetch(self, url, max_redirects=None):
        self.calls.append(url)
        outcome = self.routes.get(url)
        if outcome is None:
            raise FetchError("not-found", "Sitemap not found (404). Check the URL path.", status=404)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()
