"""
SERVER TESTS - Fast, Deterministic, No Network

Run: pytest tests/test_server.py

The Flask test client drives /api/fetch-sitemap with a FakeFetcher.
"""

import pytest

from conftest import SAMPLE_URLSET, FakeFetcher
from sitemap_suite.errors import FetchError
from sitemap_suite.server import FETCH_ROUTE, create_app

SITEMAP_URL = "https://example.com/sitemap.xml"


@pytest.fixture
def fetcher():
    return FakeFetcher({
        SITEMAP_URL: SAMPLE_URLSET,
        "https://example.com/private": FetchError("blocked-address", "Access to private/internal addresses is blocked"),
    })


@pytest.fixture
def client(fetcher):
    app = create_app(fetcher=fetcher)
    app.testing = True
    return app.test_client()


# =============================================================================
# 1. SUCCESS AND PREFLIGHT
# =============================================================================

def test_fetch_success(client, fetcher):
    # 1.1 Raw XML in data
    response = client.post(FETCH_ROUTE, json={"url": SITEMAP_URL})
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "data": SAMPLE_URLSET}
    assert fetcher.calls == [SITEMAP_URL]


def test_url_normalized_before_fetch(client, fetcher):
    # 1.2 Browser-style URL shapes reach the fetcher in canonical form
    response = client.post(FETCH_ROUTE, json={"url": " HTTPS:example.com/sitemap.xml "})
    assert response.status_code == 200
    assert fetcher.calls == [SITEMAP_URL]


def test_security_headers(client):
    # 1.3 CORS and hardening headers on every response
    response = client.post(FETCH_ROUTE, json={"url": SITEMAP_URL})
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert response.headers["Access-Control-Allow-Headers"] == "Content-Type"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_preflight(client, fetcher):
    response = client.options(FETCH_ROUTE)
    assert response.status_code == 200
    assert response.data == b""
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert fetcher.calls == []


# =============================================================================
# 2. REJECTED REQUESTS
# =============================================================================

def test_method_not_allowed(client):
    response = client.get(FETCH_ROUTE)
    assert response.status_code == 405
    assert response.get_json() == {"success": False, "error": "Method not allowed"}
    assert response.headers["X-Frame-Options"] == "DENY"


@pytest.mark.parametrize("kwargs,message", [
    ({"json": {}}, "URL is required"),
    ({"json": {"url": ""}}, "URL is required"),
    ({"json": {"url": 42}}, "URL is required"),
    ({"data": "url=https://example.com", "content_type": "text/plain"}, "URL is required"),
    ({"json": {"url": "not a url"}}, "Invalid URL format"),
    ({"json": {"url": "http://exa mple.com/sitemap.xml"}}, "Invalid URL format"),
    ({"json": {"url": "https://"}}, "Invalid URL format"),
    ({"json": {"url": "ftp://example.com/sitemap.xml"}}, "Only HTTP/HTTPS URLs are supported"),
])
def test_bad_requests(client, fetcher, kwargs, message):
    response = client.post(FETCH_ROUTE, **kwargs)
    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": message}
    assert fetcher.calls == []


# =============================================================================
# 3. FETCH FAILURES
# =============================================================================

def test_fetch_error_is_500(client):
    response = client.post(FETCH_ROUTE, json={"url": "https://example.com/private"})
    assert response.status_code == 500
    assert response.get_json() == {
        "success": False,
        "error": "Access to private/internal addresses is blocked",
    }


def test_not_found_message(client):
    response = client.post(FETCH_ROUTE, json={"url": "https://example.com/missing.xml"})
    assert response.status_code == 500
    assert response.get_json()["error"] == "Sitemap not found (404). Check the URL path."


def test_real_fetcher_blocks_before_network():
    # 3.1 Default app wiring uses the SSRF-checked fetcher
    client = create_app().test_client()
    response = client.post(FETCH_ROUTE, json={"url": "http://169.254.169.254/latest/meta-data/"})
    assert response.status_code == 500
    assert response.get_json()["error"] == "Access to private/internal addresses is blocked"
