"""
9.0 Fetch Proxy Server
Flask app exposing the sitemap fetcher to a browser front end.

Endpoint:
    POST /api/fetch-sitemap   {"url": "https://example.com/sitemap.xml"}
        200 {"success": true,  "data": "<raw xml>"}
        400 {"success": false, "error": "..."}   missing / malformed / non-http URL
        405 {"success": false, "error": "..."}   any method but POST / OPTIONS
        500 {"success": false, "error": "..."}   fetch failed
    OPTIONS /api/fetch-sitemap  CORS preflight, empty 200
"""

import logging
from typing import Dict, Optional, Any
from urllib.parse import urlparse

from flask import Flask, jsonify, request

from sitemap_suite.config import DEFAULT_CONFIG
from sitemap_suite.errors import FetchError
from sitemap_suite.sitemap_fetcher import SitemapFetcher
from sitemap_suite.sitemap_parser import normalize_http_url

logger = logging.getLogger(__name__)

FETCH_ROUTE = "/api/fetch-sitemap"

RESPONSE_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _validate_request_url(url: Any) -> Optional[str]:
    """Error message for an unusable URL, None when it may be fetched."""
    if not url or not isinstance(url, str):
        return "URL is required"
    try:
        parsed = urlparse(url.strip())
        parsed.port
    except ValueError:
        return "Invalid URL format"
    if not parsed.scheme:
        return "Invalid URL format"
    if parsed.scheme.lower() not in ("http", "https"):
        return "Only HTTP/HTTPS URLs are supported"
    if normalize_http_url(url) is None:
        return "Invalid URL format"
    return None


def create_app(config: Optional[Dict[str, Any]] = None,
               fetcher: Optional[SitemapFetcher] = None) -> Flask:
    """
    Build the Flask app.

    Args:
        config: Merged configuration (defaults when omitted).
        fetcher: Fetcher to use; built from ``config`` when omitted.
    """
    config = config or dict(DEFAULT_CONFIG)
    app = Flask(__name__)
    app.config["SITEMAP_FETCHER"] = fetcher or SitemapFetcher(config=config)

    @app.after_request
    def add_headers(response):
        response.headers.update(RESPONSE_HEADERS)
        return response

    @app.errorhandler(405)
    def method_not_allowed(_error_obj):
        return _error("Method not allowed", 405)

    @app.route(FETCH_ROUTE, methods=["POST", "OPTIONS"])
    def fetch_sitemap():
        if request.method == "OPTIONS":
            return "", 200

        payload = request.get_json(silent=True)
        url = payload.get("url") if isinstance(payload, dict) else None
        problem = _validate_request_url(url)
        if problem:
            logger.info(f"Rejected fetch request: {problem} ({url!r})")
            return _error(problem, 400)

        try:
            data = app.config["SITEMAP_FETCHER"].fetch(normalize_http_url(url))
        except FetchError as e:
            logger.warning(f"Fetch failed for {url}: {e.code}: {e}")
            return _error(str(e), 500)

        return jsonify({"success": True, "data": data}), 200

    return app


def run_server(config: Dict[str, Any]) -> None:
    """Serve the app with Flask's built-in server."""
    app = create_app(config)
    host = config.get("host", DEFAULT_CONFIG["host"])
    port = int(config.get("port", DEFAULT_CONFIG["port"]))
    logger.info(f"Starting fetch proxy on http://{host}:{port}{FETCH_ROUTE}")
    app.run(host=host, port=port)
