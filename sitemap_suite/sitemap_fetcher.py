"""
1.0 Sitemap Fetcher Module
Fetches remote sitemap content on the server's behalf, hardened against SSRF.

Key features:
- http/https only, private/internal hosts blocked on every redirect hop
- Manual redirect handling with a bounded budget and relative Location support
- 50MB cap from Content-Length and from the decoded byte stream
- gzip / deflate / brotli decoded transparently by urllib3
- Sanity check that the body looks like XML, not an HTML page
- Automatic retry on transient failures (429, 500, 502, 503, 504)
- Every failure surfaces as a FetchError with a readable message
"""

import ipaddress
import logging
import re
import socket
import time
from typing import Optional, Dict, Any, Union
from urllib.parse import urljoin, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ReadTimeoutError
from urllib3.util.retry import Retry

from sitemap_suite.config import DEFAULT_CONFIG
from sitemap_suite.errors import FetchError

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
CHUNK_SIZE = 64 * 1024

# Matched case-insensitively against the URL hostname
BLOCKED_HOST_PATTERNS = [
    re.compile(r'^localhost$', re.IGNORECASE),
    re.compile(r'\.localhost$', re.IGNORECASE),
    re.compile(r'^127\.'),
    re.compile(r'^10\.'),
    re.compile(r'^172\.(1[6-9]|2[0-9]|3[0-1])\.'),
    re.compile(r'^192\.168\.'),
    re.compile(r'^0\.'),
    re.compile(r'^169\.254\.'),
    re.compile(r'^::1$'),
    re.compile(r'^f[cd][0-9a-f]{0,2}:', re.IGNORECASE),
    re.compile(r'^fe[89ab][0-9a-f]?:', re.IGNORECASE),
    re.compile(r'^metadata$', re.IGNORECASE),
    re.compile(r'^metadata\.google', re.IGNORECASE),
    re.compile(r'^metadata\.azure\.com$', re.IGNORECASE),
    re.compile(r'^instance-data(\.ec2\.internal)?$', re.IGNORECASE),
]

BLOCKED_NETWORKS = [
    ipaddress.ip_network(net) for net in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
]

# Shorthand IPv4 forms (decimal, hex, octal) that resolvers still accept
_LEGACY_IPV4_RE = re.compile(r'^(0x[0-9a-f]+|[0-9]+)(\.(0x[0-9a-f]+|[0-9]+)){0,3}$', re.IGNORECASE)

HTML_MARKERS = ("<!doctype", "<html")


def _as_ip_address(hostname: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass
    if _LEGACY_IPV4_RE.match(hostname):
        try:
            return ipaddress.ip_address(socket.inet_aton(hostname))
        except OSError:
            return None
    return None


def is_blocked_host(hostname: str) -> bool:
    """
    Returns True when the hostname points at a private or internal address.

    Pure string/IP-literal check; no DNS lookup is performed.
    """
    host = (hostname or "").strip().lower().rstrip(".")
    if not host:
        return True
    if any(pattern.search(host) for pattern in BLOCKED_HOST_PATTERNS):
        return True
    ip = _as_ip_address(host)
    if ip is None:
        return False
    mapped = getattr(ip, "ipv4_mapped", None)
    if mapped is not None:
        ip = mapped
    return any(ip.version == net.version and ip in net for net in BLOCKED_NETWORKS)


def strip_leading(text: str) -> str:
    """Drops leading whitespace and byte order marks."""
    return text.lstrip().lstrip("\ufeff").lstrip()


def looks_like_html(text: str) -> bool:
    """True when the text starts with a doctype or an <html> tag."""
    return strip_leading(text)[:16].lower().startswith(HTML_MARKERS)


def _format_limit(max_bytes: int) -> str:
    if max_bytes >= 1024 * 1024:
        return f"{max_bytes // (1024 * 1024)}MB"
    return f"{max_bytes:,} bytes"


def _translate_request_error(exc: requests.exceptions.RequestException) -> FetchError:
    """Maps a requests exception onto the FetchError taxonomy."""
    if isinstance(exc, requests.exceptions.Timeout):
        return FetchError("timeout", "Request timed out")
    # iter_content() re-raises read timeouts as a plain ConnectionError
    if any(isinstance(arg, ReadTimeoutError) for arg in exc.args):
        return FetchError("timeout", "Request timed out")
    if isinstance(exc, requests.exceptions.ContentDecodingError):
        return FetchError("decompression-error", f"Decompression error: {exc}")
    return FetchError("network-error", f"Fetch error: {exc}")


class SitemapFetcher:
    """
    2.0 SitemapFetcher Class
    Fetches sitemap XML content with built-in SSRF checks and retry logic.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        2.1 Initialize the SitemapFetcher with retry strategy.

        Args:
            config: Configuration dictionary with optional keys:
                - user_agent: Client identification header (default: SitemapToolsSuite/1.0)
                - timeout: Deadline for one fetch call in seconds (default: 15)
                - max_redirects: Redirect budget (default: 5)
                - max_bytes: Body size cap in bytes (default: 50MB)
                - max_retries: Extra attempts for transient failures (default: 0,
                  a single request per hop)
        """
        config = config or {}

        self.user_agent = config.get("user_agent", DEFAULT_CONFIG["user_agent"])
        if not isinstance(self.user_agent, str) or not self.user_agent.strip():
            self.user_agent = DEFAULT_CONFIG["user_agent"]
            logger.warning(f"Invalid user_agent in config. Using default: {self.user_agent}")

        self.timeout = float(config.get("timeout", DEFAULT_CONFIG["timeout"]))
        self.max_redirects = int(config.get("max_redirects", DEFAULT_CONFIG["max_redirects"]))
        self.max_bytes = int(config.get("max_bytes", DEFAULT_CONFIG["max_bytes"]))
        self.max_retries = int(config.get("max_retries", DEFAULT_CONFIG["max_retries"]))

        self.session = self._create_session_with_retries()

        logger.info(
            f"SitemapFetcher initialized: "
            f"User-Agent={self.user_agent[:50]}, "
            f"timeout={self.timeout}s, "
            f"max_redirects={self.max_redirects}, "
            f"max_bytes={self.max_bytes:,}"
        )

    def _create_session_with_retries(self) -> requests.Session:
        """
        2.2 Create a requests Session with automatic retry logic.

        Retry strategy:
        - Retries on: 429 (rate limit), 500, 502, 503, 504 (server errors)
        - Also retries on connection errors, never on read errors
        - Retry-After is ignored
        - Opt-in: each extra attempt may run past the fetch deadline
        - Disabled by default (max_retries=0): one outbound request per hop
        """
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            read=False,  # read timeouts surface as-is
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],  # Only retry safe methods
            raise_on_status=False,  # Don't raise, let us handle it
            respect_retry_after_header=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            "User-Agent": self.user_agent,
            "Accept": "application/xml, text/xml, */*",
            "Accept-Encoding": "gzip, deflate, br",
        })

        return session

    # =========================================================================
    # 3.0 VALIDATION
    # =========================================================================

    @staticmethod
    def validate_url(url: str) -> str:
        """
        3.1 Check scheme and host of a URL before any network call.

        Returns:
            The URL unchanged.

        Raises:
            FetchError: "invalid-url" or "blocked-address".
        """
        if not url or not isinstance(url, str):
            raise FetchError("invalid-url", "Invalid URL")
        try:
            parsed = urlparse(url.strip())
            hostname = parsed.hostname
            parsed.port
        except ValueError:
            raise FetchError("invalid-url", "Invalid URL")

        if parsed.scheme.lower() not in ("http", "https"):
            raise FetchError("invalid-url", "Only HTTP/HTTPS URLs are supported")
        if not hostname:
            raise FetchError("invalid-url", "Invalid URL")
        if is_blocked_host(hostname):
            logger.warning(f"Blocked request to private/internal address: {hostname}")
            raise FetchError("blocked-address", "Access to private/internal addresses is blocked")
        return url

    @staticmethod
    def validate_body(body: str) -> str:
        """
        3.2 Reject bodies that cannot be a sitemap.

        Bodies starting with "<" are passed through without further checks.

        Raises:
            FetchError: "html-response", "empty-response" or "not-xml".
        """
        if looks_like_html(body):
            raise FetchError(
                "html-response",
                "The URL returned an HTML page instead of XML. "
                "Make sure the URL points to a sitemap.xml file.",
            )
        trimmed = strip_leading(body)
        if not trimmed:
            raise FetchError("empty-response", "The URL returned an empty response.")
        if not trimmed.startswith("<"):
            raise FetchError(
                "not-xml",
                "The URL did not return valid XML. "
                "The response may be plain text, JSON, or another format.",
            )
        return body

    @staticmethod
    def _check_status(status: int) -> None:
        """3.3 Map terminal non-200 statuses to errors."""
        if status == 200:
            return
        if status == 404:
            raise FetchError("not-found", "Sitemap not found (404). Check the URL path.", status=404)
        if status == 403:
            raise FetchError("access-denied", "Access denied (403). The server blocked the request.", status=403)
        raise FetchError("http-error", f"HTTP {status}", status=status)

    # =========================================================================
    # 4.0 FETCHING
    # =========================================================================

    def fetch(self, url: str, max_redirects: Optional[int] = None) -> str:
        """
        4.1 Fetch text content from a sitemap URL.

        One deadline of ``timeout`` seconds covers the whole call, every
        redirect hop and body read included.

        Args:
            url: Absolute http(s) URL.
            max_redirects: Remaining redirect budget (default from config).

        Returns:
            The response body as text.

        Raises:
            FetchError: for every validation, network, HTTP or content failure.
        """
        if max_redirects is None:
            max_redirects = self.max_redirects
        deadline = time.monotonic() + self.timeout
        return self._fetch_hop(url, max_redirects, deadline)

    def _fetch_hop(self, url: str, max_redirects: int, deadline: float) -> str:
        """4.2 One request; recurses on redirects with the same deadline."""
        if max_redirects < 0:
            raise FetchError("too-many-redirects", "Too many redirects")

        self.validate_url(url)
        logger.info(f"Fetching sitemap: {url}")

        response = self._send(url, deadline)
        redirect_url = None
        try:
            location = response.headers.get("Location")
            if response.status_code in REDIRECT_STATUSES and location:
                try:
                    redirect_url = urljoin(url, location.strip())
                except ValueError:
                    raise FetchError("invalid-url", "Invalid redirect URL")
                logger.info(f"Redirect {response.status_code}: {url} -> {redirect_url}")
            else:
                self._check_status(response.status_code)
                body = self._read_body(response, deadline)
        finally:
            response.close()

        if redirect_url is not None:
            return self._fetch_hop(redirect_url, max_redirects - 1, deadline)

        body = self.validate_body(body)
        logger.info(f"Successfully fetched {url} (size={len(body):,} chars)")
        return body

    def _send(self, url: str, deadline: float) -> requests.Response:
        """4.3 Issue the GET; redirects are never followed by requests itself."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchError("timeout", "Request timed out")
        try:
            return self.session.get(url, timeout=remaining, stream=True, allow_redirects=False)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error fetching {url}: {e}")
            raise _translate_request_error(e) from e

    def _read_body(self, response: requests.Response, deadline: float) -> str:
        """
        4.4 Stream and decode the body, enforcing size cap and deadline.

        Content-Encoding is decoded by urllib3 before the bytes are counted.
        """
        too_large = FetchError("too-large", f"File too large (max {_format_limit(self.max_bytes)})")

        try:
            declared = int(response.headers.get("Content-Length") or 0)
        except ValueError:
            declared = 0
        if declared > self.max_bytes:
            logger.warning(f"Declared Content-Length {declared:,} exceeds cap for {response.url}")
            raise too_large

        chunks = []
        total = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                total += len(chunk)
                if total > self.max_bytes:
                    logger.warning(f"Aborted {response.url} after {total:,} bytes")
                    raise too_large
                if time.monotonic() > deadline:
                    raise FetchError("timeout", "Request timed out")
                chunks.append(chunk)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error reading body of {response.url}: {e}")
            raise _translate_request_error(e) from e

        return b"".join(chunks).decode("utf-8", errors="replace")
