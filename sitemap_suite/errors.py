"""
Error taxonomy shared by the parser, the fetch proxy and the loader.

Every error carries a short machine ``code`` (e.g. ``"no-urls"``,
``"blocked-address"``) and a human-readable message suitable for showing
to a user as-is.
"""

from typing import Optional


class SitemapError(Exception):
    """Base class for all recoverable sitemap pipeline errors."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, {self.message!r})"


class ParseError(SitemapError):
    """Raised when XML or CSV input cannot be turned into entries."""


class FetchError(SitemapError):
    """Raised by the fetch proxy. ``status`` is set for HTTP-level failures."""

    def __init__(self, code: str, message: str, status: Optional[int] = None):
        super().__init__(code, message)
        self.status = status
