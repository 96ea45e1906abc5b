"""
7.0 Sitemap Loader Module
Turns a file, raw text or URL into a flat list of entries.

Key features:
- Rejects HTML pages and non-XML text before parsing
- Resolves a sitemap index by fetching and parsing each child sitemap
- Counts and skips failing children instead of aborting the whole load
- Bare domains are expanded to /sitemap.xml with common fallbacks
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from sitemap_suite.errors import FetchError, ParseError, SitemapError
from sitemap_suite.models import (
    KIND_INDEX,
    KIND_SITEMAP,
    LoadResult,
    SitemapEntry,
    SitemapIndexRef,
)
from sitemap_suite.sitemap_fetcher import SitemapFetcher, looks_like_html, strip_leading
from sitemap_suite.sitemap_parser import SitemapParser

logger = logging.getLogger(__name__)

FALLBACK_PATHS = ("/sitemap_index.xml", "/sitemap/")


@dataclass(frozen=True)
class SitemapTarget:
    """Where to look for a sitemap given user input."""
    primary: str
    fallbacks: Tuple[str, ...] = ()
    was_bare_domain: bool = False


def check_sitemap_text(text: str) -> str:
    """
    Reject text that is obviously not a sitemap before it reaches the parser.

    Raises:
        ParseError: "html-response" or "not-xml".
    """
    if looks_like_html(text):
        raise ParseError(
            "html-response",
            "Received an HTML page instead of a sitemap XML. "
            "The URL may be incorrect, or the site may be blocking automated requests.",
        )
    if not strip_leading(text).startswith("<"):
        raise ParseError(
            "not-xml",
            "The response is not valid XML. It may be plain text, JSON, or an unsupported format.",
        )
    return text


def normalize_sitemap_url(raw: str) -> SitemapTarget:
    """
    Expand user input into a sitemap URL.

    A missing scheme becomes https. A bare domain (no path) points at
    /sitemap.xml, with /sitemap_index.xml and /sitemap/ as fallbacks.
    """
    url = raw.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url

    try:
        parsed = urlparse(url)
    except ValueError:
        return SitemapTarget(primary=url)
    if not parsed.netloc or parsed.path not in ("", "/"):
        return SitemapTarget(primary=url)

    origin = f"{parsed.scheme}://{parsed.netloc}"
    return SitemapTarget(
        primary=origin + "/sitemap.xml",
        fallbacks=tuple(origin + path for path in FALLBACK_PATHS),
        was_bare_domain=True,
    )


class SitemapLoader:
    """
    8.0 SitemapLoader Class
    Coordinates fetcher and parser for one load request.
    """

    def __init__(self, fetcher: SitemapFetcher, parser: Optional[SitemapParser] = None,
                 max_workers: int = 1):
        self.fetcher = fetcher
        self.parser = parser or SitemapParser()
        self.max_workers = max(1, int(max_workers))

    # =========================================================================
    # 8.1 TEXT AND INDEX RESOLUTION
    # =========================================================================

    def load_text(self, text: str, source: str = "") -> LoadResult:
        """
        Parse sitemap text, resolving a sitemap index through the fetcher.

        Raises:
            ParseError: for HTML/non-XML/invalid input, or "no-urls" when no
                entries result (including an index whose children all failed).
        """
        check_sitemap_text(text)
        result = self.parser.parse_xml(text, source=source)

        if not result.is_index:
            return LoadResult(kind=KIND_SITEMAP, entries=result.entries, source=source)

        logger.info(f"Sitemap index {source} references {len(result.refs)} sitemaps")
        entries, failed = self._resolve_index(result.refs)
        if failed:
            logger.warning(f"{failed} of {len(result.refs)} sub-sitemap(s) failed to load")
        if not entries:
            raise ParseError(
                "no-urls",
                "No URLs found in the sitemap. The file may be empty or in an unsupported format.",
            )
        return LoadResult(
            kind=KIND_INDEX,
            entries=tuple(entries),
            refs=result.refs,
            failed_children=failed,
            source=source,
        )

    def _resolve_index(self, refs: Tuple[SitemapIndexRef, ...]) -> Tuple[List[SitemapEntry], int]:
        """Fetch every child; entries are concatenated in reference order."""
        if self.max_workers > 1 and len(refs) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(self._load_child, refs))
        else:
            outcomes = [self._load_child(ref) for ref in refs]

        entries: List[SitemapEntry] = []
        failed = 0
        for child_entries in outcomes:
            if child_entries is None:
                failed += 1
            else:
                entries.extend(child_entries)
        return entries, failed

    def _load_child(self, ref: SitemapIndexRef) -> Optional[Tuple[SitemapEntry, ...]]:
        """
        Entries of one child sitemap; None when it failed to load.

        A child that is itself an index contributes no entries.
        """
        if not ref.loc:
            logger.warning("Skipping sub-sitemap reference without <loc>")
            return None
        try:
            text = self.fetcher.fetch(ref.loc)
            child = self.parser.parse_xml(text, source=ref.loc)
        except SitemapError as e:
            logger.warning(f"Failed to fetch sub-sitemap: {ref.loc} ({e.code}: {e})")
            return None
        if child.is_index:
            logger.warning(f"Nested sitemap index {ref.loc} is not followed")
            return ()
        return child.entries

    # =========================================================================
    # 8.2 SOURCES
    # =========================================================================

    def load_url(self, raw_url: str) -> LoadResult:
        """
        Fetch and load a sitemap URL, trying fallbacks for bare domains.

        Raises:
            FetchError or ParseError from the primary URL, or a "not-found"
            FetchError naming the tried paths when a bare domain fails.
        """
        target = normalize_sitemap_url(raw_url)
        candidates = (target.primary,) + target.fallbacks

        primary_error: Optional[SitemapError] = None
        for url in candidates:
            try:
                text = self.fetcher.fetch(url)
                result = self.load_text(text, source=url)
            except SitemapError as e:
                if isinstance(e, FetchError) and e.code in ("invalid-url", "blocked-address"):
                    raise
                logger.info(f"Could not load {url}: {e}")
                if primary_error is None:
                    primary_error = e
                continue
            return replace(result, source=raw_url, resolved_url=url)

        if target.was_bare_domain:
            raise FetchError(
                "not-found",
                f"Could not find a sitemap at {raw_url.strip()}. Tried /sitemap.xml and "
                f"/sitemap_index.xml. Please provide the full sitemap URL.",
            )
        raise primary_error

    def load_file(self, path: str) -> LoadResult:
        """
        Load a local .xml or .csv file.

        CSV row errors are logged and returned in ``row_errors``.
        """
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            text = f.read()
        name = os.path.basename(path)

        if path.lower().endswith(".csv"):
            parsed = self.parser.parse_csv(text, source=name)
            for error in parsed.errors:
                logger.warning(f"{name}: {error}")
            if not parsed.entries:
                raise ParseError("no-urls", f"No valid URLs found in {name}")
            return LoadResult(
                kind=KIND_SITEMAP,
                entries=parsed.entries,
                source=name,
                row_errors=parsed.errors,
            )

        return self.load_text(text, source=name)

    def load_source(self, source: str) -> LoadResult:
        """A path that exists on disk is read as a file, anything else is fetched."""
        if os.path.isfile(source):
            return self.load_file(source)
        return self.load_url(source)
