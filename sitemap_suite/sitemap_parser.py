"""
2.0 Sitemap Parser Module
Turns raw sitemap XML or CSV text into SitemapEntry / SitemapIndexRef records.

Key features:
- Sitemap index detection by element local name
- Namespace-tolerant lookups (falls back when xmlns is missing or wrong)
- Trimmed full-text extraction for every field, empty string when absent
- Minimal quoted CSV reader that collects per-row errors instead of raising
"""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from lxml import etree  # Using lxml for robust parsing and namespace handling

from sitemap_suite.errors import ParseError
from sitemap_suite.models import (
    CSVParseResult,
    ParseResult,
    SitemapEntry,
    SitemapIndexRef,
)

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"

# Common sitemap namespaces
SITEMAP_NS = {
    'sm': SITEMAP_NAMESPACE,
    'image': 'http://www.google.com/schemas/sitemap-image/1.1',
    'news': 'http://www.google.com/schemas/sitemap-news/0.9',
    'video': 'http://www.google.com/schemas/sitemap-video/1.1'
}

# lxml refuses unicode input that carries an encoding declaration
_XML_DECLARATION_RE = re.compile(r'^<\?xml[^>]*\?>')

_INDEX_REFS_XPATH = "//*[local-name()='sitemapindex']/*[local-name()='sitemap']"
_NAMESPACED_URLS_XPATH = "/sm:urlset/sm:url"
_ANY_URLS_XPATH = "//*[local-name()='url']"
_CHILD_XPATH = etree.XPath("*[local-name()=$name][1]")
_DESCENDANT_XPATH = etree.XPath("descendant::*[local-name()=$name][1]")
_STRING_VALUE = etree.XPath("string()")

# Browsers skip any run of slashes or backslashes after an http(s) scheme
_HTTP_PREFIX_RE = re.compile(r'^(https?):[/\\]*', re.IGNORECASE)
_BEFORE_QUERY_RE = re.compile(r'^([^?#]*)(.*)$', re.DOTALL)


def normalize_http_url(value: str) -> Optional[str]:
    """
    Canonical ``scheme://host...`` form of an absolute http/https URL.

    Accepts the shapes a browser URL parser does for these schemes, such as
    ``http:example.com`` or ``HTTPS:\\\\example.com\\path``. Returns None when
    there is no host, the port is malformed, or the host contains whitespace.
    """
    text = (value or "").strip()
    match = _HTTP_PREFIX_RE.match(text)
    if not match:
        return None
    head, tail = _BEFORE_QUERY_RE.match(text[match.end():]).groups()
    head = head.replace("\\", "/")
    url = f"{match.group(1).lower()}://{head}{tail}"
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError for a malformed port
    except ValueError:
        return None
    if not parsed.hostname or any(ch.isspace() for ch in parsed.netloc):
        return None
    return url


def is_valid_http_url(value: str) -> bool:
    """True for an absolute http/https URL with a host."""
    return normalize_http_url(value) is not None


def split_csv_line(line: str) -> List[str]:
    """
    Splits one CSV line on commas outside double quotes.

    A double quote only toggles quoting and is dropped; doubled quotes
    inside a quoted field are not unescaped.
    """
    fields = []
    current = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ',' and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return fields


class SitemapParser:
    """
    2.1 SitemapParser Class
    Stateless; one instance can be shared freely.
    """

    def __init__(self):
        self._xml_parser = etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            huge_tree=True,
        )
        logger.debug("SitemapParser initialized.")

    # =========================================================================
    # 3.0 XML PARSING
    # =========================================================================

    def parse_xml(self, xml_content: str, source: str = "") -> ParseResult:
        """
        3.1 Parse sitemap XML into an index or a list of URL entries.

        Args:
            xml_content: The XML document as text.
            source: Where the text came from (for logging only).

        Returns:
            ParseResult with kind "index" (refs) or "sitemap" (entries).

        Raises:
            ParseError: "invalid-xml" for malformed documents, "no-urls" when
                neither index references nor URL entries are present.
        """
        root = self._parse_document(xml_content, source)

        ref_elements = root.xpath(_INDEX_REFS_XPATH)
        if ref_elements:
            refs = [
                SitemapIndexRef(
                    loc=self._field_text(el, "loc"),
                    lastmod=self._field_text(el, "lastmod"),
                )
                for el in ref_elements
            ]
            logger.info(f"Parsed sitemap index with {len(refs)} sitemaps {source}".rstrip())
            return ParseResult.index(refs)

        url_elements = root.xpath(_NAMESPACED_URLS_XPATH, namespaces=SITEMAP_NS)
        if not url_elements:
            # Missing or incorrect xmlns; try any <url> element
            url_elements = root.xpath(_ANY_URLS_XPATH)
            if url_elements:
                logger.debug(f"No namespaced <url> elements, found {len(url_elements)} by local name.")

        entries = []
        for url_element in url_elements:
            entry = self._parse_url_element(url_element)
            if entry is not None:
                entries.append(entry)

        if not entries:
            raise ParseError("no-urls", "No URLs found in sitemap")

        logger.info(f"Parsed URL set with {len(entries)} entries {source}".rstrip())
        return ParseResult.sitemap(entries)

    def _parse_document(self, xml_content: str, source: str) -> etree._Element:
        """3.2 Build the element tree, mapping every syntax problem to ParseError."""
        text = (xml_content or "").lstrip("\ufeff \t\r\n")
        text = _XML_DECLARATION_RE.sub("", text, count=1)
        try:
            root = etree.fromstring(text, parser=self._xml_parser)
        except (etree.XMLSyntaxError, ValueError) as e:
            logger.error(f"XML syntax error while parsing sitemap {source}: {e}")
            raise ParseError("invalid-xml", f"Invalid XML format: {str(e)[:100]}") from e
        if root is None:
            raise ParseError("invalid-xml", "Invalid XML format: document is empty")
        return root

    def _parse_url_element(self, url_element: etree._Element) -> Optional[SitemapEntry]:
        """3.3 Build one SitemapEntry; None for an element without a <loc>."""
        loc = self._field_text(url_element, "loc")
        if not loc:
            # A URL entry without a <loc> is invalid according to sitemap protocol, skip it.
            logger.warning(
                f"Skipping URL entry without <loc> tag. Context: "
                f"{etree.tostring(url_element, encoding='unicode').strip()[:200]}"
            )
            return None
        return SitemapEntry(
            loc=loc,
            lastmod=self._field_text(url_element, "lastmod"),
            changefreq=self._field_text(url_element, "changefreq"),
            priority=self._field_text(url_element, "priority"),
        )

    @staticmethod
    def _field_text(parent: etree._Element, name: str) -> str:
        """
        3.4 Trimmed text of a named sub-element.

        Direct namespaced child first, then a direct child with that local
        name in any namespace, then the first such descendant. Empty string
        when none exists.
        """
        element = parent.find(f"{{{SITEMAP_NAMESPACE}}}{name}")
        for lookup in (_CHILD_XPATH, _DESCENDANT_XPATH):
            if element is not None:
                break
            matches = lookup(parent, name=name)
            element = matches[0] if matches else None
        if element is None:
            return ""
        return str(_STRING_VALUE(element)).strip()

    # =========================================================================
    # 4.0 CSV PARSING
    # =========================================================================

    def parse_csv(self, csv_text: str, source: str = "") -> CSVParseResult:
        """
        4.1 Parse CSV rows of url,lastmod,changefreq,priority.

        The first line is a header only when it mentions "url" or "loc".
        Invalid URLs are reported per row in ``errors`` and skipped.

        Raises:
            ParseError: "csv-too-short" with fewer than two non-empty lines.
        """
        lines = [line.strip() for line in (csv_text or "").split("\n")]
        lines = [line for line in lines if line]
        if len(lines) < 2:
            raise ParseError("csv-too-short", "CSV must have a header row and at least one data row")

        header = lines[0].lower()
        start_idx = 1 if ("url" in header or "loc" in header) else 0

        entries = []
        errors = []
        for i in range(start_idx, len(lines)):
            cols = split_csv_line(lines[i])
            url = cols[0].strip()
            if not url:
                continue
            if not is_valid_http_url(url):
                errors.append(f"Row {i + 1}: Invalid URL — {url}")
                continue
            entries.append(SitemapEntry(
                loc=url,
                lastmod=cols[1].strip() if len(cols) > 1 else "",
                changefreq=cols[2].strip() if len(cols) > 2 else "",
                priority=cols[3].strip() if len(cols) > 3 else "",
            ))

        if errors:
            logger.warning(f"CSV {source or 'input'}: skipped {len(errors)} rows with invalid URLs")
        logger.info(f"Parsed {len(entries)} entries from CSV {source}".rstrip())
        return CSVParseResult(entries=tuple(entries), errors=tuple(errors))
