"""
5.0 Converter Module
Exports entry collections to CSV, JSON, XML sitemap and XLS.

Key features:
- CSV cells neutralized against spreadsheet formula injection
- JSON with nulls for absent fields and numeric priority
- XML sitemap 0.9 output that parses back to the same entries
- XLS as an HTML table that spreadsheet applications open directly
"""

import json
import logging
import re
from typing import Dict, Iterable, List, Optional

import pandas as pd
from lxml import etree

from sitemap_suite.merger import parse_float_prefix
from sitemap_suite.models import SitemapEntry
from sitemap_suite.sitemap_parser import SITEMAP_NAMESPACE

logger = logging.getLogger(__name__)

# 1.1 Column names used by the tabular exports
COLUMNS = ["URL", "Last Modified", "Change Frequency", "Priority"]

FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

# Characters outside the XML 1.0 Char production
_INVALID_XML_CHARS_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def sanitize_cell(value: Optional[str]) -> str:
    """Prefix a quote to values a spreadsheet would evaluate as a formula."""
    if not value:
        return ""
    text = str(value)
    if text.startswith(FORMULA_PREFIXES):
        return "'" + text
    return text


def _to_frame(entries: Iterable[SitemapEntry], sanitize: bool = False) -> pd.DataFrame:
    clean = sanitize_cell if sanitize else (lambda v: v or "")
    rows = [
        [clean(e.loc), clean(e.lastmod), clean(e.changefreq), clean(e.priority)]
        for e in entries
    ]
    return pd.DataFrame(rows, columns=COLUMNS, dtype=object)


def to_csv(entries: Iterable[SitemapEntry]) -> str:
    """
    CSV with a URL,Last Modified,Change Frequency,Priority header.

    Fields containing a comma, quote or newline are quoted with doubled
    inner quotes.
    """
    df = _to_frame(entries, sanitize=True)
    return df.to_csv(index=False, lineterminator="\n")


def to_json(entries: Iterable[SitemapEntry]) -> str:
    """JSON array of {url, lastModified, changeFrequency, priority}."""
    records: List[Dict[str, object]] = [
        {
            "url": e.loc,
            "lastModified": e.lastmod or None,
            "changeFrequency": e.changefreq or None,
            "priority": parse_float_prefix(e.priority) if e.priority else None,
        }
        for e in entries
    ]
    return json.dumps(records, indent=2, ensure_ascii=False)


def _xml_text(value: str) -> str:
    return _INVALID_XML_CHARS_RE.sub("", value)


def to_xml(entries: Iterable[SitemapEntry]) -> str:
    """Sitemap 0.9 urlset; empty optional fields are left out entirely."""
    ns = f"{{{SITEMAP_NAMESPACE}}}"
    root = etree.Element(f"{ns}urlset", nsmap={None: SITEMAP_NAMESPACE})
    for e in entries:
        url_el = etree.SubElement(root, f"{ns}url")
        etree.SubElement(url_el, f"{ns}loc").text = _xml_text(e.loc)
        for name in ("lastmod", "changefreq", "priority"):
            value = getattr(e, name)
            if value:
                etree.SubElement(url_el, f"{ns}{name}").text = _xml_text(value)
    xml_bytes = etree.tostring(root, encoding="UTF-8", xml_declaration=True, pretty_print=True)
    return xml_bytes.decode("utf-8")


def to_xls(entries: Iterable[SitemapEntry]) -> str:
    """HTML table wrapped in a document, saved with an .xls extension."""
    table = _to_frame(entries).to_html(index=False, border=1, escape=True, na_rep="")
    return (
        '<html><head><meta charset="UTF-8"></head><body>'
        f"{table}"
        "</body></html>"
    )


_EXPORTERS = {
    "csv": to_csv,
    "json": to_json,
    "xml": to_xml,
    "xls": to_xls,
}


def export(entries: Iterable[SitemapEntry], fmt: str) -> str:
    """
    Export entries in the named format.

    Raises:
        ValueError: for an unknown format name.
    """
    exporter = _EXPORTERS.get((fmt or "").lower())
    if exporter is None:
        raise ValueError(f"Unknown export format: {fmt!r} (expected one of {sorted(_EXPORTERS)})")
    entries = list(entries)
    logger.info(f"Exporting {len(entries)} entries as {fmt.lower()}")
    return exporter(entries)
