"""
6.0 Analytics Module
Summary statistics for a loaded entry collection.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple
from urllib.parse import urlparse

import pandas as pd

from sitemap_suite.merger import parse_float_prefix
from sitemap_suite.models import SitemapEntry

logger = logging.getLogger(__name__)

TOP_DOMAIN_LIMIT = 8
HIGH_PRIORITY = 0.7
MEDIUM_PRIORITY = 0.4


def _pct(count: int, total: int) -> float:
    return round(count / total * 100, 1) if total else 0.0


def _split_url(loc: str) -> Tuple[str, str]:
    try:
        parsed = urlparse(loc)
        return parsed.scheme.lower(), parsed.hostname or ""
    except ValueError:
        return "", ""


def analyze(entries: Iterable[SitemapEntry]) -> Optional[Dict[str, Any]]:
    """
    Compute coverage and distribution statistics.

    Returns:
        Dictionary of statistics, or None when there are no entries.
    """
    df = pd.DataFrame(
        [(e.loc, e.lastmod, e.changefreq, e.priority) for e in entries],
        columns=["loc", "lastmod", "changefreq", "priority"],
        dtype=object,
    )
    if df.empty:
        return None

    total = len(df)
    parts = df["loc"].map(_split_url)
    df["domain"] = parts.map(lambda p: p[1])
    https_count = int((parts.map(lambda p: p[0]) == "https").sum())

    has_lastmod = df["lastmod"] != ""
    has_changefreq = df["changefreq"] != ""
    has_priority = df["priority"] != ""

    priorities = df.loc[has_priority, "priority"].map(parse_float_prefix).dropna().astype(float)

    freq_counts = df.loc[has_changefreq, "changefreq"].str.lower().value_counts()
    domain_counts = df.loc[df["domain"] != "", "domain"].value_counts()
    # value_counts() breaks ties arbitrarily; keep first-seen order instead
    first_seen = {domain: i for i, domain in enumerate(pd.unique(df["domain"]))}
    top_domains = sorted(domain_counts.items(), key=lambda kv: (-kv[1], first_seen[kv[0]]))

    dates = sorted(df.loc[has_lastmod, "lastmod"])

    stats = {
        "total": total,
        "domain_count": int(len(domain_counts)),
        "https_percent": _pct(https_count, total),
        "avg_priority": round(float(priorities.mean()), 2) if len(priorities) else None,
        "coverage": {
            name: {"count": int(mask.sum()), "pct": _pct(int(mask.sum()), total)}
            for name, mask in (
                ("lastmod", has_lastmod),
                ("changefreq", has_changefreq),
                ("priority", has_priority),
            )
        },
        "changefreq_distribution": {str(k): int(v) for k, v in freq_counts.items()},
        "priority_distribution": {
            "high": int((priorities >= HIGH_PRIORITY).sum()),
            "medium": int(((priorities >= MEDIUM_PRIORITY) & (priorities < HIGH_PRIORITY)).sum()),
            "low": int((priorities < MEDIUM_PRIORITY).sum()),
        },
        "top_domains": [(str(d), int(c)) for d, c in top_domains[:TOP_DOMAIN_LIMIT]],
        "date_range": {
            "oldest": dates[0] if dates else None,
            "newest": dates[-1] if dates else None,
        },
    }
    logger.debug(f"Analytics for {total} entries: {stats['domain_count']} domains")
    return stats
