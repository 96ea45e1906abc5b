"""
4.0 Merger Module
Combines several named entry collections into one.

De-duplication keeps the first occurrence of a URL and only replaces it
with a later one whose lastmod is non-empty and sorts after the kept value.
lastmod is compared as a plain string, which is correct for zero-padded
ISO-8601 dates only.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from sitemap_suite.models import EntrySet, MergeResult, SitemapEntry

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 0.5

# Leading decimal number, the way a lenient float reader sees "0.8 " or "1e-1x"
_LEADING_FLOAT_RE = re.compile(r'^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')


def parse_float_prefix(text: str) -> Optional[float]:
    """Float value of the leading number in ``text``, None when there is none."""
    match = _LEADING_FLOAT_RE.match(text or "")
    if not match:
        return None
    return float(match.group(0))


def priority_value(priority: str) -> float:
    """Numeric priority; DEFAULT_PRIORITY when missing or unparseable."""
    value = parse_float_prefix(priority)
    return DEFAULT_PRIORITY if value is None else value


def merge(
    entry_sets: Iterable[EntrySet],
    remove_duplicates: bool = True,
    sort_by_priority: bool = False,
) -> MergeResult:
    """
    Merge entry sets in the given order.

    Args:
        entry_sets: Named collections to combine.
        remove_duplicates: Collapse entries sharing a ``loc`` (default True).
        sort_by_priority: Stable sort by descending numeric priority.

    Returns:
        MergeResult with the kept entries, their source set names and counts.
    """
    total_input = 0
    kept: List[Tuple[SitemapEntry, str]] = []
    position: Dict[str, int] = {}

    for entry_set in entry_sets:
        for entry in entry_set.entries:
            total_input += 1
            if not remove_duplicates:
                kept.append((entry, entry_set.name))
                continue

            idx = position.get(entry.loc)
            if idx is None:
                position[entry.loc] = len(kept)
                kept.append((entry, entry_set.name))
                continue

            existing = kept[idx][0]
            if entry.lastmod and entry.lastmod > existing.lastmod:
                logger.debug(
                    f"Replacing {entry.loc}: lastmod {existing.lastmod or '(empty)'} -> "
                    f"{entry.lastmod} from {entry_set.name}"
                )
                kept[idx] = (entry, entry_set.name)

    if sort_by_priority:
        # sorted() is stable, ties keep insertion order
        kept = sorted(kept, key=lambda item: -priority_value(item[0].priority))

    entries = tuple(entry for entry, _ in kept)
    sources = tuple(name for _, name in kept)
    unique_count = len(entries)

    logger.info(
        f"Merged {total_input} entries into {unique_count} "
        f"({total_input - unique_count} duplicates removed)"
    )
    return MergeResult(
        entries=entries,
        total_input=total_input,
        unique_count=unique_count,
        duplicates_removed=total_input - unique_count,
        sources=sources,
    )
