"""
3.0 Comparer Module
Detects added, removed, modified and unchanged URLs between two entry sets.

Entries are keyed by ``loc``. For a URL present on both sides the
lastmod / changefreq / priority values are compared literally, so a change
in case alone counts as a modification.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sitemap_suite.models import (
    DIFF_FIELDS,
    DiffResult,
    FieldChange,
    ModifiedPair,
    SitemapEntry,
)

logger = logging.getLogger(__name__)

EMPTY_MARKER = "(empty)"


def _index_by_loc(entries: Iterable[SitemapEntry]) -> Dict[str, SitemapEntry]:
    # Later duplicates overwrite the value but keep the first key position
    lookup: Dict[str, SitemapEntry] = {}
    for entry in entries:
        lookup[entry.loc] = entry
    return lookup


def find_changes(old_entry: SitemapEntry, new_entry: SitemapEntry) -> List[FieldChange]:
    """Field-level differences between two entries for the same URL."""
    changes = []
    for field_name in DIFF_FIELDS:
        old_value = getattr(old_entry, field_name) or ""
        new_value = getattr(new_entry, field_name) or ""
        if old_value != new_value:
            changes.append(FieldChange(field=field_name, from_value=old_value, to_value=new_value))
    return changes


def compare(old_entries: Iterable[SitemapEntry], new_entries: Iterable[SitemapEntry]) -> DiffResult:
    """
    Compare an old and a new entry collection.

    Added, modified and unchanged follow the order of the new collection;
    removed follows the order of the old one.
    """
    old_map = _index_by_loc(old_entries)
    new_map = _index_by_loc(new_entries)

    added = []
    modified = []
    unchanged = []
    for url, new_entry in new_map.items():
        old_entry = old_map.get(url)
        if old_entry is None:
            added.append(new_entry)
            continue
        changes = find_changes(old_entry, new_entry)
        if changes:
            modified.append(ModifiedPair(
                url=url,
                changes=tuple(changes),
                old_entry=old_entry,
                new_entry=new_entry,
            ))
        else:
            unchanged.append(new_entry)

    removed = [entry for url, entry in old_map.items() if url not in new_map]

    logger.info(
        f"Compared {len(old_map)} old vs {len(new_map)} new URLs: "
        f"{len(added)} added, {len(removed)} removed, "
        f"{len(modified)} modified, {len(unchanged)} unchanged"
    )
    return DiffResult(
        added=tuple(added),
        removed=tuple(removed),
        modified=tuple(modified),
        unchanged=tuple(unchanged),
    )


def generate_report(diff: DiffResult, generated_at: Optional[datetime] = None) -> str:
    """
    Render a DiffResult as a markdown report.

    Pass ``generated_at`` for a reproducible timestamp line.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        "# Sitemap Comparison Report",
        "",
        f"Generated: {generated_at.isoformat()}",
        "",
        "## Summary",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Added | {len(diff.added)} |",
        f"| Removed | {len(diff.removed)} |",
        f"| Modified | {len(diff.modified)} |",
        f"| Unchanged | {len(diff.unchanged)} |",
        "",
    ]

    if diff.added:
        lines += ["## Added URLs", ""]
        lines += [f"- {entry.loc}" for entry in diff.added]
        lines.append("")

    if diff.removed:
        lines += ["## Removed URLs", ""]
        lines += [f"- {entry.loc}" for entry in diff.removed]
        lines.append("")

    if diff.modified:
        lines += ["## Modified URLs", ""]
        for pair in diff.modified:
            lines.append(f"### {pair.url}")
            for change in pair.changes:
                old_value = change.from_value or EMPTY_MARKER
                new_value = change.to_value or EMPTY_MARKER
                lines.append(f"- **{change.field}**: `{old_value}` → `{new_value}`")
            lines.append("")

    if diff.unchanged:
        lines += ["## Unchanged URLs", "", f"- {len(diff.unchanged)} URLs unchanged", ""]

    return "\n".join(lines)
