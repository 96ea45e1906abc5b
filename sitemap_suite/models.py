"""
1.0 Entry Model
Canonical records passed between the parser, comparer, merger and exporters.

All records are frozen dataclasses. Optional text fields default to an empty
string (never None) so equality and diffing stay simple.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

KIND_INDEX = "index"
KIND_SITEMAP = "sitemap"

DIFF_FIELDS = ("lastmod", "changefreq", "priority")


@dataclass(frozen=True)
class SitemapEntry:
    loc: str
    lastmod: str = ""
    changefreq: str = ""
    priority: str = ""


@dataclass(frozen=True)
class SitemapIndexRef:
    loc: str
    lastmod: str = ""


@dataclass(frozen=True)
class ParseResult:
    """
    Tagged result of parsing an XML document.

    ``kind`` is ``"index"`` (payload in ``refs``) or ``"sitemap"`` (payload
    in ``entries``). Check ``kind`` before reading the payload.
    """
    kind: str
    entries: Tuple[SitemapEntry, ...] = ()
    refs: Tuple[SitemapIndexRef, ...] = ()

    @classmethod
    def index(cls, refs: List[SitemapIndexRef]) -> "ParseResult":
        return cls(kind=KIND_INDEX, refs=tuple(refs))

    @classmethod
    def sitemap(cls, entries: List[SitemapEntry]) -> "ParseResult":
        return cls(kind=KIND_SITEMAP, entries=tuple(entries))

    @property
    def is_index(self) -> bool:
        return self.kind == KIND_INDEX


@dataclass(frozen=True)
class CSVParseResult:
    entries: Tuple[SitemapEntry, ...] = ()
    errors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldChange:
    field: str
    from_value: str
    to_value: str


@dataclass(frozen=True)
class ModifiedPair:
    url: str
    changes: Tuple[FieldChange, ...]
    old_entry: SitemapEntry
    new_entry: SitemapEntry


@dataclass(frozen=True)
class DiffResult:
    added: Tuple[SitemapEntry, ...] = ()
    removed: Tuple[SitemapEntry, ...] = ()
    modified: Tuple[ModifiedPair, ...] = ()
    unchanged: Tuple[SitemapEntry, ...] = ()


@dataclass(frozen=True)
class EntrySet:
    """A named collection of entries, one input of a merge."""
    name: str
    entries: Tuple[SitemapEntry, ...] = ()


@dataclass(frozen=True)
class MergeResult:
    entries: Tuple[SitemapEntry, ...]
    total_input: int
    unique_count: int
    duplicates_removed: int
    # sources[i] is the name of the EntrySet entries[i] was taken from
    sources: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LoadResult:
    """Entries gathered by the loader, after resolving a sitemap index if needed."""
    kind: str
    entries: Tuple[SitemapEntry, ...] = ()
    refs: Tuple[SitemapIndexRef, ...] = ()
    failed_children: int = 0
    source: str = ""
    row_errors: Tuple[str, ...] = ()
    resolved_url: Optional[str] = None
