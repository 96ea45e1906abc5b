"""
10.0 Command Line Entry Point
Runs the fetch proxy server or one pipeline step against files / URLs.

Usage:
    sitemap-suite serve --port 8000
    sitemap-suite fetch https://example.com/sitemap.xml
    sitemap-suite convert example.com --format csv --output urls.csv
    sitemap-suite compare old.xml new.xml --output report.md
    sitemap-suite merge a.xml b.csv https://example.com/sitemap.xml --format xml
    sitemap-suite stats sitemap.xml
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from sitemap_suite import __version__
from sitemap_suite.analytics import analyze
from sitemap_suite.comparer import compare, generate_report
from sitemap_suite.config import load_config
from sitemap_suite.converter import export
from sitemap_suite.errors import SitemapError
from sitemap_suite.merger import merge
from sitemap_suite.models import EntrySet, LoadResult
from sitemap_suite.server import run_server
from sitemap_suite.sitemap_fetcher import SitemapFetcher
from sitemap_suite.sitemap_loader import SitemapLoader

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
EXPORT_FORMATS = ["csv", "json", "xml", "xls"]


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Log to stderr, plus a file when configured."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def _write_output(text: str, path: Optional[str]) -> None:
    if path:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        logger.info(f"Wrote {len(text):,} chars to {path}")
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def _build_loader(config: Dict[str, Any]) -> SitemapLoader:
    return SitemapLoader(SitemapFetcher(config=config), max_workers=config.get("max_workers", 1))


def _load(loader: SitemapLoader, source: str) -> LoadResult:
    result = loader.load_source(source)
    if result.failed_children:
        logger.warning(f"Warning: {result.failed_children} sub-sitemap(s) failed to load for {source}")
    logger.info(f"Loaded {len(result.entries):,} URLs from {result.resolved_url or source}")
    return result


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_serve(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    if args.host:
        config["host"] = args.host
    if args.port:
        config["port"] = args.port
    run_server(config)
    return 0


def cmd_fetch(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    data = SitemapFetcher(config=config).fetch(args.url)
    _write_output(data, args.output)
    return 0


def cmd_convert(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    result = _load(_build_loader(config), args.source)
    _write_output(export(result.entries, args.format), args.output)
    return 0


def cmd_compare(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    loader = _build_loader(config)
    old = _load(loader, args.old)
    new = _load(loader, args.new)
    diff = compare(old.entries, new.entries)
    _write_output(generate_report(diff), args.output)
    return 0


def cmd_merge(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    loader = _build_loader(config)
    entry_sets = []
    for source in args.sources:
        result = _load(loader, source)
        entry_sets.append(EntrySet(name=os.path.basename(source) or source, entries=result.entries))

    merged = merge(
        entry_sets,
        remove_duplicates=not args.keep_duplicates,
        sort_by_priority=args.sort_by_priority,
    )
    logger.info(
        f"Merge: {merged.total_input} in, {merged.unique_count} unique, "
        f"{merged.duplicates_removed} duplicates removed"
    )
    _write_output(export(merged.entries, args.format), args.output)
    return 0


def cmd_stats(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    result = _load(_build_loader(config), args.source)
    _write_output(json.dumps(analyze(result.entries), indent=2), args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitemap-suite", description="Fetch, convert, compare and merge XML sitemaps.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to config.json")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the fetch proxy HTTP server")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser("fetch", help="Fetch a sitemap URL through the proxy checks and print it")
    p.add_argument("url")
    p.add_argument("--output", "-o")
    p.set_defaults(func=cmd_fetch)

    p = sub.add_parser("convert", help="Export a sitemap (file or URL) to another format")
    p.add_argument("source")
    p.add_argument("--format", "-f", choices=EXPORT_FORMATS, default="csv")
    p.add_argument("--output", "-o")
    p.set_defaults(func=cmd_convert)

    p = sub.add_parser("compare", help="Markdown diff report between two sitemaps")
    p.add_argument("old")
    p.add_argument("new")
    p.add_argument("--output", "-o")
    p.set_defaults(func=cmd_compare)

    p = sub.add_parser("merge", help="Merge several sitemaps into one")
    p.add_argument("sources", nargs="+")
    p.add_argument("--keep-duplicates", action="store_true", help="Do not collapse repeated URLs")
    p.add_argument("--sort-by-priority", action="store_true", help="Sort by descending priority")
    p.add_argument("--format", "-f", choices=EXPORT_FORMATS, default="xml")
    p.add_argument("--output", "-o")
    p.set_defaults(func=cmd_merge)

    p = sub.add_parser("stats", help="Print coverage and distribution statistics as JSON")
    p.add_argument("source")
    p.add_argument("--output", "-o")
    p.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments, load configuration and run one command.

    Returns:
        0 on success, 1 when the command failed with a reported error.
    """
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    if config is None:
        setup_logging()
        logger.error("Failed to load configuration. Exiting.")
        return 1

    setup_logging(args.log_level or config.get("log_level", "INFO"), config.get("log_file"))

    try:
        return args.func(args, config)
    except SitemapError as e:
        logger.error(f"{args.command} failed ({e.code}): {e}")
        return 1
    except OSError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
