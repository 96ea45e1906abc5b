"""
Sitemap Tools Suite - Source Package

Modules:
- config: Configuration loading and validation
- models: Entry, index reference, diff and merge records
- errors: ParseError / FetchError taxonomy
- sitemap_parser: XML and CSV parsing for sitemap indexes and urlsets
- sitemap_fetcher: SSRF-hardened HTTP fetching of remote sitemaps
- sitemap_loader: HTML pre-check, index resolution and source loading
- comparer: Diff between two entry collections plus markdown report
- merger: Union of entry collections with de-duplication
- converter: CSV / JSON / XML / XLS export
- analytics: Summary statistics for an entry collection
- server: Flask app exposing the fetch proxy endpoint
- main: Command line entry point
"""

__version__ = "1.0.0"
