"""
Feed fetching and parsing.

This package handles HTTP fetching, optional filter commands and
normalization of RSS/Atom documents into entries.
"""

from .fetcher import FetchResult, download_file, fetch_url
from .source import ParsedFeed, fetch_source, parse_feed, run_filter_command

__all__ = [
    "FetchResult",
    "download_file",
    "fetch_url",
    "ParsedFeed",
    "fetch_source",
    "parse_feed",
    "run_filter_command",
]
