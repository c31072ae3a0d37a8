"""
Syndication Junction - RSS/Atom aggregator with a persistent history store.

This package fetches feeds, merges their entries into a JSON history
store keyed by guid, and republishes the accumulated history as a single
RSS 2.0 feed, optionally with media mirrored locally.

Main entry point is the CLI via the `syndication-junction` command.

Example:
    $ syndication-junction fetch https://example.org/feed.xml
    $ syndication-junction output-rss public/rss.xml https://example.org/feeds
"""

__all__ = ["__version__", "HistoryStore", "load_store", "save_store", "render_feed", "render_rss"]
__version__ = "0.1.0"

from .core.store import HistoryStore, load_store, save_store
from .render import render_feed, render_rss
