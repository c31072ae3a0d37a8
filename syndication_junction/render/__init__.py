"""
Feed rendering.

This package turns the history store into an OutputFeed and serializes
it to RSS 2.0.
"""

from .engine import effective_settings, render_feed, synthesize_title
from .rss import render_rss, write_rss

__all__ = [
    "effective_settings",
    "render_feed",
    "synthesize_title",
    "render_rss",
    "write_rss",
]
