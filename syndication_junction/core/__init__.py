"""
Core domain models and the history store.

This package contains data types, errors and persistence that are
independent of fetching and rendering.
"""

from .types import (
    Author,
    Entry,
    FeedOverrides,
    FeedSettings,
    MediaItem,
    MergeReport,
    OutputFeed,
    OutputItem,
    SourceRecord,
)
from .errors import (
    FetchError,
    FilterCommandError,
    MediaDownloadError,
    ParseError,
    RenderError,
    StoreReadError,
    StoreWriteError,
    SyndicationError,
)
from .store import HistoryStore, create_store_if_missing, load_store, save_store

__all__ = [
    "Author",
    "Entry",
    "FeedOverrides",
    "FeedSettings",
    "MediaItem",
    "MergeReport",
    "OutputFeed",
    "OutputItem",
    "SourceRecord",
    "FetchError",
    "FilterCommandError",
    "MediaDownloadError",
    "ParseError",
    "RenderError",
    "StoreReadError",
    "StoreWriteError",
    "SyndicationError",
    "HistoryStore",
    "create_store_if_missing",
    "load_store",
    "save_store",
]
