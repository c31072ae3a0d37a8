"""
Error types raised by the aggregation and render pipelines.

Per-source errors (FetchError, ParseError, FilterCommandError) are caught by
the aggregator and reported; MediaDownloadError is caught per media item.
Store and render errors are fatal to the command that raised them.
"""

from __future__ import annotations


class SyndicationError(Exception):
    """Base class for all Syndication Junction errors."""


class FetchError(SyndicationError):
    """Network failure, timeout or non-successful HTTP status for a feed."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(f"Error fetching {url}: {message}")
        self.url = url
        self.status_code = status_code


class ParseError(SyndicationError):
    """The fetched body is not a recognizable RSS or Atom document."""


class FilterCommandError(SyndicationError):
    """The manipulate_input command failed or produced an unparseable feed."""

    def __init__(self, command: str, message: str, returncode: int | None = None):
        super().__init__(f"Filter command {command!r} failed: {message}")
        self.command = command
        self.returncode = returncode


class StoreReadError(SyndicationError):
    """The persisted history store exists but cannot be read or decoded."""


class StoreWriteError(SyndicationError):
    """The history store could not be written to disk."""


class MediaDownloadError(SyndicationError):
    """A single media file could not be downloaded."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Error downloading {url}: {message}")
        self.url = url


class RenderError(SyndicationError):
    """Render settings or selection cannot produce a valid feed."""
