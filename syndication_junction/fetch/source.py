"""
Feed source adapter: fetch, optional filter command, normalization.

A source URI is fetched over HTTP, the raw body is optionally piped through
the source's ``manipulate_input`` shell command, and the result is parsed
with feedparser. RSS 2.0 and Atom differences are reconciled into the single
Entry shape used by the history store:

- guid: RSS <guid> / Atom <id>, else the item link, else a content digest
- pub_date: published date, falling back to updated/created (RFC 822 string)
- description: RSS <description> / Atom <summary> (or content when absent)
- content_encoded: RSS content:encoded / Atom <content>, when it differs
- media: media:content elements followed by enclosures, de-duplicated by URL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
import hashlib
import io
import logging
import mimetypes
import subprocess
import time
from typing import Any

import feedparser
import httpx

from ..config import FetchConfig
from ..core.errors import FetchError, FilterCommandError, ParseError
from ..core.types import Author, Entry, MediaItem
from .fetcher import fetch_url

logger = logging.getLogger(__name__)


@dataclass
class ParsedFeed:
    """A normalized feed document.

    Attributes:
        snapshot: Channel-level metadata (string fields only), kept for diagnostics
        entries: Normalized entries in document order
    """
    snapshot: dict[str, Any] = field(default_factory=dict)
    entries: list[Entry] = field(default_factory=list)


def fetch_source(
    uri: str,
    manipulate_input: str | None,
    cfg: FetchConfig,
    transport: httpx.BaseTransport | None = None,
) -> ParsedFeed:
    """Fetch and normalize one source feed.

    Args:
        uri: Feed URI
        manipulate_input: Optional shell command to pipe the raw body through
        cfg: Fetch settings (timeouts, retries, user agent)
        transport: Optional httpx transport override

    Raises:
        FetchError: On network failure or non-successful status
        FilterCommandError: If the filter command fails or its output is not a feed
        ParseError: If the body is not an RSS or Atom document
    """
    result = fetch_url(
        uri,
        timeout=cfg.timeout_seconds,
        retries=cfg.retries,
        user_agent=cfg.user_agent,
        trust_env=cfg.trust_env,
        transport=transport,
    )
    if not result.ok:
        raise FetchError(uri, result.error or "empty response", result.status_code)

    body = result.content or b""
    if not manipulate_input:
        return parse_feed(body)

    filtered = run_filter_command(manipulate_input, body, cfg.filter_timeout_seconds)
    try:
        return parse_feed(filtered)
    except ParseError as exc:
        raise FilterCommandError(manipulate_input, f"output is not a feed ({exc})") from exc


def run_filter_command(command: str, data: bytes, timeout: float | None = None) -> bytes:
    """Pipe ``data`` through a shell command and return its standard output.

    Raises:
        FilterCommandError: If the command cannot start, times out or exits non-zero
    """
    try:
        completed = subprocess.run(
            command,
            shell=True,
            input=data,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise FilterCommandError(command, f"timed out after {exc.timeout}s") from exc
    except OSError as exc:
        raise FilterCommandError(command, str(exc)) from exc

    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace").strip()
        raise FilterCommandError(
            command,
            f"exited with status {completed.returncode}: {stderr[:500]}",
            returncode=completed.returncode,
        )
    return completed.stdout


def parse_feed(data: bytes | str) -> ParsedFeed:
    """Parse an RSS or Atom document into a ParsedFeed.

    feedparser is lenient: a document with minor errors (``bozo``) that still
    yields a feed is accepted with a warning. Input with no recognizable feed
    format and no entries is rejected.

    Raises:
        ParseError: If no feed can be recovered from ``data``
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    # A stream keeps feedparser from treating the body as a URL or filename.
    parsed = feedparser.parse(io.BytesIO(data))

    if not parsed.get("version") and not parsed.entries:
        reason = parsed.get("bozo_exception") or "unrecognized feed format"
        raise ParseError(f"No matching format found for the feed: {reason}")
    if parsed.get("bozo"):
        logger.warning("Feed parsed with errors: %s", parsed.get("bozo_exception"))

    snapshot = {
        key: value for key, value in parsed.feed.items() if isinstance(value, str)
    }
    snapshot["version"] = parsed.get("version") or ""
    entries = [normalize_entry(item) for item in parsed.entries]
    return ParsedFeed(snapshot=snapshot, entries=entries)


def normalize_entry(item: dict[str, Any]) -> Entry:
    """Convert one feedparser entry into an Entry."""
    link = item.get("link") or None
    title = (item.get("title") or "").strip() or None
    content = _first_content(item)
    description = item.get("summary") or content
    content_encoded = content if content and content != description else None
    pub_date = _format_date(
        item.get("published_parsed") or item.get("updated_parsed") or item.get("created_parsed")
    )
    update_date = _format_date(item.get("updated_parsed"))

    guid = item.get("id") or link
    if not guid:
        guid = _digest(title, description, pub_date)

    return Entry(
        guid=guid,
        title=title,
        link=link,
        pub_date=pub_date,
        update_date=update_date,
        description=description,
        content_encoded=content_encoded,
        author=_author(item),
        media=_media(item),
    )


def _first_content(item: dict[str, Any]) -> str | None:
    for content in item.get("content") or []:
        value = content.get("value")
        if value:
            return value
    return None


def _format_date(value: time.struct_time | None) -> str | None:
    if not value:
        return None
    return format_datetime(datetime(*value[:6], tzinfo=timezone.utc))


def _author(item: dict[str, Any]) -> Author | None:
    detail = item.get("author_detail") or {}
    name = detail.get("name") or item.get("author")
    if not name:
        return None
    return Author(name=name, uri=detail.get("href") or "")


def _media(item: dict[str, Any]) -> list[MediaItem]:
    media: list[MediaItem] = []
    seen: set[str] = set()

    def add(url: str | None, mime: str | None, medium: str | None, size: str | None) -> None:
        if not url or url in seen:
            return
        seen.add(url)
        mime = mime or mimetypes.guess_type(url)[0] or ""
        media.append(MediaItem(url=url, type=mime, medium=medium, file_size=size))

    for content in item.get("media_content") or []:
        add(content.get("url"), content.get("type"), content.get("medium"), content.get("fileSize"))
    for enclosure in item.get("enclosures") or []:
        add(enclosure.get("href"), enclosure.get("type"), None, enclosure.get("length"))
    return media


def _digest(*parts: str | None) -> str:
    joined = "\x1f".join(part or "" for part in parts)
    return "sha256:" + hashlib.sha256(joined.encode("utf-8")).hexdigest()
