"""
Render engine: history store + settings -> OutputFeed.

Rendering is a pure function of the store snapshot and the settings. It
collects entries from the selected sources, orders them newest first,
truncates to the configured maximum, and applies the per-item rules (title
synthesis, content:encoded population, author override) using each source's
effective settings.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import html
from typing import Iterable, Mapping

from bs4 import BeautifulSoup

from ..core.errors import RenderError
from ..core.store import HistoryStore
from ..core.types import (
    Author,
    Entry,
    FeedOverrides,
    FeedSettings,
    MediaItem,
    OutputFeed,
    OutputItem,
    SourceRecord,
)


@dataclass(frozen=True)
class EffectiveSettings:
    """Item-level render settings after applying a source's overrides."""
    include_description_as_title_if_none_given: bool
    description_title_word_count: int
    title_ellipsis: str
    populate_content_encoded: bool
    add_media_to_content_encoded: bool
    override_item_author: bool


def effective_settings(settings: FeedSettings, overrides: FeedOverrides | None) -> EffectiveSettings:
    """Resolve each item-level setting: the override when set, else the global value."""
    values = {}
    for f in fields(EffectiveSettings):
        override = getattr(overrides, f.name) if overrides is not None else None
        values[f.name] = override if override is not None else getattr(settings, f.name)
    return EffectiveSettings(**values)


def render_feed(
    store: HistoryStore,
    overrides: Mapping[str, FeedOverrides] | None = None,
    settings: FeedSettings | None = None,
    selected: Iterable[str] | None = None,
) -> OutputFeed:
    """Render the store's history into an OutputFeed.

    Args:
        store: History store to render
        overrides: Per-source overrides keyed by URI; defaults to each
            source's stored overrides
        settings: Global settings; defaults to the store's settings
        selected: Source URIs to include; all sources when None

    Returns:
        OutputFeed with items ordered newest first

    Raises:
        RenderError: If settings are invalid or a selected URI is unknown
    """
    settings = settings or store.settings
    _validate(settings, "global settings")
    sources = _select_sources(store, selected)

    tagged: list[tuple[Entry, SourceRecord, EffectiveSettings]] = []
    for record in sources:
        source_overrides = (
            overrides.get(record.uri) if overrides is not None else record.overrides
        )
        effective = effective_settings(settings, source_overrides)
        _validate(effective, record.uri)
        for entry in record.entries:
            tagged.append((entry, record, effective))

    # sorted() is stable, so entries with equal dates keep collection order.
    tagged = sorted(tagged, key=lambda item: _sort_key(item[0]), reverse=True)
    if settings.max_entries_published >= 0:
        tagged = tagged[: settings.max_entries_published]

    items = [_render_item(entry, record, effective) for entry, record, effective in tagged]
    title, link = _feed_identity(settings, sources, selected)
    return OutputFeed(title=title, link=link, description=title or link, items=items)


def synthesize_title(
    title: str | None,
    description: str | None,
    enabled: bool,
    word_count: int,
    ellipsis: str,
) -> str:
    """Return the item title, synthesized from the description when missing.

    Examples:
        >>> synthesize_title(None, "one two three four five six", True, 5, "...")
        'one two three four five...'
        >>> synthesize_title(None, "<p>short post</p>", True, 5, "...")
        'short post'
    """
    if title and title.strip():
        return title
    if not enabled or not description:
        return ""
    words = plain_text(description).split()
    if len(words) > word_count:
        return " ".join(words[:word_count]) + ellipsis
    return " ".join(words)


def plain_text(markup: str) -> str:
    """Strip tags from an HTML fragment and decode entities."""
    return BeautifulSoup(markup, "html.parser").get_text(" ")


def media_html(media: MediaItem) -> str:
    """Markup embedding one media attachment in an HTML body."""
    url = html.escape(media.url, quote=True)
    description = html.escape(media.description or "", quote=True)
    kind = media.kind
    if kind == "image":
        return f'<img src="{url}" alt="{description}" />'
    if kind == "video":
        mime = html.escape(media.type, quote=True)
        return f'<video src="{url}" type="{mime}" controls>{description}</video>'
    if kind == "audio":
        mime = html.escape(media.type, quote=True)
        return f'<audio src="{url}" type="{mime}" controls>{description}</audio>'
    return f'<a href="{url}">{description or url}</a>'


def _render_item(entry: Entry, record: SourceRecord, effective: EffectiveSettings) -> OutputItem:
    title = synthesize_title(
        entry.title,
        entry.description,
        effective.include_description_as_title_if_none_given,
        effective.description_title_word_count,
        effective.title_ellipsis,
    )

    content = None
    if effective.populate_content_encoded:
        content = entry.content_encoded or entry.description or ""
        if effective.add_media_to_content_encoded:
            content = _append_media(content, entry.media)

    author = entry.author
    if author is None or effective.override_item_author:
        author = Author(name=record.display_title, uri=record.display_link)

    return OutputItem(
        guid=entry.guid,
        title=title,
        link=entry.link,
        description=entry.description,
        pub_date=entry.pub_date,
        author=Author(name=author.name, uri=author.uri),
        content_encoded=content,
        media=[replace(media) for media in entry.media],
        source_uri=record.uri,
    )


def _append_media(content: str, media: list[MediaItem]) -> str:
    markup = [media_html(item) for item in media if item.url not in content]
    if not markup:
        return content
    return f"{content}<br>{' '.join(markup)}"


def _sort_key(entry: Entry) -> float:
    timestamp = entry.published_timestamp()
    return timestamp if timestamp is not None else float("-inf")


def _select_sources(store: HistoryStore, selected: Iterable[str] | None) -> list[SourceRecord]:
    if selected is None:
        return list(store.sources.values())
    records = []
    for uri in dict.fromkeys(selected):
        record = store.sources.get(uri)
        if record is None:
            raise RenderError(f"Unknown source: {uri}")
        records.append(record)
    return records


def _feed_identity(
    settings: FeedSettings,
    sources: list[SourceRecord],
    selected: Iterable[str] | None,
) -> tuple[str, str]:
    if selected is not None and len(sources) == 1:
        record = sources[0]
        return record.title or settings.title, record.link or settings.link
    return settings.title, settings.link


def _validate(settings: FeedSettings | EffectiveSettings, scope: str) -> None:
    if settings.description_title_word_count < 0:
        raise RenderError(
            f"description_title_word_count must not be negative ({scope}): "
            f"{settings.description_title_word_count}"
        )
