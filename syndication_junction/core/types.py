"""
Core data types for Syndication Junction.

This module defines the data structures shared by the aggregation and
render pipelines:
- Entry: One syndicated item, normalized from RSS 2.0 or Atom
- SourceRecord: One upstream feed and its accumulated entry history
- FeedSettings: Feed-level render settings (the global configuration)
- FeedOverrides: Optional per-source values for the render settings
- OutputFeed / OutputItem: The rendered feed model handed to the serializer
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any


@dataclass
class Author:
    """Author of an entry, or the feed identity used in place of one.

    Attributes:
        name: Display name
        uri: Profile or homepage URI
    """
    name: str
    uri: str = ""


@dataclass
class MediaItem:
    """A media attachment referenced by an entry (media:content or enclosure).

    Attributes:
        url: Remote (or, after localization, local) URI of the media file
        type: MIME type such as "image/png"; may be empty when unknown
        medium: Media RSS medium ("image", "video", "audio"), optional
        file_size: Size in bytes as given by the feed, optional
        description: Alt text / caption, optional
    """
    url: str
    type: str = ""
    medium: str | None = None
    file_size: str | None = None
    description: str | None = None

    @property
    def kind(self) -> str:
        """Return "image", "video", "audio" or "" from the MIME type or medium."""
        major = self.type.split("/", 1)[0].lower() if self.type else ""
        if major in ("image", "video", "audio"):
            return major
        if self.medium in ("image", "video", "audio"):
            return self.medium
        return ""


# Fields that a re-fetch is allowed to overwrite on a stored entry.
MUTABLE_ENTRY_FIELDS = (
    "title",
    "description",
    "content_encoded",
    "media",
    "author",
    "update_date",
)


@dataclass
class Entry:
    """One syndicated item.

    Attributes:
        guid: Identifier, unique within the owning source
        title: Item title, may be None (common for microblog posts)
        link: Permalink to the item
        pub_date: RFC 822 publication date string
        update_date: RFC 822 last-updated date string
        description: Summary or body HTML
        content_encoded: Rich HTML body supplied by the source feed
        author: Item author
        media: Attached media in feed order
    """
    guid: str
    title: str | None = None
    link: str | None = None
    pub_date: str | None = None
    update_date: str | None = None
    description: str | None = None
    content_encoded: str | None = None
    author: Author | None = None
    media: list[MediaItem] = field(default_factory=list)

    def published_at(self) -> datetime | None:
        return parse_rfc822(self.pub_date)

    def published_timestamp(self) -> float | None:
        published = self.published_at()
        return published.timestamp() if published else None


@dataclass
class FeedSettings:
    """Feed-level render settings stored at the top level of the history store.

    Attributes:
        title: Output channel title
        link: Output channel link
        max_entries_published: Maximum number of items rendered, negative for no limit
        include_description_as_title_if_none_given: Synthesize missing titles
            from the description (Mastodon posts have no titles)
        description_title_word_count: Words taken from the description for a title
        title_ellipsis: Suffix appended to a truncated synthesized title
        populate_content_encoded: Emit content:encoded for each item
        add_media_to_content_encoded: Append attached media markup to content:encoded
        override_item_author: Replace item authors with the source's feed identity
        output_one_channel: Kept for compatibility with existing stores, no effect
    """
    title: str = ""
    link: str = ""
    max_entries_published: int = -1
    include_description_as_title_if_none_given: bool = True
    description_title_word_count: int = 10
    title_ellipsis: str = "..."
    populate_content_encoded: bool = True
    add_media_to_content_encoded: bool = True
    override_item_author: bool = False
    output_one_channel: bool = True


@dataclass
class FeedOverrides:
    """Per-source values for the render settings; None means use the global value."""
    include_description_as_title_if_none_given: bool | None = None
    description_title_word_count: int | None = None
    title_ellipsis: str | None = None
    populate_content_encoded: bool | None = None
    add_media_to_content_encoded: bool | None = None
    override_item_author: bool | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class SourceRecord:
    """One configured upstream feed and its entry history.

    Attributes:
        uri: Feed URI, the primary key
        manipulate_input: Shell command the raw feed body is piped through, or None
        retain_all_entries: Kept in the persisted format, currently has no effect
        title: Title override for this source's feed identity
        link: Link override for this source's feed identity
        overrides: Per-source render setting overrides
        snapshot: Channel metadata from the last successful fetch, opaque
        entries: Entries in first-seen order; only ever appended to
    """
    uri: str
    manipulate_input: str | None = None
    retain_all_entries: bool = True
    title: str | None = None
    link: str | None = None
    overrides: FeedOverrides = field(default_factory=FeedOverrides)
    snapshot: dict[str, Any] = field(default_factory=dict)
    entries: list[Entry] = field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title or str(self.snapshot.get("title") or "") or self.uri

    @property
    def display_link(self) -> str:
        return self.link or str(self.snapshot.get("link") or "") or self.uri


@dataclass
class MergeReport:
    """Outcome of merging one fetch into a source's history."""
    new: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.new + self.updated + self.unchanged


@dataclass
class OutputItem:
    """One rendered RSS item."""
    guid: str
    title: str
    link: str | None
    description: str | None
    pub_date: str | None
    author: Author | None = None
    content_encoded: str | None = None
    media: list[MediaItem] = field(default_factory=list)
    source_uri: str = ""


@dataclass
class OutputFeed:
    """The rendered feed: channel metadata plus ordered items."""
    title: str
    link: str
    description: str
    items: list[OutputItem] = field(default_factory=list)


def parse_rfc822(value: str | None) -> datetime | None:
    """Parse an RFC 822 date string, returning None when absent or invalid.

    Dates without a zone offset are taken as UTC.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
