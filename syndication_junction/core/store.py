"""History store: per-source entry history plus feed settings.

The store is persisted as a single pretty-printed JSON document. Each source
keeps its entries under ``rss.channel.item`` next to the channel metadata of
the last fetch, so the file stays readable as a set of RSS channels.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable

from .errors import StoreReadError, StoreWriteError
from .types import (
    MUTABLE_ENTRY_FIELDS,
    Author,
    Entry,
    FeedOverrides,
    FeedSettings,
    MediaItem,
    MergeReport,
    SourceRecord,
)

logger = logging.getLogger(__name__)


@dataclass
class HistoryStore:
    """All configured sources (in first-seen order) and the global feed settings."""

    settings: FeedSettings = field(default_factory=FeedSettings)
    sources: dict[str, SourceRecord] = field(default_factory=dict)

    def get_or_create(self, uri: str) -> SourceRecord:
        record = self.sources.get(uri)
        if record is None:
            record = SourceRecord(uri=uri)
            self.sources[uri] = record
        return record

    def merge(
        self,
        source_uri: str,
        fetched: Iterable[Entry],
        snapshot: dict[str, Any] | None = None,
    ) -> MergeReport:
        """Merge freshly fetched entries into a source's history.

        New guids are appended in fetch order. Known guids have their mutable
        fields overwritten in place; position, link and pub_date are kept.
        Stored entries missing from the fetch are left untouched.

        Args:
            source_uri: URI of the source the entries were fetched from
            fetched: Normalized entries from the fetch
            snapshot: Channel metadata of the fetch; replaces the stored one if given

        Returns:
            MergeReport with new/updated/unchanged counts
        """
        record = self.get_or_create(source_uri)
        if snapshot is not None:
            record.snapshot = dict(snapshot)

        index = {entry.guid: entry for entry in record.entries}
        report = MergeReport()
        for incoming in fetched:
            existing = index.get(incoming.guid)
            if existing is None:
                record.entries.append(incoming)
                index[incoming.guid] = incoming
                report.new += 1
            elif _update_entry(existing, incoming):
                report.updated += 1
            else:
                report.unchanged += 1
        return report


def _update_entry(existing: Entry, incoming: Entry) -> bool:
    """Overwrite mutable fields of ``existing``; return True if anything changed."""
    changed = False
    for name in MUTABLE_ENTRY_FIELDS:
        value = getattr(incoming, name)
        if getattr(existing, name) != value:
            setattr(existing, name, value)
            changed = True
    return changed


def load_store(path: Path) -> HistoryStore:
    """Load the history store from disk.

    A missing file means this is the first run and yields an empty store.
    Anything else that goes wrong is raised, never papered over, so that
    existing history cannot be replaced by an empty store on the next save.

    Raises:
        StoreReadError: If the file exists but cannot be read or decoded
    """
    if not path.exists():
        logger.info("No history store at %s, starting with an empty one", path)
        return HistoryStore()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StoreReadError(f"Error reading history store {path}: {exc}") from exc
    try:
        return store_from_dict(raw)
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        raise StoreReadError(f"Invalid history store {path}: {exc}") from exc


def save_store(store: HistoryStore, path: Path) -> None:
    """Write the whole store to disk, replacing the previous file atomically.

    Raises:
        StoreWriteError: If serialization or any filesystem operation fails
    """
    try:
        payload = json.dumps(store_to_dict(store), indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StoreWriteError(f"Error formatting history store: {exc}") from exc

    directory = path.parent
    tmp_name: str | None = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.write("\n")
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise StoreWriteError(f"Error writing history store {path}: {exc}") from exc


def create_store_if_missing(path: Path) -> bool:
    """Write a default store when none exists; return True if one was created."""
    if path.exists():
        return False
    save_store(HistoryStore(), path)
    return True


# --- serialization -------------------------------------------------------


def store_to_dict(store: HistoryStore) -> dict[str, Any]:
    data: dict[str, Any] = {
        f.name: getattr(store.settings, f.name) for f in fields(FeedSettings)
    }
    data["rss"] = {uri: _source_to_dict(record) for uri, record in store.sources.items()}
    return data


def store_from_dict(raw: dict[str, Any]) -> HistoryStore:
    if not isinstance(raw, dict):
        raise ValueError("top level must be a JSON object")
    settings = FeedSettings(**_checked_settings(raw, FeedSettings, "settings"))
    sources_raw = raw.get("rss") or {}
    if not isinstance(sources_raw, dict):
        raise ValueError("'rss' must map source URIs to feed options")
    sources = {uri: _source_from_dict(uri, value) for uri, value in sources_raw.items()}
    return HistoryStore(settings=settings, sources=sources)


def _checked_settings(raw: dict[str, Any], cls: type, scope: str) -> dict[str, Any]:
    """Pick ``cls`` fields out of ``raw``, checking each against the type of its default.

    Booleans are not accepted where an integer is expected. For
    FeedOverrides, None means "not overridden" and is always allowed.
    """
    values: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        value = raw[f.name]
        if value is None and cls is FeedOverrides:
            continue
        expected = _SETTING_TYPES[f.name]
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ValueError(
                f"{scope}: '{f.name}' must be of type {expected.__name__}, got {value!r}"
            )
        values[f.name] = value
    return values


_SETTING_TYPES = {f.name: type(getattr(FeedSettings(), f.name)) for f in fields(FeedSettings)}


def _source_to_dict(record: SourceRecord) -> dict[str, Any]:
    channel = dict(record.snapshot)
    channel["item"] = [_entry_to_dict(entry) for entry in record.entries]
    data: dict[str, Any] = {
        "rss": {"channel": channel},
        "manipulate_input": record.manipulate_input or "",
        "retain_all_entries": record.retain_all_entries,
        "title": record.title,
        "link": record.link,
    }
    if not record.overrides.is_empty():
        data["overrides"] = record.overrides.to_dict()
    return data


def _source_from_dict(uri: str, raw: dict[str, Any]) -> SourceRecord:
    channel = dict((raw.get("rss") or {}).get("channel") or {})
    items = channel.pop("item", None) or []
    overrides = raw.get("overrides") or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"{uri}: 'overrides' must be a JSON object")
    unknown = set(overrides) - {f.name for f in fields(FeedOverrides)}
    if unknown:
        raise ValueError(f"{uri}: unknown overrides {sorted(unknown)}")
    return SourceRecord(
        uri=uri,
        manipulate_input=raw.get("manipulate_input") or None,
        retain_all_entries=bool(raw.get("retain_all_entries", True)),
        title=raw.get("title") or None,
        link=raw.get("link") or None,
        overrides=FeedOverrides(**_checked_settings(overrides, FeedOverrides, f"{uri} overrides")),
        snapshot=channel,
        entries=[_entry_from_dict(item) for item in items],
    )


def _entry_to_dict(entry: Entry) -> dict[str, Any]:
    return {
        "guid": entry.guid,
        "title": entry.title,
        "link": entry.link,
        "pub_date": entry.pub_date,
        "update_date": entry.update_date,
        "description": entry.description,
        "content_encoded": entry.content_encoded,
        "author": (
            {"name": entry.author.name, "uri": entry.author.uri} if entry.author else None
        ),
        "media": [
            {
                "url": media.url,
                "type": media.type,
                "medium": media.medium,
                "file_size": media.file_size,
                "description": media.description,
            }
            for media in entry.media
        ],
    }


def _entry_from_dict(raw: dict[str, Any]) -> Entry:
    """Build an Entry from its stored dict.

    Items written by earlier releases use camelCase and namespaced keys
    (``pubDate``, ``content:encoded``, ``media:content`` with ``@url``...);
    those are read as well and written back in the current layout.
    """
    author = raw.get("author")
    media = _first(raw, "media", "media:content", "media-content") or []
    return Entry(
        guid=raw["guid"],
        title=raw.get("title"),
        link=raw.get("link"),
        pub_date=_first(raw, "pub_date", "pubDate"),
        update_date=_first(raw, "update_date", "updateDate"),
        description=raw.get("description"),
        content_encoded=_first(raw, "content_encoded", "content:encoded", "content-encoded"),
        author=Author(name=author.get("name", ""), uri=author.get("uri", "")) if author else None,
        media=[_media_from_dict(item) for item in media],
    )


def _media_from_dict(raw: dict[str, Any]) -> MediaItem:
    url = _first(raw, "url", "@url")
    if not url:
        raise ValueError(f"media item without url: {raw!r}")
    return MediaItem(
        url=url,
        type=_first(raw, "type", "@type") or "",
        medium=_first(raw, "medium", "@medium"),
        file_size=_first(raw, "file_size", "@fileSize"),
        description=_first(raw, "description", "media:description", "media-description"),
    )


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None
