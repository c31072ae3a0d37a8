"""
Media localization for rendered feeds.

Media referenced by a rendered feed (attached media plus <img>/<video>/
<audio>/<source> tags in descriptions and content:encoded bodies) is
downloaded into a local media directory and every reference is rewritten to
``{base_uri}/{media_dir_name}/{local_filename}``.

Local filenames are a pure function of the source URI, so repeated renders
reuse files that already exist instead of downloading them again.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import functools
import hashlib
import html
import logging
import os
from pathlib import Path, PurePosixPath
import re
from typing import Callable
from urllib.parse import unquote, urlparse

import httpx

from .config import FetchConfig, MediaConfig
from .core.errors import MediaDownloadError
from .core.types import OutputFeed, OutputItem
from .fetch.fetcher import download_file
from .logging_utils import log_event

logger = logging.getLogger(__name__)

# Opening tags that embed media.
MEDIA_TAG_RE = re.compile(r"<(?:img|video|audio|source)\b[^>]*>", re.IGNORECASE)
# src/poster attributes inside such a tag, quoted with ' or ".
MEDIA_ATTR_RE = re.compile(r"""\s(?:src|poster)\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_SUFFIX_RE = re.compile(r"\.[a-z0-9]{1,8}")

Downloader = Callable[[str, Path], Path]


@dataclass
class MediaReport:
    """Outcome of one localization pass, by source URI."""
    downloaded: list[str] = field(default_factory=list)
    reused: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def extract_media_urls(text: str | None) -> list[str]:
    """Return distinct media URLs embedded in an HTML fragment.

    Scans ``<img>``, ``<video>``, ``<audio>`` and ``<source>`` opening tags
    for quoted ``src`` and ``poster`` attributes. This is a text scan, not an
    HTML parse: unquoted attributes are not recognized. URLs are returned
    HTML-unescaped, in order of first occurrence.

    Example:
        >>> extract_media_urls('<p><img src="https://x.org/a.png?w=1&amp;h=2"></p>')
        ['https://x.org/a.png?w=1&h=2']
    """
    if not text:
        return []
    urls: dict[str, None] = {}
    for tag in MEDIA_TAG_RE.finditer(text):
        for match in MEDIA_ATTR_RE.finditer(tag.group(0)):
            url = html.unescape(match.group(2).strip())
            if url:
                urls.setdefault(url, None)
    return list(urls)


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphenated slug of at most 40 characters."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:40].strip("-") or "media"


def local_filename(uri: str) -> str:
    """Deterministic local filename for a media URI.

    The name is ``{sha256(uri)[:16]}-{slug}{ext}``: the digest keeps names
    unique per URI, the slug and extension keep them recognizable.

    Example:
        >>> local_filename("https://cdn.example.org/img/Cat Photo.JPG").endswith("-cat-photo.jpg")
        True
    """
    digest = hashlib.sha256(uri.encode("utf-8")).hexdigest()[:16]
    name = PurePosixPath(unquote(urlparse(uri).path)).name
    stem, suffix = os.path.splitext(name)
    suffix = suffix.lower()
    if not _SUFFIX_RE.fullmatch(suffix):
        suffix = ""
    return f"{digest}-{slugify(stem)}{suffix}"


def collect_media_urls(feed: OutputFeed) -> list[str]:
    """Distinct http(s) media URLs referenced anywhere in ``feed``, in item order."""
    urls: dict[str, None] = {}
    for item in feed.items:
        candidates = [media.url for media in item.media]
        candidates += extract_media_urls(item.description)
        candidates += extract_media_urls(item.content_encoded)
        for url in candidates:
            if urlparse(url).scheme in ("http", "https"):
                urls.setdefault(url, None)
    return list(urls)


def localize_media(
    feed: OutputFeed,
    base_uri: str,
    media_dir: Path,
    media_cfg: MediaConfig,
    fetch_cfg: FetchConfig,
    download: Downloader | None = None,
    transport: httpx.BaseTransport | None = None,
) -> tuple[OutputFeed, MediaReport]:
    """Download the feed's media and point every reference at the local copy.

    Each distinct URI is handled once. A URI whose local file already exists
    is not downloaded again. A failed download is logged and leaves that
    URI's references pointing at the remote original.

    Args:
        feed: Rendered feed
        base_uri: Public base URI the output directory is served from
        media_dir: Local directory media files are written to
        media_cfg: Media download settings
        fetch_cfg: Supplies the user agent and proxy settings
        download: Downloader override (url, dest) -> dest
        transport: Optional httpx transport for the default downloader

    Returns:
        Tuple of (feed with rewritten references, MediaReport)
    """
    if download is None:
        download = functools.partial(
            download_file,
            timeout=media_cfg.timeout_seconds,
            retries=media_cfg.retries,
            user_agent=fetch_cfg.user_agent,
            trust_env=fetch_cfg.trust_env,
            transport=transport,
        )

    prefix = f"{base_uri.rstrip('/')}/{media_dir.name}"
    report = MediaReport()
    mapping: dict[str, str] = {}

    for url in collect_media_urls(feed):
        filename = local_filename(url)
        dest = media_dir / filename
        if dest.exists():
            report.reused.append(url)
        else:
            try:
                download(url, dest)
            except MediaDownloadError as exc:
                report.failed.append(url)
                log_event(
                    logger,
                    f"Media download failed, keeping remote URI: {url}",
                    level=logging.WARNING,
                    event="media_download_failed",
                    url=url,
                    error=str(exc),
                )
                continue
            report.downloaded.append(url)
            log_event(logger, f"Finished downloading file: {filename}", event="media_downloaded", url=url)
        mapping[url] = f"{prefix}/{filename}"

    if not mapping:
        return feed, report
    items = [_rewrite_item(item, mapping) for item in feed.items]
    return replace(feed, items=items), report


def rewrite_references(text: str | None, mapping: dict[str, str]) -> str | None:
    """Replace each mapped URL in ``text``, raw or ``&amp;``-escaped.

    A URL only matches when followed by a quote, whitespace, angle bracket,
    closing parenthesis or the end of the text, so a mapped URL never
    rewrites part of a longer, unmapped one.
    """
    if not text or not mapping:
        return text
    variants: dict[str, str] = {}
    for url, local in mapping.items():
        variants[url] = local
        variants.setdefault(url.replace("&", "&amp;"), local)
    pattern = re.compile(
        "(?:"
        + "|".join(re.escape(url) for url in sorted(variants, key=len, reverse=True))
        + r""")(?=["'\s<>)]|$)"""
    )
    return pattern.sub(lambda match: variants[match.group(0)], text)


def _rewrite_item(item: OutputItem, mapping: dict[str, str]) -> OutputItem:
    return replace(
        item,
        description=rewrite_references(item.description, mapping),
        content_encoded=rewrite_references(item.content_encoded, mapping),
        media=[replace(media, url=mapping.get(media.url, media.url)) for media in item.media],
    )
