"""Tests for media localization."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from syndication_junction.config import FetchConfig, MediaConfig
from syndication_junction.core.errors import MediaDownloadError
from syndication_junction.core.types import MediaItem, OutputFeed, OutputItem
from syndication_junction.fetch.fetcher import download_file
from syndication_junction.media import (
    extract_media_urls,
    local_filename,
    localize_media,
    rewrite_references,
)

BASE = "https://mirror.example.org/feeds/"
IMG = "https://cdn.example.org/img/cat.png?w=1&h=2"
VIDEO = "https://cdn.example.org/v/clip.mp4"


def _feed() -> OutputFeed:
    return OutputFeed(
        title="t",
        link="l",
        description="d",
        items=[
            OutputItem(
                guid="1",
                title="one",
                link=None,
                description='<p><img src="https://cdn.example.org/img/cat.png?w=1&amp;h=2"></p>',
                pub_date=None,
                content_encoded=f'<video src="{VIDEO}" poster="{IMG}"></video>',
                media=[MediaItem(url=VIDEO, type="video/mp4")],
            ),
            OutputItem(
                guid="2",
                title="two",
                link=None,
                description=f"<img src='{IMG}'> and a link https://cdn.example.org/img/cat.png",
                pub_date=None,
            ),
        ],
    )


class FakeDownloader:
    def __init__(self, failing: set[str] = frozenset()):
        self.calls: list[str] = []
        self.failing = failing

    def __call__(self, url: str, dest: Path) -> Path:
        self.calls.append(url)
        if url in self.failing:
            raise MediaDownloadError(url, "non-successful status code 404")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"data")
        return dest


def test_extract_media_urls_unescapes_and_dedups():
    text = '<img src="a.png"><IMG SRC=\'b.png\'><video poster="a.png"></video><a href="c.png">'

    assert extract_media_urls(text) == ["a.png", "b.png"]
    assert extract_media_urls('<img src="https://x.org/a?x=1&amp;y=2">') == ["https://x.org/a?x=1&y=2"]
    assert extract_media_urls(None) == []


def test_local_filename_is_deterministic_and_keeps_extension():
    name = local_filename(IMG)

    assert name == local_filename(IMG)
    assert name != local_filename(VIDEO)
    assert name.endswith("-cat.png")
    assert local_filename("https://cdn.example.org/").endswith("-media")


def test_localize_media_rewrites_all_references(tmp_path: Path):
    media_dir = tmp_path / "media"
    download = FakeDownloader()

    feed, report = localize_media(_feed(), BASE, media_dir, MediaConfig(), FetchConfig(), download=download)

    local_img = f"https://mirror.example.org/feeds/media/{local_filename(IMG)}"
    local_video = f"https://mirror.example.org/feeds/media/{local_filename(VIDEO)}"
    assert sorted(download.calls) == sorted([IMG, VIDEO])
    assert sorted(report.downloaded) == sorted([IMG, VIDEO])
    first, second = feed.items
    assert first.media[0].url == local_video
    assert first.description == f'<p><img src="{local_img}"></p>'
    assert first.content_encoded == f'<video src="{local_video}" poster="{local_img}"></video>'
    assert second.description.startswith(f"<img src='{local_img}'>")
    assert second.description.endswith("https://cdn.example.org/img/cat.png")
    assert (media_dir / local_filename(IMG)).exists()


def test_localize_media_reuses_existing_files(tmp_path: Path):
    media_dir = tmp_path / "media"
    localize_media(_feed(), BASE, media_dir, MediaConfig(), FetchConfig(), download=FakeDownloader())

    download = FakeDownloader()
    first_run, _ = localize_media(_feed(), BASE, media_dir, MediaConfig(), FetchConfig(), download=FakeDownloader())
    second_run, report = localize_media(_feed(), BASE, media_dir, MediaConfig(), FetchConfig(), download=download)

    assert download.calls == []
    assert sorted(report.reused) == sorted([IMG, VIDEO])
    assert second_run == first_run


def test_failed_download_keeps_remote_reference(tmp_path: Path):
    media_dir = tmp_path / "media"
    download = FakeDownloader(failing={VIDEO})

    feed, report = localize_media(_feed(), BASE, media_dir, MediaConfig(), FetchConfig(), download=download)

    assert report.failed == [VIDEO]
    assert feed.items[0].media[0].url == VIDEO
    assert f'<video src="{VIDEO}"' in feed.items[0].content_encoded
    assert not (media_dir / local_filename(VIDEO)).exists()


def test_rewrite_references_does_not_touch_longer_urls():
    mapping = {"https://x.org/a.png": "https://m.org/media/a.png"}
    text = '<img src="https://x.org/a.png"><img src="https://x.org/a.png.bak">'

    assert rewrite_references(text, mapping) == (
        '<img src="https://m.org/media/a.png"><img src="https://x.org/a.png.bak">'
    )


def test_download_file_writes_complete_file(tmp_path: Path):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"png-bytes"))
    dest = tmp_path / "media" / "a.png"

    result = download_file(IMG, dest, timeout=5, retries=0, user_agent="t", trust_env=False, transport=transport)

    assert result == dest
    assert dest.read_bytes() == b"png-bytes"
    assert [p.name for p in dest.parent.iterdir()] == ["a.png"]


def test_download_file_non_success_raises_and_leaves_nothing(tmp_path: Path):
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    dest = tmp_path / "media" / "a.png"

    with pytest.raises(MediaDownloadError):
        download_file(IMG, dest, timeout=5, retries=2, user_agent="t", trust_env=False, transport=transport)

    assert list(dest.parent.iterdir()) == []
