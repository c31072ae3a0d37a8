"""Tests for fetching, filter commands and RSS/Atom normalization."""

from __future__ import annotations

import httpx
import pytest

from syndication_junction.config import FetchConfig
from syndication_junction.core.errors import FetchError, FilterCommandError, ParseError
from syndication_junction.fetch import fetcher, source
from syndication_junction.fetch.fetcher import FetchResult, fetch_url
from syndication_junction.fetch.source import fetch_source, parse_feed, run_filter_command

RSS_DOC = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Example Feed</title>
    <link>https://example.org/</link>
    <description>Example description</description>
    <item>
      <title>First post</title>
      <link>https://example.org/posts/1</link>
      <guid isPermaLink="false">post-1</guid>
      <pubDate>Tue, 02 Jan 2024 10:00:00 GMT</pubDate>
      <dc:creator>Ann</dc:creator>
      <description>Short summary</description>
      <content:encoded><![CDATA[<p>Full body</p>]]></content:encoded>
      <media:content url="https://cdn.example.org/a.png" type="image/png" medium="image" />
      <enclosure url="https://cdn.example.org/a.png" length="10" type="image/png" />
      <enclosure url="https://cdn.example.org/b.mp3" length="2048" type="audio/mpeg" />
    </item>
    <item>
      <link>https://example.org/posts/2</link>
      <description>A post without a title or guid</description>
    </item>
    <item>
      <description>Nothing but a description</description>
    </item>
  </channel>
</rss>
"""

ATOM_DOC = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <link href="https://atom.example.org/"/>
  <id>urn:uuid:feed</id>
  <updated>2024-01-03T12:00:00Z</updated>
  <entry>
    <title>Atom entry</title>
    <link href="https://atom.example.org/1"/>
    <id>urn:uuid:entry-1</id>
    <updated>2024-01-03T12:00:00Z</updated>
    <author><name>Bob</name><uri>https://bob.example.org</uri></author>
    <summary>Atom summary</summary>
    <content type="html">&lt;p&gt;Atom content&lt;/p&gt;</content>
  </entry>
</feed>
"""


def test_parse_rss_normalizes_items():
    parsed = parse_feed(RSS_DOC)

    assert parsed.snapshot["title"] == "Example Feed"
    assert parsed.snapshot["version"].startswith("rss")
    assert len(parsed.entries) == 3

    first = parsed.entries[0]
    assert first.guid == "post-1"
    assert first.title == "First post"
    assert first.link == "https://example.org/posts/1"
    assert first.pub_date == "Tue, 02 Jan 2024 10:00:00 +0000"
    assert first.description == "Short summary"
    assert "Full body" in first.content_encoded
    assert first.author is not None and first.author.name == "Ann"


def test_parse_rss_collects_media_without_duplicates():
    first = parse_feed(RSS_DOC).entries[0]

    assert [m.url for m in first.media] == [
        "https://cdn.example.org/a.png",
        "https://cdn.example.org/b.mp3",
    ]
    assert first.media[0].medium == "image"
    assert first.media[0].kind == "image"
    assert first.media[1].type == "audio/mpeg"
    assert first.media[1].file_size == "2048"


def test_guid_falls_back_to_link_then_digest():
    entries = parse_feed(RSS_DOC).entries

    assert entries[1].guid == "https://example.org/posts/2"
    assert entries[1].title is None
    assert entries[2].guid.startswith("sha256:")
    assert parse_feed(RSS_DOC).entries[2].guid == entries[2].guid


def test_parse_atom_normalizes_entry():
    parsed = parse_feed(ATOM_DOC)

    entry = parsed.entries[0]
    assert parsed.snapshot["title"] == "Atom Example"
    assert entry.guid == "urn:uuid:entry-1"
    assert entry.link == "https://atom.example.org/1"
    assert entry.pub_date == "Wed, 03 Jan 2024 12:00:00 +0000"
    assert entry.update_date == entry.pub_date
    assert entry.description == "Atom summary"
    assert "Atom content" in entry.content_encoded
    assert entry.author is not None
    assert entry.author.name == "Bob"
    assert entry.author.uri == "https://bob.example.org"


def test_parse_rejects_non_feed_input():
    with pytest.raises(ParseError):
        parse_feed(b"this is not a feed at all")


def test_run_filter_command_pipes_body():
    assert run_filter_command("cat", b"hello") == b"hello"


def test_run_filter_command_non_zero_exit_raises():
    with pytest.raises(FilterCommandError) as excinfo:
        run_filter_command("echo broken >&2; exit 3", b"")

    assert excinfo.value.returncode == 3
    assert "broken" in str(excinfo.value)


def _fake_fetch(body: bytes):
    def fake(url, **kwargs):
        return FetchResult(url=url, status_code=200, content=body, error=None)

    return fake


def test_fetch_source_applies_filter_command(monkeypatch):
    monkeypatch.setattr(source, "fetch_url", _fake_fetch(RSS_DOC))

    parsed = fetch_source("https://example.org/feed.xml", "sed 's/First post/Filtered/'", FetchConfig())

    assert parsed.entries[0].title == "Filtered"


def test_fetch_source_filter_output_not_a_feed(monkeypatch):
    monkeypatch.setattr(source, "fetch_url", _fake_fetch(RSS_DOC))

    with pytest.raises(FilterCommandError):
        fetch_source("https://example.org/feed.xml", "echo nope", FetchConfig())


def test_fetch_source_failing_filter_command(monkeypatch):
    monkeypatch.setattr(source, "fetch_url", _fake_fetch(RSS_DOC))

    with pytest.raises(FilterCommandError):
        fetch_source("https://example.org/feed.xml", "exit 1", FetchConfig())


def test_fetch_source_over_http():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=RSS_DOC))

    parsed = fetch_source("https://example.org/feed.xml", None, FetchConfig(retries=0), transport=transport)

    assert [e.guid for e in parsed.entries][0] == "post-1"


def test_fetch_source_http_error_raises_fetch_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))

    with pytest.raises(FetchError) as excinfo:
        fetch_source("https://example.org/feed.xml", None, FetchConfig(retries=0), transport=transport)

    assert excinfo.value.status_code == 500
    assert "500" in str(excinfo.value)


def test_fetch_url_retries_transport_errors(monkeypatch):
    monkeypatch.setattr(fetcher.time, "sleep", lambda seconds: None)
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, content=b"ok")

    result = fetch_url(
        "https://example.org/",
        timeout=5,
        retries=1,
        user_agent="test-agent",
        trust_env=False,
        transport=httpx.MockTransport(handler),
    )

    assert result.ok
    assert result.content == b"ok"
    assert len(calls) == 2
    assert calls[0].headers["User-Agent"] == "test-agent"


def test_fetch_url_does_not_retry_http_status():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    result = fetch_url(
        "https://example.org/",
        timeout=5,
        retries=3,
        user_agent="test-agent",
        trust_env=False,
        transport=httpx.MockTransport(handler),
    )

    assert not result.ok
    assert result.status_code == 404
    assert len(calls) == 1
