"""Tests for aggregating sources into the history store."""

from __future__ import annotations

from pathlib import Path

from syndication_junction import aggregator
from syndication_junction.config import FetchConfig
from syndication_junction.core.errors import FetchError, FilterCommandError
from syndication_junction.core.store import HistoryStore, load_store, save_store
from syndication_junction.core.types import Entry
from syndication_junction.fetch.source import ParsedFeed

A = "https://a.example.org/feed.xml"
B = "https://b.example.org/feed.xml"


def _fake_sources(feeds: dict[str, list[Entry]], failing: set[str] = frozenset()):
    calls: list[tuple[str, str | None]] = []

    def fetch(uri, manipulate_input, cfg):
        calls.append((uri, manipulate_input))
        if uri in failing:
            raise FetchError(uri, "Request returned non-successful status code: 500", 500)
        return ParsedFeed(snapshot={"title": uri}, entries=list(feeds.get(uri, [])))

    return fetch, calls


def test_failing_source_does_not_affect_others():
    store = HistoryStore()
    fetch, _ = _fake_sources({A: [Entry(guid="a1"), Entry(guid="a2")]}, failing={B})

    report = aggregator.aggregate(store, [A, B], FetchConfig(), fetch=fetch)

    assert [r.uri for r in report.succeeded] == [A]
    assert [r.uri for r in report.failed] == [B]
    assert report.failed[0].error_kind == "FetchError"
    assert report.new_entries == 2
    assert [e.guid for e in store.sources[A].entries] == ["a1", "a2"]
    assert B not in store.sources


def test_duplicate_uris_are_processed_once():
    store = HistoryStore()
    fetch, calls = _fake_sources({A: [Entry(guid="a1")]})

    report = aggregator.aggregate(store, [A, A], FetchConfig(), fetch=fetch)

    assert len(report.results) == 1
    assert len(calls) == 1


def test_stored_filter_command_is_passed_to_fetch():
    store = HistoryStore()
    store.get_or_create(A).manipulate_input = "cat"
    fetch, calls = _fake_sources({A: []})

    aggregator.aggregate(store, [A], FetchConfig(), fetch=fetch)

    assert calls == [(A, "cat")]


def test_filter_command_failure_is_reported_per_source():
    store = HistoryStore()

    def fetch(uri, manipulate_input, cfg):
        raise FilterCommandError("exit 3", "exited with status 3", returncode=3)

    done = []
    report = aggregator.aggregate(store, [A], FetchConfig(), fetch=fetch, on_source_done=done.append)

    assert report.failed[0].error_kind == "FilterCommandError"
    assert done == report.results


def test_run_aggregation_saves_once_and_refetches_known_sources(tmp_path: Path):
    path = tmp_path / "db.json"
    fetch, calls = _fake_sources({A: [Entry(guid="a1")], B: [Entry(guid="b1")]})

    aggregator.run_aggregation(path, [A, B], FetchConfig(), fetch=fetch)
    stored = load_store(path)
    assert list(stored.sources) == [A, B]

    calls.clear()
    report = aggregator.run_aggregation(path, [], FetchConfig(), fetch=fetch)

    assert [uri for uri, _ in calls] == [A, B]
    assert report.new_entries == 0


def test_run_aggregation_uses_fetch_source_by_default(tmp_path: Path, monkeypatch):
    path = tmp_path / "db.json"
    save_store(HistoryStore(), path)
    fetch, _ = _fake_sources({A: [Entry(guid="a1")]})
    monkeypatch.setattr(aggregator, "fetch_source", fetch)

    aggregator.run_aggregation(path, [A], FetchConfig())

    assert [e.guid for e in load_store(path).sources[A].entries] == ["a1"]
