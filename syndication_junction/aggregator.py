"""
Aggregation of source feeds into the history store.

Every source is fetched and merged independently, in the order given, so
that a failing source is reported without affecting the others. The store
is persisted once, after all sources have been processed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Callable, Iterable

from .config import FetchConfig
from .core.errors import FetchError, FilterCommandError, ParseError
from .core.store import HistoryStore, load_store, save_store
from .core.types import MergeReport
from .fetch.source import ParsedFeed, fetch_source
from .logging_utils import log_event

logger = logging.getLogger(__name__)

FetchSource = Callable[[str, str | None, FetchConfig], ParsedFeed]


@dataclass
class SourceResult:
    """Outcome of aggregating one source.

    Attributes:
        uri: Source URI
        status: "ok" or "failed"
        error: Error message when the source failed
        error_kind: Error class name ("FetchError", "ParseError", "FilterCommandError")
        report: Merge counts when the source succeeded
    """
    uri: str
    status: str = "ok"
    error: str | None = None
    error_kind: str | None = None
    report: MergeReport | None = None


@dataclass
class AggregationReport:
    """Per-source results of one aggregation run, in processing order."""
    results: list[SourceResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[SourceResult]:
        return [result for result in self.results if result.status == "ok"]

    @property
    def failed(self) -> list[SourceResult]:
        return [result for result in self.results if result.status == "failed"]

    @property
    def new_entries(self) -> int:
        return sum(result.report.new for result in self.succeeded if result.report)


def aggregate(
    store: HistoryStore,
    uris: Iterable[str],
    cfg: FetchConfig,
    fetch: FetchSource | None = None,
    on_source_done: Callable[[SourceResult], None] | None = None,
) -> AggregationReport:
    """Fetch each URI and merge its entries into ``store``.

    Fetch, parse and filter-command failures are recorded per source and do
    not stop the run. Duplicate URIs are processed once. The store is only
    mutated in memory; persisting it is up to the caller.

    Args:
        store: History store to merge into
        uris: Source URIs in processing order
        cfg: Fetch settings passed through to the feed source
        fetch: Feed source callable (uri, manipulate_input, cfg) -> ParsedFeed;
            defaults to fetch_source
        on_source_done: Optional callback invoked after each source (progress)

    Returns:
        AggregationReport with one SourceResult per distinct URI
    """
    fetch = fetch or fetch_source
    report = AggregationReport()
    seen: set[str] = set()

    for uri in uris:
        if uri in seen:
            continue
        seen.add(uri)

        existing = store.sources.get(uri)
        manipulate_input = existing.manipulate_input if existing else None
        try:
            parsed = fetch(uri, manipulate_input, cfg)
        except (FetchError, ParseError, FilterCommandError) as exc:
            result = SourceResult(
                uri=uri,
                status="failed",
                error=str(exc),
                error_kind=type(exc).__name__,
            )
            log_event(
                logger,
                f"Source failed: {uri}",
                level=logging.ERROR,
                event="source_failed",
                uri=uri,
                error_kind=result.error_kind,
                error=result.error,
            )
        else:
            merge_report = store.merge(uri, parsed.entries, snapshot=parsed.snapshot)
            result = SourceResult(uri=uri, report=merge_report)
            log_event(
                logger,
                f"Source merged: {uri}",
                event="source_merged",
                uri=uri,
                new=merge_report.new,
                updated=merge_report.updated,
                unchanged=merge_report.unchanged,
                fetched=merge_report.total,
            )

        report.results.append(result)
        if on_source_done is not None:
            on_source_done(result)

    return report


def run_aggregation(
    store_path: Path,
    uris: list[str],
    cfg: FetchConfig,
    fetch: FetchSource | None = None,
    on_source_done: Callable[[SourceResult], None] | None = None,
) -> AggregationReport:
    """Load the store, aggregate ``uris`` into it and save it once.

    An empty ``uris`` list re-fetches every source already in the store.

    Raises:
        StoreReadError: If an existing store cannot be read
        StoreWriteError: If the store cannot be saved
    """
    store = load_store(store_path)
    targets = list(uris) or list(store.sources)
    report = aggregate(store, targets, cfg, fetch=fetch, on_source_done=on_source_done)
    save_store(store, store_path)
    log_event(
        logger,
        "History store saved",
        event="store_saved",
        path=str(store_path),
        sources=len(store.sources),
        succeeded=len(report.succeeded),
        failed=len(report.failed),
    )
    return report
