"""
Command orchestration for Syndication Junction.

This module coordinates the two workflows exposed by the CLI:
1. fetch: pull every source, merge into the history store, save once
2. output-rss: render the stored history, optionally localize media,
   and write the RSS file

Supports both progress bar and quiet modes for fetching.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)

from .aggregator import AggregationReport, SourceResult, run_aggregation
from .config import AppConfig
from .core.store import load_store
from .logging_utils import log_event, setup_logging
from .media import MediaReport, localize_media
from .render.engine import render_feed
from .render.rss import write_rss


@dataclass
class OutputResult:
    """Result of an output-rss run.

    Attributes:
        path: Path of the written RSS file
        items: Number of rendered items
        sources: Number of distinct sources the rendered items came from
        media: Media localization report, or None when no base URI was given
    """
    path: Path
    items: int
    sources: int = 0
    media: MediaReport | None = None


def run_fetch(
    uris: list[str],
    cfg: AppConfig,
    show_progress: bool = True,
    console: Console | None = None,
) -> AggregationReport:
    """Aggregate the given sources (all known sources when empty) into the store.

    Args:
        uris: Source URIs in processing order
        cfg: Application configuration
        show_progress: Whether to display a progress bar
        console: Rich console for output (creates default if None)

    Returns:
        AggregationReport with one result per source

    Raises:
        StoreReadError: If an existing store cannot be read
        StoreWriteError: If the store cannot be saved
    """
    logger = setup_logging(cfg.logging, Path(cfg.logging.directory))
    console = console or Console()
    store_path = Path(cfg.store.path)
    log_event(logger, "Fetch start", event="fetch_start", store=str(store_path), requested=len(uris))

    if not show_progress:
        report = run_aggregation(store_path, uris, cfg.fetch)
    else:
        progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        )
        with progress:
            task = progress.add_task("Fetch sources", total=len(uris) or None)

            def advance(result: SourceResult) -> None:
                progress.advance(task, 1)

            report = run_aggregation(
                store_path, uris, cfg.fetch, on_source_done=advance
            )

    _render_fetch_report(report, console)
    return report


def run_output_rss(
    output_path: Path,
    media_base_uri: str | None,
    cfg: AppConfig,
    selected: list[str] | None = None,
    console: Console | None = None,
) -> OutputResult:
    """Render the stored history to an RSS file.

    Media is localized into ``{output dir}/{media.directory}`` only when
    ``media_base_uri`` is given.

    Raises:
        StoreReadError: If an existing store cannot be read
        RenderError: If the render settings are invalid
    """
    logger = setup_logging(cfg.logging, Path(cfg.logging.directory))
    console = console or Console()
    store = load_store(Path(cfg.store.path))

    feed = render_feed(store, selected=selected or None)
    media_report: MediaReport | None = None
    self_link: str | None = None
    if media_base_uri:
        media_dir = output_path.parent / cfg.media.directory
        feed, media_report = localize_media(
            feed, media_base_uri, media_dir, cfg.media, cfg.fetch
        )
        self_link = f"{media_base_uri.rstrip('/')}/{output_path.name}"

    write_rss(feed, output_path, self_link=self_link)
    source_uris = {item.source_uri for item in feed.items}
    log_event(
        logger,
        "RSS written",
        event="rss_written",
        output=str(output_path),
        items=len(feed.items),
        sources=len(source_uris),
    )
    result = OutputResult(
        path=output_path, items=len(feed.items), sources=len(source_uris), media=media_report
    )
    _render_output_report(result, console)
    return result


def _render_fetch_report(report: AggregationReport, console: Console) -> None:
    """Display per-source results and totals to the console."""
    for result in report.results:
        if result.status == "ok" and result.report is not None:
            console.print(
                f"[green]✅ {escape(result.uri)}[/green]: fetched={result.report.total}, "
                f"new={result.report.new}, "
                f"updated={result.report.updated}, unchanged={result.report.unchanged}"
            )
        else:
            console.print(f"[red]❌ {escape(result.uri)}[/red]: {escape(result.error or '')}")
    console.print(
        "[bold]Fetch summary[/bold]: "
        f"total={len(report.results)}, success={len(report.succeeded)}, "
        f"failed={len(report.failed)}, new_entries={report.new_entries}"
    )


def _render_output_report(result: OutputResult, console: Console) -> None:
    console.print(
        f"[bold]Feed written[/bold]: {escape(str(result.path))} "
        f"({result.items} items from {result.sources} sources)"
    )
    if result.media is not None:
        console.print(
            "[bold]Media summary[/bold]: "
            f"downloaded={len(result.media.downloaded)}, reused={len(result.media.reused)}, "
            f"failed={len(result.media.failed)}"
        )

