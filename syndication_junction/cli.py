"""
Command-line interface for Syndication Junction.

Uses Typer to expose the fetch and output-rss workflows, plus init to
create an empty history store. Store and render failures are reported
with a non-zero exit status; failing sources during fetch are not.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import AppConfig, load_config
from .core.errors import SyndicationError
from .core.store import create_store_if_missing
from .runner import run_fetch, run_output_rss

app = typer.Typer(add_completion=False, help="Aggregate feeds into a history store and republish them as RSS.")
console = Console()


def _build_config(config: Path | None, db: Path | None, log_level: str | None) -> AppConfig:
    cfg = load_config(str(config) if config else None)
    if db is not None:
        cfg.store.path = str(db)
    if log_level:
        cfg.logging.level = log_level
    return cfg


@app.command()
def fetch(
    uris: list[str] | None = typer.Argument(
        None, help="Feed URIs to fetch. Re-fetches every known source when omitted."
    ),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    db: Path | None = typer.Option(None, "--db", help="History store path."),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    strict: bool = typer.Option(
        False, "--strict", help="Exit with status 2 when any source fails."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Fetch feeds and merge their entries into the history store.

    Each source is fetched independently; a failing source is reported and
    the remaining sources are still merged and saved.

    Args:
        uris: Feed URIs, in the order they are merged
        config: Optional path to YAML config file
        db: Override the history store path
        progress: Whether to show progress bar
        strict: Exit with status 2 if any source failed
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    cfg = _build_config(config, db, log_level)
    console.print(f"Syndication Junction v{__version__}")
    try:
        report = run_fetch(list(uris or []), cfg, show_progress=progress, console=console)
    except SyndicationError as exc:
        console.print(f"[red]❌ {escape(str(exc))}[/red]", highlight=False)
        raise typer.Exit(code=1) from exc

    if strict and report.failed:
        raise typer.Exit(code=2)


@app.command("output-rss")
def output_rss(
    filename: Path | None = typer.Argument(None, help="Output file (default: rss.xml)."),
    media_base_uri: str | None = typer.Argument(
        None, help="Public base URI; when given, media is downloaded and rewritten."
    ),
    source: list[str] | None = typer.Option(
        None, "--source", "-s", help="Only render this source (repeatable)."
    ),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    db: Path | None = typer.Option(None, "--db", help="History store path."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Render the stored history as an RSS 2.0 feed.

    Args:
        filename: Output RSS file
        media_base_uri: Base URI the output directory is served from
        source: Source URIs to include (all sources when omitted)
        config: Optional path to YAML config file
        db: Override the history store path
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    cfg = _build_config(config, db, log_level)
    output_path = filename or Path(cfg.output.filename)
    try:
        run_output_rss(
            output_path,
            media_base_uri,
            cfg,
            selected=list(source) if source else None,
            console=console,
        )
    except SyndicationError as exc:
        console.print(f"[red]❌ {escape(str(exc))}[/red]", highlight=False)
        raise typer.Exit(code=1) from exc


@app.command()
def init(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    db: Path | None = typer.Option(None, "--db", help="History store path."),
):
    """Create an empty history store with default settings if none exists."""
    cfg = _build_config(config, db, None)
    path = Path(cfg.store.path)
    try:
        created = create_store_if_missing(path)
    except SyndicationError as exc:
        console.print(f"[red]❌ {escape(str(exc))}[/red]", highlight=False)
        raise typer.Exit(code=1) from exc
    if created:
        console.print(f"✅ Created history store: {escape(str(path))}")
    else:
        console.print(f"➡ Skipping because {escape(str(path))} exists")


if __name__ == "__main__":
    app()
