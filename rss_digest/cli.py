"""
Command-line interface for rss_digest.

Uses Typer; a `.env` file in the working directory is loaded first so that
RSS_DIGEST_SNAPSHOT / RSS_DIGEST_TTL can be kept there.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from .config import load_config
from .core import NewsAggregator
from .exceptions import InvalidFilterError, PersistenceError
from .logging_utils import setup_logging
from .scheduler import RefreshScheduler

app = typer.Typer(add_completion=False, help="Aggregate, categorize and store RSS news.")
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", exists=True, readable=True, help="YAML config file."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write JSON-lines logs here."),
) -> None:
    load_dotenv()
    setup_logging(log_level, log_file)
    ctx.obj = {"config": config}


def _aggregator(ctx: typer.Context) -> NewsAggregator:
    try:
        cfg = load_config(ctx.obj["config"])
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=2)
    try:
        return NewsAggregator(cfg)
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


def _print_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


@app.command()
def refresh(ctx: typer.Context, force: bool = typer.Option(False, "--force", "-f", help="Ignore the refresh TTL.")) -> None:
    """Run a refresh cycle if the store is stale (or always with --force)."""
    agg = _aggregator(ctx)
    try:
        result = agg.refresh(force=force)
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    if result.refreshed:
        stats = result.stats
        console.print(
            f"Refreshed: {stats.inserted} new, {stats.updated} updated, "
            f"{result.dropped} dropped, {result.article_count} stored "
            f"({result.failed_sources} source(s) failed)"
        )
    else:
        console.print(f"No refresh ({result.reason}); {result.article_count} articles stored")


@app.command()
def articles(
    ctx: typer.Context,
    category: Optional[str] = typer.Option(None, "--category", help="Category filter, 'all' by default."),
    force_refresh: bool = typer.Option(False, "--force-refresh", help="Refresh before answering."),
) -> None:
    """Print the article list as JSON."""
    agg = _aggregator(ctx)
    try:
        _print_json(agg.query(category, force_refresh=force_refresh))
    except InvalidFilterError as e:
        console.print(f"[red]{e}[/red] (known: {', '.join(agg.categories())})")
        raise typer.Exit(code=2)
    except PersistenceError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def categories(ctx: typer.Context) -> None:
    """List the category filters."""
    for label in _aggregator(ctx).categories():
        typer.echo(label)


@app.command()
def status(ctx: typer.Context) -> None:
    """Print a health report as JSON."""
    report = _aggregator(ctx).status()
    _print_json(report)
    if report["status"] != "ok":
        raise typer.Exit(code=1)


@app.command()
def watch(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(None, "--interval", help="Seconds between refreshes."),
) -> None:
    """Refresh on a fixed interval until interrupted."""
    agg = _aggregator(ctx)
    every = interval or agg.config.scheduler_interval_seconds
    scheduler = RefreshScheduler(agg, interval=every, max_backoff=agg.config.scheduler_max_backoff_seconds)
    console.print(f"Refreshing every {every}s, Ctrl+C to stop")
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()


if __name__ == "__main__":
    app()
