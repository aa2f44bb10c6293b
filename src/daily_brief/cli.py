"""Command-line entry points for the daily brief pipeline."""

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich import print as rprint
from rich.logging import RichHandler

from .config import Settings, get_settings, load_topics
from .context import build_context
from .history import load_history
from .pipeline import PipelineAborted, run_pipeline
from .render import publish_run

app = typer.Typer(help="Generate, group and publish the daily news brief.")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # The OpenAI SDK logs every HTTP request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_settings_or_fail() -> Settings:
    try:
        return get_settings()
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid settings: {exc}") from exc


def _load_topics_or_fail(path: Optional[Path]):
    try:
        return load_topics(path)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.callback(invoke_without_command=True)
def run(
    ctx: typer.Context,
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Root folder for run directories and the archive (defaults to OUTPUT_DIR or ./site).",
    ),
    topics_path: Optional[Path] = typer.Option(
        None,
        "--topics",
        "-t",
        help="JSON file with an ordered list of {name, target, description} topics.",
    ),
    expand: bool = typer.Option(
        True,
        "--expand/--no-expand",
        help="Write a full article per story (one extra model call per story).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging."),
):
    """
    Default command: run the pipeline once and publish the result.

    When a subcommand (e.g., history) is invoked, this callback exits early.
    """
    if ctx.invoked_subcommand:
        return

    configure_logging(verbose)
    settings = _load_settings_or_fail()
    topics = _load_topics_or_fail(topics_path or settings.topics_path)
    pipeline_ctx = build_context(settings, topics=topics, output_root=output_dir)

    rprint(f"[cyan]Generating brief for {pipeline_ctx.today_label} ({len(topics)} topics)...[/cyan]")
    try:
        result = run_pipeline(pipeline_ctx, expand=expand)
    except PipelineAborted as exc:
        rprint(f"[red]Run aborted, nothing published: {exc}[/red]")
        raise typer.Exit(code=1)

    run_dir = publish_run(result, pipeline_ctx)
    rprint(
        f"[green]Published {result.story_count} stories in {len(result.groups)} groups "
        f"({result.grouping_stage.value} grouping) to {run_dir}[/green]"
    )
    if result.story_count < settings.target_total:
        rprint(f"[yellow]Short of target: {result.story_count}/{settings.target_total} stories.[/yellow]")


@app.command("history")
def history_command(
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Root folder of published runs."),
    as_of: Optional[datetime] = typer.Option(
        None, "--as-of", formats=["%Y-%m-%d"], help="Read the days before this date (default: today)."
    ),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Lookback window in days."),
):
    """Print the history digest the pipeline would feed to the model."""
    settings = _load_settings_or_fail()
    root = output_dir or Path(settings.output_dir)
    day: date = as_of.date() if as_of else datetime.now(timezone.utc).date()
    digest = load_history(root, day, days if days is not None else settings.history_lookback_days)
    if not digest:
        rprint("[yellow]No published stories found in the lookback window.[/yellow]")
        return
    typer.echo(digest)


@app.command("topics")
def topics_command(
    topics_path: Optional[Path] = typer.Option(None, "--topics", "-t", help="Topic JSON file."),
):
    """List the configured topics and their final-selection targets."""
    settings = _load_settings_or_fail()
    topics = _load_topics_or_fail(topics_path or settings.topics_path)
    for topic in topics:
        rprint(f"[bold]{topic.name}[/bold] (target {topic.target}): {topic.description}")
    rprint(
        f"[cyan]Targets sum to {sum(t.target for t in topics)}; "
        f"published total is capped at {settings.target_total}.[/cyan]"
    )


def main():
    app()


if __name__ == "__main__":
    main()
