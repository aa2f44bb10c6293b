"""Static HTML output: one folder per run plus a rolling archive page."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader

from .context import PipelineContext
from .expansion import summary_article
from .history import INDEX_FILENAME, list_runs, run_dir_name
from .models import PublishedStory, Story
from .pipeline import PipelineResult

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
ARCHIVE_FILENAME = "archive.html"
MAX_SLUG_CHARS = 60

_env = Environment(loader=FileSystemLoader(TEMPLATES_DIR), autoescape=True)


def sanitize_filename(title: str) -> str:
    """Lowercase ASCII slug of a title, e.g. "GPU Prices Crash!" -> "gpu-prices-crash"."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:MAX_SLUG_CHARS].rstrip("-") or "story"


def story_filename(item: PublishedStory) -> str:
    return f"{item.global_id:02d}-{sanitize_filename(item.story.title)}.html"


@dataclass
class _IndexItem:
    story: Story
    filename: str


@dataclass
class _IndexGroup:
    name: str
    items: List[_IndexItem]


def render_index(result: PipelineResult, ctx: PipelineContext) -> str:
    groups: List[_IndexGroup] = []
    numbered = iter(result.published)
    for group in result.groups:
        items = [next(numbered) for _ in group.stories]
        groups.append(
            _IndexGroup(
                name=group.name,
                items=[_IndexItem(story=item.story, filename=story_filename(item)) for item in items],
            )
        )
    return _env.get_template("index.html.j2").render(
        today=ctx.today_label,
        timestamp=ctx.local_now.strftime("%d/%m/%Y, %H:%M"),
        groups=groups,
    )


def render_story(
    item: PublishedStory,
    result: PipelineResult,
    ctx: PipelineContext,
    *,
    previous_page: Optional[str] = None,
    next_page: Optional[str] = None,
) -> str:
    article = result.articles.get(item.global_id) or summary_article(item)
    return _env.get_template("story.html.j2").render(
        item=item,
        article=article,
        today=ctx.today_label,
        previous=previous_page,
        next=next_page,
    )


def publish_run(result: PipelineResult, ctx: PipelineContext) -> Path:
    """Write index.html and one page per story into a fresh run folder; returns the folder."""
    run_dir = ctx.output_root / run_dir_name(ctx.now)
    if run_dir.exists():
        # Same-minute rerun: the newer brief replaces the older one wholesale.
        logger.warning("Replacing existing run folder %s", run_dir)
        shutil.rmtree(run_dir)
    run_dir.mkdir(parents=True)

    filenames = [story_filename(item) for item in result.published]
    for position, item in enumerate(result.published):
        page = render_story(
            item,
            result,
            ctx,
            previous_page=filenames[position - 1] if position > 0 else None,
            next_page=filenames[position + 1] if position + 1 < len(filenames) else None,
        )
        (run_dir / filenames[position]).write_text(page, encoding="utf-8")

    (run_dir / INDEX_FILENAME).write_text(render_index(result, ctx), encoding="utf-8")
    logger.info("Wrote %d story pages and index to %s", len(filenames), run_dir)

    write_archive(ctx.output_root, ctx.now.date(), ctx.settings.history_lookback_days)
    return run_dir


def write_archive(output_root: Path, as_of: date, lookback_days: int = 14) -> Path:
    """Rewrite archive.html listing runs from the last `lookback_days` days, newest first."""
    cutoff = as_of - timedelta(days=lookback_days)
    runs = [
        {
            "href": f"{path.name}/{INDEX_FILENAME}",
            "label": f"{started.day} {started.strftime('%B %Y, %H:%M')} UTC",
        }
        for started, path in reversed(list_runs(output_root))
        if cutoff < started.date() <= as_of and (path / INDEX_FILENAME).exists()
    ]
    output_root.mkdir(parents=True, exist_ok=True)
    archive_path = output_root / ARCHIVE_FILENAME
    archive_path.write_text(
        _env.get_template("archive.html.j2").render(runs=runs, lookback_days=lookback_days),
        encoding="utf-8",
    )
    return archive_path
