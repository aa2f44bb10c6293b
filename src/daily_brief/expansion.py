"""Expand each published story into a full article, one model call at a time."""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from .context import PipelineContext
from .models import Article, PublishedStory
from .oracle import OracleError, render_prompt

logger = logging.getLogger(__name__)


def summary_article(published: PublishedStory) -> Article:
    return Article(paragraphs=[published.story.summary], expanded=False)


def expand_story(published: PublishedStory, ctx: PipelineContext) -> Article:
    """Ask for the article body; falls back to the summary when the call fails."""
    prompt = render_prompt(
        "expansion.txt",
        story=published.story,
        group_name=published.group_name,
        today=ctx.today_label,
    )
    try:
        payload = ctx.oracle.generate_json(
            prompt,
            schema="article",
            max_output_tokens=ctx.settings.expansion_max_tokens,
            step=f"Article {published.global_id}",
        )
    except OracleError as exc:
        logger.warning(
            "Article %d (%s) not expanded, publishing summary only: %s",
            published.global_id,
            published.story.title,
            exc,
        )
        return summary_article(published)
    paragraphs = [paragraph.strip() for paragraph in payload["paragraphs"] if paragraph.strip()]
    if not paragraphs:
        return summary_article(published)
    return Article(paragraphs=paragraphs)


def expand_all(published: Sequence[PublishedStory], ctx: PipelineContext) -> Dict[int, Article]:
    """Expand stories in globalId order with a pause between calls; keyed by globalId."""
    articles: Dict[int, Article] = {}
    for position, item in enumerate(published):
        if position:
            ctx.pause(ctx.settings.expansion_delay_seconds)
        logger.info("Writing article %d/%d: %s", item.global_id, len(published), item.story.title)
        articles[item.global_id] = expand_story(item, ctx)
    expanded = sum(1 for article in articles.values() if article.expanded)
    logger.info("Expanded %d of %d articles.", expanded, len(published))
    return articles

