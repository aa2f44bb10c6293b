"""Run orchestration: acquire -> select -> group -> number -> expand.

Stages run strictly one after another with no concurrent model calls. The run
aborts (and nothing is published) only when there is nothing to publish. A short
final set is logged and published anyway unless exact totals are required.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .acquisition import TopicBucket, acquire_all
from .context import PipelineContext
from .expansion import expand_all
from .grouping import Group, GroupingStage, group_stories
from .history import load_history
from .models import Article, PublishedStory
from .selection import build_selection_pool, select_stories

logger = logging.getLogger(__name__)


class PipelineAborted(RuntimeError):
    """The run produced nothing publishable."""


class PoolExhaustedError(PipelineAborted):
    """No candidate stories to select from, or none survived selection."""


class ShortfallError(PipelineAborted):
    """Fewer than target_total stories while an exact total is required."""


@dataclass
class PipelineResult:
    groups: List[Group]
    published: List[PublishedStory]
    buckets: List[TopicBucket]
    grouping_stage: GroupingStage
    articles: Dict[int, Article] = field(default_factory=dict)

    @property
    def story_count(self) -> int:
        return len(self.published)


def assign_global_ids(groups: Sequence[Group]) -> List[PublishedStory]:
    """Number stories 1..N by group order, then position within the group."""
    published: List[PublishedStory] = []
    for group in groups:
        for story in group.stories:
            published.append(
                PublishedStory(global_id=len(published) + 1, group_name=group.name, story=story)
            )
    return published


def run_pipeline(ctx: PipelineContext, *, expand: bool | None = None) -> PipelineResult:
    """
    Produce the grouped, numbered story set for one run.

    Raises PoolExhaustedError when nothing can be published and ShortfallError
    when `require_exact_total` is set and the final set is short.
    """
    settings = ctx.settings
    expand = settings.expand_articles if expand is None else expand

    ctx.history = load_history(ctx.output_root, ctx.now.date(), settings.history_lookback_days)

    buckets = acquire_all(ctx)
    ctx.pool = build_selection_pool(buckets)
    logger.info("Total stories from all topics: %d", len(ctx.pool))
    if not ctx.pool:
        logger.error("No valid stories generated across topics.")
        raise PoolExhaustedError("No valid stories generated across topics.")

    ctx.pause(settings.call_delay_seconds)
    ctx.final_stories = select_stories(ctx.pool, ctx.topics, ctx.history, ctx)
    if not ctx.final_stories:
        logger.error("No valid stories after selection.")
        raise PoolExhaustedError("No valid stories after selection.")
    if len(ctx.final_stories) < settings.target_total:
        if settings.require_exact_total:
            raise ShortfallError(
                f"Only {len(ctx.final_stories)} stories after balancing; "
                f"exactly {settings.target_total} required."
            )
        logger.warning(
            "Only %d valid stories after balancing. Proceeding with available stories.",
            len(ctx.final_stories),
        )
    else:
        logger.info("Hit target: %d stories.", len(ctx.final_stories))

    ctx.pause(settings.call_delay_seconds)
    grouping = group_stories(ctx.final_stories, ctx)
    published = assign_global_ids(grouping.groups)

    result = PipelineResult(
        groups=grouping.groups,
        published=published,
        buckets=buckets,
        grouping_stage=grouping.stage,
    )
    if expand:
        ctx.pause(settings.call_delay_seconds)
        result.articles = expand_all(published, ctx)
    return result
