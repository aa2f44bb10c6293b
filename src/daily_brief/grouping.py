"""Partition the final story set into named sections.

    PRIMARY -> (accepted | RETRY -> (accepted | FALLBACK))

The model's grouping is only accepted when it covers every story exactly once
with an allowed number of groups. FALLBACK needs no model call and always
produces a valid partition.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .context import PipelineContext
from .models import Story
from .oracle import OracleError, render_prompt

logger = logging.getLogger(__name__)

FALLBACK_GROUP_NAMES = (
    "Top Stories",
    "Tech & Gaming",
    "World Watch",
    "Science & Discovery",
    "UK Focus",
    "Quick Hits",
)


class GroupingStage(str, Enum):
    PRIMARY = "primary"
    RETRY = "retry"
    FALLBACK = "fallback"


@dataclass
class Group:
    name: str
    stories: List[Story]


@dataclass
class GroupingResult:
    groups: List[Group]
    stage: GroupingStage  # stage that produced the accepted groups


def fallback_group_count(count: int, min_groups: int = 3, max_groups: int = 6) -> int:
    """clamp(ceil(count / 4), min_groups, max_groups), never more groups than stories."""
    if count <= 0:
        return 0
    wanted = min(max(math.ceil(count / 4), min_groups), max_groups)
    return min(wanted, count)


def group_name(position: int, names: Sequence[str] = FALLBACK_GROUP_NAMES) -> str:
    if position < len(names):
        return names[position]
    return f"Group {position + 1}"


def split_evenly(
    stories: Sequence[Story], num_groups: int, names: Sequence[str] = FALLBACK_GROUP_NAMES
) -> List[Group]:
    """Contiguous slices in original order; sizes differ by at most one."""
    if num_groups <= 0:
        return []
    base, extra = divmod(len(stories), num_groups)
    groups: List[Group] = []
    start = 0
    for position in range(num_groups):
        size = base + (1 if position < extra else 0)
        groups.append(Group(name=group_name(position, names), stories=list(stories[start:start + size])))
        start += size
    return groups


def _condensed(stories: Sequence[Story]) -> str:
    return json.dumps(
        [
            {"index": index, "title": story.title[:60], "summary": story.summary[:40]}
            for index, story in enumerate(stories)
        ],
        ensure_ascii=False,
    )


def check_partition(
    payload: Dict[str, Any], count: int, min_groups: int, max_groups: int
) -> Optional[str]:
    """Return why a grouping payload is unusable, or None when it is a valid partition."""
    groups = payload.get("groups") or []
    if not min_groups <= len(groups) <= max_groups:
        return f"{len(groups)} groups, expected {min_groups}-{max_groups}"
    indices = [index for group in groups for index in group["indices"]]
    if any(isinstance(index, bool) or not isinstance(index, int) for index in indices):
        return "non-integer indices"
    if len(indices) != len(set(indices)):
        return "repeated indices"
    if sorted(indices) != list(range(count)):
        missing = sorted(set(range(count)) - set(indices))
        return f"indices do not cover 0..{count - 1} (missing {missing})"
    return None


def _request_groups(
    prompt: str, stories: Sequence[Story], ctx: PipelineContext, *, min_groups: int, max_groups: int, step: str
) -> Optional[List[Group]]:
    try:
        payload = ctx.oracle.generate_json(
            prompt,
            schema="grouping",
            max_output_tokens=ctx.settings.grouping_max_tokens,
            step=step,
        )
    except OracleError as exc:
        logger.warning("%s failed: %s", step, exc)
        return None
    problem = check_partition(payload, len(stories), min_groups, max_groups)
    if problem:
        logger.warning("%s rejected: %s", step, problem)
        return None
    return [
        Group(name=raw["name"].strip(), stories=[stories[index] for index in raw["indices"]])
        for raw in payload["groups"]
    ]


def _group_bounds(count: int, ctx: PipelineContext) -> tuple[int, int]:
    max_groups = max(1, ctx.settings.max_groups)
    min_groups = min(max(1, ctx.settings.min_groups), max_groups, count)
    return min_groups, max_groups


def group_stories(stories: Sequence[Story], ctx: PipelineContext) -> GroupingResult:
    """Partition `stories` into named groups covering each story exactly once."""
    count = len(stories)
    min_groups, max_groups = _group_bounds(count, ctx)
    num_groups = fallback_group_count(count, min_groups, max_groups)
    if count == 0:
        return GroupingResult(groups=[], stage=GroupingStage.FALLBACK)

    stage = GroupingStage.PRIMARY
    groups: Optional[List[Group]] = None
    while groups is None:
        if stage is GroupingStage.PRIMARY:
            prompt = render_prompt(
                "grouping.txt",
                count=count,
                min_groups=min_groups,
                max_groups=max_groups,
                stories_json=_condensed(stories),
            )
            groups = _request_groups(
                prompt, stories, ctx, min_groups=min_groups, max_groups=max_groups, step="Grouping"
            )
            if groups is None:
                stage = GroupingStage.RETRY
        elif stage is GroupingStage.RETRY:
            ctx.pause(ctx.settings.call_delay_seconds)
            prompt = render_prompt(
                "grouping_retry.txt",
                count=count,
                num_groups=num_groups,
                suggested_names=[group_name(position) for position in range(num_groups)],
                stories_json=_condensed(stories),
            )
            groups = _request_groups(
                prompt, stories, ctx, min_groups=min_groups, max_groups=max_groups, step="Grouping retry"
            )
            if groups is None:
                stage = GroupingStage.FALLBACK
        else:
            groups = split_evenly(stories, num_groups)

    logger.info(
        "Grouped %d stories into %d groups via %s: %s",
        count,
        len(groups),
        stage.value,
        ", ".join(f"{group.name} ({len(group.stories)})" for group in groups),
    )
    ctx.groups = groups
    return GroupingResult(groups=groups, stage=stage)
