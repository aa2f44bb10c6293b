"""Balanced selection of the final story set from all topic buckets."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from .acquisition import TopicBucket
from .context import PipelineContext
from .models import Story, Topic
from .oracle import OracleError, render_prompt
from .stories import dedupe

logger = logging.getLogger(__name__)

TITLE_PREVIEW_CHARS = 60
SUMMARY_PREVIEW_CHARS = 40


@dataclass(frozen=True)
class PoolEntry:
    global_index: int
    topic: str
    story: Story


def build_selection_pool(buckets: Iterable[TopicBucket]) -> List[PoolEntry]:
    """
    Concatenate buckets in topic order and index the result from 0.

    A story already taken by an earlier topic is dropped so the pool never
    holds two entries with the same identity.
    """
    pool: List[PoolEntry] = []
    for bucket in buckets:
        taken = [entry.story for entry in pool]
        unique = dedupe(taken, bucket.stories)
        if len(unique) < len(bucket.stories):
            logger.warning(
                "Dropped %d %s stories already collected under another topic.",
                len(bucket.stories) - len(unique),
                bucket.topic.name,
            )
        for story in unique:
            pool.append(PoolEntry(global_index=len(pool), topic=bucket.topic.name, story=story))
    return pool


def _condensed(pool: Sequence[PoolEntry]) -> str:
    return json.dumps(
        [
            {
                "index": entry.global_index,
                "topic": entry.topic,
                "title": entry.story.title[:TITLE_PREVIEW_CHARS],
                "summary": entry.story.summary[:SUMMARY_PREVIEW_CHARS],
            }
            for entry in pool
        ],
        ensure_ascii=False,
    )


def build_selection_prompt(
    pool: Sequence[PoolEntry], topics: Sequence[Topic], history: str, target_total: int
) -> str:
    return render_prompt(
        "selection.txt",
        targets=", ".join(f"{topic.name}: {topic.target}" for topic in topics),
        target_total=target_total,
        history=history,
        stories_json=_condensed(pool),
    )


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def resolve_indices(
    indices: Iterable[Any], pool: Sequence[PoolEntry], target_total: int
) -> List[PoolEntry]:
    """Map returned indices to pool entries; unknown and repeated indices are dropped."""
    by_index = {entry.global_index: entry for entry in pool}
    chosen: List[PoolEntry] = []
    seen: set[int] = set()
    for raw in indices:
        index = _as_index(raw)
        entry = by_index.get(index) if index is not None else None
        if entry is None:
            logger.debug("Ignoring unknown selection index %r", raw)
            continue
        if index in seen:
            continue
        seen.add(index)
        chosen.append(entry)
    return chosen[:target_total]


def top_up_selection(
    chosen: Sequence[PoolEntry],
    pool: Sequence[PoolEntry],
    topics: Sequence[Topic],
    target_total: int,
) -> List[PoolEntry]:
    """
    Extend `chosen` until each topic reaches its target (declaration order),
    then pad with unused pool entries (pool order) until `target_total`.
    """
    result = list(chosen[:target_total])
    used = {entry.global_index for entry in result}
    for topic in topics:
        have = sum(1 for entry in result if entry.topic == topic.name)
        for entry in pool:
            if have >= topic.target or len(result) >= target_total:
                break
            if entry.topic == topic.name and entry.global_index not in used:
                result.append(entry)
                used.add(entry.global_index)
                have += 1
    for entry in pool:
        if len(result) >= target_total:
            break
        if entry.global_index not in used:
            result.append(entry)
            used.add(entry.global_index)
    return result


def fallback_selection(
    pool: Sequence[PoolEntry], topics: Sequence[Topic], target_total: int
) -> List[PoolEntry]:
    """Deterministic selection with no model input: the top-up order from an empty start."""
    return top_up_selection([], pool, topics, target_total)


def _oracle_selection(
    pool: Sequence[PoolEntry], topics: Sequence[Topic], history: str, ctx: PipelineContext
) -> List[PoolEntry]:
    target_total = ctx.settings.target_total
    try:
        payload = ctx.oracle.generate_json(
            build_selection_prompt(pool, topics, history, target_total),
            schema="selection",
            max_output_tokens=ctx.settings.selection_max_tokens,
            step="Selection",
        )
    except OracleError as exc:
        logger.warning("Selection failed: %s", exc)
        return []
    chosen = resolve_indices(payload["selectedIndices"], pool, target_total)
    if not chosen:
        logger.warning("Selection response resolved to no stories.")
    return chosen


def select_stories(
    pool: Sequence[PoolEntry],
    topics: Sequence[Topic],
    history: str,
    ctx: PipelineContext,
) -> List[Story]:
    """Pick at most `target_total` stories balanced across topics; empty only for an empty pool."""
    if not pool:
        return []

    target_total = ctx.settings.target_total
    chosen = _oracle_selection(pool, topics, history, ctx)
    if chosen:
        if len(chosen) < target_total:
            topped = top_up_selection(chosen, pool, topics, target_total)
            if len(topped) > len(chosen):
                logger.warning(
                    "Selection returned %d stories; topped up to %d from the pool.",
                    len(chosen),
                    len(topped),
                )
            chosen = topped
        logger.info("Selected %d balanced stories.", len(chosen))
    else:
        chosen = fallback_selection(pool, topics, target_total)
        logger.info("Fallback selection: %d stories.", len(chosen))
    return [entry.story for entry in chosen]
