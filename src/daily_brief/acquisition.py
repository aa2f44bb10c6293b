"""Per-topic story acquisition.

Each topic runs a small state machine:

    REQUESTING -> VALIDATING -> ACCUMULATING -> (RETRYING | SATISFIED | EXHAUSTED)

RETRYING pauses for a flat delay and goes back to REQUESTING. A failed model
call skips straight to the retry decision. The loop is bounded by
`max_tries`, so a topic always finishes with 0..quota stories.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List

from .context import PipelineContext
from .models import Story, Topic
from .oracle import OracleError, render_prompt
from .stories import dedupe, validate_stories

logger = logging.getLogger(__name__)


class AcquisitionState(str, Enum):
    REQUESTING = "requesting"
    VALIDATING = "validating"
    ACCUMULATING = "accumulating"
    RETRYING = "retrying"
    SATISFIED = "satisfied"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = frozenset({AcquisitionState.SATISFIED, AcquisitionState.EXHAUSTED})


@dataclass
class TopicBucket:
    """Stories gathered for one topic; only grows, capped at the quota."""

    topic: Topic
    quota: int
    stories: List[Story] = dataclasses.field(default_factory=list)
    tries: int = 0
    state: AcquisitionState = AcquisitionState.REQUESTING

    @property
    def satisfied(self) -> bool:
        return self.state is AcquisitionState.SATISFIED

    @property
    def shortfall(self) -> int:
        return max(0, self.quota - len(self.stories))


def build_acquisition_prompt(bucket: TopicBucket, ctx: PipelineContext) -> str:
    return render_prompt(
        "acquisition.txt",
        topic=bucket.topic,
        quota=bucket.quota,
        minimum=max(1, bucket.quota // 2),
        relaxed=bucket.tries > 1,
        today=ctx.today_label,
        live_search=ctx.settings.live_search,
        collected=[story.title for story in bucket.stories],
        history=ctx.history,
    )


def _after_attempt(bucket: TopicBucket, max_tries: int) -> AcquisitionState:
    if bucket.tries >= max_tries:
        return AcquisitionState.EXHAUSTED
    return AcquisitionState.RETRYING


def acquire_topic(topic: Topic, ctx: PipelineContext) -> TopicBucket:
    """Fill one topic bucket up to `stories_per_topic`, retrying at most `max_tries` times."""
    settings = ctx.settings
    bucket = TopicBucket(topic=topic, quota=settings.stories_per_topic)
    max_tries = max(1, settings.max_tries)
    if bucket.quota <= 0:
        bucket.state = AcquisitionState.SATISFIED
        return bucket

    raw_records: List[Any] = []
    valid: List[Story] = []
    state = AcquisitionState.REQUESTING
    while state not in TERMINAL_STATES:
        bucket.state = state
        if state is AcquisitionState.REQUESTING:
            bucket.tries += 1
            logger.info("Starting try %d for %s...", bucket.tries, topic.name)
            try:
                payload = ctx.oracle.generate_json(
                    build_acquisition_prompt(bucket, ctx),
                    schema="stories",
                    max_output_tokens=settings.acquisition_max_tokens,
                    search_window=ctx.search_window(),
                    max_search_results=settings.max_search_results if settings.live_search else None,
                    sources=settings.search_sources if settings.live_search else None,
                    step=f"Stories ({topic.name})",
                )
            except OracleError as exc:
                logger.warning("Story generation failed for %s (try %d): %s", topic.name, bucket.tries, exc)
                state = _after_attempt(bucket, max_tries)
                continue
            raw_records = list(payload["stories"])
            state = AcquisitionState.VALIDATING

        elif state is AcquisitionState.VALIDATING:
            valid = validate_stories(
                raw_records, ctx.strictness, label=f"{topic.name} (try {bucket.tries})"
            )
            state = AcquisitionState.ACCUMULATING

        elif state is AcquisitionState.ACCUMULATING:
            unique = dedupe(bucket.stories, valid)
            bucket.stories.extend(unique)
            logger.info(
                "Try %d: %d raw, %d valid, %d unique new, total now %d for %s.",
                bucket.tries,
                len(raw_records),
                len(valid),
                len(unique),
                len(bucket.stories),
                topic.name,
            )
            if len(bucket.stories) >= bucket.quota:
                del bucket.stories[bucket.quota:]
                state = AcquisitionState.SATISFIED
            else:
                state = _after_attempt(bucket, max_tries)

        elif state is AcquisitionState.RETRYING:
            ctx.pause(settings.retry_delay_seconds)
            state = AcquisitionState.REQUESTING

    bucket.state = state
    if bucket.satisfied:
        logger.info("Final for %s: %d stories after %d tries.", topic.name, len(bucket.stories), bucket.tries)
    else:
        logger.warning(
            "Topic %s exhausted after %d tries with %d/%d stories.",
            topic.name,
            bucket.tries,
            len(bucket.stories),
            bucket.quota,
        )
    return bucket


def acquire_all(ctx: PipelineContext) -> List[TopicBucket]:
    """Run acquisition for every topic in declaration order, one at a time."""
    buckets: List[TopicBucket] = []
    for position, topic in enumerate(ctx.topics):
        if position:
            ctx.pause(ctx.settings.call_delay_seconds)
        buckets.append(acquire_topic(topic, ctx))
    ctx.buckets = buckets
    return buckets
