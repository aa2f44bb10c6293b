"""Story validation and in-run deduplication.

Every record the model returns is untrusted. `validate_stories` is the only
place a `Story` is created from model output; malformed records are dropped
and logged, never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence

from .models import Story, StrictnessPolicy

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "summary", "source")


def _clean_field(record: dict, key: str) -> str | None:
    value = record.get(key)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _rejection_reason(record: Any, policy: StrictnessPolicy) -> str | None:
    if not isinstance(record, dict):
        return "not an object"
    missing = [key for key in REQUIRED_FIELDS if _clean_field(record, key) is None]
    if missing:
        return f"missing {', '.join(missing)}"
    if policy.require_source_separator and ":" not in _clean_field(record, "source"):
        return "source lacks 'Outlet: basis' separator"
    if policy.max_summary_words is not None:
        words = len(_clean_field(record, "summary").split())
        if words >= policy.max_summary_words:
            return f"summary has {words} words"
    return None


def validate_stories(
    raw_records: Iterable[Any],
    policy: Optional[StrictnessPolicy] = None,
    *,
    label: str = "",
) -> List[Story]:
    """Return the well-formed records as trimmed Stories, preserving input order."""
    policy = policy or StrictnessPolicy()
    stories: List[Story] = []
    for record in raw_records:
        reason = _rejection_reason(record, policy)
        if reason:
            logger.warning("Dropped story%s (%s): %r", f" for {label}" if label else "", reason, record)
            continue
        stories.append(
            Story(
                title=_clean_field(record, "title"),
                summary=_clean_field(record, "summary"),
                source=_clean_field(record, "source"),
            )
        )
    return stories


def dedupe(existing: Sequence[Story], incoming: Sequence[Story]) -> List[Story]:
    """
    Return the stories in `incoming` whose identity is not already present.

    Repeats inside `incoming` are collapsed to their first occurrence as well.
    """
    seen = {story.identity for story in existing}
    unique: List[Story] = []
    for story in incoming:
        if story.identity in seen:
            continue
        seen.add(story.identity)
        unique.append(story)
    return unique
