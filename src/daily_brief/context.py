"""Per-run state threaded through every pipeline stage."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional
from zoneinfo import ZoneInfo

from .config import Settings, get_settings, load_topics
from .models import Story, StrictnessPolicy, Topic
from .oracle import OracleClient, SearchWindow

if TYPE_CHECKING:
    from .acquisition import TopicBucket
    from .grouping import Group
    from .selection import PoolEntry


@dataclass
class PipelineContext:
    """Configuration, collaborators and mutable results for a single run."""

    settings: Settings
    oracle: OracleClient
    topics: List[Topic]
    now: datetime
    output_root: Path
    sleep: Callable[[float], None] = time.sleep
    history: str = ""
    buckets: List["TopicBucket"] = dataclasses.field(default_factory=list)
    pool: List["PoolEntry"] = dataclasses.field(default_factory=list)
    final_stories: List[Story] = dataclasses.field(default_factory=list)
    groups: List["Group"] = dataclasses.field(default_factory=list)
    strictness: Optional[StrictnessPolicy] = None

    def __post_init__(self) -> None:
        if self.strictness is None:
            self.strictness = self.settings.strictness()

    @property
    def local_now(self) -> datetime:
        return self.now.astimezone(ZoneInfo(self.settings.timezone))

    @property
    def today_label(self) -> str:
        """Reader-facing date, e.g. "17 October 2025"."""
        local = self.local_now
        return f"{local.day} {local.strftime('%B %Y')}"

    def search_window(self) -> SearchWindow | None:
        """Recency window for live search, or None when the model should not search."""
        if not self.settings.live_search:
            return None
        start = self.now - timedelta(hours=self.settings.search_window_hours)
        return SearchWindow(start=start.date(), end=self.now.date())

    def pause(self, seconds: float) -> None:
        if seconds > 0:
            self.sleep(seconds)


def build_context(
    settings: Optional[Settings] = None,
    *,
    oracle: Optional[OracleClient] = None,
    topics: Optional[List[Topic]] = None,
    now: Optional[datetime] = None,
    output_root: Optional[Path] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> PipelineContext:
    """Assemble a context from settings, filling any collaborator not supplied."""
    settings = settings or get_settings()
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return PipelineContext(
        settings=settings,
        oracle=oracle or OracleClient(settings=settings),
        topics=list(topics) if topics is not None else load_topics(settings.topics_path),
        now=now,
        output_root=Path(output_root or settings.output_dir),
        sleep=sleep or time.sleep,
        strictness=settings.strictness(),
    )
