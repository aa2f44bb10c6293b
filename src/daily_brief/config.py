"""Configuration helpers for the daily brief pipeline."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from pydantic import Field, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import StrictnessPolicy, Topic


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    oracle_api_key: str | None = Field(None, alias="XAI_API_KEY")
    oracle_base_url: str = Field(
        "https://api.x.ai/v1", description="OpenAI-compatible endpoint for the story model."
    )
    oracle_model: str = Field("grok-4-fast-reasoning", description="Story/selection/grouping model.")
    oracle_temperature: float | None = Field(
        None, description="Generation temperature; omitted from requests when unset."
    )

    stories_per_topic: int = Field(
        8, description="Per-topic generation quota (over-generation before selection)."
    )
    max_tries: int = Field(3, description="Oracle attempts per topic before giving up.")
    retry_delay_seconds: float = Field(2.0, description="Flat pause between topic retries.")
    call_delay_seconds: float = Field(1.0, description="Pause between consecutive topics.")
    acquisition_max_tokens: int = 2500

    live_search: bool = Field(
        True,
        description="Ask the model to search the last day of news; otherwise rely on training data.",
    )
    max_search_results: int = 15
    search_sources: List[str] = Field(default_factory=lambda: ["web", "news", "x"])
    search_window_hours: int = 24

    max_summary_words: Optional[int] = Field(
        None, ge=1, description="Drop stories whose summary has at least this many words."
    )
    require_source_separator: bool = Field(
        False, description='Drop stories whose source lacks the "Outlet: basis" separator.'
    )

    target_total: int = Field(20, description="Hard cap on the published story count.")
    require_exact_total: bool = Field(
        False, description="Abort the run when fewer than target_total stories survive selection."
    )
    selection_max_tokens: int = 1500

    min_groups: int = 3
    max_groups: int = 6
    grouping_max_tokens: int = 1500

    expand_articles: bool = True
    expansion_delay_seconds: float = 1.0
    expansion_max_tokens: int = 2000

    output_dir: str = Field("site", description="Root folder holding one directory per run.")
    history_lookback_days: int = 14
    timezone: str = Field("Europe/London", description="Zone used for reader-facing dates.")
    topics_path: str | None = Field(
        None, description="Optional JSON file overriding the default topic list."
    )

    def strictness(self) -> StrictnessPolicy:
        return StrictnessPolicy(
            max_summary_words=self.max_summary_words,
            require_source_separator=self.require_source_separator,
        )


def get_settings() -> Settings:
    """Return a settings instance built from the current environment."""
    return Settings()


DEFAULT_TOPICS: tuple[Topic, ...] = (
    Topic(
        name="gaming",
        target=3,
        description="new game updates/releases or similar (patches, betas, launches)",
    ),
    Topic(
        name="hardware",
        target=5,
        description="PC hardware or similar (GPUs, controllers, keyboards, builds)",
    ),
    Topic(
        name="world",
        target=5,
        description="major world events (wars, global crises; focus on factual updates/impacts)",
    ),
    Topic(name="ukgov", target=4, description="UK government actions"),
    Topic(
        name="science",
        target=3,
        description="new inventions and scientific discoveries or advancements",
    ),
)

_TOPIC_LIST = TypeAdapter(List[Topic])


def load_topics(path: Optional[Path | str] = None) -> list[Topic]:
    """
    Load the ordered topic list from a JSON file, or return the defaults.

    Raises ValueError when the file is not a list of {name, target, description}.
    """
    if path is None:
        return list(DEFAULT_TOPICS)
    topics_path = Path(path)
    try:
        data = json.loads(topics_path.read_text(encoding="utf-8"))
        topics = _TOPIC_LIST.validate_python(data)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Topic file {topics_path} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise ValueError(f"Topic file {topics_path} is invalid: {exc}") from exc
    if not topics:
        raise ValueError(f"Topic file {topics_path} lists no topics.")
    names = [topic.name for topic in topics]
    if len(set(names)) != len(names):
        raise ValueError(f"Topic file {topics_path} repeats a topic name.")
    return topics
