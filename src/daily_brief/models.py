"""Data models for the daily brief pipeline."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Story(BaseModel):
    """A validated news item: trimmed, non-empty title, summary and source."""

    model_config = ConfigDict(frozen=True)

    title: str
    summary: str
    source: str = Field(..., description='Expected form "<Outlet>: <fact basis>".')

    @property
    def identity(self) -> tuple[str, str]:
        """Case-insensitive (title, summary) pair used for duplicate detection."""
        return self.title.lower(), self.summary.lower()


class Topic(BaseModel):
    """A configured news category with its final-selection quota."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    target: int = Field(..., ge=0, description="Stories wanted from this topic after selection.")
    description: str = Field(..., min_length=1)


class StrictnessPolicy(BaseModel):
    """Optional extra filters applied by the story validator."""

    max_summary_words: Optional[int] = Field(
        None, ge=1, description="Drop summaries with this many words or more."
    )
    require_source_separator: bool = False


class Article(BaseModel):
    """Long-form body written for one published story."""

    paragraphs: List[str]
    expanded: bool = Field(
        True, description="False when the body fell back to the story summary."
    )


class PublishedStory(BaseModel):
    """A story placed in a group with its permanent 1-based globalId."""

    model_config = ConfigDict(frozen=True)

    global_id: int = Field(..., ge=1)
    group_name: str
    story: Story
