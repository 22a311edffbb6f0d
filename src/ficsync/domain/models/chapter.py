"""Domain model for a fetched chapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class Chapter:
    """
    A chapter fetched from a source and normalized to XHTML fragments.

    Attributes:
        story_id: Story identifier on the source
        index: 1-based chapter index within the story
        title: Chapter title as shown by the source
        body: Normalized XHTML fragment (paragraph and emphasis structure only)
        fetched_at: When the chapter was fetched
        story_title: Title of the whole story
        author: Story author
        total_chapters: Chapter count reported by the source (0 if unknown)
    """

    story_id: str
    index: int
    title: str
    body: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    story_title: str = ""
    author: str = ""
    total_chapters: int = 0

    def __post_init__(self) -> None:
        if not self.story_id:
            raise ValueError("story_id must be non-empty")
        if self.index < 1:
            raise ValueError(f"index must be >= 1, got {self.index}")
        if self.total_chapters < 0:
            raise ValueError("total_chapters must be >= 0")

    def __repr__(self) -> str:
        return (
            f"Chapter(story_id={self.story_id!r}, index={self.index}, title={self.title!r}, "
            f"body_len={len(self.body)}, total_chapters={self.total_chapters})"
        )
