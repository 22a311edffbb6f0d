"""Domain model for an assembled, portable document."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..types import StoryRef
from .chapter import Chapter

EPUB_MEDIA_TYPE = "application/epub+zip"


@dataclass(frozen=True)
class Document:
    """
    A story assembled into a single e-book package.

    Attributes:
        story: Story the document was built for
        title: Story title
        author: Story author
        chapters: Chapters in index order (one per index)
        built_at: Assembly timestamp embedded in the package
        missing: Chapter indices detected as gaps (flagged in package metadata)
        package: Package bytes (EPUB)
        media_type: MIME type of the package
    """

    story: StoryRef
    title: str
    author: str
    chapters: tuple[Chapter, ...]
    built_at: datetime
    missing: tuple[int, ...] = ()
    package: bytes = field(default=b"", repr=False)
    media_type: str = EPUB_MEDIA_TYPE

    def __post_init__(self) -> None:
        if not self.chapters:
            raise ValueError("a document needs at least one chapter")
        indices = [c.index for c in self.chapters]
        if indices != sorted(set(indices)):
            raise ValueError(f"chapters must be unique and ordered by index, got {indices}")

    @property
    def story_id(self) -> str:
        return self.story.story_id

    @property
    def chapter_count(self) -> int:
        return len(self.chapters)

    @property
    def has_gaps(self) -> bool:
        return bool(self.missing)

    @property
    def filename(self) -> str:
        return f"{self.story.source_kind}-{self.story.story_id}.epub"
