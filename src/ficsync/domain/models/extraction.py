"""Domain models for extraction requests derived from messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..types import StoryRef

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class ChapterSelector:
    """Inclusive range of chapter indices to fetch (1-based)."""

    first: int
    last: int

    def __post_init__(self) -> None:
        if self.first < 1:
            raise ValueError(f"first must be >= 1, got {self.first}")
        if self.last < self.first:
            raise ValueError(f"last ({self.last}) must be >= first ({self.first})")

    def indices(self) -> range:
        return range(self.first, self.last + 1)

    def union(self, other: ChapterSelector) -> ChapterSelector:
        """Smallest selector covering both ranges."""
        return ChapterSelector(min(self.first, other.first), max(self.last, other.last))

    def to_dict(self) -> dict[str, int]:
        return {"first": self.first, "last": self.last}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChapterSelector:
        return cls(first=int(data["first"]), last=int(data["last"]))


@dataclass(frozen=True)
class ExtractionRequest:
    """
    A request to fetch chapters of one story from one source.

    Attributes:
        source_kind: Tag selecting the source implementation
        story_id: Story identifier on the source
        chapter_selector: Chapters to fetch
    """

    source_kind: str
    story_id: str
    chapter_selector: ChapterSelector

    @property
    def story(self) -> StoryRef:
        return StoryRef(self.source_kind, self.story_id)

    def merge(self, other: ExtractionRequest) -> ExtractionRequest:
        """Combine two requests for the same story."""
        if other.story != self.story:
            raise ValueError(f"Cannot merge requests for {self.story.key} and {other.story.key}")
        return ExtractionRequest(
            source_kind=self.source_kind,
            story_id=self.story_id,
            chapter_selector=self.chapter_selector.union(other.chapter_selector),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_kind": self.source_kind,
            "story_id": self.story_id,
            "chapter_selector": self.chapter_selector.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractionRequest:
        return cls(
            source_kind=data["source_kind"],
            story_id=data["story_id"],
            chapter_selector=ChapterSelector.from_dict(data["chapter_selector"]),
        )
