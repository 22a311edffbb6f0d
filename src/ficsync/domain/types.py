from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class StoryRef:
    """A story on a given source site."""

    source_kind: str
    story_id: str

    @property
    def key(self) -> str:
        return f"{self.source_kind}/{self.story_id}"

    @classmethod
    def from_key(cls, key: str) -> StoryRef:
        source_kind, _, story_id = key.partition("/")
        if not source_kind or not story_id:
            raise ValueError(f"Invalid story key: {key!r}")
        return cls(source_kind, story_id)


@dataclass(frozen=True)
class Checkpoint:
    """Opaque, monotonically increasing marker of mailbox read progress."""

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("checkpoint value must be non-empty")

    def is_after(self, other: Checkpoint | None) -> bool:
        """True if this checkpoint is strictly more advanced than `other`."""
        if other is None:
            return True
        if self.value.isdigit() and other.value.isdigit():
            return int(self.value) > int(other.value)
        return (len(self.value), self.value) > (len(other.value), other.value)

    def __str__(self) -> str:
        return self.value
