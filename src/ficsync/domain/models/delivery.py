"""Domain models for document delivery and the delivery ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from ..types import StoryRef

if TYPE_CHECKING:
    from typing import Any


class DeliveryStatus(str, Enum):
    UPLOADED = "uploaded"
    REPLACED = "replaced"
    ALREADY_CURRENT = "already_current"


@dataclass(frozen=True)
class DeliveryRecord:
    """
    Last successful delivery of a story.

    Attributes:
        story: Story the record belongs to (ledger key is `story.key`)
        content_fingerprint: Fingerprint of the delivered document
        remote_document_id: Identifier of the document in the remote store
        delivered_at: When the upload was confirmed
    """

    story: StoryRef
    content_fingerprint: str
    remote_document_id: str
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.content_fingerprint:
            raise ValueError("content_fingerprint must be non-empty")
        if not self.remote_document_id:
            raise ValueError("remote_document_id must be non-empty")

    @property
    def story_id(self) -> str:
        return self.story.story_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "story": self.story.key,
            "content_fingerprint": self.content_fingerprint,
            "remote_document_id": self.remote_document_id,
            "delivered_at": self.delivered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeliveryRecord:
        return cls(
            story=StoryRef.from_key(data["story"]),
            content_fingerprint=data["content_fingerprint"],
            remote_document_id=data["remote_document_id"],
            delivered_at=datetime.fromisoformat(data["delivered_at"]),
        )


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of a single `deliver` call."""

    status: DeliveryStatus
    record: DeliveryRecord
    replaced_remote_id: str | None = None

    @property
    def uploaded(self) -> bool:
        return self.status is not DeliveryStatus.ALREADY_CURRENT


@dataclass(frozen=True)
class RemoteDocument:
    """
    A document listed by the remote store.

    Attributes:
        remote_id: Identifier in the remote store
        name: Visible name
        metadata: Metadata supplied at upload time (may be empty for foreign documents)
    """

    remote_id: str
    name: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
