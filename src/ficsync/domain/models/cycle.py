"""Domain models for notification cycles and per-story outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import ErrorKind, SyncError
from ..types import Checkpoint, StoryRef
from .delivery import DeliveryStatus
from .extraction import ExtractionRequest

if TYPE_CHECKING:
    from typing import Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CycleState(str, Enum):
    RECEIVED = "received"
    DIFFING = "diffing"
    EXTRACTING = "extracting"
    ASSEMBLING = "assembling"
    DELIVERING = "delivering"
    CHECKPOINTING = "checkpointing"
    DONE = "done"
    PARTIALLY_FAILED = "partially_failed"
    ABORTED = "aborted"


ALLOWED_TRANSITIONS: dict[CycleState, set[CycleState]] = {
    CycleState.RECEIVED: {CycleState.DIFFING, CycleState.DONE, CycleState.ABORTED},
    CycleState.DIFFING: {CycleState.EXTRACTING, CycleState.CHECKPOINTING, CycleState.ABORTED},
    CycleState.EXTRACTING: {CycleState.ASSEMBLING, CycleState.ABORTED},
    CycleState.ASSEMBLING: {CycleState.DELIVERING, CycleState.ABORTED},
    CycleState.DELIVERING: {CycleState.CHECKPOINTING, CycleState.ABORTED},
    CycleState.CHECKPOINTING: {CycleState.DONE, CycleState.PARTIALLY_FAILED, CycleState.ABORTED},
    CycleState.DONE: set(),
    CycleState.PARTIALLY_FAILED: set(),
    CycleState.ABORTED: set(),
}

# "partial" and "deferred" stories were delivered or parked but still need a retry
VALID_STORY_STATUSES = {
    "pending",
    "fetching",
    "assembling",
    "delivering",
    "delivered",
    "already_current",
    "partial",
    "failed",
    "deferred",
    "abandoned",
}
TERMINAL_STORY_STATUSES = {"delivered", "already_current", "partial", "failed", "deferred", "abandoned"}
RETRY_STORY_STATUSES = {"partial", "failed", "deferred"}


@dataclass
class StoryOutcome:
    """
    Progress of a single story through one cycle.

    Attributes:
        request: Merged extraction request for the story
        status: One of VALID_STORY_STATUSES
        stage: Stage reached (same as status while active)
        missing: Chapter indices that could not be fetched
        error: Failure reason (set for failed/partial/abandoned)
        error_kind: ErrorKind of the failure, if any
        fingerprint: Fingerprint of the delivered document
        remote_document_id: Remote id after delivery
        updated_at: Last update timestamp
    """

    request: ExtractionRequest
    status: str = "pending"
    stage: str | None = None
    missing: tuple[int, ...] = ()
    error: str | None = None
    error_kind: ErrorKind | None = None
    fingerprint: str | None = None
    remote_document_id: str | None = None
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if self.status not in VALID_STORY_STATUSES:
            raise ValueError(f"status must be one of {VALID_STORY_STATUSES}, got {self.status}")

    @property
    def story(self) -> StoryRef:
        return self.request.story

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STORY_STATUSES

    @property
    def needs_retry(self) -> bool:
        return self.status in RETRY_STORY_STATUSES

    def mark_stage(self, stage: str) -> None:
        if stage not in {"fetching", "assembling", "delivering"}:
            raise ValueError(f"Invalid stage: {stage}")
        self.status = stage
        self.stage = stage
        self.updated_at = _now()

    def mark_delivered(
        self,
        status: DeliveryStatus,
        fingerprint: str,
        remote_document_id: str,
        missing: tuple[int, ...] = (),
        reason: str | None = None,
    ) -> None:
        self.fingerprint = fingerprint
        self.remote_document_id = remote_document_id
        self.missing = missing
        if missing:
            self.status = "partial"
            self.error = reason or f"missing chapters {', '.join(str(i) for i in missing)}"
            self.error_kind = ErrorKind.PERMANENT_ITEM
        elif status is DeliveryStatus.ALREADY_CURRENT:
            self.status = "already_current"
        else:
            self.status = "delivered"
        self.updated_at = _now()

    def mark_failed(self, error: SyncError | str, kind: ErrorKind | None = None) -> None:
        if isinstance(error, SyncError):
            kind = kind or error.kind
            error = str(error)
        if not error:
            raise ValueError("error must be non-empty when marking as failed")
        self.status = "failed"
        self.error = error
        self.error_kind = kind or ErrorKind.PERMANENT_ITEM
        self.updated_at = _now()

    def mark_deferred(self) -> None:
        self.status = "deferred"
        self.error = self.error or "cycle cancelled before the story completed"
        self.updated_at = _now()

    def mark_abandoned(self, reason: str) -> None:
        self.status = "abandoned"
        self.error = reason
        self.updated_at = _now()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "story": self.story.key,
            "status": self.status,
            "stage": self.stage,
            "updated_at": self.updated_at.isoformat(),
        }
        if self.missing:
            result["missing"] = list(self.missing)
        if self.error is not None:
            result["error"] = self.error
        if self.error_kind is not None:
            result["error_kind"] = self.error_kind.value
        if self.fingerprint is not None:
            result["fingerprint"] = self.fingerprint
        if self.remote_document_id is not None:
            result["remote_document_id"] = self.remote_document_id
        return result


@dataclass(frozen=True)
class PendingRetry:
    """
    A story that must be retried on the next cycle.

    Persisted alongside the delivery ledger because the next mailbox diff will
    not surface the originating message again.
    """

    request: ExtractionRequest
    reason: str
    error_kind: ErrorKind = ErrorKind.PERMANENT_ITEM
    attempts: int = 1
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if not self.reason:
            raise ValueError("reason must be non-empty")
        if self.attempts < 0:
            raise ValueError("attempts must be >= 0")

    @property
    def story(self) -> StoryRef:
        return self.request.story

    def to_dict(self) -> dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "reason": self.reason,
            "error_kind": self.error_kind.value,
            "attempts": self.attempts,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingRetry:
        return cls(
            request=ExtractionRequest.from_dict(data["request"]),
            reason=data["reason"],
            error_kind=ErrorKind(data.get("error_kind", ErrorKind.PERMANENT_ITEM.value)),
            attempts=int(data.get("attempts", 1)),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else _now(),
        )


@dataclass
class CycleStatistics:
    """Aggregated story counts for one cycle."""

    total_stories: int = 0
    delivered: int = 0
    already_current: int = 0
    partial: int = 0
    failed: int = 0
    deferred: int = 0
    abandoned: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_stories": self.total_stories,
            "delivered": self.delivered,
            "already_current": self.already_current,
            "partial": self.partial,
            "failed": self.failed,
            "deferred": self.deferred,
            "abandoned": self.abandoned,
        }


@dataclass
class CycleReport:
    """
    State of one notification cycle.

    Attributes:
        correlation_id: Cycle identifier, attached to every log line of the cycle
        state: Current CycleState
        transitions: Every state visited, in order
        checkpoint_before: Checkpoint read at the start of the cycle
        checkpoint_after: Checkpoint stored at the end of the cycle
        message_ids: Messages returned by the diff
        skipped_messages: Messages given up on because they could not be retrieved
        stories: Per-story outcomes keyed by story key
        skipped: True when the notification was stale and no work was done
        cancelled: True when the cycle was cancelled between stories
        error: Reason for an aborted cycle
    """

    correlation_id: str
    state: CycleState = CycleState.RECEIVED
    transitions: list[CycleState] = field(default_factory=lambda: [CycleState.RECEIVED])
    checkpoint_before: Checkpoint | None = None
    checkpoint_after: Checkpoint | None = None
    message_ids: list[str] = field(default_factory=list)
    skipped_messages: list[str] = field(default_factory=list)
    stories: dict[str, StoryOutcome] = field(default_factory=dict)
    skipped: bool = False
    cancelled: bool = False
    error: str | None = None
    started_at: datetime = field(default_factory=_now)
    finished_at: datetime | None = None

    def transition(self, state: CycleState) -> None:
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f"Invalid cycle transition {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)
        if state in (CycleState.DONE, CycleState.PARTIALLY_FAILED, CycleState.ABORTED):
            self.finished_at = _now()

    def abort(self, error: str) -> None:
        self.error = error
        self.transition(CycleState.ABORTED)

    @property
    def partially_failed(self) -> bool:
        if self.skipped_messages:
            return True
        return any(outcome.status in {"failed", "partial", "abandoned"} for outcome in self.stories.values())

    def statistics(self) -> CycleStatistics:
        stats = CycleStatistics(total_stories=len(self.stories))
        for outcome in self.stories.values():
            if outcome.status in ("delivered", "already_current", "partial", "failed", "deferred", "abandoned"):
                setattr(stats, outcome.status, getattr(stats, outcome.status) + 1)
        return stats

    def to_dict(self) -> dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "state": self.state.value,
            "transitions": [s.value for s in self.transitions],
            "checkpoint_before": self.checkpoint_before.value if self.checkpoint_before else None,
            "checkpoint_after": self.checkpoint_after.value if self.checkpoint_after else None,
            "message_ids": list(self.message_ids),
            "skipped_messages": list(self.skipped_messages),
            "stories": {key: outcome.to_dict() for key, outcome in self.stories.items()},
            "statistics": self.statistics().to_dict(),
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
